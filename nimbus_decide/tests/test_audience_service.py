"""
Unit tests for audience resolution (experiments and rollout rules).
"""


import logging

from nimbus_decide.services.audience_service import (
    ENTITY_EXPERIMENT,
    ENTITY_RULE,
    does_user_meet_audience_conditions,
    is_experiment_active,
)
from nimbus_decide.services.conditions import (
    AudienceIdCondition,
    NotCondition,
    UserAttribute,
)
from nimbus_decide.services.models import Audience, Experiment, ProjectConfig
from nimbus_decide.services.reasons import DecisionReasons, Severity


CONFIG = ProjectConfig(
    audiences={
        "1": Audience("1", "pro", UserAttribute("plan", "exact", "pro")),
        "2": Audience("2", "adults", UserAttribute("age", "ge", 18)),
    }
)


def _meets(experiment, attributes, reasons=None, entity=ENTITY_EXPERIMENT):
    return does_user_meet_audience_conditions(
        CONFIG, experiment, attributes, entity, experiment.key, reasons
    )


def test_no_audiences_qualifies_everyone():
    experiment = Experiment(id="e", key="open")
    assert _meets(experiment, {}) is True
    assert _meets(experiment, {"plan": "free"}) is True


def test_audience_ids_are_an_implicit_or():
    experiment = Experiment(id="e", key="either", audience_ids=("1", "2"))

    assert _meets(experiment, {"plan": "pro"}) is True
    assert _meets(experiment, {"plan": "free", "age": 40}) is True
    assert _meets(experiment, {"plan": "free", "age": 12}) is False


def test_unknown_collapses_to_false():
    experiment = Experiment(id="e", key="adults", audience_ids=("2",))
    # "age" is missing -> UNKNOWN -> does not qualify
    assert _meets(experiment, {"plan": "pro"}) is False


def test_structured_conditions_take_precedence_over_ids():
    experiment = Experiment(
        id="e",
        key="not_pro",
        audience_ids=("1",),
        audience_conditions=NotCondition(AudienceIdCondition("1")),
    )

    assert _meets(experiment, {"plan": "free"}) is True
    assert _meets(experiment, {"plan": "pro"}) is False


def test_malformed_conditions_do_not_qualify_and_record_error():
    reasons = DecisionReasons()
    experiment = Experiment(id="e", key="broken", audience_conditions="oops")

    assert _meets(experiment, {"plan": "pro"}, reasons) is False
    severity, message = reasons.entries[-1]
    assert severity is Severity.ERROR
    assert message.startswith("Condition invalid:")


def test_out_of_range_attribute_values_do_not_invalidate_conditions():
    reasons = DecisionReasons()
    experiment = Experiment(id="e", key="either", audience_ids=("2", "1"))

    assert _meets(experiment, {"age": 10**400, "plan": "free"}, reasons) is True
    assert all(severity is Severity.INFO for severity, _ in reasons.entries)


def test_outcome_is_logged_with_entity_type_and_key(caplog):
    caplog.set_level(logging.DEBUG, logger="nimbus_decide.services.audience_service")
    experiment = Experiment(id="e", key="checkout_test", audience_ids=("1",))

    _meets(experiment, {"plan": "pro"})

    messages = [record.getMessage() for record in caplog.records]
    assert 'Evaluating audiences for experiment "checkout_test": [\'1\'].' in messages
    assert (
        'Audiences for experiment "checkout_test" collectively evaluated to TRUE.'
        in messages
    )


def test_rule_entity_type_is_used_in_reasons():
    reasons = DecisionReasons()
    rule = Experiment(id="r", key="Everyone Else", audience_ids=("1",))

    assert _meets(rule, {"plan": "free"}, reasons, entity=ENTITY_RULE) is False
    assert reasons.entries[-1] == (
        Severity.INFO,
        'Audiences for rule "Everyone Else" collectively evaluated to FALSE.',
    )


def test_paused_experiment_is_not_active():
    reasons = DecisionReasons()
    experiment = Experiment(id="e", key="paused", status="Paused")

    assert is_experiment_active(experiment, reasons) is False
    assert reasons.entries == ((Severity.INFO, 'Experiment "paused" is not running.'),)
    assert is_experiment_active(Experiment(id="e2", key="live")) is True
