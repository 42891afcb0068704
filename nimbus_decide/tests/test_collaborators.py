"""
Unit tests for the default collaborators and small helpers: type
conversion, options, reasons, notifications and impression recording.
"""


import logging

import pytest

from nimbus_decide.services.event_service import InMemoryEventDispatcher
from nimbus_decide.services.models import (
    DecisionNotification,
    Experiment,
    ProjectConfig,
    VariableType,
    Variation,
)
from nimbus_decide.services.notification_center import NotificationCenter
from nimbus_decide.services.options import DecideOption, merge_options, parse_options
from nimbus_decide.services.reasons import DecisionReasons, log_error, log_info
from nimbus_decide.services.type_converter import DefaultTypeConverter


# ---------- Type conversion ----------


@pytest.mark.parametrize(
    "raw, declared, expected",
    [
        ("blue", VariableType.STRING, "blue"),
        ("42", VariableType.INTEGER, 42),
        ("2.5", VariableType.DOUBLE, 2.5),
        ("TRUE", VariableType.BOOLEAN, True),
        ("false", VariableType.BOOLEAN, False),
        ('{"k": [1, 2]}', VariableType.JSON, {"k": [1, 2]}),
    ],
)
def test_default_converter_success(raw, declared, expected):
    assert DefaultTypeConverter().convert(raw, declared) == expected


@pytest.mark.parametrize(
    "raw, declared",
    [
        ("4.2", VariableType.INTEGER),
        ("abc", VariableType.DOUBLE),
        ("yes", VariableType.BOOLEAN),
        ("[1, 2]", VariableType.JSON),
        ("{not json", VariableType.JSON),
        (None, VariableType.STRING),
    ],
)
def test_default_converter_failure_returns_none(raw, declared):
    assert DefaultTypeConverter().convert(raw, declared) is None


# ---------- Options ----------


def test_merge_options_is_frozen_union():
    merged = merge_options(
        [DecideOption.INCLUDE_REASONS], [DecideOption.EXCLUDE_VARIABLES]
    )
    assert merged == frozenset(
        {DecideOption.INCLUDE_REASONS, DecideOption.EXCLUDE_VARIABLES}
    )
    assert merge_options([], None) == frozenset()


def test_parse_options_accepts_names_and_ignores_blanks():
    assert parse_options(["include_reasons", " ", ""]) == frozenset(
        {DecideOption.INCLUDE_REASONS}
    )
    with pytest.raises(ValueError):
        parse_options(["SOMETHING_ELSE"])


# ---------- Reasons ----------


def test_reasons_report_filters_infos_unless_requested():
    logger = logging.getLogger("nimbus_decide.tests")
    reasons = DecisionReasons()
    log_info(logger, reasons, 'Flag "%s" looked up.', "a")
    log_error(logger, reasons, "Something broke.")

    assert reasons.to_report([]) == ("Something broke.",)
    assert reasons.to_report([DecideOption.INCLUDE_REASONS]) == (
        'Flag "a" looked up.',
        "Something broke.",
    )


# ---------- Notifications ----------


def _payload(flag_key="f"):
    return DecisionNotification(
        user_id="u",
        attributes={},
        flag_key=flag_key,
        enabled=False,
        variables={},
        variation_key=None,
        rule_key=None,
        reasons=(),
        decision_event_dispatched=False,
    )


def test_notification_center_fans_out_and_survives_failures():
    center = NotificationCenter()
    received = []

    def _broken(payload):
        raise RuntimeError("listener bug")

    center.add_listener(_broken)
    listener_id = center.add_listener(received.append)

    center.publish(_payload("a"))
    assert [p.flag_key for p in received] == ["a"]

    assert center.remove_listener(listener_id) is True
    assert center.remove_listener(listener_id) is False
    center.publish(_payload("b"))
    assert [p.flag_key for p in received] == ["a"]


# ---------- Impression events ----------


def test_in_memory_dispatcher_records_and_clears():
    dispatcher = InMemoryEventDispatcher()
    variation = Variation(id="v", key="green")
    experiment = Experiment(id="e", key="checkout_test", variations=(variation,))
    attributes = {"plan": "pro"}

    dispatcher.send_impression(
        ProjectConfig(revision="3"), experiment, "u", attributes, variation
    )
    attributes["plan"] = "free"

    (event,) = dispatcher.events
    assert event.experiment_key == "checkout_test"
    assert event.variation_key == "green"
    assert event.revision == "3"
    assert event.attributes == {"plan": "pro"}

    dispatcher.clear()
    assert dispatcher.events == []


def test_bounded_dispatcher_keeps_most_recent_events():
    dispatcher = InMemoryEventDispatcher(max_events=2)
    variation = Variation(id="v", key="green")
    experiment = Experiment(id="e", key="checkout_test", variations=(variation,))

    for user_id in ("u1", "u2", "u3"):
        dispatcher.send_impression(
            ProjectConfig(), experiment, user_id, {}, variation
        )

    assert dispatcher.max_events == 2
    assert [event.user_id for event in dispatcher.events] == ["u2", "u3"]


def test_dispatcher_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        InMemoryEventDispatcher(max_events=0)
