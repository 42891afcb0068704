"""
Shared fixtures for the nimbus-decide test suite.

Provides the "checkout_flow" configuration both as model objects and as a
raw datafile, plus recording fakes for the engine's collaborators.
"""


import pytest

from nimbus_decide.repositories import memory_repo
from nimbus_decide.repositories.memory_repo import StaticConfigProvider
from nimbus_decide.services.allocation_service import RuleAllocator
from nimbus_decide.services.conditions import AndCondition, UserAttribute
from nimbus_decide.services.decision_service import DecisionEngine
from nimbus_decide.services.event_service import InMemoryEventDispatcher
from nimbus_decide.services.models import (
    Audience,
    Experiment,
    FeatureFlag,
    FeatureVariable,
    ProjectConfig,
    VariableType,
    Variation,
)
from nimbus_decide.services.type_converter import DefaultTypeConverter


class RecordingSink:
    """Notification sink that keeps every payload."""

    def __init__(self):
        self.payloads = []

    def publish(self, payload):
        self.payloads.append(payload)


def make_checkout_config() -> ProjectConfig:
    pro_audience = Audience(
        id="1",
        name="pro users",
        conditions=AndCondition(
            (UserAttribute(name="plan", match="exact", value="pro"),)
        ),
    )
    experiment = Experiment(
        id="e1",
        key="checkout_test",
        audience_ids=("1",),
        variations=(
            Variation(
                id="v-green",
                key="green",
                feature_enabled=True,
                variables={"var-color": "green"},
            ),
        ),
    )
    flag = FeatureFlag(
        id="f1",
        key="checkout_flow",
        variables=(
            FeatureVariable(
                id="var-color",
                key="button_color",
                type=VariableType.STRING,
                default_value="blue",
            ),
        ),
        experiment_ids=("e1",),
    )
    return ProjectConfig(
        flags=(flag,),
        experiments={"e1": experiment},
        audiences={"1": pro_audience},
        revision="7",
    )


@pytest.fixture
def checkout_config():
    return make_checkout_config()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def dispatcher():
    return InMemoryEventDispatcher()


@pytest.fixture
def make_engine(sink, dispatcher):
    """Factory building an engine around a given config and allocator."""

    def _make(config, allocator=None, default_options=()):
        return DecisionEngine(
            config_provider=StaticConfigProvider(config),
            allocator=allocator or RuleAllocator(),
            event_dispatcher=dispatcher,
            notification_sink=sink,
            type_converter=DefaultTypeConverter(),
            default_options=default_options,
        )

    return _make


@pytest.fixture
def checkout_datafile():
    return {
        "revision": "7",
        "audiences": [
            {
                "id": "1",
                "name": "pro users",
                "conditions": [
                    "and",
                    {
                        "type": "custom_attribute",
                        "name": "plan",
                        "match": "exact",
                        "value": "pro",
                    },
                ],
            }
        ],
        "experiments": [
            {
                "id": "e1",
                "key": "checkout_test",
                "status": "Running",
                "audienceIds": ["1"],
                "variations": [
                    {
                        "id": "v-green",
                        "key": "green",
                        "featureEnabled": True,
                        "variables": [{"id": "var-color", "value": "green"}],
                    }
                ],
            }
        ],
        "featureFlags": [
            {
                "id": "f1",
                "key": "checkout_flow",
                "experimentIds": ["e1"],
                "variables": [
                    {
                        "id": "var-color",
                        "key": "button_color",
                        "type": "string",
                        "defaultValue": "blue",
                    }
                ],
            },
            {
                "id": "f2",
                "key": "new_search",
                "variables": [],
                "rolloutRules": [
                    {
                        "id": "r1",
                        "key": "everyone",
                        "variations": [
                            {"id": "on", "key": "on", "featureEnabled": True}
                        ],
                    }
                ],
            },
        ],
    }


@pytest.fixture(autouse=True)
def _reset_memory_repo():
    memory_repo.clear_config()
    yield
    memory_repo.clear_config()
