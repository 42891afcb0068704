"""
Unit tests for building configuration snapshots from datafiles.
"""


import json

import pytest

from nimbus_decide.errors.handlers import BadRequest
from nimbus_decide.repositories import datafile_repo, memory_repo
from nimbus_decide.services.conditions import (
    AndCondition,
    AudienceIdCondition,
    NotCondition,
    OrCondition,
    UserAttribute,
)
from nimbus_decide.services.models import VariableType


# ---------- build_condition ----------


def test_build_condition_nested_lists():
    tree = datafile_repo.build_condition(
        ["and", "1", ["not", {"name": "plan", "match": "exact", "value": "free"}]]
    )

    assert tree == AndCondition(
        (
            AudienceIdCondition("1"),
            NotCondition(UserAttribute("plan", "exact", "free")),
        )
    )


def test_build_condition_defaults_to_or_and_accepts_json_strings():
    tree = datafile_repo.build_condition('["1", "2"]')
    assert tree == OrCondition((AudienceIdCondition("1"), AudienceIdCondition("2")))


def test_build_condition_empty_is_none():
    assert datafile_repo.build_condition([]) is None


@pytest.mark.parametrize(
    "raw",
    [
        ["not"],
        ["not", "1", "2"],
        [{"match": "exact", "value": 1}],
        42,
    ],
)
def test_build_condition_rejects_malformed_expressions(raw):
    with pytest.raises(ValueError):
        datafile_repo.build_condition(raw)


# ---------- config_from_dict ----------


def test_config_from_dict_builds_snapshot(checkout_datafile):
    config = datafile_repo.config_from_dict(checkout_datafile)

    assert config.revision == "7"
    assert config.flag_keys == ("checkout_flow", "new_search")

    flag = config.get_flag("checkout_flow")
    assert flag.variables[0].type is VariableType.STRING
    assert flag.variables[0].default_value == "blue"

    experiment = config.get_experiments_for_flag(flag)[0]
    assert experiment.key == "checkout_test"
    assert experiment.audience_ids == ("1",)
    assert experiment.variations[0].variables == {"var-color": "green"}

    rules = config.get_flag("new_search").rollout_rules
    assert rules[0].variations[0].feature_enabled is True


def test_config_from_dict_rejects_schema_violations(checkout_datafile):
    checkout_datafile["featureFlags"][0]["variables"][0]["type"] = "decimal"

    with pytest.raises(BadRequest) as exc_info:
        datafile_repo.config_from_dict(checkout_datafile)
    assert exc_info.value.detail.startswith("Invalid datafile:")


def test_config_from_dict_rejects_malformed_conditions(checkout_datafile):
    checkout_datafile["audiences"][0]["conditions"] = ["not"]

    with pytest.raises(BadRequest):
        datafile_repo.config_from_dict(checkout_datafile)


def test_config_from_dict_rejects_non_objects():
    with pytest.raises(BadRequest):
        datafile_repo.config_from_dict(None)


# ---------- load_datafile / memory_repo ----------


def test_load_datafile_reads_json_file(tmp_path, checkout_datafile):
    path = tmp_path / "datafile.json"
    path.write_text(json.dumps(checkout_datafile), encoding="utf-8")

    config = datafile_repo.load_datafile(path)

    assert config.flag_keys == ("checkout_flow", "new_search")


def test_load_datafile_missing_file_raises_runtime_error(tmp_path):
    with pytest.raises(RuntimeError):
        datafile_repo.load_datafile(tmp_path / "missing.json")


def test_memory_repo_save_get_clear(checkout_config):
    provider = memory_repo.MemoryConfigProvider()
    assert provider.get_config() is None

    memory_repo.save_config(checkout_config)
    assert provider.get_config() is checkout_config

    memory_repo.clear_config()
    assert memory_repo.get_config() is None
