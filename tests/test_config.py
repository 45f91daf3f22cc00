from __future__ import annotations

import pytest

from blindfold_core.config import ENTRIES_PER_MB, EngineConfig


def test_defaults() -> None:
    cfg = EngineConfig()
    assert cfg.max_depth == 100
    assert cfg.tt_max_entries == 200_000
    assert cfg.eval_roughness == 15
    assert cfg.hard_deadline is True


def test_from_env_overrides() -> None:
    cfg = EngineConfig.from_env(
        {
            "BLINDFOLD_MAX_DEPTH": "12",
            "BLINDFOLD_TT_MAX_ENTRIES": "5000",
            "BLINDFOLD_TIME_BUDGET_S": "0.25",
            "BLINDFOLD_HARD_DEADLINE": "off",
            "BLINDFOLD_LOG_LEVEL": "debug",
        }
    )
    assert cfg.max_depth == 12
    assert cfg.tt_max_entries == 5000
    assert cfg.default_time_budget_s == 0.25
    assert cfg.hard_deadline is False
    assert cfg.log_level == "DEBUG"


def test_from_env_ignores_unset_and_blank() -> None:
    assert EngineConfig.from_env({"BLINDFOLD_MAX_DEPTH": " "}) == EngineConfig()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("BLINDFOLD_MAX_DEPTH", "deep"),
        ("BLINDFOLD_TT_MAX_ENTRIES", "1.5"),
        ("BLINDFOLD_HARD_DEADLINE", "maybe"),
        ("BLINDFOLD_LOG_LEVEL", "LOUD"),
    ],
)
def test_from_env_malformed_value_names_variable(name: str, value: str) -> None:
    with pytest.raises(ValueError, match=name):
        EngineConfig.from_env({name: value})


def test_out_of_range_values_rejected() -> None:
    with pytest.raises(ValueError):
        EngineConfig(max_depth=0)
    with pytest.raises(ValueError):
        EngineConfig.from_env({"BLINDFOLD_TT_MAX_ENTRIES": "0"})


def test_hash_megabytes_map_to_entries() -> None:
    assert EngineConfig().with_hash_mb(2).tt_max_entries == 2 * ENTRIES_PER_MB
