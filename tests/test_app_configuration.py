from pathlib import Path

import pytest
import yaml

from modvote.configuration.app_configuration import (
    DEFAULT_QUORUM,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    AppConfig,
)
from modvote.datatypes.escalation_datatypes import VoteMode, VotingStrategy


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path, tmp_path: Path) -> None:
    config_payload = {
        "database": {"path": str(tmp_path / "votes.db")},
        "escalations": {
            "default_quorum": 4,
            "default_voting_strategy": "majority",
            "vote_mode": "single",
            "moderator_role_ids": [111, "222"],
            "restricted_role_id": 333,
            "timeout_duration_hours": 6,
        },
        "sweep": {"interval_seconds": 60, "case_timeout_seconds": 10},
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.database_path == (tmp_path / "votes.db").resolve()
    assert config.default_quorum == 4
    assert config.default_voting_strategy is VotingStrategy.MAJORITY
    assert config.vote_mode is VoteMode.SINGLE
    assert config.moderator_role_ids == frozenset({"111", "222"})
    assert config.restricted_role_id == "333"
    assert config.timeout_duration_hours == pytest.approx(6.0)
    assert config.sweep_interval == pytest.approx(60.0)
    assert config.sweep_case_timeout == pytest.approx(10.0)
    assert config.get("sweep") == {"interval_seconds": 60, "case_timeout_seconds": 10}


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.default_quorum == DEFAULT_QUORUM
    assert config.default_voting_strategy is VotingStrategy.SIMPLE
    assert config.vote_mode is VoteMode.MULTI
    assert config.moderator_role_ids == frozenset()
    assert config.restricted_role_id is None
    assert config.sweep_interval == pytest.approx(DEFAULT_SWEEP_INTERVAL_SECONDS)


def test_app_config_invalid_values_fall_back(config_path: Path) -> None:
    config_payload = {
        "escalations": {
            "default_quorum": 0,
            "default_voting_strategy": "ranked",
            "vote_mode": "whatever",
            "moderator_role_ids": 555,
            "timeout_duration_hours": "long",
        },
        "sweep": {"interval_seconds": "soon"},
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.default_quorum == DEFAULT_QUORUM
    assert config.default_voting_strategy is VotingStrategy.SIMPLE
    assert config.vote_mode is VoteMode.MULTI
    assert config.moderator_role_ids == frozenset({"555"})
    assert config.timeout_duration_hours == pytest.approx(12.0)
    assert config.sweep_interval == pytest.approx(DEFAULT_SWEEP_INTERVAL_SECONDS)


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text(yaml.safe_dump({"escalations": {"default_quorum": 2}}), encoding="utf-8")
    config = AppConfig(config_path)
    assert config.default_quorum == 2

    config_path.write_text(yaml.safe_dump({"escalations": {"default_quorum": 7}}), encoding="utf-8")
    config.reload()

    assert config.default_quorum == 7
