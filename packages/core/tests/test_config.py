"""Tests for configuration loading."""

import pytest

from mergegate_core.config import Config, env_var_for_key, load_config, normalize_csv, normalize_key, parse_bool_value


def test_missing_config_file_yields_empty_config(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config.get("verifier.coverage_min") is None


def test_nested_keys_read_as_strings(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  coverage_min: 85\n  review:\n    require_checks: false\n")
    config = load_config(config_path=str(cfg))
    assert config.get("verifier.coverage_min") == "85"
    assert config.get("verifier.review.require_checks") == "false"


def test_lists_rendered_comma_joined(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  static_checks:\n    todo_markers:\n      - TODO\n      - XXX\n")
    config = load_config(config_path=str(cfg))
    assert config.get("verifier.static_checks.todo_markers") == "TODO,XXX"


def test_mapping_value_is_not_a_string(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  review:\n    reviewer: bot\n")
    config = load_config(config_path=str(cfg))
    assert config.get("verifier.review") is None


def test_hyphenated_yaml_keys_match(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  review:\n    poll-seconds: 30\n")
    config = load_config(config_path=str(cfg))
    assert config.get("verifier.review.poll_seconds") == "30"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  test_command: make test\n")
    config = load_config(config_path=str(cfg), cli_overrides={"verifier.test_command": "pytest"})
    assert config.get("verifier.test_command") == "pytest"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  test_command: make test\n")
    config = load_config(config_path=str(cfg), cli_overrides={"verifier.test_command": None})
    assert config.get("verifier.test_command") == "make test"


def test_env_var_overrides_file(tmp_path, monkeypatch):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("verifier:\n  review:\n    reviewer: greptile\n")
    monkeypatch.setenv("MERGEGATE_VERIFIER_REVIEW_REVIEWER", "coderabbit")
    config = load_config(config_path=str(cfg))
    assert config.get("verifier.review.reviewer") == "coderabbit"


def test_cli_override_beats_env_var(monkeypatch):
    monkeypatch.setenv("MERGEGATE_VERIFIER_COVERAGE_MIN", "50")
    config = Config({}, {"verifier.coverage_min": "75"})
    assert config.get("verifier.coverage_min") == "75"


def test_non_mapping_file_rejected(tmp_path):
    cfg = tmp_path / ".mergegate.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(config_path=str(cfg))


class TestHelpers:
    def test_normalize_key(self):
        assert normalize_key(" Verifier.Review.Poll-Seconds ") == "verifier.review.poll_seconds"
        assert normalize_key("   ") is None

    def test_env_var_for_key(self):
        assert env_var_for_key("verifier.static_checks.enabled") == "MERGEGATE_VERIFIER_STATIC_CHECKS_ENABLED"

    @pytest.mark.parametrize("value", ["true", "1", "YES", "y", "On"])
    def test_truthy_values(self, value):
        assert parse_bool_value(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "No", "n", "OFF"])
    def test_falsy_values(self, value):
        assert parse_bool_value(value) is False

    def test_unknown_bool_is_none(self):
        assert parse_bool_value("maybe") is None

    def test_normalize_csv_drops_blanks(self):
        assert normalize_csv(" a, ,b ,") == ["a", "b"]
