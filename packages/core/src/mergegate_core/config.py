from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_CONFIG_PATH = ".mergegate.yml"
ENV_PREFIX = "MERGEGATE_"

_TRUE_VALUES = {"true", "1", "yes", "y", "on"}
_FALSE_VALUES = {"false", "0", "no", "n", "off"}


def normalize_key(key: str) -> str | None:
    """Canonical dotted form of a config key: trimmed, lower-case, ``-`` → ``_``."""
    trimmed = key.strip()
    if not trimmed:
        return None
    return ".".join(_normalize_segment(part) for part in trimmed.split("."))


def _normalize_segment(segment: str) -> str:
    return segment.strip().lower().replace("-", "_")


def env_var_for_key(key: str) -> str:
    """``verifier.review.poll_seconds`` → ``MERGEGATE_VERIFIER_REVIEW_POLL_SECONDS``."""
    return ENV_PREFIX + key.upper().replace(".", "_")


def parse_bool_value(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def normalize_csv(value: str) -> list[str]:
    return [entry.strip() for entry in value.split(",") if entry.strip()]


def _value_to_string(value: Any) -> str | None:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return None
    if isinstance(value, (list, tuple)):
        return ",".join(_value_to_string(item) or "" for item in value)
    return str(value)


def _lookup(data: dict, key: str) -> Any:
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, dict):
            return None
        if part in current:
            current = current[part]
            continue
        # Tolerate keys written as "poll-seconds" or "Poll_Seconds" in YAML.
        matched = None
        for candidate, value in current.items():
            if isinstance(candidate, str) and _normalize_segment(candidate) == part:
                matched = value
                break
        if matched is None:
            return None
        current = matched
    return current


class Config:
    """String-keyed view over the merged configuration.

    Stages never see the raw YAML: they ask for dotted keys and receive
    strings (or None when unset), then validate and convert them into their
    own settings objects.
    """

    def __init__(self, data: Optional[dict] = None, overrides: Optional[dict] = None):
        self._data = data or {}
        self._overrides = {normalize_key(k): str(v) for k, v in (overrides or {}).items() if v is not None}

    def get(self, key: str) -> str | None:
        normalized = normalize_key(key)
        if normalized is None:
            return None
        if normalized in self._overrides:
            return self._overrides[normalized]
        env_value = os.environ.get(env_var_for_key(normalized))
        if env_value is not None:
            return env_value
        value = _lookup(self._data, normalized)
        if value is None:
            return None
        return _value_to_string(value)


def load_config(config_path: str = DEFAULT_CONFIG_PATH, cli_overrides: Optional[dict] = None) -> Config:
    """
    Load configuration by merging (in order of precedence):
      1. CLI argument overrides (None values are ignored)
      2. MERGEGATE_* environment variables
      3. .mergegate.yml in the current directory
    Defaults are owned by each pipeline stage, not by the loader.
    """
    data: dict = {}
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping at the top level.")

    return Config(data, cli_overrides)
