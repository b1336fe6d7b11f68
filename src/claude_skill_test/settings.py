"""Merge user-supplied agent configuration into the agent settings file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional


class SettingsError(RuntimeError):
    """The config or settings file could not be read or written."""


def default_settings_path() -> Path:
    return Path.home() / ".claude" / "settings.json"


def deep_merge(target: dict, source: dict) -> dict:
    """Return ``target`` updated with ``source``.

    Nested dicts present on both sides are merged recursively; any other
    value in ``source`` replaces the one in ``target``. Neither input is
    modified.
    """
    result = dict(target)
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            result[key] = deep_merge(target[key], value)
        else:
            result[key] = value
    return result


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise SettingsError(f"Failed to read {path}: {exc}") from exc


def merge_settings(config_file: str, settings_path: Optional[Path] = None) -> Path:
    """Deep-merge ``config_file`` into the settings file.

    The settings file (and its directory) is created when missing.

    Returns:
        Path of the written settings file.
    """
    settings_path = settings_path or default_settings_path()

    user_config = _read_json(Path(config_file))
    if not isinstance(user_config, dict):
        raise SettingsError(f"{config_file} must contain a JSON object")

    existing: dict = {}
    if settings_path.exists():
        existing = _read_json(settings_path)
        if not isinstance(existing, dict):
            raise SettingsError(f"{settings_path} must contain a JSON object")

    merged = deep_merge(existing, user_config)
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(json.dumps(merged, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Failed to write {settings_path}: {exc}") from exc
    return settings_path
