import json
import tempfile
from pathlib import Path

import pytest

from claude_skill_test.settings import SettingsError, deep_merge, merge_settings


def test_deep_merge_nested():
    target = {"env": {"A": "1", "B": "2"}, "model": "sonnet", "list": [1]}
    source = {"env": {"B": "3", "C": "4"}, "list": [2], "new": True}
    merged = deep_merge(target, source)
    assert merged == {
        "env": {"A": "1", "B": "3", "C": "4"},
        "model": "sonnet",
        "list": [2],
        "new": True,
    }
    assert target["env"] == {"A": "1", "B": "2"}


def test_deep_merge_replaces_non_dict():
    assert deep_merge({"a": "x"}, {"a": {"b": 1}}) == {"a": {"b": 1}}
    assert deep_merge({"a": {"b": 1}}, {"a": None}) == {"a": None}


def test_merge_settings_creates_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Path(tmpdir) / "config.json"
        config.write_text(json.dumps({"permissions": {"allow": ["Read"]}}), encoding="utf-8")
        settings = Path(tmpdir) / ".claude" / "settings.json"

        written = merge_settings(str(config), settings)

        assert written == settings
        assert json.loads(settings.read_text()) == {"permissions": {"allow": ["Read"]}}


def test_merge_settings_keeps_existing_keys():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Path(tmpdir) / "config.json"
        config.write_text(json.dumps({"env": {"X": "1"}}), encoding="utf-8")
        settings = Path(tmpdir) / "settings.json"
        settings.write_text(json.dumps({"env": {"Y": "2"}, "theme": "dark"}), encoding="utf-8")

        merge_settings(str(config), settings)

        assert json.loads(settings.read_text()) == {"env": {"Y": "2", "X": "1"}, "theme": "dark"}


def test_merge_settings_invalid_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Path(tmpdir) / "config.json"
        config.write_text("{oops", encoding="utf-8")
        with pytest.raises(SettingsError):
            merge_settings(str(config), Path(tmpdir) / "settings.json")
