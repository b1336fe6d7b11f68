"""
Manifest loading

Responsibilities:
- Expand a glob pattern into manifest files
- Parse and validate manifest YAML into TestManifest
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Any

from .models import TestCase, TestManifest

DEFAULT_MODEL = "sonnet"


class ManifestError(ValueError):
    """A manifest is missing, unreadable or structurally invalid."""


def find_manifests(pattern: str) -> list[str]:
    """Return files matching ``pattern`` in a stable order."""
    paths = sorted(p for p in glob.glob(pattern, recursive=True) if Path(p).is_file())
    if not paths:
        raise ManifestError(f"No test files matched: {pattern}")
    return paths


def _parse_case(raw: Any, index: int, source: str) -> TestCase:
    where = f"{source}: tests[{index}]"
    if not isinstance(raw, dict):
        raise ManifestError(f"{where} must be a mapping")

    for key in ("id", "prompt", "should_trigger"):
        if key not in raw:
            raise ManifestError(f"{where} is missing required field '{key}'")

    if not isinstance(raw["prompt"], str) or not raw["prompt"].strip():
        raise ManifestError(f"{where}.prompt must be a non-empty string")
    if not isinstance(raw["should_trigger"], bool):
        raise ManifestError(f"{where}.should_trigger must be true or false")

    expected_tools = raw.get("expected_tools") or []
    if not isinstance(expected_tools, list) or not all(
        isinstance(t, str) for t in expected_tools
    ):
        raise ManifestError(f"{where}.expected_tools must be a list of tool names")

    notes = raw.get("notes")
    return TestCase(
        id=str(raw["id"]),
        prompt=raw["prompt"],
        should_trigger=raw["should_trigger"],
        expected_tools=list(expected_tools),
        notes=str(notes) if notes is not None else None,
    )


def parse_manifest(data: Any, source: str = "<manifest>") -> TestManifest:
    """Validate decoded manifest data."""
    if not isinstance(data, dict):
        raise ManifestError(f"{source}: manifest must be a mapping")

    tests = data.get("tests")
    if not isinstance(tests, list) or not tests:
        raise ManifestError(f"{source}: 'tests' must be a non-empty list")

    for key in ("skill", "agent", "model"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ManifestError(f"{source}: '{key}' must be a string")

    cases = [_parse_case(raw, i, source) for i, raw in enumerate(tests)]
    seen: set[str] = set()
    for case in cases:
        if case.id in seen:
            raise ManifestError(f"{source}: duplicate test id '{case.id}'")
        seen.add(case.id)

    return TestManifest(
        tests=cases,
        skill=data.get("skill") or None,
        agent=data.get("agent") or None,
        model=data.get("model") or DEFAULT_MODEL,
        path=source,
    )


def load_manifest(path: str) -> TestManifest:
    """Load one manifest YAML file."""
    try:
        import yaml
    except ImportError as exc:
        raise ManifestError("PyYAML is required: pip install pyyaml") from exc

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ManifestError(f"Failed to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ManifestError(f"Failed to parse {path}: {exc}") from exc

    return parse_manifest(data, source=path)


def load_manifests(pattern: str) -> list[TestManifest]:
    """Load every manifest matching ``pattern``.

    All files are validated before any test runs, so one broken manifest
    stops the whole run up front.
    """
    return [load_manifest(path) for path in find_manifests(pattern)]
