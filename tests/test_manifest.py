import tempfile
from pathlib import Path

import pytest

from claude_skill_test.manifest import (
    ManifestError,
    find_manifests,
    load_manifest,
    load_manifests,
    parse_manifest,
)

MANIFEST = """
skill: "demo:foo"
tests:
  - id: t1
    prompt: "create a thing"
    should_trigger: true
    expected_tools: [Read]
    notes: "direct request"
  - id: t2
    prompt: "what is 2+2"
    should_trigger: false
"""


def test_load_manifest():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "foo.yaml"
        path.write_text(MANIFEST, encoding="utf-8")
        manifest = load_manifest(str(path))

    assert manifest.skill == "demo:foo"
    assert manifest.agent is None
    assert manifest.model == "sonnet"
    assert manifest.path == str(path)
    assert [t.id for t in manifest.tests] == ["t1", "t2"]
    assert manifest.tests[0].expected_tools == ["Read"]
    assert manifest.tests[0].notes == "direct request"
    assert manifest.tests[1].expected_tools == []


def test_agent_only_manifest():
    manifest = parse_manifest(
        {"agent": "reviewer", "model": "opus", "tests": [{"id": 7, "prompt": "p", "should_trigger": True}]}
    )
    assert manifest.skill is None
    assert manifest.agent == "reviewer"
    assert manifest.model == "opus"
    assert manifest.tests[0].id == "7"


@pytest.mark.parametrize(
    "data, message",
    [
        ([], "must be a mapping"),
        ({"skill": "x"}, "'tests' must be a non-empty list"),
        ({"skill": "x", "tests": []}, "'tests' must be a non-empty list"),
        ({"skill": "x", "tests": [{"id": "a", "prompt": "p"}]}, "should_trigger"),
        ({"skill": "x", "tests": [{"id": "a", "should_trigger": True}]}, "prompt"),
        ({"skill": "x", "tests": [{"id": "a", "prompt": "p", "should_trigger": "yes"}]}, "true or false"),
        ({"skill": 3, "tests": [{"id": "a", "prompt": "p", "should_trigger": True}]}, "'skill' must be a string"),
        (
            {"skill": "x", "tests": [{"id": "a", "prompt": "p", "should_trigger": True, "expected_tools": "Read"}]},
            "expected_tools",
        ),
        (
            {
                "skill": "x",
                "tests": [
                    {"id": "a", "prompt": "p", "should_trigger": True},
                    {"id": "a", "prompt": "q", "should_trigger": False},
                ],
            },
            "duplicate test id",
        ),
    ],
)
def test_structural_errors(data, message):
    with pytest.raises(ManifestError, match=message):
        parse_manifest(data)


def test_invalid_yaml():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "bad.yaml"
        path.write_text("tests: [unclosed\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="Failed to parse"):
            load_manifest(str(path))


def test_glob_matches_in_sorted_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        for name in ("b.yaml", "a.yaml", "notes.txt"):
            (Path(tmpdir) / name).write_text(MANIFEST, encoding="utf-8")
        paths = find_manifests(str(Path(tmpdir) / "*.yaml"))
        manifests = load_manifests(str(Path(tmpdir) / "*.yaml"))

    assert [Path(p).name for p in paths] == ["a.yaml", "b.yaml"]
    assert [Path(m.path).name for m in manifests] == ["a.yaml", "b.yaml"]


def test_no_matching_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ManifestError, match="No test files matched"):
            find_manifests(str(Path(tmpdir) / "*.yaml"))
