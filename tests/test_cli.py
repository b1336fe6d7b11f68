"""Tests for CLI commands that do not need the agent."""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from claude_skill_test import cli
from claude_skill_test import eval as eval_module
from claude_skill_test.runner import ExecResult

MANIFEST = """
skill: "demo:foo"
tests:
  - id: t1
    prompt: "create a thing"
    should_trigger: true
  - id: t2
    prompt: "what is 2+2"
    should_trigger: false
"""

STREAM = "\n".join(
    [
        json.dumps({"type": "system", "subtype": "init", "model": "sonnet", "tools": ["Skill"], "skills": ["demo:foo"]}),
        "not json at all",
        json.dumps(
            {
                "type": "assistant",
                "message": {
                    "content": [
                        {"type": "text", "text": "Using the skill."},
                        {"type": "tool_use", "name": "Skill", "input": {"skill": "demo:foo"}},
                    ]
                },
            }
        ),
        json.dumps({"type": "result", "num_turns": 1, "total_cost_usd": 0.02, "stop_reason": "end_turn"}),
    ]
)


def test_parse_json_output(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "out.jsonl"
        path.write_text(STREAM, encoding="utf-8")
        cli.main(["parse", str(path), "--format", "json"])

    data = json.loads(capsys.readouterr().out)
    assert data["tools_used"] == ["Skill"]
    assert data["skills_invoked"] == ["demo:foo"]
    assert [e["kind"] for e in data["transcript"]] == ["init", "text", "tool_use", "result"]


def test_parse_text_output(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "out.jsonl"
        path.write_text(STREAM, encoding="utf-8")
        cli.main(["parse", str(path)])

    out = capsys.readouterr().out
    assert "skills: demo:foo" in out
    assert "TOOL_USE    Skill" in out


def test_gen_manifest_refuses_overwrite(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "m.yaml"
        cli.main(["gen-manifest", "--output", str(path)])
        assert "should_trigger" in path.read_text(encoding="utf-8")

        with pytest.raises(SystemExit) as exc:
            cli.main(["gen-manifest", "--output", str(path)])
        assert exc.value.code == 1


def test_dry_run_validates_without_running(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "m.yaml"
        path.write_text(MANIFEST, encoding="utf-8")
        with patch.object(eval_module, "run_agent") as run_agent:
            cli.main(["run", str(path), "--dry-run"])
        run_agent.assert_not_called()

    assert "2 tests" in capsys.readouterr().out


def test_missing_manifest_is_fatal(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(SystemExit) as exc:
            cli.main(["run", str(Path(tmpdir) / "*.yaml"), "--dry-run"])
    assert exc.value.code == 1
    assert "No test files matched" in capsys.readouterr().out


def test_run_writes_results_and_exit_code(capsys):
    outcomes = [
        ExecResult(command="claude", status="ok", stdout=STREAM, exit_code=0),
        ExecResult(command="claude", status="exit", stdout=STREAM, exit_code=1, error="claude exited with code 1: x"),
    ]
    with tempfile.TemporaryDirectory() as tmpdir:
        manifest = Path(tmpdir) / "m.yaml"
        manifest.write_text(MANIFEST, encoding="utf-8")
        output = Path(tmpdir) / "results.json"
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            os.environ.pop("GITHUB_STEP_SUMMARY", None)
            with patch.object(eval_module, "run_agent", side_effect=outcomes):
                with pytest.raises(SystemExit) as exc:
                    cli.main(["run", str(manifest), "--output", str(output)])

        data = json.loads(output.read_text(encoding="utf-8"))

    assert exc.value.code == 1
    results = data[0]["results"]
    assert [r["pass"] for r in results] == [True, False]
    assert results[1]["error"] == "claude exited with code 1: x"
    out = capsys.readouterr().out
    assert "**Results: 1/2 passed**" in out
    assert "skill: expected skip, got trigger" in out


def test_bare_env_key_does_not_count_as_api_key(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        manifest = Path(tmpdir) / "m.yaml"
        manifest.write_text(MANIFEST, encoding="utf-8")
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "inherited"}):
            with patch.object(eval_module, "run_agent") as run_agent:
                with pytest.raises(SystemExit) as exc:
                    cli.main(["run", str(manifest), "--env", "ANTHROPIC_API_KEY"])
    run_agent.assert_not_called()
    assert exc.value.code == 1
    assert "ANTHROPIC_API_KEY environment variable is required" in capsys.readouterr().out


def test_api_key_from_env_option(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        manifest = Path(tmpdir) / "m.yaml"
        manifest.write_text(MANIFEST, encoding="utf-8")
        output = Path(tmpdir) / "results.json"
        with patch.dict(os.environ, {}):
            os.environ.pop("ANTHROPIC_API_KEY", None)
            os.environ.pop("GITHUB_STEP_SUMMARY", None)
            outcome = ExecResult(command="claude", status="ok", stdout="", exit_code=0)
            with patch.object(eval_module, "run_agent", return_value=outcome) as run_agent:
                with pytest.raises(SystemExit):
                    cli.main(
                        ["run", str(manifest), "--env", "ANTHROPIC_API_KEY=k", "--output", str(output)]
                    )
    assert run_agent.call_count == 2
    assert run_agent.call_args[0][2]["ANTHROPIC_API_KEY"] == "k"
