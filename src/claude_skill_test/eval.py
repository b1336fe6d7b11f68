"""
Eval command implementation

Responsibilities:
- evaluate: Score one run's invocations against a test case
- run: Drive the agent for every case of every manifest, in order
- gen-manifest: Generate a manifest template
"""

from __future__ import annotations

import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from . import report
from .manifest import ManifestError, load_manifests
from .models import Invocations, ManifestRun, RunSummary, TestCase, TestManifest, TestResult
from .runner import DEFAULT_BINARY, build_command, build_env, run_agent
from .settings import merge_settings
from .stream import parse_stream
from .transcript import build_transcript, render_transcript

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    """Per-run settings shared by every test case"""
    max_turns: int = 3
    timeout_s: float = 60
    model_override: Optional[str] = None
    binary: str = DEFAULT_BINARY
    env_overrides: dict[str, Optional[str]] = field(default_factory=dict)


@dataclass
class Verdict:
    triggered: bool
    agent_triggered: bool
    skill_pass: bool
    agent_pass: bool
    tools_pass: bool

    @property
    def passed(self) -> bool:
        return self.skill_pass and self.agent_pass and self.tools_pass


def evaluate(
    case: TestCase,
    invocations: Invocations,
    target_skill: Optional[str] = None,
    target_agent: Optional[str] = None,
) -> Verdict:
    """Compare what was invoked with what the case expects.

    A missing target skill or agent makes that axis pass. ``expected_tools``
    is only checked for cases that should trigger, and only as a subset:
    extra tools are fine.
    """
    if target_skill:
        triggered = target_skill in invocations.skills
        skill_pass = triggered == case.should_trigger
    else:
        triggered = False
        skill_pass = True

    if target_agent:
        agent_triggered = target_agent in invocations.subagents
        agent_pass = agent_triggered == case.should_trigger
    else:
        agent_triggered = False
        agent_pass = True

    tools_pass = True
    if case.expected_tools and case.should_trigger:
        tools_pass = all(tool in invocations.tools for tool in case.expected_tools)

    return Verdict(
        triggered=triggered,
        agent_triggered=agent_triggered,
        skill_pass=skill_pass,
        agent_pass=agent_pass,
        tools_pass=tools_pass,
    )


def score_output(
    case: TestCase,
    stdout: str,
    target_skill: Optional[str] = None,
    target_agent: Optional[str] = None,
    error: Optional[str] = None,
    duration_s: float = 0.0,
) -> TestResult:
    """Decode captured stdout and build the TestResult for ``case``."""
    events, invocations = parse_stream(stdout)
    verdict = evaluate(case, invocations, target_skill, target_agent)
    return TestResult(
        id=case.id,
        prompt=case.prompt,
        should_trigger=case.should_trigger,
        triggered=verdict.triggered,
        agent_triggered=verdict.agent_triggered,
        skill_pass=verdict.skill_pass,
        agent_pass=verdict.agent_pass,
        tools_pass=verdict.tools_pass,
        passed=verdict.passed,
        expected_tools=list(case.expected_tools),
        tools_used=invocations.tools_used,
        skills_invoked=invocations.skills_invoked,
        agents_invoked=invocations.agents_invoked,
        transcript=build_transcript(events),
        error=error,
        notes=case.notes,
        duration_s=duration_s,
    )


def run_test(
    case: TestCase,
    model: str,
    options: RunOptions,
    target_skill: Optional[str] = None,
    target_agent: Optional[str] = None,
) -> TestResult:
    """Run one test case.

    A failed, crashed or timed-out process is scored on whatever it wrote;
    the failure only rides along as ``error``.
    """
    start_time = time.time()
    command = build_command(case.prompt, model, options.max_turns, options.binary)
    outcome = run_agent(command, options.timeout_s, build_env(options.env_overrides))
    if not outcome.ok:
        logger.info("%s: %s", case.id, outcome.error)
    return score_output(
        case,
        outcome.stdout,
        target_skill,
        target_agent,
        error=outcome.error,
        duration_s=time.time() - start_time,
    )


def run_manifest(
    manifest: TestManifest,
    options: RunOptions,
    on_result: Optional[Callable[[TestResult], None]] = None,
) -> ManifestRun:
    """Run every case of a manifest sequentially, in manifest order."""
    model = options.model_override or manifest.model
    run = ManifestRun(manifest=manifest, model=model)
    for case in manifest.tests:
        result = run_test(case, model, options, manifest.skill, manifest.agent)
        run.results.append(result)
        if on_result:
            on_result(result)
    return run


def run_all(
    manifests: list[TestManifest],
    options: RunOptions,
    on_manifest: Optional[Callable[[TestManifest, str], None]] = None,
    on_result: Optional[Callable[[TestResult], None]] = None,
) -> list[ManifestRun]:
    """Run manifests one after another in the given order."""
    runs = []
    for manifest in manifests:
        if on_manifest:
            on_manifest(manifest, options.model_override or manifest.model)
        runs.append(run_manifest(manifest, options, on_result))
    return runs


def summarize(runs: list[ManifestRun]) -> RunSummary:
    results = [r for run in runs for r in run.results]
    return RunSummary(total=len(results), passed=sum(1 for r in results if r.passed))


# ============================================================================
# Console output
# ============================================================================

def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _trigger_word(flag: bool) -> str:
    return "trigger" if flag else "skip"


def print_manifest_header(manifest: TestManifest, model: str) -> None:
    print(f"\n→ Loading {manifest.path}")
    if manifest.skill:
        print(f"  Skill: {manifest.skill}")
    if manifest.agent:
        print(f"  Agent: {manifest.agent}")
    if not manifest.skill and not manifest.agent:
        print("  ⚠ No skill or agent target; only tool checks can fail")
    print(f"  Model: {model}")
    print(f"  Tests: {len(manifest.tests)}\n")


def print_result(result: TestResult, show_transcript: bool = False) -> None:
    status = "✓ PASS" if result.passed else "✗ FAIL"
    print(
        f"  [{status}] {result.id} - \"{_truncate(result.prompt, 50)}\"  "
        f"({result.duration_s:.1f}s)"
    )

    if not result.skill_pass:
        print(
            f"         skill: expected {_trigger_word(result.should_trigger)}, "
            f"got {_trigger_word(result.triggered)}"
        )
    if not result.agent_pass:
        print(
            f"         agent: expected {_trigger_word(result.should_trigger)}, "
            f"got {_trigger_word(result.agent_triggered)}"
        )
    if not result.tools_pass:
        print(
            f"         tools: expected [{', '.join(result.expected_tools)}], "
            f"got [{', '.join(result.tools_used)}]"
        )
    if result.error and (not result.passed or show_transcript):
        print(f"         error: {result.error}")

    if show_transcript and result.transcript:
        print("\n  📋 Transcript:")
        for line in render_transcript(result.transcript):
            print(f"    {line}")
        print()


def cmd_run(args):
    """Run command entry"""
    pattern = args.test_file or os.environ.get("INPUT_TEST_FILE")
    if not pattern:
        print("✗ No test file given (pass a glob or set INPUT_TEST_FILE)")
        sys.exit(1)

    try:
        manifests = load_manifests(pattern)
    except ManifestError as e:
        print(f"✗ {e}")
        sys.exit(1)

    if args.dry_run:
        for manifest in manifests:
            print(
                f"✓ {manifest.path}: {manifest.target_label}, "
                f"{len(manifest.tests)} tests"
            )
        return

    # --env wins over the inherited environment; a bare --env KEY unsets it
    if "ANTHROPIC_API_KEY" in args.env:
        api_key = args.env["ANTHROPIC_API_KEY"]
    else:
        api_key = os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        print("✗ ANTHROPIC_API_KEY environment variable is required")
        sys.exit(1)

    if args.config:
        if Path(args.config).exists():
            written = merge_settings(args.config)
            print(f"✓ Merged config from {args.config} into {written}")
        else:
            print(f"⚠ Config file not found: {args.config}")

    options = RunOptions(
        max_turns=args.max_turns,
        timeout_s=args.timeout,
        model_override=args.model or None,
        binary=args.binary,
        env_overrides=args.env,
    )

    runs = run_all(
        manifests,
        options,
        on_manifest=print_manifest_header,
        on_result=lambda r: print_result(r, args.show_transcript),
    )
    summary = summarize(runs)

    markdown = report.format_summary(runs)
    print("\n" + markdown)

    step_summary = os.environ.get("GITHUB_STEP_SUMMARY")
    if step_summary:
        report.append_step_summary(step_summary, markdown)

    report.write_results(args.output, runs)
    print(f"✓ Results written to {args.output}")

    if args.summary_line:
        status = "PASS" if summary.all_passed else "FAIL"
        print(f"{status} {summary.passed}/{summary.total} ({summary.pass_rate:.1f}%)")

    # CI integration
    if not summary.all_passed:
        sys.exit(1)


def cmd_gen_manifest(args):
    """gen-manifest command entry"""
    template = """# Skill routing tests
skill: "my-plugin:my-skill"       # skill expected to be invoked via the Skill tool
# agent: "my-subagent"            # subagent expected to be dispatched via the Task tool
model: sonnet

tests:
  - id: trigger_basic
    prompt: "Create a new widget for the dashboard"
    should_trigger: true
    expected_tools:               # every tool listed must be used (extras are fine)
      - Read
    notes: "Direct request, should route to the skill"

  - id: skip_unrelated
    prompt: "What is 2 + 2?"
    should_trigger: false
    notes: "Unrelated question, must not invoke the skill"
"""

    output_file = args.output or "skill-tests.yaml"

    if Path(output_file).exists() and not args.force:
        print(f"✗ File already exists: {output_file} (use --force to overwrite)")
        sys.exit(1)

    with open(output_file, "w", encoding="utf-8") as f:
        f.write(template)

    print(f"✓ Manifest template written: {output_file}")
