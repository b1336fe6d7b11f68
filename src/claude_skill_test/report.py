"""Markdown summary and JSON result output."""

from __future__ import annotations

import json

from .models import ManifestRun, TestResult


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _heading(run: ManifestRun) -> str:
    targets = []
    if run.manifest.skill:
        targets.append(f"Skill: `{run.manifest.skill}`")
    if run.manifest.agent:
        targets.append(f"Agent: `{run.manifest.agent}`")
    label = ", ".join(targets) or f"File: `{run.manifest.path}`"
    return f"## {label} (model: {run.model})"


def _actual(result: TestResult, run: ManifestRun) -> str:
    if run.manifest.skill and run.manifest.agent:
        return (
            f"skill {'trigger' if result.triggered else 'skip'}, "
            f"agent {'trigger' if result.agent_triggered else 'skip'}"
        )
    if run.manifest.agent:
        return "trigger" if result.agent_triggered else "skip"
    return "trigger" if result.triggered else "skip"


def format_summary(runs: list[ManifestRun]) -> str:
    """Render all runs as a markdown report."""
    md = ""
    total_passed = 0
    total_tests = 0

    for run in runs:
        md += _heading(run) + "\n\n"
        md += "| Test ID | Prompt | Expected | Actual | Tools | Result |\n"
        md += "|---------|--------|----------|--------|-------|--------|\n"

        for r in run.results:
            total_tests += 1
            if r.passed:
                total_passed += 1

            prompt = _cell(_truncate(r.prompt, 30))
            expected = "trigger" if r.should_trigger else "skip"
            tools = ("PASS" if r.tools_pass else "FAIL") if r.expected_tools else "-"
            verdict = "PASS" if r.passed else "FAIL"
            md += (
                f"| {_cell(r.id)} | \"{prompt}\" | {expected} | {_actual(r, run)} "
                f"| {tools} | {verdict} |\n"
            )

        md += "\n"

    md += f"**Results: {total_passed}/{total_tests} passed**\n"
    return md


def append_step_summary(path: str, markdown: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write(markdown)


def write_results(path: str, runs: list[ManifestRun]) -> None:
    """Write one result record per manifest as JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump([run.to_dict() for run in runs], f, indent=2, ensure_ascii=False)
