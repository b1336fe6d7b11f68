"""
Stream-json decoding and invocation extraction

Responsibilities:
- Decode newline-delimited JSON emitted by the agent CLI
- Walk every decoded value looking for tool_use blocks
- Collect tools, skills and subagents in first-seen order
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from .models import SKILL_TOOL, TASK_TOOL, Invocations

logger = logging.getLogger(__name__)


def decode_events(text: str) -> list[Any]:
    """Decode stream output into JSON values.

    Blank lines and lines that are not valid JSON are skipped; the CLI mixes
    diagnostic text into the stream.

    Args:
        text: Raw process stdout.

    Returns:
        Decoded values in line order.
    """
    events: list[Any] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError:
            logger.debug("skipping non-JSON line: %s", line[:200])
            continue
    return events


def collect_invocations(value: Any, invocations: Invocations) -> None:
    """Record every tool_use block reachable from ``value``.

    Recurses through dict values and list items at any depth. A ``Skill``
    call also records its ``input.skill``; a ``Task`` call also records its
    ``input.subagent_type``.
    """
    if isinstance(value, list):
        for item in value:
            collect_invocations(item, invocations)
        return
    if not isinstance(value, dict):
        return

    if value.get("type") == "tool_use":
        name = value.get("name")
        if isinstance(name, str) and name:
            invocations.add_tool(name)
            tool_input = value.get("input")
            if isinstance(tool_input, dict):
                if name == SKILL_TOOL:
                    skill = tool_input.get("skill")
                    if isinstance(skill, str) and skill:
                        invocations.add_skill(skill)
                elif name == TASK_TOOL:
                    subagent = tool_input.get("subagent_type")
                    if isinstance(subagent, str) and subagent:
                        invocations.add_subagent(subagent)

    # Parallel tool calls: keep walking after a match
    for child in value.values():
        collect_invocations(child, invocations)


def extract_invocations(events: Iterable[Any]) -> Invocations:
    """Fold a decoded stream into one Invocations record."""
    invocations = Invocations()
    for event in events:
        collect_invocations(event, invocations)
    return invocations


def parse_stream(text: str) -> tuple[list[Any], Invocations]:
    """Decode raw stdout and extract its invocations in one pass."""
    events = decode_events(text)
    return events, extract_invocations(events)
