"""Transcript construction from decoded stream-json events."""

from __future__ import annotations

import json
from typing import Any, Iterable

from .models import (
    ErrorEntry,
    InitEntry,
    ResultEntry,
    TextEntry,
    ToolResultEntry,
    ToolUseEntry,
    TranscriptEntry,
)

RESULT_TEXT_LIMIT = 500


def _as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else _as_text(item) for item in value]


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _content_entries(blocks: list) -> list[TranscriptEntry]:
    entries: list[TranscriptEntry] = []
    for block in blocks:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text")
            if isinstance(text, str) and text:
                entries.append(TextEntry(content=text))
        elif block_type == "tool_use":
            entries.append(ToolUseEntry(name=block.get("name", ""), input=block.get("input")))
        elif block_type == "tool_result":
            entries.append(ToolResultEntry(content=_as_text(block.get("content", ""))))
    return entries


def event_entries(event: Any) -> list[TranscriptEntry]:
    """Translate one top-level event into zero or more transcript entries.

    Only ``system/init``, ``assistant`` and ``result`` events are translated;
    anything else yields nothing.
    """
    if not isinstance(event, dict):
        return []

    event_type = event.get("type")

    if event_type == "system":
        if event.get("subtype") != "init":
            return []
        model = event.get("model")
        return [
            InitEntry(
                model=model if isinstance(model, str) else "",
                tools=_string_list(event.get("tools")),
                skills=_string_list(event.get("skills")),
            )
        ]

    if event_type == "assistant":
        message = event.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        entries = _content_entries(content) if isinstance(content, list) else []
        if event.get("error") is not None:
            entries.append(ErrorEntry(message=_as_text(event["error"])))
        return entries

    if event_type == "result":
        result_text = event.get("result")
        return [
            ResultEntry(
                cost=event.get("total_cost_usd"),
                turns=event.get("num_turns"),
                stop_reason=event.get("stop_reason"),
                result=_truncate(result_text, RESULT_TEXT_LIMIT)
                if isinstance(result_text, str)
                else None,
            )
        ]

    return []


def build_transcript(events: Iterable[Any]) -> list[TranscriptEntry]:
    """Build the ordered transcript for a decoded stream."""
    transcript: list[TranscriptEntry] = []
    for event in events:
        transcript.extend(event_entries(event))
    return transcript


# ============================================================================
# Rendering
# ============================================================================

def _preview(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _capped(names: list[str], max_listed: int) -> str:
    shown = ", ".join(names[:max_listed])
    if len(names) > max_listed:
        shown += f", ... (+{len(names) - max_listed})"
    return shown


def render_transcript(entries: list[TranscriptEntry], max_listed: int = 10) -> list[str]:
    """Render transcript entries as display lines."""
    lines: list[str] = []
    for i, entry in enumerate(entries, 1):
        if isinstance(entry, InitEntry):
            lines.append(
                f"#{i:02d} INIT        model={entry.model or '?'}  "
                f"tools={entry.tool_count}  skills={entry.skill_count}"
            )
            if entry.skills:
                lines.append(f"     skills: {_capped(entry.skills, max_listed)}")
        elif isinstance(entry, TextEntry):
            lines.append(f"#{i:02d} TEXT        {_preview(entry.content, 200)}")
        elif isinstance(entry, ToolUseEntry):
            lines.append(f"#{i:02d} TOOL_USE    {entry.name}")
            if entry.input:
                input_str = json.dumps(entry.input, ensure_ascii=False)
                lines.append(f"     input: {_preview(input_str, 100)}")
        elif isinstance(entry, ToolResultEntry):
            lines.append(f"#{i:02d} TOOL_RESULT {_preview(entry.content, 100)}")
        elif isinstance(entry, ResultEntry):
            cost = f"${entry.cost:.4f}" if isinstance(entry.cost, (int, float)) else "-"
            lines.append(
                f"#{i:02d} RESULT      cost={cost}  turns={entry.turns}  "
                f"stop={entry.stop_reason or '-'}"
            )
            if entry.result:
                lines.append(f"     {_preview(entry.result, 200)}")
        elif isinstance(entry, ErrorEntry):
            lines.append(f"#{i:02d} ERROR       {_preview(entry.message, 200)}")
    return lines
