"""
Data models

All dataclasses: manifests, test cases, invocations, transcript entries and
results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

# Reserved tool names that carry a secondary invocation
SKILL_TOOL = "Skill"
TASK_TOOL = "Task"


@dataclass
class TestCase:
    """Single routing test case"""
    __test__ = False  # keep pytest from collecting this class

    id: str
    prompt: str
    should_trigger: bool
    expected_tools: list[str] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class TestManifest:
    """One manifest file: the routing target and its cases"""
    __test__ = False

    tests: list[TestCase]
    skill: Optional[str] = None
    agent: Optional[str] = None
    model: str = "sonnet"
    path: str = ""

    @property
    def target_label(self) -> str:
        parts = []
        if self.skill:
            parts.append(f"skill `{self.skill}`")
        if self.agent:
            parts.append(f"agent `{self.agent}`")
        return ", ".join(parts) or "(no target)"


@dataclass
class Invocations:
    """Tools, skills and subagents seen in a stream.

    Each kind is an insertion-ordered set: dict keys keep the first
    occurrence order and drop repeats.
    """
    tools: dict[str, None] = field(default_factory=dict)
    skills: dict[str, None] = field(default_factory=dict)
    subagents: dict[str, None] = field(default_factory=dict)

    def add_tool(self, name: str) -> None:
        self.tools.setdefault(name, None)

    def add_skill(self, name: str) -> None:
        self.skills.setdefault(name, None)

    def add_subagent(self, name: str) -> None:
        self.subagents.setdefault(name, None)

    @property
    def tools_used(self) -> list[str]:
        return list(self.tools)

    @property
    def skills_invoked(self) -> list[str]:
        return list(self.skills)

    @property
    def agents_invoked(self) -> list[str]:
        return list(self.subagents)


# ============================================================================
# Transcript entries
# ============================================================================

@dataclass
class TranscriptEntry:
    """Base of the transcript variants; ``kind`` tags the variant."""
    kind: ClassVar[str] = ""

    def to_dict(self) -> dict:
        """Convert to dict, dropping empty values"""
        data = {"kind": self.kind}
        data.update(
            {k: v for k, v in self.__dict__.items() if v not in (None, "", [], {})}
        )
        return data


@dataclass
class InitEntry(TranscriptEntry):
    kind: ClassVar[str] = "init"

    model: str = ""
    tools: list[str] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)

    @property
    def tool_count(self) -> int:
        return len(self.tools)

    @property
    def skill_count(self) -> int:
        return len(self.skills)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["tool_count"] = self.tool_count
        data["skill_count"] = self.skill_count
        return data


@dataclass
class TextEntry(TranscriptEntry):
    kind: ClassVar[str] = "text"

    content: str = ""


@dataclass
class ToolUseEntry(TranscriptEntry):
    kind: ClassVar[str] = "tool_use"

    name: str = ""
    input: Any = None


@dataclass
class ToolResultEntry(TranscriptEntry):
    kind: ClassVar[str] = "tool_result"

    content: str = ""


@dataclass
class ResultEntry(TranscriptEntry):
    kind: ClassVar[str] = "result"

    cost: Optional[float] = None
    turns: Optional[int] = None
    stop_reason: Optional[str] = None
    result: Optional[str] = None


@dataclass
class ErrorEntry(TranscriptEntry):
    kind: ClassVar[str] = "error"

    message: str = ""


# ============================================================================
# Results
# ============================================================================

@dataclass
class TestResult:
    """Verdict for one test case"""
    __test__ = False

    id: str
    prompt: str
    should_trigger: bool
    triggered: bool
    agent_triggered: bool
    skill_pass: bool
    agent_pass: bool
    tools_pass: bool
    passed: bool
    expected_tools: list[str] = field(default_factory=list)
    tools_used: list[str] = field(default_factory=list)
    skills_invoked: list[str] = field(default_factory=list)
    agents_invoked: list[str] = field(default_factory=list)
    transcript: list[TranscriptEntry] = field(default_factory=list)
    error: Optional[str] = None
    notes: Optional[str] = None
    duration_s: float = 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "should_trigger": self.should_trigger,
            "triggered": self.triggered,
            "agent_triggered": self.agent_triggered,
            "skill_pass": self.skill_pass,
            "agent_pass": self.agent_pass,
            "tools_pass": self.tools_pass,
            "pass": self.passed,
            "expected_tools": self.expected_tools,
            "tools_used": self.tools_used,
            "skills_invoked": self.skills_invoked,
            "agents_invoked": self.agents_invoked,
            "transcript": [e.to_dict() for e in self.transcript],
            "error": self.error,
            "notes": self.notes,
            "duration_s": round(self.duration_s, 3),
        }


@dataclass
class ManifestRun:
    """Ordered results for one manifest"""
    manifest: TestManifest
    model: str
    results: list[TestResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "skill": self.manifest.skill,
            "agent": self.manifest.agent,
            "model": self.model,
            "file": self.manifest.path,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class RunSummary:
    total: int
    passed: int

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def pass_rate(self) -> float:
        return (self.passed / self.total * 100) if self.total > 0 else 0.0

    @property
    def all_passed(self) -> bool:
        return self.passed == self.total
