"""
claude-skill-test: routing tests for agent skills and subagents

Drives the agent CLI once per prompt, reads its stream-json output and checks
which skills, subagents and tools it invoked.
"""

__version__ = "0.1.0"

from .models import Invocations, TestCase, TestManifest, TestResult

__all__ = ["Invocations", "TestCase", "TestManifest", "TestResult", "__version__"]
