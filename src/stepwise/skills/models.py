"""
Skill data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class SkillStep:
    """One step of a skill's procedure."""

    action: str
    expected_outcome: str = ""

    def render(self) -> str:
        if self.expected_outcome:
            return f"• {self.action}: {self.expected_outcome}"
        return f"• {self.action}"


@dataclass(frozen=True)
class Skill:
    """A named, reusable procedure."""

    name: str
    description: str = ""
    steps: tuple[SkillStep, ...] = ()
    triggers: tuple[str, ...] = ()
    source: str = "registered"


@dataclass
class SkillStats:
    """Execution statistics kept per skill by the registry."""

    executions: int = 0
    successes: int = 0
    failures: int = 0
    last_used: datetime | None = None

    @property
    def success_rate(self) -> float:
        if self.executions == 0:
            return 0.0
        return self.successes / self.executions

    def record(self, success: bool) -> None:
        self.executions += 1
        if success:
            self.successes += 1
        else:
            self.failures += 1
        self.last_used = datetime.now(timezone.utc)


@dataclass
class SkillMatch:
    """A matched skill with relevance score."""

    skill_name: str
    score: float  # 0.0 to 1.0
    matched_triggers: list[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"SkillMatch(name={self.skill_name!r}, score={self.score:.2f}, "
            f"triggers={self.matched_triggers})"
        )
