"""
Skill Registry Module.

Holds skills by name, finds skills relevant to a query through a keyword
index over triggers and name words, and runs skills by rendering their
procedure.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from stepwise.core.errors import StepwiseError
from stepwise.skills.loader import SkillLoader
from stepwise.skills.models import Skill, SkillMatch, SkillStats

logger = logging.getLogger(__name__)


class SkillNotFoundError(StepwiseError):
    """Raised when neither a name nor a keyword search finds a skill"""

    def __init__(self, skill_name: str):
        self.skill_name = skill_name
        super().__init__(f"I don't know a skill called '{skill_name}'.")


class SkillRegistry:
    """In-process skill registry with keyword matching.

    Names are matched case-insensitively. The keyword index maps each
    trigger (and each name word longer than two characters, CamelCase
    split) to the skills that declare it.
    """

    CAMEL_PATTERN = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")
    TOKEN_PATTERN = re.compile(r"[\w\-]+")

    def __init__(self) -> None:
        self._skills: dict[str, Skill] = {}
        self._stats: dict[str, SkillStats] = {}
        self._index: dict[str, list[str]] = {}  # keyword -> [skill key]

    @staticmethod
    def _key(name: str) -> str:
        return name.strip().lower()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, skill: Skill) -> None:
        key = self._key(skill.name)
        if not key:
            raise ValueError("Skill name must not be empty")
        if key in self._skills:
            logger.info(f"Skill '{skill.name}' already registered, replacing")
            self._drop_from_index(key)

        self._skills[key] = skill
        self._stats.setdefault(key, SkillStats())
        for keyword in self._keywords_for(skill):
            self._index.setdefault(keyword, [])
            if key not in self._index[keyword]:
                self._index[keyword].append(key)

        logger.info(f"Registered skill: {skill.name} ({len(skill.steps)} steps)")

    def load_directory(self, path: str | Path) -> int:
        """Register every skill file under ``path``; returns the count"""
        skills = SkillLoader(path).load_all()
        for skill in skills:
            self.register(skill)
        logger.info(f"Loaded {len(skills)} skills from {path}")
        return len(skills)

    def _keywords_for(self, skill: Skill) -> set[str]:
        keywords = {trigger.lower() for trigger in skill.triggers if trigger.strip()}
        words = self.CAMEL_PATTERN.findall(skill.name) + skill.name.split()
        keywords.update(word.lower() for word in words if len(word) > 2)
        return keywords

    def _drop_from_index(self, key: str) -> None:
        for keyword in list(self._index):
            entries = self._index[keyword]
            if key in entries:
                entries.remove(key)
            if not entries:
                del self._index[keyword]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> Skill | None:
        return self._skills.get(self._key(name))

    def list_skills(self) -> list[str]:
        return [skill.name for skill in self._skills.values()]

    def get_stats(self, name: str) -> SkillStats | None:
        return self._stats.get(self._key(name))

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._skills

    def find_matching(self, query: str, top_k: int = 5, min_score: float = 0.1) -> list[SkillMatch]:
        """Find skills matching a query.

        Single-word keywords score 1.0 per query token; multi-word triggers
        found verbatim in the query score 2.0. Scores are normalized to the
        best match.

        Returns:
            SkillMatch objects sorted by score (highest first).
        """
        if not query.strip():
            return []

        query_lower = query.lower()
        tokens = [t for t in self.TOKEN_PATTERN.findall(query_lower) if len(t) > 1]

        matches: dict[str, tuple[float, list[str]]] = {}

        for token in tokens:
            for key in self._index.get(token, []):
                score, triggers = matches.get(key, (0.0, []))
                triggers.append(token)
                matches[key] = (score + 1.0, triggers)

        for keyword, keys in self._index.items():
            if " " in keyword and keyword in query_lower:
                for key in keys:
                    score, triggers = matches.get(key, (0.0, []))
                    if keyword not in triggers:
                        triggers.append(keyword)
                        matches[key] = (score + 2.0, triggers)

        if not matches:
            return []

        max_score = max(score for score, _ in matches.values())
        results = [
            SkillMatch(
                skill_name=self._skills[key].name,
                score=min(score / max_score, 1.0),
                matched_triggers=triggers,
            )
            for key, (score, triggers) in matches.items()
            if score / max_score >= min_score
        ]
        results.sort(key=lambda m: (-m.score, m.skill_name))
        return results[:top_k]

    def resolve(self, name: str) -> Skill:
        """Exact (case-insensitive) lookup, then the best keyword match.

        Raises:
            SkillNotFoundError: If nothing matches
        """
        skill = self.get(name)
        if skill is not None:
            return skill
        matches = self.find_matching(name, top_k=1)
        if matches:
            logger.debug(f"Resolved skill '{name}' to '{matches[0].skill_name}' by keywords")
            return self._skills[self._key(matches[0].skill_name)]
        raise SkillNotFoundError(name)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def record_execution(self, name: str, success: bool) -> None:
        stats = self._stats.get(self._key(name))
        if stats is not None:
            stats.record(success)

    def run(self, skill_name: str, args: str = "") -> str:
        """Render a skill's procedure as its execution transcript.

        Raises:
            SkillNotFoundError: If the skill cannot be resolved
        """
        skill = self.resolve(skill_name)

        lines = [f"Running '{skill.name}':"]
        if args.strip():
            lines.append(f"Input: {args.strip()}")
        lines.extend(step.render() for step in skill.steps)

        self.record_execution(skill.name, True)
        return "\n".join(lines)
