"""
Skill Loader Module.

Loads skills encoded as markdown files with YAML frontmatter. The ``Steps``
section lists the skill's procedure as ``- action: expected outcome`` bullets.

Example file:

    ---
    name: LiteratureReview
    description: Survey papers on a topic
    triggers: [literature, survey, papers]
    ---
    # Steps
    - Gather sources: Relevant papers collected
    - Extract patterns: Recurring themes listed
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from stepwise.skills.models import Skill, SkillStep

STEPS_SECTION = "Steps"


@dataclass
class SkillMetadata:
    """Frontmatter fields; anything missing falls back to a default."""

    name: str
    version: str = "1.0"
    description: str = ""
    triggers: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    @classmethod
    def from_frontmatter(cls, data: dict[str, Any], default_name: str) -> SkillMetadata:
        def strings(key: str) -> list[str]:
            value = data.get(key) or []
            return [str(item) for item in ([value] if isinstance(value, str) else value)]

        return cls(
            name=str(data.get("name") or default_name),
            version=str(data.get("version", "1.0")),
            description=str(data.get("description") or ""),
            triggers=strings("triggers"),
            categories=strings("categories"),
        )


@dataclass
class SkillDocument:
    """A parsed skill file. Section keys are lower-cased heading text."""

    path: str
    metadata: SkillMetadata
    content: str
    sections: dict[str, str] = field(default_factory=dict)

    def get_section(self, heading: str) -> str | None:
        return self.sections.get(heading.strip().lower())

    def get_steps(self) -> list[SkillStep]:
        """Parse ``- action: outcome`` bullets from the Steps section."""
        steps = []
        for line in (self.get_section(STEPS_SECTION) or "").splitlines():
            match = SkillLoader.STEP_PATTERN.match(line)
            if match:
                action, _, outcome = match.group(1).partition(":")
                steps.append(SkillStep(action=action.strip(), expected_outcome=outcome.strip()))
        return steps

    def to_skill(self) -> Skill:
        return Skill(
            name=self.metadata.name,
            description=self.metadata.description,
            steps=tuple(self.get_steps()),
            triggers=tuple(self.metadata.triggers),
            source=self.path,
        )



class SkillLoader:
    """Reads ``*.md`` skill files under a directory; parsed files are cached by path."""

    FRONTMATTER_PATTERN = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
    HEADING_PATTERN = re.compile(r"^#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
    STEP_PATTERN = re.compile(r"^\s*(?:[-*•]|\d+\.)\s+(.+)$")

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)
        self._cache: dict[str, SkillDocument] = {}

    def load(self, skill_path: str) -> SkillDocument:
        """Load ``skill_path`` (relative to ``base_path``).

        Raises:
            FileNotFoundError: If the skill file doesn't exist.
        """
        cached = self._cache.get(skill_path)
        if cached is not None:
            return cached

        full_path = self.base_path / skill_path
        if not full_path.is_file():
            raise FileNotFoundError(f"Skill not found: {full_path}")

        document = self.parse(skill_path, full_path.read_text(encoding="utf-8"))
        self._cache[skill_path] = document
        return document

    def parse(self, skill_path: str, content: str) -> SkillDocument:
        """Parse raw markdown into a SkillDocument."""
        default_name = Path(skill_path).stem
        match = self.FRONTMATTER_PATTERN.match(content)
        body = content[match.end():] if match else content

        return SkillDocument(
            path=skill_path,
            metadata=self._read_metadata(match.group(1) if match else None, default_name),
            content=body.strip(),
            sections=self._split_sections(body),
        )

    @staticmethod
    def _read_metadata(frontmatter: str | None, default_name: str) -> SkillMetadata:
        # Unreadable frontmatter degrades to a name-only skill.
        data: Any = None
        if frontmatter is not None:
            try:
                data = yaml.safe_load(frontmatter)
            except yaml.YAMLError:
                data = None
        if not isinstance(data, dict):
            return SkillMetadata(name=default_name)
        return SkillMetadata.from_frontmatter(data, default_name)

    def _split_sections(self, body: str) -> dict[str, str]:
        headings = list(self.HEADING_PATTERN.finditer(body))
        sections: dict[str, str] = {}
        for heading, following in zip(headings, headings[1:] + [None]):
            end = following.start() if following else len(body)
            sections[heading.group(1).lower()] = body[heading.end():end].strip()
        return sections

    def list_skills(self) -> list[str]:
        """Skill paths relative to base_path, README files excluded."""
        if not self.base_path.is_dir():
            return []
        return sorted(
            str(path.relative_to(self.base_path))
            for path in self.base_path.rglob("*.md")
            if path.name.lower() != "readme.md"
        )

    def load_all(self) -> list[Skill]:
        return [self.load(path).to_skill() for path in self.list_skills()]
