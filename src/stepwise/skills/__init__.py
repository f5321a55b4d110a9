"""
Stepwise Skills Module.

Named procedures an agent can run, loaded from markdown files with YAML
frontmatter or registered in code, and found by keyword matching.

Example Usage:
    from stepwise.skills import Skill, SkillRegistry, SkillStep

    skills = SkillRegistry()
    skills.register(
        Skill(
            name="LiteratureReview",
            steps=(SkillStep("Gather sources", "Relevant papers collected"),),
            triggers=("literature", "survey"),
        )
    )
    skills.find_matching("survey the literature")
    print(skills.run("LiteratureReview"))
"""

from stepwise.skills.loader import SkillDocument, SkillLoader, SkillMetadata
from stepwise.skills.models import Skill, SkillMatch, SkillStats, SkillStep
from stepwise.skills.registry import SkillNotFoundError, SkillRegistry

__all__ = [
    "Skill",
    "SkillDocument",
    "SkillLoader",
    "SkillMatch",
    "SkillMetadata",
    "SkillNotFoundError",
    "SkillRegistry",
    "SkillStats",
    "SkillStep",
]
