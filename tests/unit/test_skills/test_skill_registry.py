"""Unit tests for skill loading, matching and execution."""

from pathlib import Path

import pytest

from stepwise.research.arxiv import analysis_skill_for
from stepwise.skills.loader import SkillLoader
from stepwise.skills.models import Skill, SkillStep
from stepwise.skills.registry import SkillNotFoundError, SkillRegistry

FIXTURES = Path(__file__).parent / "fixtures" / "skills"


# =============================================================================
# LOADER
# =============================================================================


class TestSkillLoader:
    """Tests for SkillLoader."""

    @pytest.fixture
    def loader(self):
        return SkillLoader(FIXTURES)

    def test_list_skills_skips_readme(self, loader):
        assert loader.list_skills() == [
            "literature_review.md",
            str(Path("research") / "no_frontmatter.md"),
        ]

    def test_frontmatter(self, loader):
        document = loader.load("literature_review.md")

        assert document.metadata.name == "LiteratureReview"
        assert document.metadata.version == "1.2"
        assert document.metadata.triggers == ["literature", "survey", "related work"]
        assert document.metadata.categories == ["research"]

    def test_sections(self, loader):
        document = loader.load("literature_review.md")

        assert document.get_section("notes") == "Prefer recent surveys."
        assert document.get_section("Missing") is None

    def test_steps(self, loader):
        skill = loader.load("literature_review.md").to_skill()

        assert skill.steps == (
            SkillStep("Gather sources", "Relevant papers collected"),
            SkillStep("Extract patterns", "Recurring themes listed"),
            SkillStep("Synthesize"),
        )
        assert skill.source == "literature_review.md"

    def test_name_defaults_to_file_stem(self, loader):
        skill = loader.load(str(Path("research") / "no_frontmatter.md")).to_skill()

        assert skill.name == "no_frontmatter"
        assert skill.steps[1].render() == "• Skim the figures: Main result located"

    def test_load_is_cached(self, loader):
        assert loader.load("literature_review.md") is loader.load("literature_review.md")

    def test_missing_file(self, loader):
        with pytest.raises(FileNotFoundError):
            loader.load("absent.md")

    def test_malformed_frontmatter_falls_back(self, loader):
        document = loader.parse("broken.md", "---\nname: [unclosed\n---\n# Steps\n- One\n")
        assert document.metadata.name == "broken"


# =============================================================================
# REGISTRY
# =============================================================================


class TestSkillRegistry:
    """Tests for SkillRegistry."""

    def test_load_directory(self):
        registry = SkillRegistry()

        assert registry.load_directory(FIXTURES) == 2
        assert "literaturereview" in registry
        assert sorted(registry.list_skills()) == ["LiteratureReview", "no_frontmatter"]

    def test_find_matching_by_triggers(self, skill_registry):
        matches = skill_registry.find_matching("I need a literature survey")

        assert len(matches) == 1
        assert matches[0].skill_name == "LiteratureReview"
        assert matches[0].score == 1.0
        assert matches[0].matched_triggers == ["literature", "survey"]

    def test_multi_word_trigger(self):
        registry = SkillRegistry()
        registry.load_directory(FIXTURES)

        matches = registry.find_matching("write the related work section")

        assert matches[0].skill_name == "LiteratureReview"
        assert "related work" in matches[0].matched_triggers

    def test_find_matching_empty(self, skill_registry):
        assert skill_registry.find_matching("   ") == []
        assert skill_registry.find_matching("cooking") == []

    def test_resolve_by_keyword(self, skill_registry):
        assert skill_registry.resolve("survey").name == "LiteratureReview"

    def test_resolve_unknown(self, skill_registry):
        with pytest.raises(SkillNotFoundError, match="I don't know a skill called 'Juggling'."):
            skill_registry.resolve("Juggling")

    def test_run_renders_procedure(self, skill_registry):
        output = skill_registry.run("literaturereview", "  graphs ")

        assert output == (
            "Running 'LiteratureReview':\n"
            "Input: graphs\n"
            "• Gather sources: Relevant papers collected\n"
            "• Extract patterns: Recurring themes listed"
        )
        assert skill_registry.get_stats("LiteratureReview").executions == 1

    def test_replacing_skill_reindexes(self, skill_registry):
        skill_registry.register(Skill(name="LiteratureReview", triggers=("papers",)))

        assert skill_registry.find_matching("survey") == []
        assert skill_registry.resolve("papers").name == "LiteratureReview"
        assert len(skill_registry) == 1

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            SkillRegistry().register(Skill(name="  "))


class TestLearnedSkills:
    """Analysis skills created from research topics."""

    def test_analysis_skill(self):
        skill = analysis_skill_for("graph neural networks")

        assert skill.name == "GraphNeuralNetworksAnalysis"
        assert skill.triggers == ("graph", "neural", "networks")
        assert skill.source == "research"
        assert len(skill.steps) == 3
