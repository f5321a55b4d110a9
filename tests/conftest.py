"""Root conftest.py - Shared fakes and fixtures for stepwise tests.

This module provides:
1. Fake collaborators (answerer, MeTTa engine, researcher, planner) that
   record their calls so tests can assert on side effects
2. Reference collaborators wired for tests (memory store, tool registry
   with the calculator, skill registry)
3. A StepwiseConfig without retry delays and a facade built from all of the above

Usage:
    async def test_something(facade, fake_answerer):
        result = await facade.ask("capital of France")
        assert fake_answerer.calls == ["capital of France"]
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import pytest
from dotenv import load_dotenv

from stepwise.config.loader import StepwiseConfig, reset_config
from stepwise.core.errors import adapter_error
from stepwise.core.result import Failure
from stepwise.facade import AgentFacade, Capabilities
from stepwise.memory.store import InMemoryMemoryStore
from stepwise.skills.models import Skill, SkillStep
from stepwise.skills.registry import SkillRegistry
from stepwise.tool_registry.registry import ToolRegistry
from stepwise.tool_registry.tools.calculator import register_calculator_tool
from stepwise.utils.logging_config import clear_run_context

# =============================================================================
# LOAD ENVIRONMENT VARIABLES from .env file IMMEDIATELY
# =============================================================================
# Developers may point STEPWISE_ANSWERER_* at a local endpoint; unit tests
# never talk to it but config tests read the same variables.
load_dotenv(override=False)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeAnswerer:
    """Answers from a lookup table, otherwise echoes the question."""

    def __init__(
        self,
        answers: Optional[Dict[str, str]] = None,
        fail_on: Optional[str] = None,
        delay: float = 0.0,
    ):
        self.answers = answers or {}
        self.fail_on = fail_on
        self.delay = delay
        self.calls: List[str] = []

    async def answer(self, question: str) -> str:
        self.calls.append(question)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in question:
            raise RuntimeError(f"LLM unavailable for '{question}'")
        return self.answers.get(question, f"Answer to: {question}")


class FakeMeTTa:
    """Synchronous symbolic engine returning canned results."""

    def __init__(self) -> None:
        self.evaluated: List[str] = []
        self.queried: List[str] = []

    def evaluate(self, expression: str) -> str:
        self.evaluated.append(expression)
        if expression == "(+ 1 2)":
            return "3"
        return f"[{expression}]"

    def query(self, query: str):
        self.queried.append(query)
        if "missing" in query:
            return Failure("no matches")
        return f"results for {query}"


class FakeResearcher:
    def __init__(self, fail_times: int = 0) -> None:
        self.fail_times = fail_times
        self.calls: List[str] = []

    async def fetch(self, topic: str) -> str:
        self.calls.append(topic)
        if len(self.calls) <= self.fail_times:
            raise ConnectionError("arXiv unreachable")
        return f"Found 1 papers on '{topic}':\n  • A paper about {topic}"


class FakePlanner:
    """Returns a fixed pipeline description for every goal."""

    def __init__(self, description: str) -> None:
        self.description = description
        self.goals: List[str] = []

    async def plan(self, goal: str) -> str:
        self.goals.append(goal)
        return self.description


class FailingPlanner:
    async def plan(self, goal: str):
        return Failure(adapter_error("planner offline"))


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Drop cached config and logging context between tests."""
    reset_config()
    clear_run_context()
    yield
    reset_config()
    clear_run_context()


@pytest.fixture
def stepwise_config() -> StepwiseConfig:
    """Defaults with retry backoff disabled so tests don't sleep."""
    return StepwiseConfig.from_mapping(
        {
            "research": {
                "timeout_seconds": 5,
                "retry": {"max_attempts": 3, "initial_delay": 0, "max_delay": 0},
            },
            "large_input": {"threshold_chars": 200, "chunk_chars": 100, "max_parallel": 2},
        }
    )


@pytest.fixture
def fake_answerer() -> FakeAnswerer:
    return FakeAnswerer(answers={"capital of France": "Paris"})


@pytest.fixture
def fake_metta() -> FakeMeTTa:
    return FakeMeTTa()


@pytest.fixture
def fake_researcher() -> FakeResearcher:
    return FakeResearcher()


@pytest.fixture
def memory_store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def tool_registry() -> ToolRegistry:
    registry = ToolRegistry()
    register_calculator_tool(registry)
    return registry


@pytest.fixture
def skill_registry() -> SkillRegistry:
    registry = SkillRegistry()
    registry.register(
        Skill(
            name="LiteratureReview",
            description="Survey papers on a topic",
            steps=(
                SkillStep("Gather sources", "Relevant papers collected"),
                SkillStep("Extract patterns", "Recurring themes listed"),
            ),
            triggers=("literature", "survey"),
        )
    )
    return registry


@pytest.fixture
def capabilities(
    fake_answerer, fake_metta, fake_researcher, memory_store, skill_registry, tool_registry
) -> Capabilities:
    return Capabilities(
        answerer=fake_answerer,
        metta=fake_metta,
        researcher=fake_researcher,
        memory=memory_store,
        skills=skill_registry,
        tools=tool_registry,
    )


@pytest.fixture
def facade(capabilities, stepwise_config) -> AgentFacade:
    return AgentFacade(capabilities, config=stepwise_config)


@pytest.fixture
def empty_facade(stepwise_config) -> AgentFacade:
    """Facade with no collaborators at all."""
    return AgentFacade(Capabilities(), config=stepwise_config)


@pytest.fixture
def answerer_factory():
    return FakeAnswerer


@pytest.fixture
def researcher_factory():
    return FakeResearcher


@pytest.fixture
def planner_factory():
    return FakePlanner


@pytest.fixture
def failing_planner() -> FailingPlanner:
    return FailingPlanner()
