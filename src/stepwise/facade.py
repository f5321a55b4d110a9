"""
Stepwise - Agent Facade
Purpose: Every capability in two forms, an immediate call and a composable Step

Both forms come from the same catalog entry: ``await facade.x(value)`` is
``facade.x_step().run(value, facade.context())``.

Usage:
    facade = AgentFacade(Capabilities(answerer=answerer, memory=InMemoryMemoryStore()))

    result = await facade.ask("capital of France")
    chain = facade.ask_step().then(facade.remember_step())
    result = await chain.run("capital of France", facade.context())

    result = await facade.run_pipeline("ask('capital of France') -> remember('fact1')")
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from stepwise.adapters.base import (
    Answerer,
    MemoryStore,
    MeTTaEngine,
    PipelineRunner,
    Planner,
    Researcher,
    SkillRunner,
    ToolInvoker,
)
from stepwise.adapters.capabilities import (
    CapabilityCatalog,
    ask_step,
    large_input_step,
    metta_expression_step,
    metta_query_step,
    pipeline_step,
    recall_step,
    remember_step,
    research_step,
    skill_step,
    tool_step,
    with_input,
)
from stepwise.answering.chat import ChatCompletionsAnswerer
from stepwise.config.loader import StepwiseConfig, get_config
from stepwise.core.context import ExecutionContext
from stepwise.core.errors import StepError
from stepwise.core.result import Result
from stepwise.core.step import Step
from stepwise.memory.store import InMemoryMemoryStore
from stepwise.orchestrator.machine import Orchestrator
from stepwise.orchestrator.planner import AnswererPlanner
from stepwise.pipeline.interpreter import description_step
from stepwise.pipeline.models import PipelineSpec
from stepwise.pipeline.parser import compile
from stepwise.research.arxiv import ArxivResearcher
from stepwise.skills.registry import SkillRegistry
from stepwise.tool_registry.registry import ToolRegistry
from stepwise.tool_registry.tools.calculator import register_calculator_tool

logger = logging.getLogger(__name__)


# ============================================================================
# COLLABORATORS
# ============================================================================


@dataclass
class Capabilities:
    """
    Collaborators behind the facade. Any of them may be None; the matching
    capability then fails with an ADAPTER error saying it is unavailable.

    Attributes:
        answerer: Question answering (also used for planning and large input)
        metta: Symbolic expression evaluation and query
        researcher: Research retrieval
        memory: Session-scoped key/value store
        skills: Skill runner; a SkillRegistry also learns skills from research
        tools: Named tool dispatch
        planner: Goal -> pipeline description; defaults to one backed by the answerer
        pipeline_runner: Replaces the built-in interpreter for runPipeline
    """

    answerer: Optional[Answerer] = None
    metta: Optional[MeTTaEngine] = None
    researcher: Optional[Researcher] = None
    memory: Optional[MemoryStore] = None
    skills: Optional[SkillRunner] = None
    tools: Optional[ToolInvoker] = None
    planner: Optional[Planner] = None
    pipeline_runner: Optional[PipelineRunner] = None

    @classmethod
    def with_defaults(
        cls,
        config: Optional[StepwiseConfig] = None,
        answerer: Optional[Answerer] = None,
        metta: Optional[MeTTaEngine] = None,
    ) -> Capabilities:
        """
        Reference collaborators: chat-completions answerer, arXiv researcher,
        in-memory store, skill registry and a tool registry with the calculator.
        """
        config = config or get_config()
        tools = ToolRegistry()
        register_calculator_tool(tools)
        return cls(
            answerer=answerer or ChatCompletionsAnswerer(config.answerer),
            metta=metta,
            researcher=ArxivResearcher(config.research),
            memory=InMemoryMemoryStore(),
            skills=SkillRegistry(),
            tools=tools,
        )


# Capabilities whose first positional argument replaces the piped input
SINGLE_INPUT_CAPABILITIES: Tuple[Tuple[str, str], ...] = (
    ("ask", "Answer a natural-language question"),
    ("runPipeline", "Run a nested pipeline description"),
    ("runMeTTaExpression", "Evaluate a MeTTa expression"),
    ("queryMeTTa", "Run a MeTTa query"),
    ("orchestrate", "Plan and execute a goal"),
    ("plan", "Produce a pipeline description for a goal"),
    ("execute", "Validate and execute a pipeline description as a plan"),
    ("fetchResearch", "Search arXiv for papers on a topic"),
    ("processLargeInput", "Summarize a large text or file in chunks"),
    ("recall", "Recall a remembered value by key or topic"),
)


# ============================================================================
# FACADE
# ============================================================================


class AgentFacade:
    """
    Uniform entry point over all agent capabilities.

    Holds its collaborators explicitly; several facades with different
    collaborators can coexist in one process.
    """

    def __init__(
        self,
        capabilities: Capabilities,
        config: Optional[StepwiseConfig] = None,
        session_id: Optional[str] = None,
    ):
        self.capabilities = capabilities
        self.config = config or get_config()
        self.session_id = session_id or self.config.memory.default_session

        self.catalog = self._build_catalog()

        planner = capabilities.planner
        if planner is None and capabilities.answerer is not None:
            planner = AnswererPlanner(
                capabilities.answerer, self.catalog, self.config.orchestrator.max_plan_entries
            )
        self.orchestrator = Orchestrator(self.catalog, planner, self.config.orchestrator)

        logger.info(f"AgentFacade initialized with {len(self.catalog)} capabilities")

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _build_catalog(self) -> CapabilityCatalog:
        catalog = CapabilityCatalog()
        bodies = {
            "ask": self._ask_body,
            "runPipeline": self._run_pipeline_body,
            "runMeTTaExpression": self._metta_expression_body,
            "queryMeTTa": self._metta_query_body,
            "orchestrate": self._orchestrate_body,
            "plan": self._plan_body,
            "execute": self._execute_body,
            "fetchResearch": self._research_body,
            "processLargeInput": self._large_input_body,
            "recall": self._recall_body,
        }
        for name, description in SINGLE_INPUT_CAPABILITIES:
            body = bodies[name]
            catalog.register(
                name,
                lambda args, body=body: with_input(body(), args),
                min_args=0,
                max_args=1,
                description=description,
            )

        catalog.register(
            "remember",
            self._remember_factory,
            min_args=0,
            max_args=2,
            description="Store the input in memory (remember(key[, value]))",
        )
        catalog.register(
            "runSkill",
            self._skill_factory,
            min_args=0,
            max_args=2,
            description="Run a learned skill (runSkill(name[, args]))",
        )
        catalog.register(
            "useTool",
            self._tool_factory,
            min_args=1,
            max_args=2,
            description=self._tool_description(),
        )
        return catalog

    def _tool_description(self) -> str:
        description = "Invoke a named tool (useTool(name[, input]))"
        list_tools = getattr(self.capabilities.tools, "list_tools", None)
        if list_tools is not None:
            names = list_tools()
            if names:
                description += f"; tools: {', '.join(names)}"
        return description

    def _remember_factory(self, args: Tuple[str, ...]) -> Step[str, str]:
        step = remember_step(
            self.capabilities.memory,
            key=args[0] if args else None,
            default_key=self.config.memory.default_key,
        )
        return with_input(step, args, position=1)

    def _skill_factory(self, args: Tuple[str, ...]) -> Step[str, str]:
        step = skill_step(self.capabilities.skills, skill_name=args[0] if args else None)
        return with_input(step, args, position=1)

    def _tool_factory(self, args: Tuple[str, ...]) -> Step[str, str]:
        return with_input(tool_step(self.capabilities.tools, args[0]), args, position=1)

    # ------------------------------------------------------------------
    # Step bodies (unlabelled; the public *_step methods label them)
    # ------------------------------------------------------------------

    def _ask_body(self) -> Step[str, str]:
        return ask_step(self.capabilities.answerer)

    def _run_pipeline_body(self) -> Step[str, str]:
        if self.capabilities.pipeline_runner is not None:
            return pipeline_step(self.capabilities.pipeline_runner)
        return description_step(self.catalog)

    def _metta_expression_body(self) -> Step[str, str]:
        return metta_expression_step(self.capabilities.metta)

    def _metta_query_body(self) -> Step[str, str]:
        return metta_query_step(self.capabilities.metta)

    def _research_body(self) -> Step[str, str]:
        skills = self.capabilities.skills
        return research_step(
            self.capabilities.researcher,
            self.config.research,
            skills if isinstance(skills, SkillRegistry) else None,
        )

    def _large_input_body(self) -> Step[str, str]:
        return large_input_step(self.capabilities.answerer, self.config.large_input)

    def _recall_body(self) -> Step[str, str]:
        return recall_step(self.capabilities.memory)

    def _orchestrate_body(self) -> Step[str, str]:
        orchestrator = self.orchestrator

        async def _orchestrate(goal: str, context: ExecutionContext) -> Result[str, StepError]:
            outcome = await orchestrator.run(goal, context)
            return outcome.to_result()

        return Step(_orchestrate, name="orchestrate")

    def _plan_body(self) -> Step[str, str]:
        orchestrator = self.orchestrator

        async def _plan(goal: str, context: ExecutionContext) -> Result[str, StepError]:
            planned = await orchestrator.make_plan(goal, context)
            return planned.map(lambda plan: plan.render())

        return Step(_plan, name="plan")

    def _execute_body(self) -> Step[str, str]:
        orchestrator = self.orchestrator

        async def _execute(description: str, context: ExecutionContext) -> Result[str, StepError]:
            parsed = orchestrator.parse_plan(description)
            if parsed.is_failure:
                return parsed
            outcome = await orchestrator.execute_plan(parsed.value, context)
            return outcome.to_result()

        return Step(_execute, name="execute")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def context(self) -> ExecutionContext:
        """Fresh default context for this facade's session"""
        return ExecutionContext.default(session_id=self.session_id)

    def step_for(self, capability: str, *args: str) -> Step[str, str]:
        """Catalog step for ``capability`` labelled with its name"""
        entry = self.catalog.get(capability)
        if entry is None:
            raise KeyError(f"Unknown capability: {capability}")
        return self.catalog.build(capability, args).named(entry.name)

    async def _run(self, step: Step[str, str], value: str) -> Result[str, StepError]:
        return await step.run(value, self.context())

    def capability_names(self) -> List[str]:
        return self.catalog.names()

    def compile(self, description: str) -> Result[PipelineSpec, StepError]:
        """Compile a pipeline description against this facade's catalog"""
        return compile(description, self.catalog)

    async def aclose(self) -> None:
        """Close collaborators that hold network clients"""
        for collaborator in (self.capabilities.answerer, self.capabilities.researcher):
            close = getattr(collaborator, "close", None)
            if close is None:
                continue
            outcome = close()
            if inspect.isawaitable(outcome):
                await outcome

    # ------------------------------------------------------------------
    # Composable forms
    # ------------------------------------------------------------------

    def ask_step(self) -> Step[str, str]:
        return self.step_for("ask")

    def run_pipeline_step(self) -> Step[str, str]:
        return self.step_for("runPipeline")

    def run_metta_expression_step(self) -> Step[str, str]:
        return self.step_for("runMeTTaExpression")

    def query_metta_step(self) -> Step[str, str]:
        return self.step_for("queryMeTTa")

    def orchestrate_step(self) -> Step[str, str]:
        return self.step_for("orchestrate")

    def plan_step(self) -> Step[str, str]:
        return self.step_for("plan")

    def execute_step(self) -> Step[str, str]:
        return self.step_for("execute")

    def fetch_research_step(self) -> Step[str, str]:
        return self.step_for("fetchResearch")

    def process_large_input_step(self) -> Step[str, str]:
        return self.step_for("processLargeInput")

    def remember_step(self) -> Step[str, str]:
        return self.step_for("remember")

    def recall_step(self) -> Step[str, str]:
        return self.step_for("recall")

    def run_skill_step(self) -> Step[str, str]:
        return self.step_for("runSkill")

    def use_tool_step(self, tool_name: str) -> Step[str, str]:
        return self.step_for("useTool", tool_name)

    # ------------------------------------------------------------------
    # Immediate forms
    # ------------------------------------------------------------------

    async def ask(self, question: str) -> Result[str, StepError]:
        return await self._run(self.ask_step(), question)

    async def run_pipeline(self, dsl: str) -> Result[str, StepError]:
        return await self._run(self.run_pipeline_step(), dsl)

    async def run_metta_expression(self, expression: str) -> Result[str, StepError]:
        return await self._run(self.run_metta_expression_step(), expression)

    async def query_metta(self, query: str) -> Result[str, StepError]:
        return await self._run(self.query_metta_step(), query)

    async def orchestrate(self, goal: str) -> Result[str, StepError]:
        return await self._run(self.orchestrate_step(), goal)

    async def plan(self, goal: str) -> Result[str, StepError]:
        return await self._run(self.plan_step(), goal)

    async def execute(self, plan_description: str) -> Result[str, StepError]:
        return await self._run(self.execute_step(), plan_description)

    async def fetch_research(self, topic: str) -> Result[str, StepError]:
        return await self._run(self.fetch_research_step(), topic)

    async def process_large_input(self, text_or_path: str) -> Result[str, StepError]:
        return await self._run(self.process_large_input_step(), text_or_path)

    async def remember(self, entry: str) -> Result[str, StepError]:
        return await self._run(self.remember_step(), entry)

    async def recall(self, topic: str) -> Result[str, StepError]:
        return await self._run(self.recall_step(), topic)

    async def run_skill(self, invocation: str) -> Result[str, StepError]:
        return await self._run(self.run_skill_step(), invocation)

    async def use_tool(self, tool_name: str, tool_input: str = "") -> Result[str, StepError]:
        return await self._run(self.use_tool_step(tool_name), tool_input)
