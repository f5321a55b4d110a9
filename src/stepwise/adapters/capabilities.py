"""
Stepwise Adapters - Capabilities
Purpose: One Step factory per collaborator, plus the name -> factory catalog

Every factory returns a ``Step[str, str]``. A factory given ``None`` for its
collaborator returns a Step that fails with an ADAPTER error saying the
capability is unavailable.
"""

from __future__ import annotations

import asyncio
import difflib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from stepwise.adapters.base import (
    Answerer,
    MemoryStore,
    MeTTaEngine,
    PipelineRunner,
    Researcher,
    SkillRunner,
    ToolInvoker,
    call_collaborator,
    invoke_collaborator,
    missing_collaborator,
    require_text,
    to_result,
)
from stepwise.config.loader import LargeInputConfig, ResearchConfig
from stepwise.core.context import ExecutionContext
from stepwise.core.errors import StepError, StepwiseError, adapter_error, validation_error
from stepwise.core.result import Failure, Result, Success
from stepwise.core.step import Step
from stepwise.large_input.divide_and_conquer import DivideAndConquerProcessor
from stepwise.research.arxiv import analysis_skill_for
from stepwise.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)

StepFactory = Callable[[Tuple[str, ...]], Step[str, str]]

KEY_VALUE_PATTERN = re.compile(r"^\s*([\w.\-]+)\s*=\s*(.*)$", re.DOTALL)
MAX_PATH_LENGTH = 4096


# ============================================================================
# QUESTION ANSWERING / PIPELINES / SYMBOLIC REASONING
# ============================================================================


def ask_step(answerer: Optional[Answerer]) -> Step[str, str]:
    if answerer is None:
        return Step(missing_collaborator("No LLM available for answering."), name="ask")

    async def _ask(question: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(question, "Usage: ask <question>")
        if error:
            return Failure(error)
        return await invoke_collaborator("ask", context, answerer.answer, question)

    return Step(_ask, name="ask")


def pipeline_step(runner: Optional[PipelineRunner]) -> Step[str, str]:
    if runner is None:
        return Step(missing_collaborator("Pipeline execution isn't available."), name="runPipeline")

    async def _run_pipeline(dsl: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(dsl, "Usage: pipeline <step1> -> <step2> -> ...")
        if error:
            return Failure(error)
        return await invoke_collaborator("runPipeline", context, runner.run, dsl)

    return Step(_run_pipeline, name="runPipeline")


def metta_expression_step(engine: Optional[MeTTaEngine]) -> Step[str, str]:
    if engine is None:
        return Step(
            missing_collaborator("MeTTa symbolic reasoning isn't available."),
            name="runMeTTaExpression",
        )

    async def _evaluate(expression: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(expression, "Usage: metta <expression>")
        if error:
            return Failure(error)
        return await invoke_collaborator("runMeTTaExpression", context, engine.evaluate, expression)

    return Step(_evaluate, name="runMeTTaExpression")


def metta_query_step(engine: Optional[MeTTaEngine]) -> Step[str, str]:
    if engine is None:
        return Step(
            missing_collaborator("MeTTa symbolic reasoning isn't available."), name="queryMeTTa"
        )

    async def _query(query: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(query, "Usage: query <MeTTa query>")
        if error:
            return Failure(error)
        return await invoke_collaborator("queryMeTTa", context, engine.query, query)

    return Step(_query, name="queryMeTTa")


# ============================================================================
# RESEARCH / LARGE INPUT
# ============================================================================


def research_step(
    researcher: Optional[Researcher],
    config: Optional[ResearchConfig] = None,
    skill_registry: Optional[SkillRegistry] = None,
) -> Step[str, str]:
    """
    Fetch research for a topic.

    Each attempt is bounded by ``config.timeout_seconds`` and attempts are
    retried per ``config.retry``. When a skill registry is supplied and the
    fetch succeeds, an analysis skill for the topic is registered.
    """
    if researcher is None:
        return Step(missing_collaborator("Research retrieval isn't available."), name="fetchResearch")

    config = config or ResearchConfig()

    async def _fetch(topic: str, context: ExecutionContext) -> Result[str, StepError]:
        return await invoke_collaborator("fetchResearch", context, researcher.fetch, topic.strip())

    fetch = (
        Step(_fetch, name="fetchResearch")
        .with_timeout(config.timeout_seconds)
        .with_retry(config.retry.to_policy())
    )

    async def _research(topic: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(topic, "Usage: fetch <research query>")
        if error:
            return Failure(error)

        result = await fetch.run(topic, context)
        if result.is_failure or skill_registry is None or not config.learn_skills:
            return result
        if result.value.startswith("No research found"):
            return result

        skill = analysis_skill_for(topic.strip())
        skill_registry.register(skill)
        return Success(f"{result.value}\n\n✓ New skill created: {skill.name}")

    return Step(_research, name="fetchResearch")


def _looks_like_path(text: str) -> bool:
    return 0 < len(text) < MAX_PATH_LENGTH and "\n" not in text


def _is_file(text: str) -> bool:
    try:
        return Path(text).is_file()
    except (OSError, ValueError):
        return False


def large_input_step(
    answerer: Optional[Answerer],
    config: Optional[LargeInputConfig] = None,
) -> Step[str, str]:
    """Read the input as a file when it names one, then divide and conquer."""
    if answerer is None:
        return Step(
            missing_collaborator("No LLM available for processing."), name="processLargeInput"
        )

    config = config or LargeInputConfig()

    async def _answer(prompt: str) -> str:
        result = to_result(await call_collaborator(answerer.answer, prompt), "answerer")
        if result.is_failure:
            raise StepwiseError(result.error.message)
        return result.value

    processor = DivideAndConquerProcessor(_answer, config)

    async def _process(text: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(text, "Usage: process <large text or file path>")
        if error:
            return Failure(error)

        candidate = text.strip()
        if _looks_like_path(candidate) and _is_file(candidate):
            try:
                text = await asyncio.to_thread(Path(candidate).read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                return Failure(adapter_error(f"Error reading file: {e}"))
            logger.info(f"Read {len(text)} chars from {candidate}")
            if not text.strip():
                return Failure(validation_error(f"File is empty: {candidate}"))

        return await invoke_collaborator("processLargeInput", context, processor.process, text)

    return Step(_process, name="processLargeInput")


# ============================================================================
# MEMORY
# ============================================================================


def parse_memory_entry(text: str, default_key: str) -> Tuple[str, str]:
    """'key=value' -> (key, value); bare text goes under ``default_key``"""
    match = KEY_VALUE_PATTERN.match(text)
    if match and match.group(2).strip():
        return match.group(1), match.group(2).strip()
    return default_key, text.strip()


def remember_step(
    store: Optional[MemoryStore],
    key: Optional[str] = None,
    default_key: str = "last",
) -> Step[str, str]:
    """
    Store the input in memory; succeeds with the stored value.

    With a ``key`` the whole input is stored under it. Without one the input
    is parsed as ``key=value`` (bare text goes under ``default_key``).
    """
    if store is None:
        return Step(missing_collaborator("Memory storage isn't available."), name="remember")

    async def _remember(text: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(text, "Usage: remember <key>=<value>")
        if error:
            return Failure(error)

        if key is not None:
            entry_key, value = key, text
        else:
            entry_key, value = parse_memory_entry(text, default_key)

        result = await invoke_collaborator(
            "remember",
            context,
            store.put,
            entry_key,
            value,
            expects_value=False,
            session=context.session_id,
        )
        return result.map(lambda _: value)

    return Step(_remember, name="remember")


def recall_step(store: Optional[MemoryStore]) -> Step[str, str]:
    """
    Recall a value by key; falls back to a keyword search when the store
    supports ``search`` and the key is not found.
    """
    if store is None:
        return Step(missing_collaborator("Memory storage isn't available."), name="recall")

    async def _recall(topic: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(topic, "Usage: recall <key or topic>")
        if error:
            return Failure(error)
        return await invoke_collaborator(
            "recall", context, _lookup_memory, store, topic.strip(), context.session_id
        )

    return Step(_recall, name="recall")


async def _lookup_memory(store: MemoryStore, topic: str, session: str) -> Union[str, Result[str, StepError]]:
    value = await call_collaborator(store.get, topic, session=session)
    if isinstance(value, Result):
        if value.is_failure:
            return value
        value = value.value
    if value is not None:
        return value

    search = getattr(store, "search", None)
    entries = await call_collaborator(search, topic, session=session) if search else None
    if not entries:
        raise LookupError(f"I don't have specific memories about '{topic}' yet.")
    return "I remember: " + "; ".join(entry.value for entry in list(entries)[:3])


# ============================================================================
# SKILLS / TOOLS
# ============================================================================


def parse_skill_invocation(text: str) -> Tuple[str, str]:
    """'<skill name> <args>' -> (name, args)"""
    name, _, args = text.strip().partition(" ")
    return name, args.strip()


def skill_step(registry: Optional[SkillRunner], skill_name: Optional[str] = None) -> Step[str, str]:
    """
    Run a skill.

    With ``skill_name`` the input is the skill's arguments; without it the
    input is parsed as ``<skill name> <args>``.
    """
    if registry is None:
        return Step(missing_collaborator("Skills not available."), name="runSkill")

    async def _run_skill(text: str, context: ExecutionContext) -> Result[str, StepError]:
        if skill_name is not None:
            name, args = skill_name, text or ""
        else:
            name, args = parse_skill_invocation(text or "")

        error = require_text(name, "Usage: runSkill <skill name> [args]")
        if error:
            return Failure(error)
        return await invoke_collaborator(f"runSkill '{name}'", context, registry.run, name, args)

    return Step(_run_skill, name="runSkill")


def tool_step(registry: Optional[ToolInvoker], tool_name: str) -> Step[str, str]:
    """
    Invoke a named tool with the input.

    Resolution happens when the Step runs: an unknown tool name is an
    ADAPTER failure at execution time, not at construction.
    """
    if registry is None:
        return Step(missing_collaborator("Tool registry isn't available."), name="useTool")

    async def _use_tool(tool_input: str, context: ExecutionContext) -> Result[str, StepError]:
        error = require_text(tool_name, "Usage: useTool <tool name> [input]")
        if error:
            return Failure(error)
        return await invoke_collaborator(
            f"useTool '{tool_name}'", context, registry.invoke, tool_name, tool_input or ""
        )

    return Step(_use_tool, name=f"useTool({tool_name})")


# ============================================================================
# CAPABILITY CATALOG
# ============================================================================


def canonical_name(name: str) -> str:
    """'runMeTTaExpression' / 'run_metta_expression' -> 'runmettaexpression'"""
    return name.replace("_", "").replace("-", "").lower()


def with_input(step: Step[str, str], args: Sequence[str], position: int = 0) -> Step[str, str]:
    """Replace the piped input with ``args[position]`` when present"""
    if len(args) > position:
        return Step.constant(args[position]).then(step)
    return step


@dataclass(frozen=True)
class CapabilityEntry:
    """A capability's factory and accepted positional argument count."""

    name: str
    factory: StepFactory
    min_args: int = 0
    max_args: int = 1
    description: str = ""

    def accepts(self, arg_count: int) -> bool:
        return self.min_args <= arg_count <= self.max_args

    @property
    def arity(self) -> str:
        if self.min_args == self.max_args:
            return str(self.min_args)
        return f"{self.min_args}-{self.max_args}"


class CapabilityCatalog:
    """
    Mapping from capability names to Step factories.

    Names are canonicalized (case, '_' and '-' ignored), so ``useTool``,
    ``use_tool`` and ``UseTool`` all resolve to the same entry.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CapabilityEntry] = {}

    def register(
        self,
        name: str,
        factory: StepFactory,
        min_args: int = 0,
        max_args: int = 1,
        description: str = "",
    ) -> None:
        key = canonical_name(name)
        if not key:
            raise ValueError("Capability name must not be empty")
        if key in self._entries:
            logger.warning(f"Capability '{name}' already registered, overwriting")
        self._entries[key] = CapabilityEntry(name, factory, min_args, max_args, description)
        logger.debug(f"Registered capability: {name}")

    def get(self, name: str) -> Optional[CapabilityEntry]:
        return self._entries.get(canonical_name(name))

    def build(self, name: str, args: Sequence[str] = ()) -> Step[str, str]:
        """
        Build the Step for a capability.

        Raises:
            KeyError: Unknown capability
            ValueError: Wrong number of arguments
        """
        entry = self.get(name)
        if entry is None:
            raise KeyError(f"Unknown capability: {name}")
        if not entry.accepts(len(args)):
            raise ValueError(
                f"{entry.name} expects {entry.arity} arguments, got {len(args)}"
            )
        return entry.factory(tuple(args))

    def suggest(self, name: str, limit: int = 3) -> List[str]:
        """Registered names closest to ``name``"""
        by_key = {key: entry.name for key, entry in self._entries.items()}
        close = difflib.get_close_matches(canonical_name(name), list(by_key), n=limit, cutoff=0.6)
        return [by_key[key] for key in close]

    def names(self) -> List[str]:
        return [entry.name for entry in self._entries.values()]

    def describe(self) -> str:
        """One line per capability, for planning prompts"""
        return "\n".join(
            f"- {entry.name}: {entry.description}" if entry.description else f"- {entry.name}"
            for entry in self._entries.values()
        )

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonical_name(name) in self._entries

    def __iter__(self) -> Iterator[CapabilityEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
