"""
Stepwise Orchestrator - Planner
Purpose: Ask the answerer for a pipeline description that achieves a goal

The planner only produces text. Compiling and validating that text into a
Plan is the orchestrator's job.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from stepwise.adapters.base import Answerer, call_collaborator, to_result
from stepwise.adapters.capabilities import CapabilityCatalog
from stepwise.core.errors import StepError, validation_error
from stepwise.core.result import Failure, Result, Success

logger = logging.getLogger(__name__)


# ============================================================================
# PLANNING PROMPT
# ============================================================================

PLANNING_PROMPT = """You are planning how to achieve a goal with a fixed set of capabilities.

## Available capabilities:
{capabilities}

## Pipeline syntax:
- Chain invocations with ->, e.g. ask('capital of France') -> remember('fact1')
- Quote literal arguments; an invocation without arguments receives the previous output
- Bind an output with `as name` and pass it later as $name
- Use at most {max_entries} invocations and no parallel branches

## Goal:
{goal}

Return the pipeline on a single line inside a ```pipeline fenced block."""


FENCE_PATTERN = re.compile(r"```[\w-]*[ \t]*\n(.*?)```", re.DOTALL)
NUMBERED_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.+)$")
ARROWS = ("->", "→")


def _clean(line: str) -> str:
    return line.strip().strip("`").strip()


def extract_description(text: Optional[str]) -> Optional[str]:
    """
    Pull a pipeline description out of a model reply.

    Tried in order: the first line containing an arrow (inside a fenced
    block when there is one), numbered lines joined with arrows, the lines of
    a fenced block joined with arrows, a single-line reply.
    """
    if not text or not text.strip():
        return None

    fence = FENCE_PATTERN.search(text)
    body = fence.group(1) if fence else text
    lines: List[str] = [_clean(line) for line in body.splitlines() if _clean(line)]

    for line in lines:
        if any(arrow in line for arrow in ARROWS):
            numbered = NUMBERED_PATTERN.match(line)
            return _clean(numbered.group(1)) if numbered else line

    numbered_items = [
        _clean(match.group(1)) for match in map(NUMBERED_PATTERN.match, lines) if match
    ]
    if numbered_items:
        return " -> ".join(numbered_items)

    if fence and lines:
        return " -> ".join(lines)
    if len(lines) == 1:
        return lines[0]
    return None


# ============================================================================
# PLANNER CLASS
# ============================================================================


class AnswererPlanner:
    """
    Planner backed by the question-answering collaborator.

    Usage:
        planner = AnswererPlanner(answerer, catalog, max_entries=10)
        result = await planner.plan("summarize article X")
        # Success(value="fetchResearch('article X') -> processLargeInput")
    """

    def __init__(
        self,
        answerer: Answerer,
        catalog: Optional[CapabilityCatalog] = None,
        max_entries: int = 10,
    ):
        self.answerer = answerer
        self.catalog = catalog
        self.max_entries = max_entries

    def build_prompt(self, goal: str) -> str:
        capabilities = self.catalog.describe() if self.catalog else "(none listed)"
        return PLANNING_PROMPT.format(
            capabilities=capabilities, max_entries=self.max_entries, goal=goal.strip()
        )

    async def plan(self, goal: str) -> Result[str, StepError]:
        logger.info(f"Planning for goal: {goal[:100]}")

        reply = to_result(
            await call_collaborator(self.answerer.answer, self.build_prompt(goal)), "planner"
        )
        if reply.is_failure:
            return reply

        description = extract_description(reply.value)
        if description is None:
            logger.warning(f"No pipeline found in planner reply: {reply.value[:200]}")
            return Failure(validation_error("Planner reply did not contain a pipeline description"))

        logger.debug(f"Planned: {description}")
        return Success(description)
