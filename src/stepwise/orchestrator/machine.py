"""
Stepwise Orchestrator - State Machine
Purpose: Plan a goal into capability invocations, then execute the plan

Phases:
    PLANNING  - Ask the planner for a pipeline description; compile and validate it
    EXECUTING - Compose the plan into one Step and run it, recording entry outputs
    COMPLETED - Every entry succeeded; the aggregated output is the result
    FAILED    - Planning, validation or an entry failed; partial output is kept
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from stepwise.adapters.base import Planner, invoke_collaborator, require_text
from stepwise.adapters.capabilities import CapabilityCatalog
from stepwise.config.loader import OrchestratorConfig
from stepwise.core.context import ExecutionContext
from stepwise.core.errors import StepError, adapter_error
from stepwise.core.result import Failure, Result
from stepwise.orchestrator.models import (
    Aggregation,
    OrchestrationOutcome,
    OrchestrationState,
    Phase,
    Plan,
)
from stepwise.orchestrator.transitions import transition
from stepwise.orchestrator.validation import build_plan, validate_plan
from stepwise.pipeline.interpreter import InvocationEvent, to_step
from stepwise.utils.logging_config import set_run_context, timed_operation

logger = logging.getLogger(__name__)

GOAL_USAGE = "Usage: orchestrate <goal>"


class Orchestrator:
    """
    Plan-then-execute orchestration over a capability catalog.

    Each call to ``run`` or ``execute_plan`` owns its own state values; the
    orchestrator itself holds only its collaborators and configuration.

    Usage:
        orchestrator = Orchestrator(catalog, planner)
        outcome = await orchestrator.run("summarize article X")
        outcome.phase          # Phase.COMPLETED
        outcome.to_result()    # Success(value=...)
    """

    def __init__(
        self,
        catalog: CapabilityCatalog,
        planner: Optional[Planner] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.catalog = catalog
        self.planner = planner
        self.config = config or OrchestratorConfig()

    @property
    def default_aggregation(self) -> Aggregation:
        return Aggregation(self.config.default_aggregation)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def parse_plan(self, description: str, goal: str = "") -> Result[Plan, StepError]:
        """Compile and validate a pipeline description as a Plan"""
        error = require_text(description, "Usage: execute <plan description>")
        if error:
            return Failure(error)
        return build_plan(
            description,
            self.catalog,
            self.config.max_plan_entries,
            goal=goal,
            aggregation=self.default_aggregation,
        )

    async def make_plan(
        self, goal: str, context: Optional[ExecutionContext] = None
    ) -> Result[Plan, StepError]:
        """Ask the planner for a description of how to reach ``goal`` and validate it"""
        context = context or ExecutionContext.default()
        error = require_text(goal, GOAL_USAGE)
        if error:
            return Failure(error)
        if self.planner is None:
            return Failure(adapter_error("No planner available for orchestration."))

        described = await invoke_collaborator("plan", context, self.planner.plan, goal)
        if described.is_failure:
            return described
        return self.parse_plan(described.value, goal=goal)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def run(
        self, goal: str, context: Optional[ExecutionContext] = None
    ) -> OrchestrationOutcome:
        """Plan and execute ``goal``"""
        context = context or ExecutionContext.default()
        set_run_context(run_id=context.run_id, session_id=context.session_id)
        started = time.perf_counter()

        state = OrchestrationState(goal=goal or "")
        history: List[Phase] = [state.phase]
        logger.info(f"Orchestration {context.run_id}: planning for '{(goal or '')[:100]}'")

        with timed_operation("orchestration planning", logger):
            planned = await self.make_plan(goal, context)

        if planned.is_failure:
            state = transition(state, Phase.FAILED, error=planned.error)
            history.append(state.phase)
            logger.warning(f"Orchestration {context.run_id}: planning failed: {planned.error}")
            return self._outcome(state, history, started)

        return await self._execute(planned.value, state, history, context, started)

    async def execute_plan(
        self, plan: Plan, context: Optional[ExecutionContext] = None
    ) -> OrchestrationOutcome:
        """Validate and execute an already resolved plan"""
        context = context or ExecutionContext.default()
        set_run_context(run_id=context.run_id, session_id=context.session_id)
        started = time.perf_counter()

        state = OrchestrationState(goal=plan.goal)
        history: List[Phase] = [state.phase]

        error = validate_plan(plan, self.config.max_plan_entries)
        if error:
            state = transition(state, Phase.FAILED, plan=plan, error=error)
            history.append(state.phase)
            return self._outcome(state, history, started)

        return await self._execute(plan, state, history, context, started)

    async def _execute(
        self,
        plan: Plan,
        state: OrchestrationState,
        history: List[Phase],
        context: ExecutionContext,
        started: float,
    ) -> OrchestrationOutcome:
        state = transition(state, Phase.EXECUTING, plan=plan)
        history.append(state.phase)
        logger.info(
            f"Orchestration {context.run_id}: executing {plan.entry_count} entries: {plan.render()}"
        )

        progress = state
        failed_index: Optional[int] = None

        def _record(event: InvocationEvent) -> None:
            nonlocal progress, failed_index
            if event.result.is_success:
                progress = progress.with_output(
                    event.index, event.invocation.capability, event.result.value
                )
            elif failed_index is None:
                failed_index = event.index

        step = to_step(plan.to_spec(), self.catalog, observer=_record)
        with timed_operation("orchestration execution", logger):
            result = await step.run("", context)

        if result.is_failure:
            error = result.error.with_partial_output(progress.partial_output)
            state = transition(progress, Phase.FAILED, failed_index=failed_index, error=error)
            history.append(state.phase)
            logger.warning(
                f"Orchestration {context.run_id}: failed at entry {failed_index}/"
                f"{plan.entry_count} after {progress.completed_count} completed: {error}"
            )
            return self._outcome(state, history, started)

        state = transition(progress, Phase.COMPLETED, result=self._aggregate(progress, plan))
        history.append(state.phase)
        logger.info(f"Orchestration {context.run_id}: completed {plan.entry_count} entries")
        return self._outcome(state, history, started)

    @staticmethod
    def _aggregate(state: OrchestrationState, plan: Plan) -> str:
        if not state.outputs:
            return ""
        if plan.aggregation == Aggregation.JOIN:
            return "\n".join(entry.output for entry in state.outputs)
        return state.outputs[-1].output

    @staticmethod
    def _outcome(
        state: OrchestrationState, history: List[Phase], started: float
    ) -> OrchestrationOutcome:
        return OrchestrationOutcome(
            state=state,
            history=tuple(history),
            duration_ms=(time.perf_counter() - started) * 1000,
        )
