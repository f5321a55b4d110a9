"""
Stepwise Orchestrator

Plan-then-execute state machine: a planner turns a goal into a pipeline
description, which is validated as a Plan and executed through the pipeline
interpreter.

Usage:
    from stepwise.orchestrator import Orchestrator, AnswererPlanner

    orchestrator = Orchestrator(catalog, AnswererPlanner(answerer, catalog))
    outcome = await orchestrator.run("summarize article X")
"""

from .machine import Orchestrator
from .models import (
    Aggregation,
    EntryOutput,
    OrchestrationOutcome,
    OrchestrationState,
    Phase,
    Plan,
    PlanEntry,
)
from .planner import PLANNING_PROMPT, AnswererPlanner, extract_description
from .transitions import TRANSITIONS, InvalidTransitionError, can_transition, transition
from .validation import build_plan, validate_plan

__all__ = [
    # Models
    "Aggregation",
    "EntryOutput",
    "OrchestrationOutcome",
    "OrchestrationState",
    "Phase",
    "Plan",
    "PlanEntry",
    # State machine
    "Orchestrator",
    "TRANSITIONS",
    "InvalidTransitionError",
    "can_transition",
    "transition",
    # Planning
    "AnswererPlanner",
    "PLANNING_PROMPT",
    "extract_description",
    "build_plan",
    "validate_plan",
]
