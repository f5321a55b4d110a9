"""
Stepwise Orchestrator - Transitions
Purpose: Explicit phase transition table for orchestration runs

    PLANNING  -> EXECUTING | FAILED
    EXECUTING -> COMPLETED | FAILED
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet

from stepwise.core.errors import StepwiseError
from stepwise.orchestrator.models import OrchestrationState, Phase

logger = logging.getLogger(__name__)


class InvalidTransitionError(StepwiseError):
    """Raised on a phase change the transition table does not allow"""

    def __init__(self, current: Phase, target: Phase):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current.value} -> {target.value}")


TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
    Phase.PLANNING: frozenset({Phase.EXECUTING, Phase.FAILED}),
    Phase.EXECUTING: frozenset({Phase.COMPLETED, Phase.FAILED}),
    Phase.COMPLETED: frozenset(),
    Phase.FAILED: frozenset(),
}


def can_transition(current: Phase, target: Phase) -> bool:
    return target in TRANSITIONS[current]


def transition(state: OrchestrationState, phase: Phase, **updates: Any) -> OrchestrationState:
    """
    Move ``state`` to ``phase``, applying ``updates`` to the new copy.

    Raises:
        InvalidTransitionError: If the table does not allow the move
    """
    if not can_transition(state.phase, phase):
        raise InvalidTransitionError(state.phase, phase)

    unknown = set(updates) - set(OrchestrationState.model_fields)
    if unknown:
        raise ValueError(f"Unknown state fields: {', '.join(sorted(unknown))}")

    logger.debug(f"Phase {state.phase.value} -> {phase.value}")
    return state.model_copy(update={**updates, "phase": phase})
