"""
Stepwise Orchestrator - Plan Validation
Purpose: Structural checks a plan must pass before it is executed
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from stepwise.adapters.capabilities import CapabilityCatalog
from stepwise.core.errors import StepError, validation_error
from stepwise.core.result import Failure, Result, Success
from stepwise.orchestrator.models import Aggregation, Plan
from stepwise.pipeline.parser import INPUT_BINDING, compile

logger = logging.getLogger(__name__)


def validate_plan(plan: Plan, max_entries: int) -> Optional[StepError]:
    """
    Check a plan's structure.

    Returns:
        A VALIDATION error for the first problem found, or None
    """
    if plan.is_empty:
        return validation_error("Plan is empty")

    if plan.entry_count > max_entries:
        return validation_error(
            f"Plan has {plan.entry_count} entries; at most {max_entries} allowed"
        )

    produced: Set[str] = set()
    for entry in plan.entries:
        for reference in entry.invocation.references:
            if reference != INPUT_BINDING and reference not in produced:
                return validation_error(
                    f"Entry {entry.index} ({entry.capability}) references "
                    f"'${reference}' before it is produced"
                )
        binding = entry.invocation.binding
        if binding:
            if binding in produced or binding == INPUT_BINDING:
                return validation_error(
                    f"Output name '{binding}' is produced more than once"
                )
            produced.add(binding)

    return None


def build_plan(
    description: str,
    catalog: Optional[CapabilityCatalog],
    max_entries: int,
    goal: str = "",
    aggregation: Aggregation = Aggregation.LAST,
) -> Result[Plan, StepError]:
    """
    Compile a pipeline description into a validated Plan.

    Returns:
        Success(Plan), or Failure with a PARSE error (malformed description)
        or a VALIDATION error (well-formed but not an acceptable plan)
    """
    compiled = compile(description, catalog)
    if compiled.is_failure:
        return compiled

    spec = compiled.value
    if spec.has_parallel_stages:
        return Failure(validation_error("Plans cannot contain parallel stages"))

    plan = Plan.from_spec(spec, goal=goal, aggregation=aggregation)
    error = validate_plan(plan, max_entries)
    if error:
        logger.warning(f"Rejected plan '{description}': {error.message}")
        return Failure(error)
    return Success(plan)
