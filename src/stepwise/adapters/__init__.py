"""
Stepwise Capability Adapters

Boundary wrappers turning each external collaborator into a ``Step[str, str]``
and the catalog mapping capability names to those Step factories.

Usage:
    from stepwise.adapters import CapabilityCatalog, tool_step

    step = tool_step(tools, "calculator")
    result = await step.run("2+2")          # Success(value='4')
"""

from .base import (
    Answerer,
    MemoryStore,
    MeTTaEngine,
    PipelineRunner,
    Planner,
    Researcher,
    SkillRunner,
    ToolInvoker,
    call_collaborator,
    invoke_collaborator,
    to_result,
)
from .capabilities import (
    CapabilityCatalog,
    CapabilityEntry,
    StepFactory,
    ask_step,
    canonical_name,
    large_input_step,
    metta_expression_step,
    metta_query_step,
    parse_memory_entry,
    parse_skill_invocation,
    pipeline_step,
    recall_step,
    remember_step,
    research_step,
    skill_step,
    tool_step,
    with_input,
)

__all__ = [
    # Protocols
    "Answerer",
    "MeTTaEngine",
    "MemoryStore",
    "PipelineRunner",
    "Planner",
    "Researcher",
    "SkillRunner",
    "ToolInvoker",
    # Conversion
    "call_collaborator",
    "invoke_collaborator",
    "to_result",
    # Factories
    "ask_step",
    "large_input_step",
    "metta_expression_step",
    "metta_query_step",
    "pipeline_step",
    "recall_step",
    "remember_step",
    "research_step",
    "skill_step",
    "tool_step",
    "parse_memory_entry",
    "parse_skill_invocation",
    # Catalog
    "CapabilityCatalog",
    "CapabilityEntry",
    "StepFactory",
    "canonical_name",
    "with_input",
]
