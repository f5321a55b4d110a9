"""
Stepwise Pipeline - Data Models
Purpose: Immutable representation of a compiled pipeline description
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# ARGUMENTS
# ============================================================================


class ArgumentKind(str, Enum):
    """How a positional argument gets its value"""

    LITERAL = "literal"
    REFERENCE = "reference"  # $name: output bound by an earlier invocation


class Argument(BaseModel):
    """A positional argument"""

    kind: ArgumentKind
    value: str = Field(..., description="Literal text, or the referenced binding name")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def literal(cls, value: str) -> Argument:
        return cls(kind=ArgumentKind.LITERAL, value=value)

    @classmethod
    def reference(cls, name: str) -> Argument:
        return cls(kind=ArgumentKind.REFERENCE, value=name)

    @property
    def is_reference(self) -> bool:
        return self.kind == ArgumentKind.REFERENCE

    def render(self) -> str:
        if self.is_reference:
            return f"${self.value}"
        return quote(self.value)


def quote(text: str) -> str:
    """Single-quoted literal using the lexer's escape rules"""
    escaped = (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f"'{escaped}'"


class Modifiers(BaseModel):
    """Keyword arguments that wrap an invocation's Step"""

    retry: Optional[int] = Field(default=None, ge=1, description="Max attempts (with_retry)")
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds (with_timeout)")

    model_config = ConfigDict(frozen=True)

    def render(self) -> Tuple[str, ...]:
        parts = []
        if self.retry is not None:
            parts.append(f"retry={self.retry}")
        if self.timeout is not None:
            parts.append(f"timeout={self.timeout:g}")
        return tuple(parts)


# ============================================================================
# INVOCATIONS AND STAGES
# ============================================================================


class Invocation(BaseModel):
    """One capability call within a pipeline"""

    capability: str = Field(..., description="Capability name (catalog spelling when known)")
    args: Tuple[Argument, ...] = ()
    modifiers: Modifiers = Field(default_factory=Modifiers)
    binding: Optional[str] = Field(default=None, description="Name bound to the output ('as name')")

    model_config = ConfigDict(frozen=True)

    @property
    def references(self) -> Tuple[str, ...]:
        return tuple(arg.value for arg in self.args if arg.is_reference)

    def render(self) -> str:
        inner = [arg.render() for arg in self.args] + list(self.modifiers.render())
        text = self.capability
        if inner:
            text += f"({', '.join(inner)})"
        if self.binding:
            text += f" as {self.binding}"
        return text


class Stage(BaseModel):
    """One or more invocations; more than one runs as a parallel branch"""

    invocations: Tuple[Invocation, ...] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def is_parallel(self) -> bool:
        return len(self.invocations) > 1

    def render(self) -> str:
        if self.is_parallel:
            return "[" + " & ".join(inv.render() for inv in self.invocations) + "]"
        return self.invocations[0].render()


class PipelineSpec(BaseModel):
    """A compiled pipeline: ordered stages"""

    stages: Tuple[Stage, ...] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def invocations(self) -> Iterator[Tuple[int, Invocation]]:
        """(1-based index, invocation) across all stages in order"""
        index = 0
        for stage in self.stages:
            for invocation in stage.invocations:
                index += 1
                yield index, invocation

    @property
    def invocation_count(self) -> int:
        return sum(len(stage.invocations) for stage in self.stages)

    @property
    def has_parallel_stages(self) -> bool:
        return any(stage.is_parallel for stage in self.stages)

    def bindings(self) -> Dict[str, int]:
        """Binding name -> index of the invocation producing it"""
        return {inv.binding: index for index, inv in self.invocations() if inv.binding}

    def render(self) -> str:
        return " -> ".join(stage.render() for stage in self.stages)
