"""
Stepwise Core - Error Values
Purpose: Closed error taxonomy carried through the failure channel of a Result

Errors crossing a Step boundary are values, not exceptions. Each carries a
matchable ``ErrorKind`` for control flow and a free-form message for
diagnostics. Python exceptions are reserved for programming and configuration
errors (see ``StepwiseError`` below).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

# ============================================================================
# ERROR KINDS
# ============================================================================


class ErrorKind(str, Enum):
    """Kinds of failure a Step can report"""

    PARSE = "parse"  # Malformed pipeline description
    VALIDATION = "validation"  # Malformed plan or input
    ADAPTER = "adapter"  # Collaborator-reported failure
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    COMPOSITION = "composition"  # Incompatible combinator inputs


# ============================================================================
# ERROR VALUE
# ============================================================================


@dataclass(frozen=True)
class StepError:
    """A failure payload.

    Attributes:
        kind: Error category
        message: Human-readable description (the collaborator's own message
            for adapter failures)
        label: Label of the Step that produced the failure
        token: Offending token for parse failures
        position: 0-based character offset for parse failures
        partial_output: Output accumulated before the failure (orchestration)
    """

    kind: ErrorKind
    message: str
    label: Optional[str] = None
    token: Optional[str] = None
    position: Optional[int] = None
    partial_output: Optional[str] = None

    def with_label(self, label: str) -> StepError:
        """Attach a label unless one is already present"""
        if self.label is not None:
            return self
        return replace(self, label=label)

    def with_partial_output(self, partial_output: str) -> StepError:
        return replace(self, partial_output=partial_output)

    def __str__(self) -> str:
        prefix = f"[{self.label}] " if self.label else ""
        text = f"{prefix}{self.kind.value}: {self.message}"
        if self.position is not None:
            text += f" (at position {self.position})"
        return text


# ============================================================================
# CONSTRUCTORS
# ============================================================================


def parse_error(message: str, token: Optional[str] = None, position: Optional[int] = None) -> StepError:
    return StepError(ErrorKind.PARSE, message, token=token, position=position)


def validation_error(message: str) -> StepError:
    return StepError(ErrorKind.VALIDATION, message)


def adapter_error(message: str) -> StepError:
    return StepError(ErrorKind.ADAPTER, message)


def timeout_error(message: str) -> StepError:
    return StepError(ErrorKind.TIMEOUT, message)


def cancellation_error(message: str = "Operation was cancelled") -> StepError:
    return StepError(ErrorKind.CANCELLED, message)


def composition_error(message: str) -> StepError:
    return StepError(ErrorKind.COMPOSITION, message)


# ============================================================================
# EXCEPTIONS (programming / configuration errors only)
# ============================================================================


class StepwiseError(Exception):
    """Base class for errors raised (not returned) by stepwise"""

    pass
