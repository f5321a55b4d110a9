"""
Stepwise Core - Result
Purpose: Two-variant outcome value used across every asynchronous boundary

Usage:
    ok = Result.success(2)
    ok.map(lambda x: x + 1)                  # Success(value=3)
    ok.bind(lambda x: Result.failure("no"))  # Failure(error='no')
    Result.failure("boom").map(str.upper)    # Failure(error='boom')
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")
R = TypeVar("R")


class Result(Generic[T, E]):
    """Exactly one of a success value or a failure value.

    Concrete variants are ``Success`` and ``Failure``. Both are frozen
    dataclasses, so results compare structurally and never change after
    construction.
    """

    __slots__ = ()

    @staticmethod
    def success(value: Any) -> Success:
        return Success(value)

    @staticmethod
    def failure(error: Any) -> Failure:
        return Failure(error)

    @property
    def is_success(self) -> bool:
        raise NotImplementedError

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        raise NotImplementedError

    def bind(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        raise NotImplementedError

    def map_error(self, fn: Callable[[E], F]) -> Result[T, F]:
        raise NotImplementedError

    def match(self, on_success: Callable[[T], R], on_failure: Callable[[E], R]) -> R:
        raise NotImplementedError

    def unwrap_or(self, default: T) -> T:
        raise NotImplementedError


@dataclass(frozen=True)
class Success(Result[T, E]):
    """A successful outcome"""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def error(self) -> E:
        raise AttributeError("Success has no error")

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        return Success(fn(self.value))

    def bind(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return fn(self.value)

    def map_error(self, fn: Callable[[E], F]) -> Result[T, F]:
        return self  # type: ignore[return-value]

    def match(self, on_success: Callable[[T], R], on_failure: Callable[[E], R]) -> R:
        return on_success(self.value)

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Failure(Result[T, E]):
    """A failed outcome; absorbing under map and bind"""

    error: E

    @property
    def is_success(self) -> bool:
        return False

    @property
    def value(self) -> T:
        raise AttributeError(f"Failure has no value: {self.error}")

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        return self  # type: ignore[return-value]

    def bind(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return self  # type: ignore[return-value]

    def map_error(self, fn: Callable[[E], F]) -> Result[T, F]:
        return Failure(fn(self.error))

    def match(self, on_success: Callable[[T], R], on_failure: Callable[[E], R]) -> R:
        return on_failure(self.error)

    def unwrap_or(self, default: T) -> T:
        return default
