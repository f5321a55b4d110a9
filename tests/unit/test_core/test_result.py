"""Unit tests for Result values.

Tests cover:
- Success / Failure construction and accessors
- map, bind, map_error, match, unwrap_or
- Monad laws for bind (left/right identity, associativity)
- Structural equality and immutability
"""

import dataclasses

import pytest

from stepwise.core.errors import ErrorKind, StepError, adapter_error
from stepwise.core.result import Failure, Result, Success


def half(x: int) -> Result:
    if x % 2:
        return Result.failure(f"{x} is odd")
    return Result.success(x // 2)


def minus_one(x: int) -> Result:
    if x <= 0:
        return Result.failure("not positive")
    return Result.success(x - 1)


# =============================================================================
# CONSTRUCTION
# =============================================================================


class TestConstruction:
    """Tests for building results."""

    def test_success_factory(self):
        result = Result.success(3)
        assert isinstance(result, Success)
        assert result.is_success
        assert not result.is_failure
        assert result.value == 3

    def test_failure_factory(self):
        error = adapter_error("boom")
        result = Result.failure(error)
        assert isinstance(result, Failure)
        assert result.is_failure
        assert result.error is error

    def test_wrong_side_access_raises(self):
        """Accessing the missing side is a programming error."""
        with pytest.raises(AttributeError):
            Success(1).error
        with pytest.raises(AttributeError):
            Failure("x").value

    def test_structural_equality(self):
        assert Success("a") == Success("a")
        assert Failure(adapter_error("x")) == Failure(adapter_error("x"))
        assert Success("a") != Failure("a")

    def test_results_are_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            Success(1).value = 2


# =============================================================================
# COMBINATORS
# =============================================================================


class TestCombinators:
    """Tests for map/bind/map_error/match/unwrap_or."""

    def test_map_transforms_success_only(self):
        assert Success(2).map(lambda x: x * 10) == Success(20)
        assert Failure("e").map(lambda x: x * 10) == Failure("e")

    def test_map_error_transforms_failure_only(self):
        assert Failure("e").map_error(str.upper) == Failure("E")
        assert Success(1).map_error(str.upper) == Success(1)

    def test_bind_flattens(self):
        assert Success(8).bind(half) == Success(4)
        assert Success(3).bind(half) == Failure("3 is odd")

    def test_failure_is_absorbing(self):
        calls = []

        def record(x):
            calls.append(x)
            return Success(x)

        assert Failure("stop").bind(record).map(record) == Failure("stop")
        assert calls == []

    def test_match(self):
        assert Success(1).match(lambda v: f"ok {v}", lambda e: f"err {e}") == "ok 1"
        assert Failure("x").match(lambda v: f"ok {v}", lambda e: f"err {e}") == "err x"

    def test_unwrap_or(self):
        assert Success(1).unwrap_or(0) == 1
        assert Failure("x").unwrap_or(0) == 0


# =============================================================================
# LAWS
# =============================================================================


class TestBindLaws:
    """bind behaves like a monadic bind."""

    @pytest.mark.parametrize("value", [0, 1, 4, 7])
    def test_left_identity(self, value):
        assert Result.success(value).bind(half) == half(value)

    @pytest.mark.parametrize("result", [Success(4), Failure("e")])
    def test_right_identity(self, result):
        assert result.bind(Result.success) == result

    @pytest.mark.parametrize("value", [0, 2, 3, 4, 8])
    def test_associativity(self, value):
        left = Success(value).bind(half).bind(minus_one)
        right = Success(value).bind(lambda x: half(x).bind(minus_one))
        assert left == right


# =============================================================================
# ERRORS
# =============================================================================


class TestStepError:
    """Tests for the StepError value."""

    def test_str_includes_label_kind_and_position(self):
        error = StepError(ErrorKind.PARSE, "Unexpected token", label="compile", position=4)
        assert str(error) == "[compile] parse: Unexpected token (at position 4)"

    def test_with_label_keeps_existing_label(self):
        error = adapter_error("x").with_label("inner")
        assert error.with_label("outer").label == "inner"

    def test_with_partial_output(self):
        error = adapter_error("x").with_partial_output("done so far")
        assert error.partial_output == "done so far"
        assert error.kind == ErrorKind.ADAPTER

    def test_kind_is_string_enum(self):
        assert ErrorKind.TIMEOUT == "timeout"
        assert ErrorKind.CANCELLED.value == "cancelled"
