"""Stepwise large-input processing."""

from stepwise.large_input.divide_and_conquer import AnswerFn, DivideAndConquerProcessor

__all__ = ["AnswerFn", "DivideAndConquerProcessor"]
