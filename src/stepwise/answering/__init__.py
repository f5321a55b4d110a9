"""Stepwise question answering over OpenAI-compatible chat APIs."""

from stepwise.answering.chat import AnswererError, ChatCompletionsAnswerer

__all__ = ["AnswererError", "ChatCompletionsAnswerer"]
