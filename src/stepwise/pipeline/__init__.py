"""
Stepwise Pipeline Interpreter

Compiles textual pipeline descriptions into a PipelineSpec and composes the
spec into a single Step.

Usage:
    from stepwise.pipeline import compile, to_step

    spec = compile("ask('capital of France') -> remember('fact1')", catalog).value
    result = await to_step(spec, catalog).run("")
"""

from .interpreter import (
    Frame,
    InvocationEvent,
    Observer,
    PipelineError,
    apply_modifiers,
    description_step,
    invocation_label,
    to_step,
)
from .lexer import PipelineSyntaxError, Token, TokenKind, tokenize
from .models import Argument, ArgumentKind, Invocation, Modifiers, PipelineSpec, Stage, quote
from .parser import INPUT_BINDING, compile, describe

__all__ = [
    # Models
    "Argument",
    "ArgumentKind",
    "Invocation",
    "Modifiers",
    "PipelineSpec",
    "Stage",
    "quote",
    # Lexer / parser
    "Token",
    "TokenKind",
    "PipelineSyntaxError",
    "tokenize",
    "compile",
    "describe",
    "INPUT_BINDING",
    # Interpreter
    "Frame",
    "InvocationEvent",
    "Observer",
    "PipelineError",
    "apply_modifiers",
    "description_step",
    "invocation_label",
    "to_step",
]
