"""
Stepwise Pipeline - Parser
Purpose: Compile a pipeline description into a PipelineSpec

Grammar:
    pipeline   := stage (ARROW stage)*
    ARROW      := "->" | "→" | "|"
    stage      := invocation | "[" invocation ("&" invocation)+ "]"
    invocation := NAME [ "(" [arg ("," arg)*] ")" ] [ "as" NAME ]
    arg        := STRING | NUMBER | "$" NAME | NAME "=" (STRING | NUMBER)

Compilation is all-or-nothing: any malformed input yields a single PARSE
failure naming the offending token and its 0-based position.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from stepwise.adapters.capabilities import CapabilityCatalog, canonical_name
from stepwise.core.errors import StepError, parse_error
from stepwise.core.result import Failure, Result, Success
from stepwise.pipeline.lexer import PipelineSyntaxError, Token, TokenKind, tokenize
from stepwise.pipeline.models import Argument, Invocation, Modifiers, PipelineSpec, Stage

logger = logging.getLogger(__name__)

INPUT_BINDING = "input"
MODIFIERS = ("retry", "timeout")

CatalogLike = Union[CapabilityCatalog, Iterable[str], None]


@dataclass(frozen=True)
class _Located:
    """An invocation plus the source positions needed for error reporting"""

    invocation: Invocation
    name_token: Token
    arg_tokens: Tuple[Token, ...]
    binding_token: Optional[Token]


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != TokenKind.EOF:
            self.index += 1
        return token

    def expect(self, kind: TokenKind, what: str) -> Token:
        token = self.current
        if token.kind != kind:
            self.fail(f"Expected {what}, found {self.describe(token)}", token)
        return self.advance()

    @staticmethod
    def describe(token: Token) -> str:
        if token.kind == TokenKind.EOF:
            return "end of input"
        return f"'{token.text}'"

    @staticmethod
    def fail(message: str, token: Token) -> None:
        raise PipelineSyntaxError(parse_error(message, token=token.text, position=token.position))

    # ------------------------------------------------------------------

    def parse_pipeline(self) -> List[List[_Located]]:
        stages = [self.parse_stage()]
        while self.current.kind == TokenKind.ARROW:
            self.advance()
            stages.append(self.parse_stage())
        if self.current.kind != TokenKind.EOF:
            self.fail(f"Unexpected token {self.describe(self.current)}", self.current)
        return stages

    def parse_stage(self) -> List[_Located]:
        if self.current.kind != TokenKind.LBRACKET:
            return [self.parse_invocation()]

        self.advance()
        branches = [self.parse_invocation()]
        while self.current.kind == TokenKind.AMP:
            self.advance()
            branches.append(self.parse_invocation())
        self.expect(TokenKind.RBRACKET, "'&' or ']'")
        if len(branches) < 2:
            self.fail("A parallel stage needs at least two invocations", self.tokens[self.index - 1])
        return branches

    def parse_invocation(self) -> _Located:
        name_token = self.expect(TokenKind.NAME, "a capability name")
        args: List[Argument] = []
        arg_tokens: List[Token] = []
        modifiers: Dict[str, Union[int, float]] = {}

        if self.current.kind == TokenKind.LPAREN:
            self.advance()
            if self.current.kind != TokenKind.RPAREN:
                self.parse_argument(args, arg_tokens, modifiers)
                while self.current.kind == TokenKind.COMMA:
                    self.advance()
                    self.parse_argument(args, arg_tokens, modifiers)
            self.expect(TokenKind.RPAREN, "',' or ')'")

        binding_token = None
        if self.current.kind == TokenKind.NAME and self.current.text == "as":
            self.advance()
            binding_token = self.expect(TokenKind.NAME, "a binding name after 'as'")

        invocation = Invocation(
            capability=name_token.text,
            args=tuple(args),
            modifiers=Modifiers(**modifiers),
            binding=binding_token.text if binding_token else None,
        )
        return _Located(invocation, name_token, tuple(arg_tokens), binding_token)

    def parse_argument(
        self,
        args: List[Argument],
        arg_tokens: List[Token],
        modifiers: Dict[str, Union[int, float]],
    ) -> None:
        token = self.current
        if token.kind in (TokenKind.STRING, TokenKind.NUMBER):
            self.advance()
            args.append(Argument.literal(token.value))
            arg_tokens.append(token)
            return
        if token.kind == TokenKind.REFERENCE:
            self.advance()
            args.append(Argument.reference(token.value))
            arg_tokens.append(token)
            return
        if token.kind == TokenKind.NAME:
            if token.text in modifiers:
                self.fail(f"Modifier '{token.text}' given more than once", token)
            self.advance()
            self.expect(TokenKind.EQUALS, f"'=' after '{token.text}'")
            value_token = self.current
            if value_token.kind not in (TokenKind.STRING, TokenKind.NUMBER):
                self.fail(f"Expected a value for '{token.text}'", value_token)
            self.advance()
            modifiers[token.text] = self.modifier_value(token, value_token)
            return
        self.fail(f"Expected an argument, found {self.describe(token)}", token)

    def modifier_value(self, name: Token, value: Token) -> Union[int, float]:
        if name.text not in MODIFIERS:
            self.fail(
                f"Unknown modifier '{name.text}' (expected one of: {', '.join(MODIFIERS)})", name
            )
        try:
            if name.text == "retry":
                number: Union[int, float] = int(value.value)
                valid = number >= 1
            else:
                number = float(value.value)
                valid = number > 0
        except ValueError:
            valid = False
            number = 0
        if not valid:
            kind = "a positive integer" if name.text == "retry" else "a positive number"
            self.fail(f"'{name.text}' must be {kind}, got {value.text}", value)
        return number


# ============================================================================
# SEMANTIC CHECKS
# ============================================================================


def _resolve_capability(located: _Located, catalog: CatalogLike) -> Invocation:
    """Replace the written name with the catalog spelling; check arity"""
    invocation = located.invocation
    token = located.name_token
    if catalog is None:
        return invocation

    if isinstance(catalog, CapabilityCatalog):
        entry = catalog.get(invocation.capability)
        if entry is None:
            _unknown_capability(token, catalog.suggest(invocation.capability))
        if not entry.accepts(len(invocation.args)):
            raise PipelineSyntaxError(
                parse_error(
                    f"{entry.name} expects {entry.arity} arguments, got {len(invocation.args)}",
                    token=token.text,
                    position=token.position,
                )
            )
        return invocation.model_copy(update={"capability": entry.name})

    known = {canonical_name(name): name for name in catalog}
    key = canonical_name(invocation.capability)
    if key not in known:
        close = difflib.get_close_matches(key, list(known), n=3, cutoff=0.6)
        _unknown_capability(token, [known[k] for k in close])
    return invocation.model_copy(update={"capability": known[key]})


def _unknown_capability(token: Token, suggestions: List[str]) -> None:
    message = f"Unknown capability '{token.text}'"
    if suggestions:
        message += f" (did you mean: {', '.join(suggestions)}?)"
    raise PipelineSyntaxError(parse_error(message, token=token.text, position=token.position))


def _check_bindings(stages: List[List[_Located]]) -> None:
    """Bindings are unique; references point at earlier stages or $input"""
    bound: Dict[str, Token] = {}
    for stage in stages:
        produced: List[_Located] = []
        for located in stage:
            for arg, token in zip(located.invocation.args, located.arg_tokens):
                if arg.is_reference and arg.value != INPUT_BINDING and arg.value not in bound:
                    raise PipelineSyntaxError(
                        parse_error(
                            f"Reference to unbound name '${arg.value}'",
                            token=token.text,
                            position=token.position,
                        )
                    )
            if located.binding_token is not None:
                produced.append(located)

        for located in produced:
            name_token = located.binding_token
            name = name_token.text
            if name == INPUT_BINDING:
                raise PipelineSyntaxError(
                    parse_error(
                        "'input' is reserved for the pipeline input",
                        token=name,
                        position=name_token.position,
                    )
                )
            if name in bound:
                raise PipelineSyntaxError(
                    parse_error(
                        f"Duplicate binding name '{name}'",
                        token=name,
                        position=name_token.position,
                    )
                )
            bound[name] = name_token


# ============================================================================
# ENTRY POINT
# ============================================================================


def compile(description: str, catalog: CatalogLike = None) -> Result[PipelineSpec, StepError]:
    """
    Compile a pipeline description.

    Args:
        description: Pipeline text, e.g. "ask('capital of France') -> remember('fact1')"
        catalog: A CapabilityCatalog (names and arity checked) or an iterable
            of capability names (names checked); None skips capability checks

    Returns:
        Success(PipelineSpec) or Failure(StepError) of kind PARSE
    """
    if description is None or not description.strip():
        return Failure(parse_error("Empty pipeline description", token="", position=0))

    try:
        stages = _Parser(tokenize(description)).parse_pipeline()
        _check_bindings(stages)
        spec = PipelineSpec(
            stages=tuple(
                Stage(invocations=tuple(_resolve_capability(loc, catalog) for loc in stage))
                for stage in stages
            )
        )
    except PipelineSyntaxError as e:
        logger.debug(f"Pipeline rejected: {e.error}")
        return Failure(e.error)

    logger.debug(f"Compiled pipeline with {spec.invocation_count} invocations")
    return Success(spec)


def describe(spec: PipelineSpec) -> str:
    """Render a spec back to canonical pipeline text"""
    return spec.render()
