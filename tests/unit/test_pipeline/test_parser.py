"""Unit tests for pipeline description tokenizing and compilation.

Tests cover:
- Token kinds and positions
- Grammar: sequential stages, parallel stages, arguments, modifiers, bindings
- PARSE failures with offending token and position
- Capability checks against a catalog (names, arity, suggestions)
- Determinism and describe() round trips
"""

import pytest

from stepwise.adapters.capabilities import CapabilityCatalog
from stepwise.core.errors import ErrorKind
from stepwise.core.step import Step
from stepwise.pipeline.lexer import PipelineSyntaxError, TokenKind, tokenize
from stepwise.pipeline.models import Argument, ArgumentKind, Modifiers
from stepwise.pipeline.parser import compile, describe


@pytest.fixture
def catalog() -> CapabilityCatalog:
    catalog = CapabilityCatalog()
    for name in ("ask", "recall", "runMeTTaExpression"):
        catalog.register(name, lambda args: Step.identity(), max_args=1)
    catalog.register("remember", lambda args: Step.identity(), max_args=2)
    catalog.register("useTool", lambda args: Step.identity(), min_args=1, max_args=2)
    return catalog


# =============================================================================
# LEXER
# =============================================================================


class TestTokenize:
    """Tests for tokenize()."""

    def test_token_kinds(self):
        tokens = tokenize("ask('x', $a, retry=2) -> [b & c] as d")
        kinds = [t.kind for t in tokens]
        assert kinds == [
            TokenKind.NAME,
            TokenKind.LPAREN,
            TokenKind.STRING,
            TokenKind.COMMA,
            TokenKind.REFERENCE,
            TokenKind.COMMA,
            TokenKind.NAME,
            TokenKind.EQUALS,
            TokenKind.NUMBER,
            TokenKind.RPAREN,
            TokenKind.ARROW,
            TokenKind.LBRACKET,
            TokenKind.NAME,
            TokenKind.AMP,
            TokenKind.NAME,
            TokenKind.RBRACKET,
            TokenKind.NAME,
            TokenKind.NAME,
            TokenKind.EOF,
        ]

    def test_positions_are_zero_based_offsets(self):
        tokens = tokenize("ask -> recall")
        assert [(t.text, t.position) for t in tokens[:3]] == [
            ("ask", 0),
            ("->", 4),
            ("recall", 7),
        ]

    def test_string_escapes(self):
        token = tokenize(r"'it\'s \"quoted\"\n'")[0]
        assert token.value == "it's \"quoted\"\n"

    def test_double_quoted_string(self):
        assert tokenize('"hello"')[0].value == "hello"

    @pytest.mark.parametrize("arrow", ["->", "→", "|"])
    def test_arrow_spellings(self, arrow):
        assert tokenize(f"a {arrow} b")[1].kind == TokenKind.ARROW

    def test_unterminated_string(self):
        with pytest.raises(PipelineSyntaxError) as exc_info:
            tokenize("ask(' unterminated")
        error = exc_info.value.error
        assert error.kind == ErrorKind.PARSE
        assert error.position == 4
        assert error.token == "' unterminated"

    def test_unexpected_character(self):
        with pytest.raises(PipelineSyntaxError) as exc_info:
            tokenize("ask ; recall")
        assert exc_info.value.error.position == 4
        assert exc_info.value.error.token == ";"


# =============================================================================
# GRAMMAR
# =============================================================================


class TestCompile:
    """Tests for compile() on well-formed descriptions."""

    def test_sequential_pipeline(self):
        result = compile("ask('capital of France') -> remember('fact1')")

        assert result.is_success
        spec = result.value
        assert len(spec.stages) == 2
        ask, remember = (inv for _, inv in spec.invocations())
        assert ask.capability == "ask"
        assert ask.args == (Argument.literal("capital of France"),)
        assert remember.args[0].value == "fact1"

    def test_bare_invocations(self):
        spec = compile("ask -> recall").value
        assert [inv.args for _, inv in spec.invocations()] == [(), ()]

    def test_parallel_stage(self):
        spec = compile("ask('a') -> [runMeTTaExpression & recall('k')] -> remember").value

        assert spec.has_parallel_stages
        assert spec.stages[1].is_parallel
        assert [index for index, _ in spec.invocations()] == [1, 2, 3, 4]

    def test_modifiers(self):
        spec = compile("ask('q', retry=3, timeout=2.5)").value
        invocation = spec.stages[0].invocations[0]

        assert invocation.args == (Argument.literal("q"),)
        assert invocation.modifiers == Modifiers(retry=3, timeout=2.5)

    def test_bindings_and_references(self):
        spec = compile("ask('q') as answer -> remember('k', $answer) -> recall($input)").value

        assert spec.bindings() == {"answer": 1}
        second = spec.stages[1].invocations[0]
        assert second.args[1].kind == ArgumentKind.REFERENCE
        assert second.references == ("answer",)

    def test_numbers_are_literal_text(self):
        spec = compile("useTool('calculator', 42)").value
        assert spec.stages[0].invocations[0].args[1] == Argument.literal("42")

    def test_determinism(self):
        description = "ask('q', retry=2) as a -> [recall($a) & remember('k')]"
        assert compile(description) == compile(description)

    def test_describe_round_trip(self):
        description = "ask('it\\'s', timeout=5) as a -> [recall($a) & remember('k', 'v')] -> useTool('calc')"
        spec = compile(description).value

        rendered = describe(spec)

        assert rendered == "ask('it\\'s', timeout=5) as a -> [recall($a) & remember('k', 'v')] -> useTool('calc')"
        assert compile(rendered).value == spec


# =============================================================================
# PARSE FAILURES
# =============================================================================


class TestCompileFailures:
    """Malformed descriptions yield a single PARSE failure."""

    @pytest.mark.parametrize("description", ["", "   ", None])
    def test_empty_description(self, description):
        result = compile(description)
        assert result.error.kind == ErrorKind.PARSE
        assert result.error.position == 0

    def test_unterminated_literal(self):
        result = compile("ask(' unterminated")

        assert result.error.kind == ErrorKind.PARSE
        assert "Unterminated string literal" in result.error.message
        assert result.error.position == 4

    @pytest.mark.parametrize(
        "description, token, position",
        [
            ("ask ->", "", 6),
            ("ask('a' 'b')", "'b'", 8),
            ("-> ask", "->", 0),
            ("ask) ", ")", 3),
            ("[ask]", "]", 4),
            ("[ask & recall", "", 13),
            ("ask as", "", 6),
        ],
    )
    def test_unexpected_tokens(self, description, token, position):
        result = compile(description)
        assert result.error.kind == ErrorKind.PARSE
        assert result.error.token == token
        assert result.error.position == position

    def test_unknown_modifier(self):
        result = compile("ask('q', retries=3)")
        assert "Unknown modifier 'retries'" in result.error.message
        assert result.error.position == 9

    def test_repeated_modifier(self):
        result = compile("ask('q', retry=1, retry=3)")

        assert result.error.kind == ErrorKind.PARSE
        assert "Modifier 'retry' given more than once" in result.error.message
        assert result.error.token == "retry"
        assert result.error.position == 18

    @pytest.mark.parametrize("modifier", ["retry=0","retry=1.5", "timeout=0", "retry='x'"])
    def test_invalid_modifier_values(self, modifier):
        result = compile(f"ask({modifier})")
        assert result.error.kind == ErrorKind.PARSE

    def test_unbound_reference(self):
        result = compile("ask($missing)")
        assert "unbound" in result.error.message
        assert result.error.token == "$missing"
        assert result.error.position == 4

    def test_reference_within_same_parallel_stage(self):
        result = compile("[ask('a') as a & recall($a)]")
        assert result.is_failure

    def test_duplicate_binding(self):
        result = compile("ask as a -> recall as a")
        assert "Duplicate binding name 'a'" in result.error.message
        assert result.error.position == 22

    def test_input_is_reserved(self):
        assert compile("ask as input").is_failure


# =============================================================================
# CATALOG CHECKS
# =============================================================================


class TestCompileWithCatalog:
    """Capability names and arity are checked against a catalog."""

    def test_canonical_spelling(self, catalog):
        spec = compile("run_metta_expression('(+ 1 2)') -> USETOOL('calc')", catalog).value
        names = [inv.capability for _, inv in spec.invocations()]
        assert names == ["runMeTTaExpression", "useTool"]

    def test_unknown_capability_with_suggestions(self, catalog):
        result = compile("ask -> recal('k')", catalog)

        assert result.error.kind == ErrorKind.PARSE
        assert result.error.token == "recal"
        assert result.error.position == 7
        assert "did you mean: recall" in result.error.message

    def test_arity_checked(self, catalog):
        result = compile("useTool", catalog)
        assert "useTool expects 1-2 arguments, got 0" in result.error.message

    def test_plain_name_collection(self):
        assert compile("ask -> recall", ["ask", "recall"]).is_success
        assert compile("ask -> fetch", ["ask", "recall"]).is_failure

    def test_unknown_tool_name_still_compiles(self, catalog):
        assert compile("useTool('nope', '1')", catalog).is_success
