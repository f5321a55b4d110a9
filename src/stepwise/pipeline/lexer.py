"""
Stepwise Pipeline - Lexer
Purpose: Turn a pipeline description into tokens with source positions
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from stepwise.core.errors import StepError, parse_error


class TokenKind(str, Enum):
    NAME = "name"
    STRING = "string"
    NUMBER = "number"
    REFERENCE = "reference"  # $name
    ARROW = "arrow"  # -> | → | '|'
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    AMP = "&"
    COMMA = ","
    EQUALS = "="
    EOF = "end of input"


@dataclass(frozen=True)
class Token:
    """A lexical token; ``position`` is the 0-based offset of its first char"""

    kind: TokenKind
    text: str
    position: int
    value: str = ""


class PipelineSyntaxError(Exception):
    """Internal signal carrying a PARSE error out of the lexer/parser"""

    def __init__(self, error: StepError):
        self.error = error
        super().__init__(str(error))


_SINGLE_CHAR = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "&": TokenKind.AMP,
    ",": TokenKind.COMMA,
    "=": TokenKind.EQUALS,
    "|": TokenKind.ARROW,
    "→": TokenKind.ARROW,
}

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", "'": "'", '"': '"'}


def _is_name_start(char: str) -> bool:
    return char.isalpha() or char == "_"


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def tokenize(text: str) -> List[Token]:
    """
    Tokenize a pipeline description.

    Raises:
        PipelineSyntaxError: Unterminated string literal or unexpected character
    """
    tokens: List[Token] = []
    i = 0
    length = len(text)

    while i < length:
        char = text[i]

        if char.isspace():
            i += 1
            continue

        if char == "-" and text.startswith("->", i):
            tokens.append(Token(TokenKind.ARROW, "->", i))
            i += 2
            continue

        if char in _SINGLE_CHAR:
            tokens.append(Token(_SINGLE_CHAR[char], char, i))
            i += 1
            continue

        if char in ("'", '"'):
            start = i
            i += 1
            chars: List[str] = []
            while i < length and text[i] != char:
                if text[i] == "\\" and i + 1 < length:
                    escaped = text[i + 1]
                    chars.append(_ESCAPES.get(escaped, "\\" + escaped))
                    i += 2
                    continue
                chars.append(text[i])
                i += 1
            if i >= length:
                raise PipelineSyntaxError(
                    parse_error("Unterminated string literal", token=text[start:], position=start)
                )
            i += 1
            tokens.append(Token(TokenKind.STRING, text[start:i], start, "".join(chars)))
            continue

        if char.isdigit() or (char in "-+" and i + 1 < length and text[i + 1].isdigit()):
            start = i
            i += 1
            while i < length and (text[i].isdigit() or text[i] == "."):
                i += 1
            number = text[start:i]
            if number.count(".") > 1 or number.endswith("."):
                raise PipelineSyntaxError(
                    parse_error(f"Malformed number '{number}'", token=number, position=start)
                )
            tokens.append(Token(TokenKind.NUMBER, number, start, number))
            continue

        if char == "$":
            start = i
            i += 1
            if i >= length or not _is_name_start(text[i]):
                raise PipelineSyntaxError(
                    parse_error("Expected a name after '$'", token="$", position=start)
                )
            while i < length and _is_name_char(text[i]):
                i += 1
            tokens.append(Token(TokenKind.REFERENCE, text[start:i], start, text[start + 1 : i]))
            continue

        if _is_name_start(char):
            start = i
            while i < length and _is_name_char(text[i]):
                i += 1
            tokens.append(Token(TokenKind.NAME, text[start:i], start, text[start:i]))
            continue

        raise PipelineSyntaxError(
            parse_error(f"Unexpected character '{char}'", token=char, position=i)
        )

    tokens.append(Token(TokenKind.EOF, "", length))
    return tokens
