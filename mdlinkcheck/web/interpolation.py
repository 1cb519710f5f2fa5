"""Environment variable interpolation for configured HTTP header values.

``$IDENT`` is replaced with the value of the environment variable
``IDENT``. ``\\$`` produces a literal dollar sign and ``\\\\`` a literal
backslash; any other backslash is kept as written.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional, Union


class InterpolationError(KeyError):
    """Raised when a header value references an unset environment variable."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f'the "{self.name}" environment variable is not set'


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Variable:
    name: str


Token = Union[Literal, Variable]


def _is_ident_start(char: str) -> bool:
    return char == "_" or (char.isascii() and char.isalpha())


def _is_ident_char(char: str) -> bool:
    return _is_ident_start(char) or (char.isascii() and char.isdigit())


def tokenize(value: str) -> List[Token]:
    """Split ``value`` into literal text and variable references."""
    tokens: List[Token] = []
    buffer: List[str] = []

    def flush() -> None:
        if buffer:
            tokens.append(Literal("".join(buffer)))
            buffer.clear()

    index = 0
    length = len(value)
    while index < length:
        char = value[index]
        if char == "\\" and index + 1 < length and value[index + 1] in "$\\":
            buffer.append(value[index + 1])
            index += 2
            continue
        if char == "$" and index + 1 < length and _is_ident_start(value[index + 1]):
            end = index + 1
            while end < length and _is_ident_char(value[end]):
                end += 1
            flush()
            tokens.append(Variable(value[index + 1 : end]))
            index = end
            continue
        buffer.append(char)
        index += 1
    flush()
    return tokens


def interpolate(value: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Return ``value`` with every ``$IDENT`` replaced from ``env`` (``os.environ`` by default)."""
    environment = os.environ if env is None else env
    pieces: List[str] = []
    for token in tokenize(value):
        if isinstance(token, Literal):
            pieces.append(token.text)
            continue
        if token.name not in environment:
            raise InterpolationError(token.name)
        pieces.append(environment[token.name])
    return "".join(pieces)


__all__ = ["InterpolationError", "Literal", "Token", "Variable", "interpolate", "tokenize"]
