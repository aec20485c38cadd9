"""
Shared constants for the KLang toolchain.

Centralizes the lexical vocabulary (keywords, symbols, operators), the
runtime limits, module-resolution conventions, and the constants every
program scope starts with. The lexer, parser, interpreter, and module loader
all import from here so the language is defined in a single place.
"""

import math
from typing import Any

# Token kinds
KEYWORD = "KEYWORD"
IDENTIFIER = "IDENTIFIER"
STRING = "STRING"
NUMBER = "NUMBER"
SYMBOL = "SYMBOL"
OPERATOR = "OPERATOR"
EOF = "EOF"

TOKEN_KINDS: tuple[str, ...] = (
    KEYWORD,
    IDENTIFIER,
    STRING,
    NUMBER,
    SYMBOL,
    OPERATOR,
    EOF,
)

KEYWORDS: frozenset[str] = frozenset(
    {
        "import",
        "from",
        "as",
        "cube",
        "material",
        "modifier",
        "group",
        "mesh",
        "not",
        "local",
        "if",
        "else",
        "while",
        "for",
        "to",
        "step",
        "int",
        "float",
        "string",
        "bool",
    }
)

# Built-in coercions callable as `int(x)`, `float(x)`, ...
COERCIONS: frozenset[str] = frozenset({"int", "float", "string", "bool"})

SYMBOLS: frozenset[str] = frozenset("{}[]():,=.;+-*/><!%")
OPERATORS: tuple[str, ...] = ("==", "!=", ">=", "<=")

EQUALITY_OPS: tuple[str, ...] = ("==", "!=")
COMPARISON_OPS: tuple[str, ...] = (">", "<", ">=", "<=")
ADDITIVE_OPS: tuple[str, ...] = ("+", "-")
MULTIPLICATIVE_OPS: tuple[str, ...] = ("*", "/", "%")

# Runtime limits
MAX_LOOP_ITERATIONS = 10_000

# Module resolution
SOURCE_EXTENSION = ".klang"
LOCAL_MODULE_DIR = "local"
LOCAL_PREFIX = "local@"
URL_SCHEMES: tuple[str, ...] = ("http://", "https://")
DEFAULT_FETCH_TIMEOUT = 10.0

# Fixed quad topology of an axis-aligned cuboid built from 8 corners
CUBE_FACES: tuple[tuple[int, int, int, int], ...] = (
    (0, 1, 2, 3),  # bottom
    (4, 5, 6, 7),  # top
    (0, 1, 5, 4),  # front
    (1, 2, 6, 5),  # right
    (2, 3, 7, 6),  # back
    (3, 0, 4, 7),  # left
)

COLORS: dict[str, int] = {
    "red": 0xFF0000,
    "green": 0x00FF00,
    "blue": 0x0000FF,
    "white": 0xFFFFFF,
    "black": 0x000000,
    "gray": 0x808080,
    "yellow": 0xFFFF00,
    "cyan": 0x00FFFF,
    "magenta": 0xFF00FF,
}

AXES: tuple[str, ...] = ("x", "y", "z")
DIRECTIONS: tuple[str, ...] = ("up", "down", "left", "right", "forward", "back")


def initial_scope() -> dict[str, Any]:
    """Returns a fresh copy of the bindings every program starts with."""
    scope: dict[str, Any] = {"PI": math.pi}
    scope.update(COLORS)
    scope.update({name: name for name in AXES})
    scope.update({name: name for name in DIRECTIONS})
    return scope


__all__ = [
    "ADDITIVE_OPS",
    "AXES",
    "COERCIONS",
    "COLORS",
    "COMPARISON_OPS",
    "CUBE_FACES",
    "DEFAULT_FETCH_TIMEOUT",
    "DIRECTIONS",
    "EOF",
    "EQUALITY_OPS",
    "IDENTIFIER",
    "KEYWORD",
    "KEYWORDS",
    "LOCAL_MODULE_DIR",
    "LOCAL_PREFIX",
    "MAX_LOOP_ITERATIONS",
    "MULTIPLICATIVE_OPS",
    "NUMBER",
    "OPERATOR",
    "OPERATORS",
    "SOURCE_EXTENSION",
    "STRING",
    "SYMBOL",
    "SYMBOLS",
    "TOKEN_KINDS",
    "URL_SCHEMES",
    "initial_scope",
]
