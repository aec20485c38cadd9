"""
Lexical analyzer for the KLang scene language.

This module converts raw KLang source text into a flat stream of tokens:

Classes:
    CharacterStream: Stream abstraction for reading characters with line/column tracking.
    Token: Represents a single token with kind, text, and source location.
    Lexer: Converts a CharacterStream into a sequence of tokens.

Functions:
    tokenize(source): Lexes a whole source string into a list ending with an EOF token.

Features:
    - Skips whitespace and single-line comments (`//` and `#`)
    - Matches two-character operators (`==`, `!=`, `>=`, `<=`) before symbols
    - Recognizes:
        * Identifiers and keywords (identifiers may contain `@`, e.g. `local@houses`)
        * Sign-less numbers (integer or one fractional part)
        * Double-quoted strings, kept verbatim
        * Single-character symbols

Lexing is lenient: characters that start no token are skipped and an
unterminated string simply runs to the end of input. `tokenize` never raises.

Example:
    >>> [t.value for t in tokenize("a = 1")]
    ['a', '=', '1', '']
"""

from klang.klang_constants import (
    EOF,
    IDENTIFIER,
    KEYWORD,
    KEYWORDS,
    NUMBER,
    OPERATOR,
    OPERATORS,
    STRING,
    SYMBOL,
    SYMBOLS,
)


class CharacterStream:
    """
    A utility for reading characters from a string source with line and column tracking.

    Attributes:
        source (str): The input source string.
        position (int): Current index in the source.
        line (int): Current line number (1-indexed).
        column (int): Current column number (1-indexed).
    """

    def __init__(self, source: str, position: int = 0, line: int = 1, column: int = 1):
        self.source = source
        self.position = position
        self.line = line
        self.column = column

    def next(self) -> str:
        """
        Consumes and returns the next character in the stream.

        Returns:
            str: The next character, or an empty string at end of input.
        """
        if self.position >= len(self.source):
            return ""
        char = self.source[self.position]
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1
        return char

    def peek(self, offset: int = 0) -> str:
        """
        Returns the character at the given offset from the current position without advancing.

        Args:
            offset (int, optional): Number of characters to look ahead. Defaults to 0.

        Returns:
            str: The character at the offset, or an empty string if out of bounds.
        """
        index = self.position + offset
        if index < 0 or index >= len(self.source):
            return ""
        return self.source[index]

    def end_of_file(self) -> bool:
        """Checks if the stream has consumed all characters."""
        return self.position >= len(self.source)


class Token:
    """Represents a single lexical token in the KLang language.

    Attributes:
        type (str): The token kind (`KEYWORD`, `IDENTIFIER`, `STRING`, `NUMBER`,
            `SYMBOL`, `OPERATOR` or `EOF`).
        value (str): The token text. String tokens hold the text between the quotes.
        line (int): The 1-based line number where the token appears.
        col (int): The 1-based column number where the token starts.
    """

    def __init__(self, type_: str, value: str, line: int = 0, col: int = 0):
        self.type = type_
        self.value = value
        self.line = line
        self.col = col

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r}, line={self.line})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Token)
            and self.type == other.type
            and self.value == other.value
            and self.line == other.line
            and self.col == other.col
        )

    def __hash__(self) -> int:
        return hash((self.type, self.value, self.line, self.col))

    def is_symbol(self, *values: str) -> bool:
        """Returns True for a SYMBOL or OPERATOR token whose text is one of `values`."""
        return self.type in (SYMBOL, OPERATOR) and self.value in values

    def is_keyword(self, *values: str) -> bool:
        """Returns True for a KEYWORD token whose text is one of `values`."""
        return self.type == KEYWORD and self.value in values


def _is_digit(ch: str) -> bool:
    return ch != "" and ch in "0123456789"


def _is_identifier_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_@"


def _is_identifier_part(ch: str) -> bool:
    return ch.isalnum() or ch in "_@"


class Lexer:
    """Lexical analyzer for the KLang language.

    The Lexer takes a CharacterStream and converts it into a stream of Token objects.

    Attributes:
        stream (CharacterStream): The source stream to tokenize.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream

    def peek(self, offset: int = 0) -> str:
        return self.stream.peek(offset)

    def advance(self) -> str:
        return self.stream.next()

    def skip_whitespace(self) -> None:
        """Skips all whitespace and `//` / `#` comments in the stream."""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch.isspace():
                self.advance()
            elif ch == "#" or (ch == "/" and self.peek(1) == "/"):
                self.skip_comment()
            else:
                break

    def skip_comment(self) -> None:
        """Advances through the stream until the end of a comment line."""
        while not self.stream.end_of_file() and self.peek() != "\n":
            self.advance()

    def next_token(self) -> Token:
        """Consumes and returns the next Token from the stream.

        Unscannable characters are dropped, so this never raises.

        Returns:
            Token: The next token, or an EOF token once input is exhausted.
        """
        while True:
            self.skip_whitespace()
            if self.stream.end_of_file():
                return Token(EOF, "", self.stream.line, self.stream.column)

            ch = self.peek()
            line, col = self.stream.line, self.stream.column

            # 1. Two-character operators
            pair = ch + self.peek(1)
            if pair in OPERATORS:
                self.advance()
                self.advance()
                return Token(OPERATOR, pair, line, col)

            # 2. Single-character symbols
            if ch in SYMBOLS:
                return Token(SYMBOL, self.advance(), line, col)

            # 3. Numbers: digits with at most one fractional part
            if _is_digit(ch):
                num = ""
                while _is_digit(self.peek()):
                    num += self.advance()
                if self.peek() == "." and _is_digit(self.peek(1)):
                    num += self.advance()
                    while _is_digit(self.peek()):
                        num += self.advance()
                return Token(NUMBER, num, line, col)

            # 4. Strings, verbatim
            if ch == '"':
                self.advance()
                val = ""
                while not self.stream.end_of_file() and self.peek() != '"':
                    val += self.advance()
                self.advance()  # closing quote, if any
                return Token(STRING, val, line, col)

            # 5. Identifier or keyword
            if _is_identifier_start(ch):
                ident = ""
                while _is_identifier_part(self.peek()):
                    ident += self.advance()
                kind = KEYWORD if ident in KEYWORDS else IDENTIFIER
                return Token(kind, ident, line, col)

            # 6. Unknown character: skip it
            self.advance()


def tokenize(source: str) -> list[Token]:
    """Lexes `source` into a token list that always ends with an EOF token."""
    lexer = Lexer(CharacterStream(source))
    tokens: list[Token] = []
    while True:
        tok = lexer.next_token()
        tokens.append(tok)
        if tok.type == EOF:
            return tokens


__all__ = ["CharacterStream", "Lexer", "Token", "tokenize"]
