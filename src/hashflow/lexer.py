"""Lexer for hashflow templates.

Splits a template into lines. Lines that start with a known directive
(optionally indented, optionally behind a configured line prefix) are
tokenized; every other line is kept verbatim as a single PLAIN_TEXT token.

Token types:
- Directives: IF, ELSE, END_IF, SWITCH, CASE, DEFAULT, BREAK, END, CHOOSE,
  WHEN, FOR, END_FOR, GUARD, END_GUARD, CHECK, DEFINE_VAR
- Contextual keywords: FOR_OF, FOR_DELIMITER, FOR_OPEN, FOR_CLOSE, CHECK_THROW
- Literals: IDENTIFIER, STRING, NUMBER
- Operators: OPERATOR, LOGIC_AND, LOGIC_OR, LOGIC_NOT
- Punctuation: COLON, COMMA, DOT, LBRACKET, RBRACKET, LPAREN, RPAREN,
  PIPE_SYMBOL
- Structure: PLAIN_TEXT, NEWLINE, EOF, UNKNOWN
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, auto
from typing import Iterator

from hashflow.errors import TemplateSyntaxError


class TokenType(Enum):
    """Types of tokens in the template language."""

    # Directives
    IF = auto()          # #if
    ELSE = auto()        # #else
    END_IF = auto()      # #fi
    SWITCH = auto()      # #switch
    CASE = auto()        # #case
    DEFAULT = auto()     # #default
    BREAK = auto()       # #break
    END = auto()         # #end
    CHOOSE = auto()      # #choose
    WHEN = auto()        # #when
    FOR = auto()         # #for
    END_FOR = auto()     # #done
    GUARD = auto()       # #guard
    END_GUARD = auto()   # #throw
    CHECK = auto()       # #check
    DEFINE_VAR = auto()  # #var

    # Contextual keywords
    FOR_OF = auto()         # of
    FOR_DELIMITER = auto()  # delimiter
    FOR_OPEN = auto()       # open
    FOR_CLOSE = auto()      # close
    CHECK_THROW = auto()    # throw

    # Literals
    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()

    # Operators
    OPERATOR = auto()    # = == != <> > < >= <= ~ !~ @ !@
    LOGIC_AND = auto()   # &&
    LOGIC_OR = auto()    # ||
    LOGIC_NOT = auto()   # !

    # Punctuation
    COLON = auto()        # :
    COMMA = auto()        # ,
    DOT = auto()          # .
    LBRACKET = auto()     # [
    RBRACKET = auto()     # ]
    LPAREN = auto()       # (
    RPAREN = auto()       # )
    PIPE_SYMBOL = auto()  # |

    # Structure
    PLAIN_TEXT = auto()
    NEWLINE = auto()
    EOF = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: The token's value (keyword text, string content, number, line text)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    type: TokenType
    value: str | int | Decimal
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    def describe(self) -> str:
        """Short human readable form used in error messages."""
        if self.type == TokenType.NEWLINE:
            return "end of line"
        if self.type == TokenType.EOF:
            return "end of template"
        return f"'{self.value}'"


DIRECTIVES = {
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "fi": TokenType.END_IF,
    "choose": TokenType.CHOOSE,
    "when": TokenType.WHEN,
    "switch": TokenType.SWITCH,
    "case": TokenType.CASE,
    "default": TokenType.DEFAULT,
    "break": TokenType.BREAK,
    "end": TokenType.END,
    "for": TokenType.FOR,
    "done": TokenType.END_FOR,
    "guard": TokenType.GUARD,
    "throw": TokenType.END_GUARD,
    "check": TokenType.CHECK,
    "var": TokenType.DEFINE_VAR,
}

# Keywords that only have meaning inside a directive line
KEYWORDS = {
    "of": TokenType.FOR_OF,
    "delimiter": TokenType.FOR_DELIMITER,
    "open": TokenType.FOR_OPEN,
    "close": TokenType.FOR_CLOSE,
    "throw": TokenType.CHECK_THROW,
}

DIRECTIVE_LINE_PATTERN = re.compile(
    r"#(?:" + "|".join(DIRECTIVES) + r")(?=\s|$)", re.IGNORECASE
)

# A word or number must end at whitespace, punctuation or an operator
_BOUNDARY = r"(?=[\s,()|\[\]=<>!~@&:.'\"#]|$)"
_NUMBER_BOUNDARY = r"(?=[\s,()|\[\]=<>!~@&:'\"#]|$)"

# Token patterns (order matters - longer matches first)
TOKEN_PATTERNS = [
    # Whitespace (skip)
    (r"[ \t\r\f\v]+", None),

    # Directive keywords (resolved against DIRECTIVES)
    (r"#[^\W\d_]*", TokenType.UNKNOWN),

    # Strings (double or single quoted)
    (r'"([^"\\]|\\.)*"', TokenType.STRING),
    (r"'([^'\\]|\\.)*'", TokenType.STRING),

    # Multi-character operators (before single character)
    (r"\|\|", TokenType.LOGIC_OR),
    (r"&&", TokenType.LOGIC_AND),
    (r"==|!=|<>|>=|<=|!~|!@", TokenType.OPERATOR),

    # Single character operators
    (r"[=<>~@]", TokenType.OPERATOR),
    (r"!", TokenType.LOGIC_NOT),
    (r"\|", TokenType.PIPE_SYMBOL),

    # Punctuation
    (r"\(", TokenType.LPAREN),
    (r"\)", TokenType.RPAREN),
    (r"\[", TokenType.LBRACKET),
    (r"\]", TokenType.RBRACKET),
    (r",", TokenType.COMMA),
    (r"\.", TokenType.DOT),
    (r":", TokenType.COLON),

    # Numbers (signed integer and decimal)
    (r"[+-]?\d+(?:\.\d+)?" + _NUMBER_BOUNDARY, TokenType.NUMBER),

    # Identifiers (keywords are resolved after matching)
    (r"[^\W\d]\w*" + _BOUNDARY, TokenType.IDENTIFIER),

    # Anything else up to the next separator
    (r"[^\s,()|\[\]=<>!~@&:.'\"#]+", TokenType.UNKNOWN),
]

_PATH_INDEX_PATTERN = re.compile(r"\d+")


class Lexer:
    """Tokenizer for hashflow templates.

    Usage:
        lexer = Lexer("#if :age >= 18\\nadult\\n#fi")
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str, line_prefix: str | None = None):
        self.source = source
        self.line_prefix = line_prefix or None
        self._compiled_patterns = [
            (re.compile(pattern), token_type)
            for pattern, token_type in TOKEN_PATTERNS
        ]

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source."""
        lines = self.source.split("\n")
        for index, line in enumerate(lines):
            line_no = index + 1
            directive, offset = self._directive_part(line)
            if directive is None:
                yield Token(TokenType.PLAIN_TEXT, line, line_no, 1)
                continue
            yield from self._tokenize_directive(directive, line_no, offset)

        last = lines[-1]
        yield Token(TokenType.EOF, "", len(lines), len(last) + 1)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)

    def normalize_directive_line(self, line: str) -> str:
        """Strip indentation and the configured line prefix.

        E.g. with ``line_prefix="--"``: ``"  -- #if :id > 0"`` -> ``"#if :id > 0"``
        """
        stripped = line.strip()
        if self.line_prefix and stripped.startswith(self.line_prefix):
            stripped = stripped[len(self.line_prefix):].strip()
        return stripped

    def is_directive_line(self, line: str) -> bool:
        """Check whether a raw template line holds a directive."""
        return self._directive_part(line)[0] is not None

    def _directive_part(self, line: str) -> tuple[str | None, int]:
        """Return the directive text of a line and its offset, or (None, 0)."""
        normalized = self.normalize_directive_line(line)
        if not DIRECTIVE_LINE_PATTERN.match(normalized):
            return None, 0
        return normalized, line.find(normalized)

    def _tokenize_directive(self, text: str, line_no: int, offset: int) -> Iterator[Token]:
        """Tokenize one directive line, ending with a NEWLINE token."""
        position = 0
        previous: Token | None = None

        while position < len(text):
            column = offset + position + 1

            # Digits directly after a dot are a path index (e.g. :users.0.name)
            if previous is not None and previous.type == TokenType.DOT:
                index_match = _PATH_INDEX_PATTERN.match(text, position)
                if index_match:
                    value = index_match.group()
                    position = index_match.end()
                    previous = Token(TokenType.NUMBER, int(value), line_no, column)
                    yield previous
                    continue

            for pattern, token_type in self._compiled_patterns:
                match = pattern.match(text, position)
                if not match:
                    continue
                value = match.group()
                position = match.end()

                # Skip whitespace
                if token_type is None:
                    break

                previous = self._make_token(token_type, value, line_no, column)
                yield previous
                break
            else:
                char = text[position]
                if char in "'\"":
                    raise TemplateSyntaxError("Unterminated string literal", line_no, column)
                raise TemplateSyntaxError(f"Unexpected character '{char}'", line_no, column)

        yield Token(TokenType.NEWLINE, "\n", line_no, offset + len(text) + 1)

    def _make_token(self, token_type: TokenType, value: str, line_no: int, column: int) -> Token:
        """Build a token, resolving keywords and literal values."""
        if token_type == TokenType.UNKNOWN and value.startswith("#"):
            directive = DIRECTIVES.get(value[1:].lower())
            if directive is not None:
                return Token(directive, value, line_no, column)
            return Token(TokenType.UNKNOWN, value, line_no, column)

        if token_type == TokenType.STRING:
            return Token(TokenType.STRING, self._unescape_string(value[1:-1]), line_no, column)

        if token_type == TokenType.NUMBER:
            number: int | Decimal = Decimal(value) if "." in value else int(value)
            return Token(TokenType.NUMBER, number, line_no, column)

        if token_type == TokenType.IDENTIFIER:
            keyword = KEYWORDS.get(value.lower())
            if keyword is not None:
                return Token(keyword, value, line_no, column)

        return Token(token_type, value, line_no, column)

    def _unescape_string(self, s: str) -> str:
        """Process escape sequences in a string."""
        result = []
        i = 0
        while i < len(s):
            if s[i] == "\\" and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char == "n":
                    result.append("\n")
                elif next_char == "t":
                    result.append("\t")
                elif next_char == "r":
                    result.append("\r")
                else:
                    result.append(next_char)
                i += 2
            else:
                result.append(s[i])
                i += 1
        return "".join(result)


def tokenize(source: str, line_prefix: str | None = None) -> list[Token]:
    """Convenience function to tokenize a template."""
    return Lexer(source, line_prefix).tokenize()
