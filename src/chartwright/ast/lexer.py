"""Lexer - splits template text into literal text and tokenized actions.

Chomp markers are resolved here: `{{- ` trims the whitespace before the
action and ` -}}` the whitespace after it, in both cases up to and including
the nearest newline.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Union

from chartwright.errors import ParseError, SourceLocation

LEFT_DELIM = "{{"
RIGHT_DELIM = "}}"
LEFT_COMMENT = "/*"
RIGHT_COMMENT = "*/"

_SPACE = " \t\r\n"
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_VARIABLE_RE = re.compile(r"\$[A-Za-z0-9_]*")
_NUMBER_RE = re.compile(
    r"[+-]?(?:0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+"
    r"|(?:\d[\d_]*(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)"
)
_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


class TokenType(Enum):
    IDENT = "identifier"
    FIELD = "field"
    DOT = "dot"
    VARIABLE = "variable"
    STRING = "string"
    NUMBER = "number"
    CHAR = "char"
    BOOL = "bool"
    NIL = "nil"
    PIPE = "|"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    DECLARE = ":="
    ASSIGN = "="


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: Any
    offset: int
    space_before: bool = False
    text: str = ""


@dataclass
class TextItem:
    text: str
    offset: int


@dataclass
class ActionItem:
    offset: int
    tokens: List[Token] = field(default_factory=list)


Item = Union[TextItem, ActionItem]


def trim_trailing(text: str) -> str:
    """Drop trailing spaces/tabs and then at most one newline."""
    end = len(text)
    while end > 0 and text[end - 1] in " \t":
        end -= 1
    if end > 0 and text[end - 1] == "\n":
        end -= 1
        if end > 0 and text[end - 1] == "\r":
            end -= 1
    return text[:end]


def trim_leading(text: str) -> str:
    """Drop leading spaces/tabs and then at most one newline."""
    start = 0
    while start < len(text) and text[start] in " \t":
        start += 1
    if text.startswith("\r\n", start):
        start += 2
    elif text.startswith("\n", start):
        start += 1
    return text[start:]


def unquote(body: str) -> str:
    """Decode Go-style escapes in an interpreted string literal body."""
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= len(body):
            raise ValueError("trailing backslash")
        esc = body[i + 1]
        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 2
        elif esc in "xuU":
            width = {"x": 2, "u": 4, "U": 8}[esc]
            digits = body[i + 2 : i + 2 + width]
            if len(digits) != width or not re.fullmatch(r"[0-9a-fA-F]+", digits):
                raise ValueError(f"invalid \\{esc} escape")
            out.append(chr(int(digits, 16)))
            i += 2 + width
        elif esc in "01234567":
            digits = body[i + 1 : i + 4]
            if not re.fullmatch(r"[0-7]{3}", digits):
                raise ValueError("invalid octal escape")
            out.append(chr(int(digits, 8)))
            i += 4
        else:
            raise ValueError(f"unknown escape sequence \\{esc}")
    return "".join(out)


def parse_number(text: str) -> int | float:
    clean = text.replace("_", "")
    try:
        return int(clean, 0)
    except ValueError:
        pass
    if re.fullmatch(r"[+-]?0[0-7]+", clean):
        return int(clean, 8)
    return float(clean)


class Lexer:
    """Tokenizes one template source."""

    def __init__(self, source: str, name: str = "template"):
        self.source = source
        self.name = name
        self._line_starts = [0] + [
            m.end() for m in re.finditer("\n", source)
        ]

    def location(self, offset: int) -> SourceLocation:
        line = bisect.bisect_right(self._line_starts, offset)
        column = offset - self._line_starts[line - 1] + 1
        return SourceLocation(self.name, line, column)

    def error(self, message: str, offset: int) -> ParseError:
        return ParseError(message, location=self.location(offset))

    def items(self) -> List[Item]:
        source = self.source
        result: List[Item] = []
        pos = 0
        trim_next = False

        while True:
            start = source.find(LEFT_DELIM, pos)
            text = source[pos:] if start == -1 else source[pos:start]
            if trim_next:
                text = trim_leading(text)
            if start == -1:
                if text:
                    result.append(TextItem(text, pos))
                return result

            left_trim = (
                source.startswith("-", start + 2)
                and start + 3 < len(source)
                and source[start + 3] in _SPACE
            )
            if left_trim:
                text = trim_trailing(text)
            if text:
                result.append(TextItem(text, pos))

            inner = start + 4 if left_trim else start + 2
            if source.startswith(LEFT_COMMENT, inner):
                pos, trim_next = self._skip_comment(start, inner)
                continue

            action = ActionItem(offset=start)
            pos, trim_next = self._lex_action(action, inner)
            result.append(action)

    def _close_delim(self, pos: int, had_space: bool) -> tuple[int, bool] | None:
        """Return (end, right_trim) if a closing delimiter starts at `pos`."""
        if had_space and self.source.startswith("-" + RIGHT_DELIM, pos):
            return pos + 3, True
        if self.source.startswith(RIGHT_DELIM, pos):
            return pos + 2, False
        return None

    def _skip_comment(self, start: int, inner: int) -> tuple[int, bool]:
        end = self.source.find(RIGHT_COMMENT, inner + 2)
        if end == -1:
            raise self.error("unclosed comment", start)
        pos = end + 2
        had_space = False
        while pos < len(self.source) and self.source[pos] in _SPACE:
            pos += 1
            had_space = True
        closed = self._close_delim(pos, had_space)
        if closed is None:
            raise self.error("comment ends before closing delimiter", start)
        return closed

    def _lex_action(self, action: ActionItem, pos: int) -> tuple[int, bool]:
        source = self.source
        had_space = pos > 0 and source[pos - 1] in _SPACE

        while True:
            while pos < len(source) and source[pos] in _SPACE:
                pos += 1
                had_space = True
            if pos >= len(source):
                raise self.error("unclosed action", action.offset)

            closed = self._close_delim(pos, had_space)
            if closed is not None:
                return closed

            token, pos = self._lex_token(pos, had_space, action.offset)
            action.tokens.append(token)
            had_space = False

    def _lex_token(self, pos: int, space: bool, action_start: int) -> tuple[Token, int]:
        source = self.source
        ch = source[pos]

        if ch == "|":
            return Token(TokenType.PIPE, "|", pos, space, "|"), pos + 1
        if ch == "(":
            return Token(TokenType.LPAREN, "(", pos, space, "("), pos + 1
        if ch == ")":
            return Token(TokenType.RPAREN, ")", pos, space, ")"), pos + 1
        if ch == ",":
            return Token(TokenType.COMMA, ",", pos, space, ","), pos + 1
        if source.startswith(":=", pos):
            return Token(TokenType.DECLARE, ":=", pos, space, ":="), pos + 2
        if ch == "=":
            return Token(TokenType.ASSIGN, "=", pos, space, "="), pos + 1
        if ch == '"':
            return self._lex_quote(pos, space)
        if ch == "`":
            end = source.find("`", pos + 1)
            if end == -1:
                raise self.error("unterminated raw quoted string", pos)
            raw = source[pos + 1 : end]
            return Token(TokenType.STRING, raw, pos, space, source[pos : end + 1]), end + 1
        if ch == "'":
            return self._lex_char(pos, space)
        if ch == "$":
            match = _VARIABLE_RE.match(source, pos)
            assert match is not None
            name = match.group(0)
            return Token(TokenType.VARIABLE, name, pos, space, name), match.end()

        number = self._match_number(pos, space)
        if number is not None:
            return number

        if ch == ".":
            match = _IDENT_RE.match(source, pos + 1)
            if match:
                return (
                    Token(TokenType.FIELD, match.group(0), pos, space, "." + match.group(0)),
                    match.end(),
                )
            return Token(TokenType.DOT, ".", pos, space, "."), pos + 1

        match = _IDENT_RE.match(source, pos)
        if match:
            word = match.group(0)
            if word in ("true", "false"):
                return Token(TokenType.BOOL, word == "true", pos, space, word), match.end()
            if word == "nil":
                return Token(TokenType.NIL, None, pos, space, word), match.end()
            return Token(TokenType.IDENT, word, pos, space, word), match.end()

        raise self.error(f"unexpected {ch!r} in command", pos)

    def _match_number(self, pos: int, space: bool) -> tuple[Token, int] | None:
        source = self.source
        ch = source[pos]
        nxt = source[pos + 1] if pos + 1 < len(source) else ""
        starts_number = (
            ch.isdigit()
            or (ch == "." and nxt.isdigit())
            or (ch in "+-" and (nxt.isdigit() or nxt == "."))
        )
        if not starts_number:
            return None
        match = _NUMBER_RE.match(source, pos)
        if match is None or match.end() == pos:
            raise self.error("bad number syntax", pos)
        end = match.end()
        if end < len(source) and (source[end].isalnum() or source[end] == "_"):
            raise self.error(f"bad number syntax: {source[pos:end + 1]!r}", pos)
        text = match.group(0)
        try:
            value = parse_number(text)
        except ValueError:
            raise self.error(f"bad number syntax: {text!r}", pos) from None
        return Token(TokenType.NUMBER, value, pos, space, text), end

    def _lex_quote(self, pos: int, space: bool) -> tuple[Token, int]:
        source = self.source
        i = pos + 1
        while i < len(source):
            ch = source[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "\n":
                break
            if ch == '"':
                body = source[pos + 1 : i]
                try:
                    value = unquote(body)
                except ValueError as exc:
                    raise self.error(f"invalid string literal: {exc}", pos) from None
                return Token(TokenType.STRING, value, pos, space, source[pos : i + 1]), i + 1
            i += 1
        raise self.error("unterminated quoted string", pos)

    def _lex_char(self, pos: int, space: bool) -> tuple[Token, int]:
        source = self.source
        i = pos + 1
        while i < len(source) and source[i] not in "'\n":
            i += 2 if source[i] == "\\" else 1
        if i >= len(source) or source[i] != "'":
            raise self.error("unterminated character constant", pos)
        try:
            decoded = unquote(source[pos + 1 : i])
        except ValueError as exc:
            raise self.error(f"invalid character constant: {exc}", pos) from None
        if len(decoded) != 1:
            raise self.error("invalid character constant", pos)
        return Token(TokenType.CHAR, ord(decoded), pos, space, source[pos : i + 1]), i + 1
