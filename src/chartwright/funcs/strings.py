"""String functions: quoting, case, trimming, indentation, formatting,
encoding and regular expressions."""

from __future__ import annotations

import base64
import binascii
import functools
import hashlib
import re
import unicodedata
from typing import Any, List

from chartwright.errors import (
    ArityError,
    DecodeError,
    InvalidArgumentError,
    RegexCompileError,
)
from chartwright.funcs.coerce import as_float, as_int, as_list, as_str, is_number
from chartwright.funcs.registry import FunctionLibrary
from chartwright.values import to_text

library = FunctionLibrary()

_GO_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def go_quote(text: str) -> str:
    """Double-quoted string literal with Go escaping."""
    out: List[str] = ['"']
    for ch in text:
        if ch in _GO_ESCAPES:
            out.append(_GO_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        elif not ch.isprintable() and ch != " ":
            code = ord(ch)
            out.append(f"\\u{code:04x}" if code <= 0xFFFF else f"\\U{code:08x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def _simple_char(ch: str, upper: bool) -> str:
    mapped = ch.upper() if upper else ch.lower()
    if len(mapped) == 1:
        return mapped
    if upper:
        # the titlecase form is the single-character upper mapping where one exists
        titled = ch.title()
        return titled if len(titled) == 1 else ch
    # "\u0130" lowers to "i" plus a combining dot
    if all(unicodedata.combining(c) for c in mapped[1:]):
        return mapped[0]
    return ch


def _simple_case(text: str, upper: bool) -> str:
    """Per-character case mapping; a character maps to at most one character."""
    return "".join(_simple_char(ch, upper) for ch in text)


# =============================================================================
# Quoting and conversion
# =============================================================================


@library.register("quote", 0, None)
def quote(*values: Any) -> str:
    return " ".join(go_quote(as_str(v, "quote")) for v in values if v is not None)


@library.register("squote", 0, None)
def squote(*values: Any) -> str:
    """Single-quoted, with embedded single quotes doubled (YAML style)."""
    quoted = []
    for v in values:
        if v is None:
            continue
        quoted.append("'" + as_str(v, "squote").replace("'", "''") + "'")
    return " ".join(quoted)


@library.register("toString", 1)
def to_string(value: Any) -> str:
    return to_text(value)


@library.register("print", 0, None)
def print_(*values: Any) -> str:
    """Like Go's fmt.Sprint: spaces only between two non-string operands."""
    parts: List[str] = []
    for i, value in enumerate(values):
        if i > 0 and not isinstance(value, str) and not isinstance(values[i - 1], str):
            parts.append(" ")
        parts.append(to_text(value))
    return "".join(parts)


@library.register("println", 0, None)
def println(*values: Any) -> str:
    return " ".join(to_text(v) for v in values) + "\n"


# =============================================================================
# printf
# =============================================================================

_VERB_RE = re.compile(r"%([-+# 0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")


def _numeric_spec(flags: str, width: str | None, alternate: bool = False) -> str:
    """Python format spec for Go flags: '-' left-aligns, '0' zero-pads."""
    spec = "<" if "-" in flags else ""
    if "+" in flags:
        spec += "+"
    elif " " in flags:
        spec += " "
    if alternate and "#" in flags:
        spec += "#"
    if "0" in flags and "-" not in flags:
        spec += "0"
    return spec + (width or "")


def _string_spec(flags: str, width: str | None) -> str:
    if not width:
        return ""
    return ("<" if "-" in flags else ">") + width


def _format_verb(verb: str, flags: str, width: str | None, precision: str | None, arg: Any) -> str:
    if verb in "vs":
        text = to_text(arg)
        if precision is not None:
            text = text[: int(precision)]
        return format(text, _string_spec(flags, width))
    if verb == "q":
        return format(go_quote(as_str(arg, "printf")), _string_spec(flags, width))
    if verb == "t":
        if not isinstance(arg, bool):
            raise InvalidArgumentError(f"printf: %t expects bool, got {to_text(arg)!r}", function="printf")
        return format("true" if arg else "false", _string_spec(flags, width))
    if verb == "d":
        if not is_number(arg) or isinstance(arg, float):
            raise InvalidArgumentError(f"printf: %d expects integer, got {to_text(arg)!r}", function="printf")
        return format(arg, _numeric_spec(flags, width) + "d")
    if verb in "xXob":
        if isinstance(arg, str) and verb in "xX":
            encoded = arg.encode("utf-8").hex()
            return encoded.upper() if verb == "X" else encoded
        if not is_number(arg) or isinstance(arg, float):
            raise InvalidArgumentError(f"printf: %{verb} expects integer, got {to_text(arg)!r}", function="printf")
        return format(arg, _numeric_spec(flags, width, alternate=True) + verb)
    if verb in "fFeEgG":
        spec = _numeric_spec(flags, width)
        if precision is not None:
            spec += "." + precision
        elif verb in "fFeE":
            spec += ".6"
        return format(as_float(arg, "printf"), spec + verb)
    raise InvalidArgumentError(f"printf: unsupported verb %{verb}", function="printf")


@library.register("printf", 1, None)
def printf(fmt: Any, *args: Any) -> str:
    """Positional formatting with Go verbs (%s %d %v %q %t %f %x ...).

    The number of arguments must equal the number of placeholders.
    """
    template = as_str(fmt, "printf")
    verbs = [m for m in _VERB_RE.finditer(template) if m.group(4) != "%"]
    if len(verbs) != len(args):
        raise ArityError(
            f"printf: format {template!r} has {len(verbs)} placeholder(s) but got {len(args)} argument(s)",
            function="printf",
        )
    remaining = iter(args)

    def replace(match: re.Match[str]) -> str:
        flags, width, precision, verb = match.groups()
        if verb == "%":
            return "%"
        return _format_verb(verb, flags, width, precision, next(remaining))

    return _VERB_RE.sub(replace, template)


# =============================================================================
# Case and trimming
# =============================================================================


@library.register("upper", 1)
def upper(value: Any) -> str:
    return _simple_case(as_str(value, "upper"), upper=True)


@library.register("lower", 1)
def lower(value: Any) -> str:
    return _simple_case(as_str(value, "lower"), upper=False)


@library.register("title", 1)
def title(value: Any) -> str:
    text = as_str(value, "title")
    return re.sub(r"(^|\s)(\S)", lambda m: m.group(1) + _simple_case(m.group(2), True), text)


@library.register("trim", 1)
def trim(value: Any) -> str:
    return as_str(value, "trim").strip()


@library.register("trimPrefix", 2)
def trim_prefix(prefix: Any, value: Any) -> str:
    text, p = as_str(value, "trimPrefix"), as_str(prefix, "trimPrefix")
    return text[len(p):] if p and text.startswith(p) else text


@library.register("trimSuffix", 2)
def trim_suffix(suffix: Any, value: Any) -> str:
    text, s = as_str(value, "trimSuffix"), as_str(suffix, "trimSuffix")
    return text[: -len(s)] if s and text.endswith(s) else text


@library.register("nospace", 1)
def nospace(value: Any) -> str:
    return re.sub(r"\s+", "", as_str(value, "nospace"))


@library.register("trunc", 2)
def trunc(length: Any, value: Any) -> str:
    n, text = as_int(length, "trunc"), as_str(value, "trunc")
    if n < 0:
        return text[n:] if len(text) + n > 0 else text
    return text[:n]


# =============================================================================
# Search and replace
# =============================================================================


@library.register("replace", 3)
def replace(old: Any, new: Any, value: Any) -> str:
    return as_str(value, "replace").replace(as_str(old, "replace"), as_str(new, "replace"))


@library.register("contains", 2)
def contains(substr: Any, value: Any) -> bool:
    return as_str(substr, "contains") in as_str(value, "contains")


@library.register("hasPrefix", 2)
def has_prefix(prefix: Any, value: Any) -> bool:
    return as_str(value, "hasPrefix").startswith(as_str(prefix, "hasPrefix"))


@library.register("hasSuffix", 2)
def has_suffix(suffix: Any, value: Any) -> bool:
    return as_str(value, "hasSuffix").endswith(as_str(suffix, "hasSuffix"))


def _is_count(value: Any) -> bool:
    if is_number(value):
        return True
    return isinstance(value, str) and value.strip().lstrip("+-").isdecimal()


@library.register("repeat", 2)
def repeat(first: Any, second: Any) -> str:
    """`repeat 3 "ab"` and `"ab" | repeat 3` both give "ababab".

    The count comes first unless the first argument is not a number.
    """
    if _is_count(first):
        count, text = first, second
    else:
        text, count = first, second
    n = as_int(count, "repeat")
    if n < 0:
        raise InvalidArgumentError(f"repeat: negative count {n}", function="repeat")
    return as_str(text, "repeat") * n


# =============================================================================
# Indentation and lists of strings
# =============================================================================


@library.register("indent", 2)
def indent(spaces: Any, value: Any) -> str:
    """Prefix every line, including empty ones, with `spaces` spaces."""
    n = as_int(spaces, "indent")
    if n < 0:
        raise InvalidArgumentError(f"indent: negative width {n}", function="indent")
    pad = " " * n
    return pad + as_str(value, "indent").replace("\n", "\n" + pad)


@library.register("nindent", 2)
def nindent(spaces: Any, value: Any) -> str:
    return "\n" + indent(spaces, value)


@library.register("join", 2)
def join(sep: Any, values: Any) -> str:
    items = as_list(values, "join") if not isinstance(values, str) else [values]
    return as_str(sep, "join").join(to_text(v) for v in items if v is not None)


@library.register("splitList", 2)
def split_list(sep: Any, value: Any) -> List[str]:
    return as_str(value, "splitList").split(as_str(sep, "splitList"))


# =============================================================================
# Encoding
# =============================================================================


@library.register("b64enc", 1)
def b64enc(value: Any) -> str:
    return base64.b64encode(as_str(value, "b64enc").encode("utf-8")).decode("ascii")


@library.register("b64dec", 1)
def b64dec(value: Any) -> str:
    text = as_str(value, "b64dec")
    try:
        raw = base64.b64decode(text.encode("ascii"), validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise DecodeError(f"b64dec: illegal base64 data: {exc}", function="b64dec") from exc


@library.register("sha256sum", 1)
def sha256sum(value: Any) -> str:
    return hashlib.sha256(as_str(value, "sha256sum").encode("utf-8")).hexdigest()


# =============================================================================
# Regular expressions
# =============================================================================


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def compile_pattern(pattern: Any, func: str) -> re.Pattern[str]:
    text = as_str(pattern, func)
    try:
        return _compile(text)
    except re.error as exc:
        raise RegexCompileError(
            f"{func}: error parsing regexp {text!r}: {exc}", function=func
        ) from exc


def _expand_replacement(repl: str) -> str:
    """Translate `$1`, `${1}` and `${name}` references to Python syntax."""
    out: List[str] = []
    i = 0
    while i < len(repl):
        ch = repl[i]
        if ch == "\\":
            out.append("\\\\")
            i += 1
            continue
        if ch == "$":
            if repl.startswith("$$", i):
                out.append("$")
                i += 2
                continue
            match = re.match(r"\$\{(\w+)\}|\$(\w+)", repl[i:])
            if match:
                ref = match.group(1) or match.group(2)
                out.append(f"\\g<{ref}>")
                i += match.end()
                continue
        out.append(ch)
        i += 1
    return "".join(out)


@library.register("regexMatch", 2)
def regex_match(pattern: Any, value: Any) -> bool:
    return compile_pattern(pattern, "regexMatch").search(as_str(value, "regexMatch")) is not None


@library.register("regexFind", 2)
def regex_find(pattern: Any, value: Any) -> str:
    match = compile_pattern(pattern, "regexFind").search(as_str(value, "regexFind"))
    return match.group(0) if match else ""


@library.register("regexReplaceAll", 3)
def regex_replace_all(pattern: Any, repl: Any, value: Any) -> str:
    compiled = compile_pattern(pattern, "regexReplaceAll")
    template = _expand_replacement(as_str(repl, "regexReplaceAll"))
    try:
        return compiled.sub(template, as_str(value, "regexReplaceAll"))
    except (re.error, IndexError) as exc:
        raise InvalidArgumentError(
            f"regexReplaceAll: invalid replacement {to_text(repl)!r}: {exc}",
            function="regexReplaceAll",
        ) from exc
