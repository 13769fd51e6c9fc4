"""Semantic versions and range constraints.

Constraint syntax follows what chart authors write for `semverCompare`:

- comparisons: `=`, `!=`, `>`, `>=`, `<`, `<=` (also `=>`, `=<`)
- partial versions and wildcards: `1.2`, `1.2.x`, `1.*`, `*`
- tilde and caret ranges: `~1.2.3`, `~>1.2`, `^0.4.1`
- hyphen ranges: `1.2 - 1.4.5`
- AND with commas or spaces, OR with `||`

A version with a prerelease part only satisfies a comparison whose own
version carries a prerelease part, which is why charts write `>=1.20.0-0`.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from chartwright.errors import VersionParseError
from chartwright.funcs.coerce import as_str
from chartwright.funcs.registry import FunctionLibrary

library = FunctionLibrary()

_VERSION_RE = re.compile(
    r"^v?(0|[1-9]\d*)(?:\.(0|[1-9]\d*))?(?:\.(0|[1-9]\d*))?"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_PARTIAL_RE = re.compile(
    r"^v?(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_COMPARATOR_RE = re.compile(
    r"(~>|~|\^|>=|=>|<=|=<|!=|>|<|=)?\s*(v?[0-9xX*][0-9A-Za-z.+\-*]*)"
)
_HYPHEN_RE = re.compile(r"(v?[0-9xX*][0-9A-Za-z.+\-*]*)\s+-\s+(v?[0-9xX*][0-9A-Za-z.+\-*]*)")
_OP_ALIASES = {"=>": ">=", "=<": "<=", "~>": "~"}


def _prerelease_key(prerelease: Tuple[str, ...]) -> Tuple[Tuple[int, Any], ...]:
    return tuple((0, int(p)) if p.isdigit() else (1, p) for p in prerelease)


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    major: int
    minor: int = 0
    patch: int = 0
    prerelease: Tuple[str, ...] = ()
    metadata: str = ""

    @classmethod
    def parse(cls, text: str) -> "Version":
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise VersionParseError(f"invalid semantic version: {text!r}")
        major, minor, patch, pre, meta = match.groups()
        return cls(
            int(major),
            int(minor or 0),
            int(patch or 0),
            tuple(pre.split(".")) if pre else (),
            meta or "",
        )

    def _key(self) -> tuple:
        release = (self.major, self.minor, self.patch)
        if not self.prerelease:
            return release + (1, ())
        return release + (0, _prerelease_key(self.prerelease))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Version") -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.metadata:
            text += "+" + self.metadata
        return text


@dataclass(frozen=True)
class _Comparator:
    op: str
    version: Version
    upper: Optional[Version] = None
    allow_prerelease: bool = False

    def check(self, v: Version) -> bool:
        if self.op == "outside":
            assert self.upper is not None
            return v < self.version or v >= self.upper
        if self.op == "!=":
            return v != self.version
        if v.prerelease and not self.allow_prerelease:
            return False
        if self.op == "=":
            return v == self.version
        if self.op == ">":
            return v > self.version
        if self.op == ">=":
            return v >= self.version
        if self.op == "<":
            return v < self.version
        if self.op == "<=":
            return v <= self.version
        raise AssertionError(self.op)


def _parse_partial(text: str) -> Tuple[Version, int]:
    """Return the version with wildcards zeroed and how many parts were given."""
    match = _PARTIAL_RE.match(text)
    if match is None:
        raise VersionParseError(f"invalid version in constraint: {text!r}")
    major, minor, patch, pre, _ = match.groups()
    parts: List[int] = []
    for part in (major, minor, patch):
        if part is None or part in ("x", "X", "*"):
            break
        parts.append(int(part))
    specified = len(parts)
    parts += [0] * (3 - specified)
    prerelease = tuple(pre.split(".")) if pre and specified == 3 else ()
    return Version(parts[0], parts[1], parts[2], prerelease), specified


def _bump(base: Version, specified: int) -> Version:
    if specified <= 1:
        return Version(base.major + 1, 0, 0)
    return Version(base.major, base.minor + 1, 0)


def _expand(op: str, text: str) -> List[_Comparator]:
    base, n = _parse_partial(text)
    pre = bool(base.prerelease)

    def comp(o: str, v: Version, upper: Optional[Version] = None) -> _Comparator:
        return _Comparator(o, v, upper, pre)

    if n == 0:
        if op in ("", "=", ">=", "<=", "~", "^"):
            return [comp(">=", Version(0, 0, 0))]
        if op in ("<", ">", "!="):
            return [comp("<", Version(0, 0, 0))]
    if op in ("", "="):
        if n == 3:
            return [comp("=", base)]
        return [comp(">=", base), comp("<", _bump(base, n))]
    if op == "!=":
        if n == 3:
            return [comp("!=", base)]
        return [comp("outside", base, _bump(base, n))]
    if op == ">":
        return [comp(">", base)] if n == 3 else [comp(">=", _bump(base, n))]
    if op == ">=":
        return [comp(">=", base)]
    if op == "<":
        return [comp("<", base)]
    if op == "<=":
        return [comp("<=", base)] if n == 3 else [comp("<", _bump(base, n))]
    if op == "~":
        return [comp(">=", base), comp("<", _bump(base, 2 if n >= 2 else 1))]
    if op == "^":
        if base.major > 0 or n == 1:
            upper = _bump(base, 1)
        elif base.minor > 0 or n == 2:
            upper = _bump(base, 2)
        else:
            upper = Version(0, 0, base.patch + 1)
        return [comp(">=", base), comp("<", upper)]
    raise VersionParseError(f"unknown constraint operator {op!r}")


def _parse_group(text: str) -> List[_Comparator]:
    text = _HYPHEN_RE.sub(lambda m: f">={m.group(1)}, <={m.group(2)}", text)
    comparators: List[_Comparator] = []
    pos = 0
    for match in _COMPARATOR_RE.finditer(text):
        gap = text[pos : match.start()]
        if gap.strip(" \t,"):
            raise VersionParseError(f"improper constraint: {text.strip()!r}")
        op = _OP_ALIASES.get(match.group(1) or "", match.group(1) or "")
        comparators.extend(_expand(op, match.group(2)))
        pos = match.end()
    if text[pos:].strip(" \t,") or not comparators:
        raise VersionParseError(f"improper constraint: {text.strip()!r}")
    return comparators


class Constraint:
    """Parsed constraint expression; OR of AND-groups of comparators."""

    def __init__(self, text: str):
        self.text = text
        if not text.strip():
            raise VersionParseError("empty version constraint")
        self._groups = [_parse_group(group) for group in text.split("||")]

    def check(self, version: Version | str) -> bool:
        v = Version.parse(version) if isinstance(version, str) else version
        return any(all(c.check(v) for c in group) for group in self._groups)


@functools.lru_cache(maxsize=128)
def parse_constraint(text: str) -> Constraint:
    return Constraint(text)


@library.register("semverCompare", 2)
def semver_compare(constraint: Any, version: Any) -> bool:
    parsed = parse_constraint(as_str(constraint, "semverCompare"))
    return parsed.check(Version.parse(as_str(version, "semverCompare")))


@library.register("semver", 1)
def semver(version: Any) -> dict:
    text = as_str(version, "semver")
    v = Version.parse(text)
    return {
        "Major": v.major,
        "Minor": v.minor,
        "Patch": v.patch,
        "Prerelease": ".".join(v.prerelease),
        "Metadata": v.metadata,
        "Original": text,
    }
