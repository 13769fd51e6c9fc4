"""Chartwright Exceptions

Every failure that aborts a render derives from `RenderError`. Each class
carries a `kind` string that is stable across releases and is what callers
should switch on when reporting errors to end users.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SourceLocation:
    """Position of an action inside a template source."""

    template: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.template}:{self.line}:{self.column}"

    def to_dict(self) -> dict[str, Any]:
        return {"template": self.template, "line": self.line, "column": self.column}


class RenderError(Exception):
    """Base exception for all render errors."""

    kind = "RenderError"

    def __init__(
        self,
        message: str,
        location: SourceLocation | None = None,
        function: str | None = None,
    ) -> None:
        self.message = message
        self.location = location
        self.function = function
        super().__init__(message)

    def describe(self) -> str:
        """Message prefixed with kind and source location, for end users."""
        where = f" at {self.location}" if self.location else ""
        return f"{self.kind}{where}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.location is not None:
            data["sourceLocation"] = self.location.to_dict()
        return data


class ParseError(RenderError):
    """Raised when template text cannot be parsed."""

    kind = "ParseError"


class RequiredValueError(RenderError):
    """Raised by `required` when its value is absent, null or empty."""

    kind = "RequiredValueError"


class ArityError(RenderError):
    """Raised when a function receives the wrong number of arguments."""

    kind = "ArityError"


class InvalidArgumentError(RenderError):
    """Raised when a function argument has an unusable type or value."""

    kind = "InvalidArgument"


class DecodeError(RenderError):
    """Raised when Base64, YAML or JSON input is malformed."""

    kind = "DecodeError"


class VersionParseError(RenderError):
    """Raised when a semantic version or constraint cannot be parsed."""

    kind = "VersionParseError"


class RegexCompileError(RenderError):
    """Raised when a regular expression fails to compile."""

    kind = "RegexCompileError"


class RecursionLimitError(RenderError):
    """Raised when `tpl` or `include` nests deeper than the configured limit."""

    kind = "RecursionLimitError"


class TemplateNotFoundError(RenderError):
    """Raised when a named template is not defined."""

    kind = "TemplateNotFoundError"

    def __init__(self, name: str, location: SourceLocation | None = None) -> None:
        self.name = name
        super().__init__(f'no template "{name}" defined', location=location)


class ExternalLookupError(RenderError):
    """Raised when the external lookup source fails (transport, authorization)."""

    kind = "LookupError"


class EvaluationError(RenderError):
    """Raised for type errors and other failures while executing a template."""

    kind = "EvaluationError"


class FailError(RenderError):
    """Raised by the `fail` template function."""

    kind = "FailError"
