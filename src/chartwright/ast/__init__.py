"""Template lexer, action tree and parser."""

from chartwright.ast.parser import Parser

__all__ = ["Parser"]
