"""Parser - recursive descent from lexer items to an action tree.

Parsing is a pure function of the source text. Function names and variable
declarations are checked here so that a template that cannot run fails
before any evaluation starts.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Collection, List, Optional, Set, Tuple

from chartwright.ast.lexer import ActionItem, Item, Lexer, TextItem, Token, TokenType
from chartwright.ast.node import (
    ActionNode,
    BreakNode,
    ChainNode,
    CommandNode,
    ContinueNode,
    Definition,
    DotNode,
    FieldNode,
    IdentifierNode,
    IfNode,
    LiteralNode,
    Node,
    Operand,
    ParsedTemplate,
    PipeNode,
    RangeNode,
    TemplateNode,
    TextNode,
    VariableNode,
    WithNode,
)
from chartwright.errors import ParseError

logger = logging.getLogger(__name__)

KEYWORDS = frozenset(
    {"if", "else", "end", "range", "with", "define", "block", "template", "break", "continue"}
)
_LITERALS = (TokenType.STRING, TokenType.NUMBER, TokenType.CHAR, TokenType.BOOL, TokenType.NIL)
_END = frozenset({"end"})
_ELSE_END = frozenset({"else", "end"})


class Parser:
    """Parses template sources.

    Args:
        functions: Names of callable functions. When given, any other
            identifier used as a function is a parse error.
    """

    def __init__(self, functions: Optional[Collection[str]] = None):
        self.functions = frozenset(functions) if functions is not None else None

    def parse(self, source: str, name: str = "template") -> ParsedTemplate:
        try:
            parsed = _TemplateParser(source, name, self.functions).run()
        except RecursionError:
            raise ParseError(f"{name}: template nested too deeply") from None
        logger.debug(
            "Parsed %s: %d nodes, %d definitions",
            name,
            len(parsed.root),
            len(parsed.definitions),
        )
        return parsed

    def parse_file(self, path: str | Path, name: Optional[str] = None) -> ParsedTemplate:
        p = Path(path)
        return self.parse(p.read_text(encoding="utf-8"), name or p.name)


class _Tokens:
    """Cursor over one action's tokens."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self, ahead: int = 0) -> Optional[Token]:
        i = self.pos + ahead
        return self.tokens[i] if i < len(self.tokens) else None

    def next(self) -> Optional[Token]:
        tok = self.peek()
        if tok is not None:
            self.pos += 1
        return tok

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)


class _TemplateParser:
    def __init__(self, source: str, name: str, functions: Optional[frozenset]):
        self.name = name
        self.lexer = Lexer(source, name)
        self.functions = functions
        self.items: List[Item] = []
        self.pos = 0
        self.definitions: List[Definition] = []
        self.vars: List[Set[str]] = [{"$"}]
        self.range_depth = 0
        self.block_depth = 0

    def run(self) -> ParsedTemplate:
        self.items = self.lexer.items()
        root, _, _ = self.parse_list(frozenset(), None, "")
        return ParsedTemplate(name=self.name, root=root, definitions=self.definitions)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def error(self, message: str, offset: int) -> ParseError:
        return self.lexer.error(message, offset)

    def loc(self, offset: int):
        return self.lexer.location(offset)

    def declare(self, name: str) -> None:
        self.vars[-1].add(name)

    def is_declared(self, name: str) -> bool:
        return any(name in frame for frame in self.vars)

    def _fresh_vars(self) -> Tuple[List[Set[str]], int]:
        saved = (self.vars, self.range_depth)
        self.vars = [{"$"}]
        self.range_depth = 0
        return saved

    def _restore_vars(self, saved: Tuple[List[Set[str]], int]) -> None:
        self.vars, self.range_depth = saved

    # -------------------------------------------------------------------------
    # Lists and statements
    # -------------------------------------------------------------------------

    def parse_list(
        self, stop: frozenset, opener: Optional[ActionItem], opener_kw: str
    ) -> Tuple[List[Node], Optional[str], Optional[ActionItem]]:
        """Parse nodes until one of the `stop` keywords; return it with its item."""
        nodes: List[Node] = []
        self.vars.append(set())
        try:
            while self.pos < len(self.items):
                item = self.items[self.pos]
                self.pos += 1

                if isinstance(item, TextItem):
                    nodes.append(TextNode(self.loc(item.offset), item.text))
                    continue

                if not item.tokens:
                    raise self.error("missing value for command", item.offset)

                head = item.tokens[0]
                if head.type is TokenType.IDENT and head.value in KEYWORDS:
                    keyword = head.value
                    if keyword in ("else", "end"):
                        if keyword in stop:
                            return nodes, keyword, item
                        raise self.error(f"unexpected {{{{{keyword}}}}}", item.offset)
                    node = self.parse_keyword(keyword, item)
                    if node is not None:
                        nodes.append(node)
                    continue

                pipe = self.parse_pipeline(item, item.tokens, max_decls=1)
                nodes.append(ActionNode(self.loc(item.offset), pipe))
        finally:
            self.vars.pop()

        if stop:
            assert opener is not None
            raise self.error(
                f"unexpected EOF: {{{{{opener_kw}}}}} is not closed by {{{{end}}}}",
                opener.offset,
            )
        return nodes, None, None

    def parse_keyword(self, keyword: str, item: ActionItem) -> Optional[Node]:
        rest = item.tokens[1:]
        if keyword == "if":
            return self.parse_if(item, rest)
        if keyword == "with":
            return self.parse_with(item, rest)
        if keyword == "range":
            return self.parse_range(item, rest)
        if keyword == "template":
            return self.parse_template(item, rest)
        if keyword == "block":
            return self.parse_block(item, rest)
        if keyword == "define":
            self.parse_define(item, rest)
            return None
        if keyword in ("break", "continue"):
            if rest:
                raise self.error(f"unexpected {rest[0].text!r} in {{{{{keyword}}}}}", item.offset)
            if self.range_depth == 0:
                raise self.error(f"{{{{{keyword}}}}} outside {{{{range}}}}", item.offset)
            if keyword == "break":
                return BreakNode(self.loc(item.offset))
            return ContinueNode(self.loc(item.offset))
        raise self.error(f"unexpected keyword {keyword!r}", item.offset)

    def _parse_branches(
        self, keyword: str, item: ActionItem, rest: List[Token]
    ) -> Tuple[PipeNode, List[Node], List[Node]]:
        """Shared body of `if` and `with`, including `else if`/`else with` chains."""
        self.block_depth += 1
        self.vars.append(set())
        try:
            pipe = self.parse_pipeline(item, rest, max_decls=1, context=keyword)
            body, term, term_item = self.parse_list(_ELSE_END, item, keyword)
            else_body: List[Node] = []
            if term == "else":
                assert term_item is not None
                tail = term_item.tokens[1:]
                if tail:
                    chained = tail[0]
                    if chained.type is TokenType.IDENT and chained.value == "if":
                        else_body = [self.parse_if(term_item, tail[1:])]
                    elif chained.type is TokenType.IDENT and chained.value == "with":
                        else_body = [self.parse_with(term_item, tail[1:])]
                    else:
                        raise self.error(
                            f"unexpected {chained.text!r} after {{{{else}}}}", term_item.offset
                        )
                else:
                    else_body, term, extra = self.parse_list(_ELSE_END, item, keyword)
                    if term == "else":
                        assert extra is not None
                        raise self.error("expected {{end}}; found {{else}}", extra.offset)
        finally:
            self.vars.pop()
            self.block_depth -= 1
        return pipe, body, else_body

    def parse_if(self, item: ActionItem, rest: List[Token]) -> IfNode:
        pipe, body, else_body = self._parse_branches("if", item, rest)
        return IfNode(self.loc(item.offset), pipe, body, else_body)

    def parse_with(self, item: ActionItem, rest: List[Token]) -> WithNode:
        pipe, body, else_body = self._parse_branches("with", item, rest)
        return WithNode(self.loc(item.offset), pipe, body, else_body)

    def parse_range(self, item: ActionItem, rest: List[Token]) -> RangeNode:
        self.block_depth += 1
        self.range_depth += 1
        self.vars.append(set())
        try:
            pipe = self.parse_pipeline(item, rest, max_decls=2, context="range")
            if pipe.is_assign:
                raise self.error("range variables must be declared with :=", item.offset)
            body, term, term_item = self.parse_list(_ELSE_END, item, "range")
            if term == "else":
                assert term_item is not None
                raise self.error("{{range}} does not support {{else}}", term_item.offset)
        finally:
            self.vars.pop()
            self.range_depth -= 1
            self.block_depth -= 1
        return RangeNode(self.loc(item.offset), pipe, body)

    def _template_name(self, keyword: str, item: ActionItem, rest: List[Token]) -> str:
        if not rest or rest[0].type is not TokenType.STRING:
            raise self.error(f"{{{{{keyword}}}}} requires a quoted template name", item.offset)
        return rest[0].value

    def parse_template(self, item: ActionItem, rest: List[Token]) -> TemplateNode:
        name = self._template_name("template", item, rest)
        pipe = None
        if len(rest) > 1:
            pipe = self.parse_pipeline(item, rest[1:], max_decls=0, context="template")
        return TemplateNode(self.loc(item.offset), name, pipe)

    def parse_define(self, item: ActionItem, rest: List[Token]) -> None:
        if self.block_depth > 0:
            raise self.error("{{define}} is only allowed at top level", item.offset)
        name = self._template_name("define", item, rest)
        if len(rest) > 1:
            raise self.error(f"unexpected {rest[1].text!r} in {{{{define}}}}", item.offset)
        body = self._parse_isolated_body(item, "define")
        self.definitions.append(Definition(name, body, self.loc(item.offset), override=True))

    def parse_block(self, item: ActionItem, rest: List[Token]) -> TemplateNode:
        name = self._template_name("block", item, rest)
        pipe = None
        if len(rest) > 1:
            pipe = self.parse_pipeline(item, rest[1:], max_decls=0, context="block")
        body = self._parse_isolated_body(item, "block")
        self.definitions.append(Definition(name, body, self.loc(item.offset), override=False))
        return TemplateNode(self.loc(item.offset), name, pipe)

    def _parse_isolated_body(self, item: ActionItem, keyword: str) -> List[Node]:
        """Named template bodies see only `$`, not the enclosing variables."""
        saved = self._fresh_vars()
        self.block_depth += 1
        try:
            body, _, _ = self.parse_list(_END, item, keyword)
        finally:
            self.block_depth -= 1
            self._restore_vars(saved)
        return body

    # -------------------------------------------------------------------------
    # Pipelines
    # -------------------------------------------------------------------------

    def parse_pipeline(
        self,
        item: ActionItem,
        tokens: List[Token],
        max_decls: int,
        context: str = "command",
    ) -> PipeNode:
        stream = _Tokens(tokens)
        pipe = PipeNode(self.loc(item.offset))
        if max_decls:
            self._parse_decls(stream, pipe, max_decls, item)

        self._parse_commands(stream, pipe, item, in_paren=False)
        if not pipe.commands:
            raise self.error(f"missing value for {context}", item.offset)
        if not stream.at_end():
            tok = stream.peek()
            assert tok is not None
            raise self.error(f"unexpected {tok.text!r} in {context}", tok.offset)

        for name in pipe.decls:
            if pipe.is_assign:
                if not self.is_declared(name):
                    raise self.error(f'undefined variable "{name}"', item.offset)
            else:
                self.declare(name)
        return pipe

    def _parse_decls(self, stream: _Tokens, pipe: PipeNode, max_decls: int, item: ActionItem) -> None:
        first = stream.peek()
        if first is None or first.type is not TokenType.VARIABLE:
            return
        nxt = stream.peek(1)
        if nxt is None:
            return
        if nxt.type in (TokenType.DECLARE, TokenType.ASSIGN):
            stream.pos += 2
            pipe.decls = [first.value]
            pipe.is_assign = nxt.type is TokenType.ASSIGN
            return
        if nxt.type is TokenType.COMMA:
            second = stream.peek(2)
            op = stream.peek(3)
            if (
                max_decls < 2
                or second is None
                or second.type is not TokenType.VARIABLE
                or op is None
                or op.type not in (TokenType.DECLARE, TokenType.ASSIGN)
            ):
                raise self.error("too many declarations", first.offset)
            stream.pos += 4
            pipe.decls = [first.value, second.value]
            pipe.is_assign = op.type is TokenType.ASSIGN

    def _parse_commands(self, stream: _Tokens, pipe: PipeNode, item: ActionItem, in_paren: bool) -> None:
        while True:
            cmd = CommandNode(self.loc(item.offset))
            while True:
                tok = stream.peek()
                if tok is None:
                    break
                if tok.type is TokenType.PIPE:
                    break
                if tok.type is TokenType.RPAREN:
                    if not in_paren:
                        raise self.error("unexpected right paren", tok.offset)
                    break
                cmd.args.append(self._parse_operand(stream, item))

            if not cmd.args:
                tok = stream.peek()
                if tok is not None and tok.type is TokenType.PIPE:
                    raise self.error("missing command before '|'", tok.offset)
                if pipe.commands:
                    raise self.error("missing command after '|'", item.offset)
                return

            self._check_command(cmd, len(pipe.commands), item)
            pipe.commands.append(cmd)

            tok = stream.peek()
            if tok is None or tok.type is TokenType.RPAREN:
                return
            stream.next()  # consume '|'

    def _check_command(self, cmd: CommandNode, index: int, item: ActionItem) -> None:
        first = cmd.args[0]
        if index > 0 and not isinstance(first, IdentifierNode):
            raise self.error(
                "invalid pipeline: stage after '|' must be a function call", item.offset
            )
        if len(cmd.args) > 1 and isinstance(first, (LiteralNode, DotNode, PipeNode)):
            raise self.error("can't give argument to non-function", item.offset)
        if len(cmd.args) > 1 and isinstance(first, VariableNode) and not first.path:
            raise self.error("can't give argument to non-function", item.offset)

    def _field_chain(self, stream: _Tokens) -> Tuple[str, ...]:
        path: List[str] = []
        while True:
            tok = stream.peek()
            if tok is None or tok.type is not TokenType.FIELD or tok.space_before:
                return tuple(path)
            stream.next()
            path.append(tok.value)

    def _parse_operand(self, stream: _Tokens, item: ActionItem) -> Operand:
        tok = stream.next()
        assert tok is not None
        loc = self.loc(tok.offset)

        if tok.type is TokenType.IDENT:
            if tok.value in KEYWORDS:
                raise self.error(f"unexpected keyword {tok.value!r} in command", tok.offset)
            if self.functions is not None and tok.value not in self.functions:
                raise self.error(f'function "{tok.value}" not defined', tok.offset)
            return IdentifierNode(loc, tok.value)

        if tok.type is TokenType.DOT:
            return DotNode(loc)

        if tok.type is TokenType.FIELD:
            return FieldNode(loc, (tok.value,) + self._field_chain(stream))

        if tok.type is TokenType.VARIABLE:
            if not self.is_declared(tok.value):
                raise self.error(f'undefined variable "{tok.value}"', tok.offset)
            return VariableNode(loc, tok.value, self._field_chain(stream))

        if tok.type in _LITERALS:
            return LiteralNode(loc, tok.value)

        if tok.type is TokenType.LPAREN:
            inner = PipeNode(loc)
            self._parse_commands(stream, inner, item, in_paren=True)
            closing = stream.next()
            if closing is None or closing.type is not TokenType.RPAREN:
                raise self.error("unclosed left paren", tok.offset)
            if not inner.commands:
                raise self.error("missing value in parenthesized pipeline", tok.offset)
            path = self._field_chain(stream)
            if path:
                return ChainNode(loc, inner, path)
            return inner

        raise self.error(f"unexpected {tok.text!r} in operand", tok.offset)
