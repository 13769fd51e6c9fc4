"""Tests for the template lexer and parser."""

import pytest

from chartwright.ast.lexer import trim_leading, trim_trailing
from chartwright.ast.node import (
    ActionNode,
    ChainNode,
    FieldNode,
    IfNode,
    LiteralNode,
    RangeNode,
    TemplateNode,
    TextNode,
    VariableNode,
)
from chartwright.ast.parser import Parser
from chartwright.errors import ParseError


def parse(source: str, functions=None):
    return Parser(functions).parse(source, name="test.yaml")


def texts(parsed):
    return [n.text for n in parsed.root if isinstance(n, TextNode)]


# =============================================================================
# Text and actions
# =============================================================================


def test_text_and_action_nodes():
    parsed = parse("a {{ .x }} b")
    assert [type(n) for n in parsed.root] == [TextNode, ActionNode, TextNode]
    assert texts(parsed) == ["a ", " b"]

    action = parsed.root[1]
    field = action.pipe.commands[0].args[0]
    assert isinstance(field, FieldNode)
    assert field.path == ("x",)


def test_field_chain_and_variable_path():
    parsed = parse("{{ .Values.image.tag }}{{ $.Values.name }}")
    first = parsed.root[0].pipe.commands[0].args[0]
    second = parsed.root[1].pipe.commands[0].args[0]
    assert first.path == ("Values", "image", "tag")
    assert isinstance(second, VariableNode)
    assert second.name == "$"
    assert second.path == ("Values", "name")


def test_literals():
    parsed = parse('{{ "a\\nb" }}{{ `raw\\n` }}{{ 42 }}{{ 1.5 }}{{ true }}{{ nil }}{{ -3 }}')
    values = [n.pipe.commands[0].args[0].value for n in parsed.root]
    assert values == ["a\nb", "raw\\n", 42, 1.5, True, None, -3]


def test_parenthesized_pipeline_with_field_chain():
    parsed = parse('{{ (dict "a" 1).a }}')
    chain = parsed.root[0].pipe.commands[0].args[0]
    assert isinstance(chain, ChainNode)
    assert chain.path == ("a",)


def test_comment_produces_no_action():
    parsed = parse("a{{/* note */}}b")
    assert texts(parsed) == ["a", "b"]
    assert all(isinstance(n, TextNode) for n in parsed.root)


# =============================================================================
# Chomp markers
# =============================================================================


def test_chomp_both_sides():
    parsed = parse("a\n  {{- .x -}}\n  b")
    assert texts(parsed) == ["a", "  b"]


def test_chomp_stops_after_one_newline():
    parsed = parse("a\n\n{{- .x }}")
    assert texts(parsed) == ["a\n"]


def test_negative_number_is_not_a_chomp_marker():
    parsed = parse("x {{-3}}")
    assert texts(parsed) == ["x "]
    assert parsed.root[1].pipe.commands[0].args[0].value == -3


def test_trim_helpers():
    assert trim_trailing("key:\n   ") == "key:"
    assert trim_trailing("key: \t") == "key:"
    assert trim_leading("  \nnext") == "next"
    assert trim_leading("\n\nnext") == "\nnext"


# =============================================================================
# Control blocks and definitions
# =============================================================================


def test_if_else_if_chain():
    parsed = parse("{{ if .a }}A{{ else if .b }}B{{ else }}C{{ end }}")
    node = parsed.root[0]
    assert isinstance(node, IfNode)
    assert texts_of(node.body) == ["A"]
    nested = node.else_body[0]
    assert isinstance(nested, IfNode)
    assert texts_of(nested.body) == ["B"]
    assert texts_of(nested.else_body) == ["C"]


def texts_of(nodes):
    return [n.text for n in nodes if isinstance(n, TextNode)]


def test_range_with_two_variables():
    parsed = parse("{{ range $k, $v := .m }}{{ $k }}={{ $v }}{{ end }}")
    node = parsed.root[0]
    assert isinstance(node, RangeNode)
    assert node.pipe.decls == ["$k", "$v"]


def test_define_is_collected_not_rendered():
    parsed = parse('{{ define "a" }}body{{ end }}after')
    assert texts(parsed) == ["after"]
    assert len(parsed.definitions) == 1
    definition = parsed.definitions[0]
    assert definition.name == "a"
    assert definition.override is True
    assert texts_of(definition.body) == ["body"]


def test_block_defines_and_invokes():
    parsed = parse('{{ block "b" . }}default{{ end }}')
    assert isinstance(parsed.root[0], TemplateNode)
    assert parsed.root[0].name == "b"
    assert parsed.definitions[0].override is False


# =============================================================================
# Errors
# =============================================================================


def test_unclosed_block_reports_opener_location():
    with pytest.raises(ParseError) as exc:
        parse("line one\n{{ if .x }}never closed")
    assert "not closed" in exc.value.message
    assert exc.value.location.template == "test.yaml"
    assert exc.value.location.line == 2
    assert exc.value.location.column == 1


def test_unexpected_end():
    with pytest.raises(ParseError, match="unexpected"):
        parse("a{{ end }}")


def test_unclosed_action():
    with pytest.raises(ParseError, match="unclosed action"):
        parse("{{ .x ")


def test_missing_condition():
    with pytest.raises(ParseError, match="missing value for if"):
        parse("{{ if }}x{{ end }}")


def test_unknown_function_fails_at_parse_time():
    with pytest.raises(ParseError, match='function "nope" not defined'):
        parse("{{ nope 1 }}", functions={"upper"})


def test_undefined_variable():
    with pytest.raises(ParseError, match="undefined variable"):
        parse("{{ $missing }}")


def test_variable_scoped_to_block():
    with pytest.raises(ParseError, match="undefined variable"):
        parse("{{ if true }}{{ $x := 1 }}{{ end }}{{ $x }}")


def test_assign_requires_declaration():
    with pytest.raises(ParseError, match="undefined variable"):
        parse("{{ $x = 1 }}")


def test_range_does_not_support_else():
    with pytest.raises(ParseError, match="does not support"):
        parse("{{ range .x }}a{{ else }}b{{ end }}")


def test_define_only_at_top_level():
    with pytest.raises(ParseError, match="top level"):
        parse('{{ if .x }}{{ define "a" }}x{{ end }}{{ end }}')


def test_pipeline_stage_must_be_function():
    with pytest.raises(ParseError, match="must be a function"):
        parse("{{ .x | .y }}")


def test_break_outside_range():
    with pytest.raises(ParseError, match="outside"):
        parse("{{ break }}")


def test_literal_as_argument_target():
    parsed = parse('{{ "x" }}')
    assert isinstance(parsed.root[0].pipe.commands[0].args[0], LiteralNode)
    with pytest.raises(ParseError, match="non-function"):
        parse('{{ "x" 1 }}')


def test_deep_nesting_is_a_parse_error():
    depth = 2000
    source = "{{ if true }}" * depth + "x" + "{{ end }}" * depth
    with pytest.raises(ParseError, match="nested too deeply"):
        parse(source)
