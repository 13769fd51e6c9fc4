"""Tests for the template function library."""

import pytest
import yaml

from chartwright import render
from chartwright.errors import (
    ArityError,
    DecodeError,
    EvaluationError,
    FailError,
    InvalidArgumentError,
    RecursionLimitError,
    RegexCompileError,
    RequiredValueError,
    VersionParseError,
)
from chartwright.funcs import FunctionLibrary, default_library
from chartwright.values import MISSING

LIB = default_library()


def call(name, *args):
    return LIB.get(name).func(*args)


def r(text, **values):
    return render(text, {"Values": values})


# =============================================================================
# Registry
# =============================================================================


def test_register_and_extend():
    lib = FunctionLibrary()

    @lib.register("double", 1)
    def double(x):
        return x * 2

    merged = default_library().extend(lib)
    assert "double" in merged
    assert "double" not in default_library()
    assert merged.get("double").func(4) == 8


def test_arity_is_checked():
    with pytest.raises(ArityError, match="wrong number of args for upper: want 1 got 0"):
        r("{{ upper }}")
    with pytest.raises(ArityError):
        r('{{ "a" | upper "b" }}')


def test_variadic_arity_message():
    with pytest.raises(ArityError, match="want at least 2 got 1"):
        LIB.get("eq").check_arity(1)


# =============================================================================
# default / required
# =============================================================================


def test_default_scenario():
    assert r("{{ .Values.x | default 3 }}") == "3"


@pytest.mark.parametrize("value", [MISSING, None, "", 0, False, [], {}])
def test_default_replaces_zero_values(value):
    assert call("default", "fallback", value) == "fallback"


@pytest.mark.parametrize("value", ["x", 1, True, [0], {"a": 1}])
def test_default_keeps_present_values(value):
    assert call("default", "fallback", value) == value


def test_default_through_templates():
    assert r('{{ .Values.s | default "d" }}', s="") == "d"
    assert r('{{ .Values.n | default "d" }}', n=None) == "d"
    assert r("{{ 0 | default 7 }}") == "7"
    assert r('{{ .Values.s | default "d" }}', s="set") == "set"


def test_required_scenario():
    with pytest.raises(RequiredValueError) as exc:
        r('{{ required "x needed" .Values.x }}')
    assert exc.value.message == "x needed"
    assert str(exc.value) == "x needed"
    assert exc.value.kind == "RequiredValueError"


def test_required_passes_value_through():
    assert r('{{ .Values.x | required "x needed" }}', x="ok") == "ok"


def test_required_error_location():
    with pytest.raises(RequiredValueError) as exc:
        r('a: 1\nb: {{ required "b needed" .Values.b }}')
    assert exc.value.location.line == 2
    assert exc.value.location.column == 4


# =============================================================================
# Strings
# =============================================================================


def test_quote_and_squote():
    assert r("{{ .Values.s | quote }}", s='say "hi"') == '"say \\"hi\\""'
    assert r("{{ 3 | quote }}") == '"3"'
    assert r("{{ .Values.s | squote }}", s="it's") == "'it''s'"


def test_repeat():
    assert r('{{ repeat 3 "ab" }}') == "ababab"
    assert r('{{ "ab" | repeat 2 }}') == "abab"
    assert call("repeat", "ab", 0) == ""
    with pytest.raises(InvalidArgumentError) as exc:
        r('{{ repeat -1 "ab" }}')
    assert exc.value.kind == "InvalidArgument"


def test_repeat_count_comes_first():
    assert r("{{ repeat 3 5 }}") == "555"
    assert r('{{ repeat "3" "ab" }}') == "ababab"
    assert call("repeat", "ab", 2) == "abab"


def test_case_mapping():
    assert r('{{ upper "straße" }}') == "STRAßE"
    assert r('{{ lower "ÀB" }}') == "àb"
    assert r('{{ title "hello world" }}') == "Hello World"


def test_case_mapping_keeps_one_character():
    assert call("lower", "\u0130stanbul") == "istanbul"
    assert call("upper", "\u00df") == "\u00df"
    assert call("upper", "\u1fb3") == "\u1fbc"


def test_trimming_is_exact_match():
    assert r('{{ trim "  x \\n" }}') == "x"
    assert r('{{ trimPrefix "v" "v1.2" }}') == "1.2"
    assert r('{{ trimPrefix "." "abc" }}') == "abc"
    assert r('{{ trimSuffix ".yaml" "a.yaml" }}') == "a"
    assert r('{{ "a.yaml" | trimSuffix ".*" }}') == "a.yaml"


def test_base64():
    assert r('{{ "hello" | b64enc }}') == "aGVsbG8="
    assert r('{{ "aGVsbG8=" | b64dec }}') == "hello"
    with pytest.raises(DecodeError):
        r('{{ "not base64!" | b64dec }}')


def test_indent_and_nindent():
    text = "a\nb\n\nc"
    indented = call("indent", 4, text)
    assert indented == "    a\n    b\n    \n    c"
    assert "\n".join(line[4:] for line in indented.split("\n")) == text
    assert call("nindent", 2, "x: 1") == "\n  x: 1"


def test_nindent_splices_yaml():
    out = r("spec:\n  template:{{ toYaml .Values.pod | nindent 4 }}", pod={"b": 1, "a": {"c": 2}})
    assert out == "spec:\n  template:\n    a:\n      c: 2\n    b: 1"


def test_printf():
    assert r('{{ printf "%s-%d" "a" 3 }}') == "a-3"
    assert r('{{ printf "%05d|%-4s|%x|%q|%t|%%" 42 "ab" 255 "q" true }}') == '00042|ab  |ff|"q"|true|%'
    assert r('{{ printf "%.2f" 3.14159 }}') == "3.14"
    assert r('{{ printf "%v" .Values.l }}', l=[1, "a"]) == "[1 a]"


def test_printf_placeholder_count_mismatch():
    with pytest.raises(ArityError):
        r('{{ printf "%s %s" "a" }}')
    with pytest.raises(ArityError):
        r('{{ printf "%s" "a" "b" }}')


def test_string_helpers():
    assert r('{{ contains "ell" "hello" }}') == "true"
    assert r('{{ hasPrefix "he" "hello" }}') == "true"
    assert r('{{ hasSuffix "x" "hello" }}') == "false"
    assert r('{{ replace "-" "_" "a-b-c" }}') == "a_b_c"
    assert r('{{ trunc 3 "abcdef" }}') == "abc"
    assert r('{{ nospace "a b\tc" }}') == "abc"
    assert r('{{ splitList "," "a,b" | join "+" }}') == "a+b"
    assert r('{{ "abc" | sha256sum }}') == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


# =============================================================================
# Regular expressions
# =============================================================================


def test_regex_match_and_replace():
    assert r('{{ regexMatch "^[a-z]+$" "abc" }}') == "true"
    assert r('{{ regexMatch "^[a-z]+$" "ABC" }}') == "false"
    assert r('{{ regexReplaceAll "a(x*)b" "${1}W" "-ab-axxb-" }}') == "-W-xxW-"
    assert r('{{ regexFind "[0-9]+" "abc123def" }}') == "123"


def test_invalid_regex():
    with pytest.raises(RegexCompileError):
        r('{{ regexMatch "[" "x" }}')


# =============================================================================
# Collections
# =============================================================================


def test_dict_and_odd_arguments():
    assert r('{{ dict "a" 1 "b" "x" | toJson }}') == '{"a":1,"b":"x"}'
    with pytest.raises(ArityError):
        r('{{ dict "a" }}')


def test_merge_example():
    dst = call("dict", "a", 1, "b", 2)
    src = call("dict", "b", 3, "c", 4)
    assert call("merge", dst, src) == call("dict", "a", 1, "b", 3, "c", 4)
    assert dst == {"a": 1, "b": 2}
    assert src == {"b": 3, "c": 4}


def test_merge_is_deep():
    dst = {"image": {"repo": "nginx", "tag": "1"}, "list": [1]}
    src = {"image": {"tag": "2"}, "list": [2]}
    assert call("merge", dst, src) == {"image": {"repo": "nginx", "tag": "2"}, "list": [2]}
    assert dst["image"]["tag"] == "1"


def test_has_key_and_pluck():
    assert r('{{ hasKey .Values "n" }}', n=None) == "true"
    assert r('{{ hasKey .Values "n" }}') == "false"
    out = r('{{ pluck "a" (dict "a" 1) (dict "b" 2) (dict "a" 3) | toJson }}')
    assert out == "[1,3]"


def test_absent_maps_read_as_empty():
    assert r('{{ hasKey .Values.opt "x" }}') == "false"
    assert r('{{ pluck "a" (dict "a" 1) .Values.none | toJson }}') == "[1]"
    assert r('{{ get .Values.opt "x" | quote }}') == '""'
    assert r("{{ keys .Values.opt | toJson }}") == "[]"
    with pytest.raises(InvalidArgumentError, match="expected map"):
        r('{{ hasKey "text" "x" }}')


def test_list_functions():
    assert r("{{ list 1 2 3 | len }}") == "3"
    assert r('{{ list "b" "a" "b" | uniq | sortAlpha | toJson }}') == '["a","b"]'
    assert r("{{ list 1 2 | first }}-{{ list 1 2 | last }}") == "1-2"
    assert r("{{ append (list 1) 2 | toJson }}") == "[1,2]"
    assert r("{{ until 3 | toJson }}") == "[0,1,2]"
    assert r("{{ keys .Values | toJson }}", b=1, a=2) == '["a","b"]'


def test_index():
    assert r('{{ index .Values.m "a" 1 }}', m={"a": [10, 20]}) == "20"
    with pytest.raises(EvaluationError, match="out of range"):
        r("{{ index .Values.l 5 }}", l=[1])


def test_len_of_number_is_invalid():
    with pytest.raises(InvalidArgumentError):
        r("{{ len 3 }}")


# =============================================================================
# Serialization
# =============================================================================


def test_to_yaml_block_style():
    out = r("{{ toYaml .Values.cfg }}", cfg={"b": [1, 2], "a": {"c": "x"}})
    assert out == "a:\n  c: x\nb:\n- 1\n- 2"


def test_yaml_round_trip():
    tree = {
        "flag": "yes",
        "version": "1.0",
        "nothing": None,
        "script": "line one\nline two\n",
        "nested": {"list": [1, 2.5, True, "null"]},
    }
    text = call("toYaml", tree)
    assert call("fromYaml", text) == tree
    assert yaml.safe_load(text) == tree


def test_to_json_keeps_insertion_order():
    assert r("{{ toJson .Values.m }}", m={"b": 1, "a": [True, None]}) == '{"b":1,"a":[true,null]}'
    assert call("toPrettyJson", {"a": 1}) == '{\n  "a": 1\n}'


def test_from_json_and_from_yaml():
    assert call("fromJson", '{"a": [1, 2]}') == {"a": [1, 2]}
    assert call("fromYaml", "a: 1") == {"a": 1}
    with pytest.raises(DecodeError):
        call("fromJson", "{not json")
    with pytest.raises(DecodeError):
        call("fromYaml", "a: [")


# =============================================================================
# Logic and math
# =============================================================================


def test_comparisons():
    assert r("{{ eq 1 1 }}") == "true"
    assert r('{{ eq "a" "b" "a" }}') == "true"
    assert r("{{ ne 1 2 }}") == "true"
    assert r("{{ lt 1 2 }}{{ ge 2 2 }}") == "truetrue"
    with pytest.raises(InvalidArgumentError):
        r('{{ lt 1 "a" }}')


def test_and_or_short_circuit():
    assert r("{{ and 1 0 }}") == "0"
    assert r('{{ or 0 "" "x" }}') == "x"
    assert r('{{ or true (fail "boom") }}') == "true"
    assert r('{{ and false (fail "boom") }}') == "false"
    assert r("{{ not .Values.x }}") == "true"


def test_math():
    assert r("{{ add 1 2 3 }}") == "6"
    assert r("{{ sub 5 7 }}") == "-2"
    assert r("{{ mul 2 3 }}") == "6"
    assert r("{{ div 7 2 }}") == "3"
    assert r("{{ mod -7 3 }}") == "-1"
    with pytest.raises(InvalidArgumentError):
        r("{{ div 1 0 }}")


def test_misc_logic():
    assert r('{{ ternary "yes" "no" true }}') == "yes"
    assert r('{{ coalesce .Values.a "" "c" }}') == "c"
    assert r("{{ empty .Values.list }}", list=[]) == "true"
    assert r("{{ kindOf .Values.m }}", m={}) == "map"
    assert r('{{ kindIs "string" "x" }}') == "true"


def test_fail():
    with pytest.raises(FailError) as exc:
        r('{{ fail "stop here" }}')
    assert exc.value.kind == "FailError"
    assert exc.value.message == "stop here"


# =============================================================================
# Versions and tpl
# =============================================================================


def test_semver_compare():
    assert r('{{ semverCompare ">=1.20.0" "1.25.3" }}') == "true"
    assert r('{{ semverCompare ">=1.20.0" "v1.19.2" }}') == "false"
    with pytest.raises(VersionParseError):
        r('{{ semverCompare ">=1.20.0" "not.a.version" }}')


def test_semver_parts():
    assert r('{{ (semver "1.2.3-rc.1").Prerelease }}') == "rc.1"


def test_tpl_renders_values():
    out = r("{{ tpl .Values.t . }}", t="{{ .Values.name }}", name="web")
    assert out == "web"


def test_tpl_recursion_is_bounded():
    with pytest.raises(RecursionLimitError):
        r("{{ tpl .Values.t . }}", t="{{ tpl .Values.t . }}")
