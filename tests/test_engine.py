"""Tests for the evaluator, the named-template registry and the render entry points."""

import pytest

from chartwright import Engine, RenderConfig, StaticLookup, default_library, join_manifests, render
from chartwright.errors import (
    ArityError,
    EvaluationError,
    FailError,
    ParseError,
    RecursionLimitError,
    RequiredValueError,
    TemplateNotFoundError,
)
from chartwright.funcs import FunctionLibrary


def r(text, **values):
    return render(text, {"Values": values})


# =============================================================================
# Actions and missing values
# =============================================================================


def test_text_passes_through():
    assert r("plain: text\n") == "plain: text\n"


def test_missing_and_null_print_empty():
    assert r("a{{ .Values.missing }}b") == "ab"
    assert r("a{{ .Values.n }}b", n=None) == "ab"
    assert r("a{{ .Values.deep.er.path }}b") == "ab"


def test_numbers_and_booleans_print_like_go():
    assert r("{{ 3.0 }} {{ 1.5 }} {{ true }} {{ .Values.n }}", n=10) == "3 1.5 true 10"


def test_field_on_scalar_is_an_error():
    with pytest.raises(EvaluationError):
        r("{{ .Values.s.x }}", s="text")


def test_strict_mode_rejects_missing_keys():
    engine = Engine(RenderConfig(strict=True))
    with pytest.raises(EvaluationError, match="no entry for key"):
        engine.render("{{ .Values.missing }}", {"Values": {}})
    assert Engine().render("{{ .Values.missing }}", {"Values": {}}) == ""


def test_chomp_in_yaml():
    text = "metadata:\n  labels:\n    {{- range $k, $v := .Values.labels }}\n    {{ $k }}: {{ $v }}\n    {{- end }}\n"
    out = r(text, labels={"b": "2", "a": "1"})
    assert out == "metadata:\n  labels:\n    a: 1\n    b: 2\n"


# =============================================================================
# if / with
# =============================================================================


@pytest.mark.parametrize(
    "values,expected",
    [({}, "no"), ({"x": 0}, "no"), ({"x": ""}, "no"), ({"x": []}, "no"), ({"x": None}, "no"),
     ({"x": "a"}, "yes"), ({"x": 1}, "yes"), ({"x": {"k": 1}}, "yes")],
)
def test_if_truthiness(values, expected):
    assert r("{{ if .Values.x }}yes{{ else }}no{{ end }}", **values) == expected


def test_else_if_chain():
    text = "{{ if .Values.a }}A{{ else if .Values.b }}B{{ else }}C{{ end }}"
    assert r(text, a=1) == "A"
    assert r(text, b=1) == "B"
    assert r(text) == "C"


def test_with_rebinds_dot():
    text = "{{ with .Values.image }}{{ .repo }}:{{ .tag }}{{ end }}"
    assert r(text, image={"repo": "nginx", "tag": "1.25"}) == "nginx:1.25"
    assert r(text) == ""


def test_with_else_and_else_with():
    assert r("{{ with .Values.none }}x{{ else }}empty{{ end }}") == "empty"
    text = "{{ with .Values.a }}A{{ else with .Values.b }}{{ . }}{{ end }}"
    assert r(text, b="B") == "B"


def test_if_with_declaration():
    assert r("{{ if $n := .Values.name }}{{ $n }}{{ end }}", name="web") == "web"


def test_with_declaration_is_bound_in_else():
    text = "{{ with $x := .Values.a }}{{ $x }}{{ else }}[{{ $x }}]{{ end }}"
    assert r(text, a="v") == "v"
    assert r(text, a=0) == "[0]"
    assert r(text) == "[]"


# =============================================================================
# range
# =============================================================================


def test_range_over_list():
    assert r("{{ range .Values.l }}[{{ . }}]{{ end }}", l=["a", "b"]) == "[a][b]"
    text = "{{ range $i, $v := .Values.l }}{{ $i }}={{ $v }},{{ end }}"
    assert r(text, l=["a", "b"]) == "0=a,1=b,"


def test_range_over_map_is_sorted():
    text = "{{ range $k, $v := .Values.m }}{{ $k }}={{ $v }};{{ end }}"
    assert r(text, m={"b": 2, "c": 3, "a": 1}) == "a=1;b=2;c=3;"


@pytest.mark.parametrize("values", [{"l": []}, {"l": {}}, {}, {"l": None}])
def test_range_over_empty_emits_only_surrounding_text(values):
    assert r("before{{ range .Values.l }}x{{ end }}after", **values) == "beforeafter"


def test_range_over_integer():
    assert r("{{ range 3 }}{{ . }}{{ end }}") == "012"


def test_break_and_continue():
    text = (
        "{{ range .Values.l }}{{ if eq . 2 }}{{ continue }}{{ end }}"
        "{{ if eq . 4 }}{{ break }}{{ end }}{{ . }}{{ end }}"
    )
    assert r(text, l=[1, 2, 3, 4, 5]) == "13"


def test_dollar_is_the_root_inside_range():
    text = "{{ range .Values.l }}{{ $.Values.sep }}{{ . }}{{ end }}"
    assert r(text, l=["a", "b"], sep="-") == "-a-b"


def test_range_over_string_is_an_error():
    with pytest.raises(EvaluationError, match="range can't iterate"):
        r("{{ range .Values.s }}x{{ end }}", s="abc")


# =============================================================================
# Variables
# =============================================================================


def test_declaration_prints_nothing():
    assert r("{{ $x := 5 }}[{{ $x }}]") == "[5]"


def test_assignment_updates_outer_variable():
    text = "{{ $last := 0 }}{{ range .Values.l }}{{ $last = . }}{{ end }}{{ $last }}"
    assert r(text, l=[5, 6]) == "6"


def test_shadowing_does_not_leak():
    text = '{{ $x := "outer" }}{{ with .Values.a }}{{ $x := "inner" }}{{ $x }}{{ end }}{{ $x }}'
    assert r(text, a=1) == "innerouter"


# =============================================================================
# Named templates
# =============================================================================


def test_forward_reference_in_same_source():
    assert r('{{ include "later" . }}{{ define "later" }}L{{ end }}') == "L"


def test_forward_reference_across_sources_and_partials_skipped():
    sources = {
        "chart/templates/a.yaml": '{{ include "helper" . }}',
        "chart/templates/_helpers.tpl": '{{ define "helper" }}H{{ end }}',
    }
    assert Engine().render_templates(sources, {}) == {"chart/templates/a.yaml": "H"}


def test_second_define_wins():
    sources = {
        "_one.tpl": '{{ define "x" }}first{{ end }}',
        "_two.tpl": '{{ define "x" }}second{{ end }}',
        "main.yaml": '{{ include "x" . }}',
    }
    assert Engine().render_templates(sources, {})["main.yaml"] == "second"
    assert r('{{ define "y" }}1{{ end }}{{ define "y" }}2{{ end }}{{ include "y" . }}') == "2"


def test_include_result_can_be_piped():
    text = '{{ define "t" }}hello{{ end }}{{ include "t" . | upper }}'
    assert r(text) == "HELLO"
    with pytest.raises(RequiredValueError, match="t empty"):
        r('{{ define "t" }}{{ end }}{{ include "t" . | required "t empty" }}')


def test_template_emits_output():
    assert r('{{ define "t" }}[{{ . }}]{{ end }}{{ template "t" "x" }}') == "[x]"
    assert r('{{ define "t" }}[{{ . }}]{{ end }}{{ template "t" }}') == "[]"


def test_include_uses_fresh_scope():
    text = '{{ define "t" }}{{ $.name }}/{{ .name }}{{ end }}{{ include "t" (dict "name" "z") }}'
    assert r(text) == "z/z"
    with pytest.raises(ParseError, match="undefined variable"):
        r('{{ $x := 1 }}{{ define "t" }}{{ $x }}{{ end }}')


def test_include_with_nindent():
    text = (
        '{{ define "labels" }}app: {{ .Values.app }}\ntier: web{{ end }}'
        "metadata:\n  labels:{{ include \"labels\" . | nindent 4 }}"
    )
    assert r(text, app="shop") == "metadata:\n  labels:\n    app: shop\n    tier: web"


def test_block_default_and_override():
    assert r('{{ block "b" . }}default{{ end }}') == "default"
    sources = {
        "main.yaml": '{{ block "b" . }}default{{ end }}',
        "_override.tpl": '{{ define "b" }}custom{{ end }}',
    }
    assert Engine().render_templates(sources, {})["main.yaml"] == "custom"


def test_missing_template():
    with pytest.raises(TemplateNotFoundError, match='no template "nope" defined'):
        r('{{ include "nope" . }}')
    with pytest.raises(TemplateNotFoundError):
        r('{{ template "nope" }}')


def test_include_recursion_is_bounded():
    engine = Engine(RenderConfig(max_include_depth=20))
    with pytest.raises(RecursionLimitError):
        engine.render('{{ define "loop" }}{{ include "loop" . }}{{ end }}{{ include "loop" . }}', {})


def test_include_arity():
    with pytest.raises(ArityError):
        r("{{ include }}")


def test_tpl_definitions_stay_local():
    t = '{{ define "x" }}X{{ end }}{{ include "x" . }}'
    assert r("{{ tpl .Values.t . }}", t=t) == "X"
    with pytest.raises(TemplateNotFoundError):
        r('{{ tpl .Values.t . }}{{ include "x" . }}', t=t)


# =============================================================================
# Errors and whole-render failure
# =============================================================================


def test_error_points_at_innermost_action():
    source = 'line1\n{{ define "t" }}\n{{ required "need x" .x }}{{ end }}{{ include "t" . }}'
    with pytest.raises(RequiredValueError) as exc:
        Engine().render(source, {}, name="deploy.yaml")
    err = exc.value
    assert err.location.template == "deploy.yaml"
    assert err.location.line == 3
    assert err.to_dict() == {
        "kind": "RequiredValueError",
        "message": "need x",
        "sourceLocation": {"template": "deploy.yaml", "line": 3, "column": 1},
    }
    assert err.describe() == "RequiredValueError at deploy.yaml:3:1: need x"


class CountingLookup(StaticLookup):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def get(self, api_version, kind, namespace, name):
        self.calls += 1
        return super().get(api_version, kind, namespace, name)


def test_parse_errors_come_before_any_evaluation():
    lookup = CountingLookup()
    sources = {
        "a.yaml": '{{ lookup "v1" "Secret" "ns" "s" }}',
        "b.yaml": "{{ if }}",
    }
    with pytest.raises(ParseError):
        Engine(lookup=lookup).render_templates(sources, {})
    assert lookup.calls == 0


def test_failure_aborts_whole_render():
    sources = {"a.yaml": "ok", "b.yaml": '{{ fail "broken" }}'}
    with pytest.raises(FailError, match="broken"):
        Engine().render_templates(sources, {})


# =============================================================================
# Engine API
# =============================================================================


def test_custom_functions():
    extra = FunctionLibrary()

    @extra.register("shout", 1)
    def shout(text):
        return text.upper() + "!"

    engine = Engine(functions=default_library().extend(extra))
    assert engine.render('{{ "hi" | shout }}', {}) == "HI!"
    with pytest.raises(ParseError, match="not defined"):
        Engine().render('{{ "hi" | shout }}', {})


def test_parsed_set_is_reusable():
    engine = Engine()
    templates = engine.parse({"t.yaml": "name: {{ .Values.name }}"})
    first = engine.render_templates(templates, {"Values": {"name": "a"}})
    second = engine.render_templates(templates, {"Values": {"name": "b"}})
    assert first == {"t.yaml": "name: a"}
    assert second == {"t.yaml": "name: b"}


def test_render_chart_builds_context():
    config = RenderConfig.model_validate(
        {"release": {"name": "prod", "namespace": "shop"}, "chart": {"name": "web", "version": "1.2.0"}}
    )
    sources = {
        "web/templates/cm.yaml": (
            "release: {{ .Release.Name }}/{{ .Release.Namespace }}\n"
            "chart: {{ .Chart.Name }}-{{ .Chart.Version }}\n"
            "template: {{ .Template.Name }}\n"
            "apps: {{ .Capabilities.APIVersions.Has \"apps/v1\" }}\n"
            "kube: {{ .Capabilities.KubeVersion.Major }}\n"
            "replicas: {{ .Values.replicas }}"
        ),
    }
    out = Engine(config).render_chart(sources, {"replicas": 2})
    assert out["web/templates/cm.yaml"] == (
        "release: prod/shop\n"
        "chart: web-1.2.0\n"
        "template: web/templates/cm.yaml\n"
        "apps: true\n"
        "kube: 1\n"
        "replicas: 2"
    )


def test_join_manifests():
    rendered = {"c/templates/a.yaml": "a: 1\n", "c/templates/empty.yaml": "\n  \n", "c/templates/b.yaml": "b: 2"}
    assert join_manifests(rendered) == (
        "---\n# Source: c/templates/a.yaml\na: 1\n"
        "---\n# Source: c/templates/b.yaml\nb: 2\n"
    )
