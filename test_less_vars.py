import re

import pytest

from less_vars import (
    build_variable_map,
    filter_color_variables,
    get_color,
    get_less_vars,
    get_less_vars_obj,
    is_valid_color,
    normalize_declarations,
)


@pytest.mark.parametrize("color", ["#fff", "#ffff", "#1890ff", "#1890ffcc", "#ABCDEF"])
def test_hex_colors_are_valid(color):
    assert is_valid_color(color)


@pytest.mark.parametrize("color", ["#ff", "#fffff", "#1890fff", "#ggg", "#12345z", "#f_f", "#ff ", "#ff_f", "#ff 0ff"])
def test_malformed_hex_is_invalid(color):
    assert not is_valid_color(color)


@pytest.mark.parametrize("value", ["20px", "#fffpx", "0 1px 2px", "darken(#fff, 2px)"])
def test_px_values_are_never_colors(value):
    assert not is_valid_color(value)


def test_rgb_wins_over_px():
    assert is_valid_color("0 1px 2px rgba(0, 0, 0, 0.15)")


@pytest.mark.parametrize("value", [
    "rgba(0, 0, 0, 0.5)",
    "hsl(120, 50%, 50%)",
    "hsva(120, 50%, 50%, 1)",
    "fade(@black, 85%)",
    "color(~`colorPalette('@{primary-color}', 1)`)",
    "darken(@primary-color, 10%)",
    "tint(@blue-6, 20%)",
    "greyscale(@red-6)",
])
def test_color_expressions_are_valid(value):
    assert is_valid_color(value)


@pytest.mark.parametrize("value", [None, "", "inherit", "bold", "1.5715", "~'Monaco, monospace'"])
def test_non_colors_are_invalid(value):
    assert not is_valid_color(value)


def test_custom_patterns():
    assert not is_valid_color("var(--brand)")
    assert is_valid_color("var(--brand)", [r"^var\(--[\w-]+\)$"])
    assert is_valid_color("var(--brand)", [re.compile(r"var\(")])


def test_transitive_alias_resolution():
    mappings = build_variable_map("@a: #123;\n@b: @a;\n@c: @b;\n")
    assert mappings == {"@a": "#123", "@b": "#123", "@c": "#123"}


def test_non_color_declarations_are_dropped():
    content = "@primary-color: #1890ff;\n@font-size-base: 14px;\n@line-height-base: 1.5715;\n@heading-color: fade(#000, 85%);\n"
    assert build_variable_map(content) == {
        "@primary-color": "#1890ff",
        "@heading-color": "fade(#000, 85%)",
    }


def test_forward_alias_is_dropped_by_default():
    content = "@link-color: @primary-color;\n@primary-color: #1890ff;\n"
    assert build_variable_map(content) == {"@primary-color": "#1890ff"}


def test_two_pass_resolves_forward_alias():
    content = "@link-color: @primary-color;\n@primary-color: #1890ff;\n"
    assert build_variable_map(content, two_pass=True) == {
        "@link-color": "#1890ff",
        "@primary-color": "#1890ff",
    }


def test_two_pass_survives_alias_cycle():
    content = "@a: @b;\n@b: @a;\n@c: #fff;\n"
    assert build_variable_map(content, two_pass=True) == {"@c": "#fff"}


def test_indented_and_malformed_lines_are_skipped():
    content = "  @nested: #fff;\n@no-semicolon: #000\n@ok: #abc;\n.rule { color: red; }\n"
    assert build_variable_map(content) == {"@ok": "#abc"}


def test_multiline_declarations_are_joined():
    content = "@preset-colors: pink, magenta, red, volcano, orange, yellow, gold, cyan, lime, green, blue, geekblue,\n  purple;\n"
    assert normalize_declarations(content).endswith("geekblue, purple;\n")


def test_get_color_follows_chain():
    assert get_color("@c", {"@a": "#fff", "@b": "@a", "@c": "@b"}) == "#fff"
    assert get_color("@missing", {"@a": "#fff"}) is None


def test_get_less_vars_obj():
    content = "@primary-color: #1890ff;\n@'quoted-name': red;\n@font-family: -apple-system, 'Segoe UI';\n"
    assert get_less_vars_obj(content) == {
        "@primary-color": "#1890ff",
        "@quoted-name": "red",
        "@font-family": "-apple-system, 'Segoe UI'",
    }


def test_get_less_vars_reads_file(tmp_path):
    path = tmp_path / "vars.less"
    path.write_text("@primary-color: #00375b;\n@text-color: #ccc;\n")
    assert get_less_vars(path) == {"@primary-color": "#00375b", "@text-color": "#ccc"}


def test_filter_color_variables():
    content = "\n".join([
        "@primary-color: #1890ff;",
        "@link-color: @primary-color;",
        "@dangling: @nowhere;",
        "@font-size-base: 14px;",
        "@heading-color: inherit;",
        "@outline-fade: 20%;",
        "@preset-colors: pink, red;",
        ".rule { color: red; }",
    ])
    mappings = build_variable_map(content)
    assert filter_color_variables(content, mappings).split("\n") == [
        "@primary-color: #1890ff;",
        "@link-color: @primary-color;",
        "@heading-color: inherit;",
        "@outline-fade: 20%;",
        "@preset-colors: pink, red;",
    ]
