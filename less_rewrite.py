"""
Text rewrites applied to Less sources before compiling them.

Less evaluates darken(@x, 10%) and friends to a plain color, which loses the
link to the theme variable. Wrapping such calls in ~'...' makes the compiler
emit them verbatim, so the generated theme keeps computing them at runtime.
"""

import re

from less_vars import COLOR_FUNCTIONS

OUTLINE_FADE = '@outline-fade'

_UNESCAPED_FADE = re.compile(r"(?<!~')fade\(.*\)(?!')")


def escape_percentage_calls(content: str, mappings: dict[str, str]) -> str:
    """darken(@link-color, 10%) -> ~'darken(@link-color, 10%)' when @link-color is known."""
    def escape(match):
        if mappings.get(match.group(1)):
            return f"~'{match.group(0)}'"
        return match.group(0)

    for name in COLOR_FUNCTIONS[1:]:
        content = re.sub(rf'{name}\((.*), \d+%\)', escape, content)
    return content


def escape_fade_calls(content: str) -> str:
    """
    Escape every fade() not escaped yet. A fade of a plain parameter such as
    fade(@color, 20%) becomes ~'fade(@{color}, @outline-fade)' so the
    parameter is interpolated and the amount stays themeable.
    """
    fades = list(dict.fromkeys(_UNESCAPED_FADE.findall(content)))
    for fade in fades:
        value = fade[5:-1]
        first_value = value.split(',')[0]
        if (first_value.startswith('@')
                and '-' not in first_value
                and 'black' not in first_value
                and 'white' not in first_value):
            replacement = f"~'fade(@{{{first_value[1:]}}}, {OUTLINE_FADE})'"
        else:
            replacement = f"~'{fade}'"
        content = re.sub(
            rf"(?<!~')fade\({re.escape(value)}\)(?!')",
            lambda _: replacement,
            content,
        )
    return content


def protect_color_functions(content: str, mappings: dict[str, str]) -> str:
    return escape_fade_calls(escape_percentage_calls(content, mappings))


def replace_variable_references(content: str, compiled_vars: dict[str, str]) -> str:
    """
    Swap theme variable references in declaration values for the colors the
    probe compile produced for them:

        color: @primary-color;  ->  color: #123456;
    """
    names = sorted(compiled_vars, key=len, reverse=True)
    lines = []
    for line in content.split('\n'):
        head, sep, tail = line.partition(':')
        if sep:
            for name in names:
                literal = compiled_vars[name]
                tail = re.sub(rf'{re.escape(name)}(?![\w-])', lambda _: literal, tail)
        lines.append(head + sep + tail)
    return '\n'.join(lines)
