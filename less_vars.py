"""
Less variable parsing and color validation.

Builds the name -> color map of a Less variables file, resolving
`@a: @b;` alias chains, and decides which raw values count as colors.
"""

import logging
import re
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

# Color functions used across the component library's Less sources
COLOR_FUNCTIONS = [
    'color',
    'lighten',
    'darken',
    'saturate',
    'desaturate',
    'fadein',
    'fadeout',
    'fade',
    'spin',
    'mix',
    'hsv',
    'tint',
    'shade',
    'greyscale',
    'multiply',
    'contrast',
    'screen',
    'overlay',
]

DEFAULT_COLOR_PATTERNS = [re.compile(rf'{name}\(.*\)') for name in COLOR_FUNCTIONS]

_FUNCTIONAL_COLOR = re.compile(
    r'^(rgb|hsl|hsv)a?\((\d+%?(deg|rad|grad|turn)?[,\s]+){2,3}[\s/]*[\d.]+%?\)$',
    re.IGNORECASE,
)
_HEX_DIGITS = re.compile(r'[0-9a-fA-F]+')
_DECLARATION = re.compile(r"([@a-zA-Z0-9'-]+).*:[ ]+(.*);")
_LESS_VAR = re.compile(r'@(.*:[^;]*)')


def _compile_patterns(patterns: Iterable[str | re.Pattern]) -> list[re.Pattern]:
    return [p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns]


def is_valid_color(color: str | None, extra_patterns: Iterable[str | re.Pattern] = ()) -> bool:
    """
    is_valid_color('#ffffff')            -> True
    is_valid_color('#fff')               -> True
    is_valid_color('rgba(0, 0, 0, 0.5)') -> True
    is_valid_color('20px')               -> False
    """
    if color and 'rgb' in color:
        return True
    if not color or 'px' in color:
        return False
    if 'colorPalette' in color or 'fade' in color:
        return True
    if color.startswith('#'):
        digits = color[1:]
        if len(digits) not in (3, 4, 6, 8):
            return False
        return _HEX_DIGITS.fullmatch(digits) is not None
    if _FUNCTIONAL_COLOR.match(color):
        return True
    patterns = _compile_patterns(extra_patterns) + DEFAULT_COLOR_PATTERNS
    return any(p.search(color) for p in patterns)


def get_color(var_name: str, mappings: dict[str, str]) -> str | None:
    """Follow an alias chain: @link-color -> @primary-color -> #1890ff."""
    seen = set()
    color = mappings.get(var_name)
    while color in mappings and color not in seen:
        seen.add(color)
        color = mappings[color]
    return color


def normalize_declarations(content: str) -> str:
    # Join declarations the library splits over several lines
    content = re.sub(r'\((\s*\r\n?|\s*\n)\s*~', '(~', content)
    content = re.sub(r'`(\s*\r\n?|\s*\n)\s*\);', '`);', content)
    content = re.sub(r',(\s*\r\n?|\s*\n)\s*(purple;)', ', purple;', content)
    return content


def _declaration_lines(content: str) -> list[str]:
    return [
        line for line in normalize_declarations(content).split('\n')
        if line.startswith('@') and ':' in line
    ]


def build_variable_map(
    content: str,
    custom_patterns: Iterable[str | re.Pattern] = (),
    two_pass: bool = False,
) -> dict[str, str]:
    """
    Map every color variable declared in `content` to its resolved value:

        {'@primary-color': '#1890ff', '@link-color': '#1890ff', ...}

    Aliases are resolved against the declarations seen so far, so an alias to
    a variable declared further down the file is dropped. With `two_pass`
    every raw declaration is collected first and aliases may point forward.
    """
    patterns = _compile_patterns(custom_patterns)
    lines = _declaration_lines(content)

    raw = {}
    if two_pass:
        for line in lines:
            matches = _DECLARATION.search(line)
            if matches:
                raw[matches.group(1)] = matches.group(2)

    mappings: dict[str, str] = {}
    for line in lines:
        matches = _DECLARATION.search(line)
        if not matches:
            continue
        var_name, color = matches.group(1), matches.group(2)
        if color and color.startswith('@'):
            color = get_color(color, raw if two_pass else mappings)
            if not is_valid_color(color, patterns):
                continue
            mappings[var_name] = color
        elif is_valid_color(color, patterns):
            mappings[var_name] = color
    return mappings


def get_less_vars_obj(content: str) -> dict[str, str]:
    """Raw `@name: value` pairs, values kept verbatim (no validation)."""
    less_vars = {}
    for variable in _LESS_VAR.findall(content):
        definition = re.split(r':\s*', '@' + variable)
        var_name = re.sub(r'[\'"]+', '', definition[0]).strip()
        less_vars[var_name] = ':'.join(definition[1:])
    return less_vars


def get_less_vars(file_path: str | Path) -> dict[str, str]:
    sheet = Path(file_path).read_text(encoding='utf-8')
    return get_less_vars_obj(sheet)


def filter_color_variables(
    content: str,
    mappings: dict[str, str],
    custom_patterns: Iterable[str | re.Pattern] = (),
) -> str:
    """Keep only the declaration lines of `content` that define colors."""
    patterns = _compile_patterns(custom_patterns)
    kept = []
    for line in normalize_declarations(content).split('\n'):
        if not (line.startswith('@') and ':' in line):
            continue
        if line.startswith('@preset-colors') or line.startswith('@outline-fade'):
            kept.append(line)
            continue
        matches = _DECLARATION.search(line)
        if not matches:
            continue
        color = matches.group(2)
        if color.startswith('@'):
            if is_valid_color(get_color(color, mappings), patterns):
                kept.append(line)
        elif color == 'inherit' or is_valid_color(color, patterns):
            kept.append(line)
    logger.debug("Kept %d color declarations", len(kept))
    return '\n'.join(kept)
