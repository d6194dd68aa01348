"""
Sentinel colors for theme variables.

Every theme variable gets a unique throwaway color. Compiling the library
with those colors in place lets us find out which literal in the output came
from which variable, including the palette shades derived from it.
"""

import random
import re

from PIL import ImageColor

PRIMARY_COLOR = '@primary-color'
PRIMARY_SENTINEL = '#123456'
RESERVED_COLORS = {'#000000', '#ffffff'}

# 6 is the base color itself
SHADE_INDEXES = [1, 2, 3, 4, 5, 7, 8, 9, 10]

_SHADE = re.compile(r'^(.*)-(\d+)$')


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    r, g, b = ImageColor.getrgb(hex_color)[:3]
    return (r, g, b)


def rgb_to_hex(rgb: tuple[int, int, int]) -> str:
    return '#{:02x}{:02x}{:02x}'.format(*rgb)


def random_color(rng: random.Random | None = None) -> str:
    rng = rng or random
    return rgb_to_hex((rng.randrange(256), rng.randrange(256), rng.randrange(256)))


def is_shade_name(var_name: str) -> bool:
    return bool(_SHADE.match(var_name))


def get_shade(var_name: str) -> str:
    """
    Input:  @primary-1
    Output: color(~`colorPalette("@{primary-color}", 1)`)
    """
    match = _SHADE.match(var_name)
    if not match:
        raise ValueError(f"Not a shade name: {var_name}")
    base, number = match.group(1), match.group(2)
    if re.search(r'primary-\d', var_name):
        base = PRIMARY_COLOR
    return 'color(~`colorPalette("@{' + base.replace('@', '') + '}", ' + number + ')`)'


def shade_names(var_name: str) -> list[str]:
    if var_name == PRIMARY_COLOR:
        return [f'@primary-{key}' for key in SHADE_INDEXES]
    return [f'{var_name}-{key}' for key in SHADE_INDEXES]


def filter_theme_variables(theme_vars, variable_map) -> list[str]:
    """Drop palette shades (@primary-1) and variables we know nothing about."""
    return [name for name in theme_vars if name in variable_map and not is_shade_name(name)]


def _next_sentinel(used: set[str], rng) -> str:
    color = random_color(rng)
    while color in used or color == PRIMARY_SENTINEL or color in RESERVED_COLORS:
        color = random_color(rng)
    return color


def assign_sentinels(theme_vars, variable_map, rng: random.Random | None = None) -> tuple[dict[str, str], str]:
    """
    Pick a sentinel color per theme variable and build the probe rules:

        .primary-color { color: #123456; }
        .primary-1 { color: color(~`colorPalette("@{primary-color}", 1)`); }

    Returns (variable -> sentinel, probe css).
    """
    assignment = {}
    used = set()
    themed = filter_theme_variables(theme_vars, variable_map)
    for var_name in themed:
        if var_name == PRIMARY_COLOR:
            color = PRIMARY_SENTINEL
        else:
            color = _next_sentinel(used, rng)
        assignment[var_name] = color
        used.add(color)

    rules = [f".{name.replace('@', '')} {{ color: {color}; }}" for name, color in assignment.items()]
    for var_name in assignment:
        for shade in shade_names(var_name):
            rules.append(f".{shade.replace('@', '')} {{ color: {get_shade(shade)}; }}")
    return assignment, '\n'.join(rules) + '\n'


def sentinel_declarations(assignment: dict[str, str]) -> str:
    return ''.join(f'{name}: {color};\n' for name, color in assignment.items())
