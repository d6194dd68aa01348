#!/usr/bin/env python3
"""
Theme Generator for Less component libraries

Compiles the library with sentinel colors in place of the theme variables,
learns which compiled literals belong to which variable, then rewrites the
library's compiled color rules so they reference the variables again. The
result is a small Less file that can be re-evaluated with new variable
values at runtime.
"""

import argparse
import asyncio
import hashlib
import json
import logging
import random
import re
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from color_reducer import minify_css, reduce_css
from less_compiler import LessCompileError, LessCompiler, bundle_less, combine_less, find_node_modules
from less_rewrite import protect_color_functions, replace_variable_references
from less_vars import build_variable_map, filter_color_variables, get_less_vars
from sentinels import (
    PRIMARY_COLOR,
    assign_sentinels,
    filter_theme_variables,
    get_shade,
    hex_to_rgb,
    is_shade_name,
    sentinel_declarations,
)

logger = logging.getLogger(__name__)

PROBE_RULE = re.compile(r"\.([.a-zA-Z0-9'-]+) \{\n {2}color: (.*);")
DEFAULT_THEME_IMPORT = re.compile(r'default\.less')


@dataclass
class ReverseColorMap:
    """Compiled literal -> variable, learned from the sentinel compile."""

    compiled_vars: dict[str, str] = field(default_factory=dict)
    by_color: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_compiled_vars(cls, compiled_vars: dict[str, str]) -> "ReverseColorMap":
        by_color = {}
        for name, color in compiled_vars.items():
            # identical colors can't be told apart, the first variable keeps it
            by_color.setdefault(color, name)
        return cls(dict(compiled_vars), by_color)

    def expression_for(self, color: str) -> str:
        name = self.by_color[color]
        return get_shade(name) if is_shade_name(name) else name


@dataclass
class ThemeOptions:
    ant_dir: str | Path
    styles_dir: str | Path | list = field(default_factory=list)
    var_file: str | Path | None = None
    output_file_path: str | Path | None = None
    theme_variables: list[str] = field(default_factory=lambda: [PRIMARY_COLOR])
    custom_color_patterns: list = field(default_factory=list)
    root_entry_name: str = "default"
    prefix: str = "ant"
    debug_dir: str | Path | None = None
    seed: int | None = None

    _ALIASES = {
        "antDir": "ant_dir",
        "componentLibraryRoot": "ant_dir",
        "stylesDir": "styles_dir",
        "userStylesDir": "styles_dir",
        "varFile": "var_file",
        "variableFile": "var_file",
        "outputFilePath": "output_file_path",
        "themeVariables": "theme_variables",
        "customColorRegexArray": "custom_color_patterns",
        "customColorPatterns": "custom_color_patterns",
        "rootEntryName": "root_entry_name",
        "debugDir": "debug_dir",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThemeOptions":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown theme option: {key}")
            if value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    @property
    def styles_dirs(self) -> list[Path]:
        dirs = self.styles_dir if isinstance(self.styles_dir, (list, tuple)) else [self.styles_dir]
        return [Path(d) for d in dirs if d]

    @property
    def library_dir(self) -> Path:
        return Path(self.ant_dir) / "lib"

    @property
    def entry_file(self) -> Path:
        if self.root_entry_name == "default":
            return Path(self.ant_dir) / "dist" / "antd.less"
        return Path(self.ant_dir) / "dist" / f"antd.{self.root_entry_name}.less"

    @property
    def variables_file(self) -> Path:
        if self.var_file:
            return Path(self.var_file)
        return self.library_dir / "style" / "themes" / f"{self.root_entry_name}.less"


class ThemeCache:
    """Generated themes keyed by a sha256 digest of everything that shaped them."""

    def __init__(self):
        self._entries: dict[str, str] = {}

    @staticmethod
    def key(*parts: str) -> str:
        digest = hashlib.sha256()
        for part in parts:
            digest.update(part.encode("utf-8"))
            digest.update(b"\0")
        return digest.hexdigest()

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def put(self, key: str, css: str) -> None:
        self._entries[key] = css

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def get_matches(css: str, regex: re.Pattern = PROBE_RULE) -> dict[str, str]:
    """Probe selector -> compiled color, keyword colors are skipped."""
    matches = {}
    for m in regex.finditer(css):
        if m.group(2).startswith("rgba") or m.group(2).startswith("#"):
            matches[f"@{m.group(1)}"] = m.group(2)
    return matches


async def compile_and_reverse_map(compiler, probe_css: str, sentinel_vars: str,
                                  color_source: str, search_paths) -> ReverseColorMap:
    """
    Compile the library's color definitions with the sentinel overrides and
    the probe rules, then read back what every probe compiled to.
    """
    css = await compiler.render(f"{color_source}\n{sentinel_vars}\n{probe_css}", search_paths)
    css = re.sub(r"(/.*/)", "", css)
    compiled_vars = get_matches(css)
    logger.info("Captured %d theme colors from the probe compile", len(compiled_vars))
    return ReverseColorMap.from_compiled_vars(compiled_vars)


def strip_css_comments(css: str) -> str:
    return re.sub(r"/\*[\s\S]*?\*/", "", css)


async def compile_user_styles(compiler, style_files, compiled_vars: dict[str, str],
                              import_files, search_paths, node_modules,
                              variables: dict[str, str] | None = None) -> str:
    """
    Compile every user stylesheet on its own, all at once. A file that fails
    to read or compile is logged and left out. Identical outputs are kept once.
    `@{name}` in import paths is filled from `variables`.
    """
    header = "".join(f'@import "{Path(p).as_posix()}";\n' for p in import_files)

    async def compile_one(path: Path) -> str:
        try:
            content = await asyncio.to_thread(combine_less, path, node_modules, DEFAULT_THEME_IMPORT, variables)
            content = replace_variable_references(content, compiled_vars)
            return await compiler.render(header + content, [path.parent, *search_paths], filename=path)
        except (LessCompileError, OSError, UnicodeDecodeError) as e:
            logger.error("Error occurred compiling file %s: %s", path, e)
            return ""

    results = await asyncio.gather(*(compile_one(Path(p)) for p in style_files))

    seen = set()
    outputs = []
    for css in results:
        css = strip_css_comments(css)
        digest = hashlib.sha256(css.encode("utf-8")).hexdigest()
        if digest in seen:
            continue
        seen.add(digest)
        outputs.append(css)
    return "\n".join(outputs)


def theme_trailer(theme_vars, compiled_vars: dict[str, str], prefix: str) -> str:
    lines = []
    for var_name in theme_vars:
        if is_shade_name(var_name):
            continue
        color = compiled_vars.get(var_name)
        if color is None:
            logger.debug("No compiled color for %s, leaving it out", var_name)
            continue
        lines.append(f"{var_name}: {color};")
    lines.append(f"@ant-prefix: {prefix};")
    return "\n" + "\n".join(lines)


def substitute_colors(css: str, reverse_map: ReverseColorMap) -> str:
    for color in reverse_map.by_color:
        expression = reverse_map.expression_for(color)
        css = re.sub(re.escape(color), lambda _: expression, css)
    return css


def restore_fades(css: str, sentinels: dict[str, str]) -> str:
    """rgba(18, 52, 86, 0.2) -> fade(@primary-color, 20%)"""
    for var_name, color in sentinels.items():
        r, g, b = hex_to_rgb(color)

        def to_fade(m, var_name=var_name):
            amount = round(float(m.group(1)) * 100, 4)
            return f"fade({var_name}, {amount:g}%)"

        css = re.sub(rf"rgba\({r}, {g}, {b}, ([\d.]+)\)", to_fade, css)
    return css


def strip_variable_lines(css: str) -> str:
    css = re.sub(r"@[\w-]+:\s*.*;[/.]*", "", css, flags=re.MULTILINE)
    return css.replace("\\9", "")


async def assemble(compiler, library_less: str, user_css: str, reverse_map: ReverseColorMap,
                   theme_vars, *, search_paths=(), prefix: str = "ant", palette_less: str = "",
                   variables_less: str = "", sentinels: dict[str, str] | None = None,
                   debug_dir: Path | None = None) -> str:
    library = library_less + theme_trailer(theme_vars, reverse_map.compiled_vars, prefix)
    _dump(debug_dir, "library.less", library)
    library_css = await compiler.render(library, search_paths)

    css = reduce_css(f"{library_css}\n{user_css}")
    _dump(debug_dir, "reduced.css", css)

    css = substitute_colors(css, reverse_map)
    css = restore_fades(css, sentinels or {})
    css = strip_variable_lines(css).strip()
    css = f"{css}\n{palette_less}\n{variables_less}"
    return minify_css(css)


def _dump(debug_dir: Path | None, name: str, data) -> None:
    if debug_dir is None:
        return
    debug_dir.mkdir(parents=True, exist_ok=True)
    if not isinstance(data, str):
        data = json.dumps(data, indent=2)
    (debug_dir / name).write_text(data, encoding="utf-8")


def _read_style(path: Path) -> str:
    # only hashed into the cache key
    return path.read_text(encoding="utf-8", errors="replace")


async def _generate(options: ThemeOptions, compiler, cache: ThemeCache | None) -> str:
    library_dir = options.library_dir
    node_modules = find_node_modules(options.ant_dir)
    styles_dirs = options.styles_dirs
    style_files = sorted(f for d in styles_dirs for f in d.glob("**/*.less"))
    var_file = options.variables_file
    search_paths = [library_dir / "style", *styles_dirs]
    debug_dir = Path(options.debug_dir) if options.debug_dir else None
    root = options.root_entry_name

    var_file_content, var_file_vars, library_less = await asyncio.gather(
        asyncio.to_thread(combine_less, var_file, node_modules),
        asyncio.to_thread(get_less_vars, var_file),
        asyncio.to_thread(bundle_less, options.entry_file, {"root-entry-name": root}, node_modules),
    )

    cache_key = None
    if cache is not None:
        sources = await asyncio.gather(*(asyncio.to_thread(_read_style, f) for f in style_files))
        cache_key = ThemeCache.key(
            var_file_content, *sources,
            json.dumps([options.theme_variables, [str(p) for p in options.custom_color_patterns],
                        root, options.prefix, options.seed]),
        )
        cached = cache.get(cache_key)
        if cached is not None:
            logger.info("Theme inputs unchanged, using cached theme")
            await _write_output(options, cached)
            return cached

    patterns = options.custom_color_patterns
    mappings = {**build_variable_map(var_file_content, patterns), **var_file_vars}
    _dump(debug_dir, "mappings.json", mappings)

    theme_vars = filter_theme_variables(options.theme_variables or [PRIMARY_COLOR], mappings)
    _dump(debug_dir, "theme.json", theme_vars)

    rng = random.Random(options.seed) if options.seed is not None else None
    sentinels, probe_css = assign_sentinels(theme_vars, mappings, rng)
    sentinel_vars = sentinel_declarations(sentinels)
    _dump(debug_dir, "vars_content.less", sentinel_vars)
    _dump(debug_dir, "probe.less", probe_css)

    color_source, palette_less = await asyncio.gather(
        asyncio.to_thread(combine_less, library_dir / "style" / "color" / "colors.less", node_modules),
        asyncio.to_thread(combine_less, library_dir / "style" / "color" / "colorPalette.less", node_modules),
    )

    # phase one: sentinel compile -> reverse map
    reverse_map = await compile_and_reverse_map(compiler, probe_css, sentinel_vars, color_source, search_paths)
    _dump(debug_dir, "compiled_vars.json", reverse_map.compiled_vars)

    user_css = await compile_user_styles(
        compiler, style_files, reverse_map.compiled_vars,
        [library_dir / "style" / "themes" / "default.less", var_file],
        search_paths, node_modules, {"root-entry-name": root},
    )
    _dump(debug_dir, "user_custom.css", user_css)

    # phase two: real compile, then map literals back to variables
    css = await assemble(
        compiler,
        protect_color_functions(library_less, mappings),
        user_css,
        reverse_map,
        theme_vars,
        search_paths=[library_dir, *search_paths],
        prefix=options.prefix,
        palette_less=palette_less,
        variables_less=filter_color_variables(var_file_content, mappings, patterns),
        sentinels=sentinels,
        debug_dir=debug_dir,
    )

    await _write_output(options, css)
    if cache is not None:
        cache.put(cache_key, css)
    return css


async def _write_output(options: ThemeOptions, css: str) -> None:
    if options.output_file_path and css:
        await asyncio.to_thread(Path(options.output_file_path).write_text, css, "utf-8")
        logger.info("Theme written to %s", options.output_file_path)


async def generate_theme(options: ThemeOptions | dict[str, Any], compiler=None,
                         cache: ThemeCache | None = None) -> str:
    """
    Generate the theme Less file. Returns "" when anything along the way
    fails; nothing is written in that case.
    """
    try:
        if isinstance(options, dict):
            options = ThemeOptions.from_dict(options)
        compiler = compiler or LessCompiler()
        return await _generate(options, compiler, cache)
    except Exception:
        logger.exception("Theme generation failed")
        return ""


def generate_theme_sync(options, compiler=None, cache: ThemeCache | None = None) -> str:
    return asyncio.run(generate_theme(options, compiler, cache))


def _options_from_args(args) -> ThemeOptions:
    data = {}
    if args.config:
        data.update(json.loads(Path(args.config).read_text(encoding="utf-8")))
    overrides = {
        "ant_dir": args.ant_dir,
        "styles_dir": args.styles_dir,
        "var_file": args.var_file,
        "output_file_path": args.output,
        "custom_color_patterns": args.color_pattern,
        "root_entry_name": args.root_entry_name,
        "prefix": args.prefix,
        "debug_dir": args.debug_dir,
        "seed": args.seed,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})

    theme_vars = list(args.theme_var or data.pop("theme_variables", None) or data.pop("themeVariables", None) or [])
    for vars_file in args.vars_from or []:
        theme_vars.extend(get_less_vars(vars_file))
    if theme_vars:
        data["theme_variables"] = list(dict.fromkeys(theme_vars))
    if not (data.get("ant_dir") or data.get("antDir")):
        raise ValueError("--ant-dir is required (or antDir in --config)")
    return ThemeOptions.from_dict(data)


def main():
    parser = argparse.ArgumentParser(description="Generate a runtime-themeable color.less from a Less component library")
    parser.add_argument("--ant-dir", help="Component library install directory (e.g. node_modules/antd)")
    parser.add_argument("--styles-dir", action="append", help="Directory with your own .less files (repeatable)")
    parser.add_argument("--var-file", help="Less file with the theme variables")
    parser.add_argument("--output", "-o", help="Output file")
    parser.add_argument("--theme-var", action="append", help="Variable to theme, e.g. @primary-color (repeatable)")
    parser.add_argument("--vars-from", action="append", help="Less file whose declared variables are all themed (repeatable)")
    parser.add_argument("--color-pattern", action="append", help="Extra regex accepted as a color value (repeatable)")
    parser.add_argument("--root-entry-name", help="Library theme variant (default: default)")
    parser.add_argument("--prefix", help="Class name prefix (default: ant)")
    parser.add_argument("--debug-dir", help="Write intermediate files here")
    parser.add_argument("--seed", type=int, help="Seed for sentinel colors")
    parser.add_argument("--lessc", default="lessc", help="lessc executable")
    parser.add_argument("--config", help="JSON file with theme options")
    parser.add_argument("--dump-vars", help="Write the variables of the variables file as JSON and continue")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    try:
        options = _options_from_args(args)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.dump_vars:
        Path(args.dump_vars).write_text(json.dumps(get_less_vars(options.variables_file)), encoding="utf-8")

    css = generate_theme_sync(options, LessCompiler(lessc=args.lessc))
    if not css:
        print("Error: theme generation failed, see log above", file=sys.stderr)
        sys.exit(1)

    if options.output_file_path:
        print(f"Written to: {options.output_file_path}", file=sys.stderr)
    else:
        print(css)


if __name__ == "__main__":
    main()
