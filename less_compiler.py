"""
Thin adapters around the Less toolchain: the `lessc` compiler and an
`@import` inliner used to bundle the library sources into one file.
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_IMPORT_PATH = re.compile(r'@import[^\'"]*[\'"](.*)[\'"]')
_ERROR_LOCATION = re.compile(r'in (?P<file>\S+) on line (?P<line>\d+), column (?P<column>\d+)')
_INTERPOLATION = re.compile(r'@\{([\w-]+)\}')


class LessCompileError(Exception):
    def __init__(self, message: str, filename: str | None = None,
                 line: int | None = None, column: int | None = None):
        super().__init__(message)
        self.filename = filename
        self.line = line
        self.column = column

    @classmethod
    def from_output(cls, output: str, filename: str | None = None) -> "LessCompileError":
        m = _ERROR_LOCATION.search(output)
        if m:
            return cls(output.strip(), m.group('file'), int(m.group('line')), int(m.group('column')))
        return cls(output.strip(), filename)


class LessCompiler:
    """Runs `lessc` on a source string, reading it from stdin."""

    def __init__(self, lessc: str = "lessc", javascript_enabled: bool = True,
                 npm_import_prefix: str | None = "~"):
        self.lessc = lessc
        self.javascript_enabled = javascript_enabled
        self.npm_import_prefix = npm_import_prefix

    def command(self, paths: Iterable[str | Path]) -> list[str]:
        cmd = [self.lessc]
        if self.javascript_enabled:
            cmd.append("--js")
        include = os.pathsep.join(str(p) for p in paths)
        if include:
            cmd.append(f"--include-path={include}")
        if self.npm_import_prefix:
            cmd.append(f"--npm-import=prefix={self.npm_import_prefix}")
        cmd.append("-")
        return cmd

    async def render(self, text: str, paths: Iterable[str | Path] = (),
                     filename: str | Path | None = None) -> str:
        cwd = Path(filename).parent if filename else None
        cmd = self.command(paths)
        logger.debug("Running %s", " ".join(cmd))
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        stdout, stderr = await process.communicate(text.encode("utf-8"))
        if process.returncode != 0:
            raise LessCompileError.from_output(
                stderr.decode("utf-8", errors="replace"),
                str(filename) if filename else None,
            )
        return stdout.decode("utf-8")


def find_node_modules(library_dir: str | Path) -> Path:
    """node_modules directory that holds the component library."""
    path = Path(library_dir).resolve()
    for parent in [path, *path.parents]:
        if parent.name == "node_modules":
            return parent
    return path.parent / "node_modules"


def _resolve_import(import_path: str, directory: Path, node_modules: Path) -> Path:
    if not import_path.endswith(".less"):
        import_path += ".less"
    if import_path.startswith("~"):
        return node_modules / import_path[1:]
    return directory / import_path


def combine_less(file_path: str | Path, node_modules: str | Path,
                 keep_imports: re.Pattern | None = None,
                 variables: dict[str, str] | None = None,
                 _seen: set[Path] | None = None) -> str:
    """
    Inline every `@import` of `file_path` recursively. Import lines matching
    `keep_imports` are left as they are, `@{name}` in import paths is filled
    from `variables`. A file is inlined once per bundle, like Less does.
    """
    file_path = Path(file_path)
    node_modules = Path(node_modules)
    seen = set() if _seen is None else _seen
    seen.add(file_path.resolve())
    directory = file_path.parent
    lines = []
    for line in file_path.read_text(encoding="utf-8").split("\n"):
        if not line.startswith("@import"):
            lines.append(line)
            continue
        if keep_imports is not None and keep_imports.search(line):
            lines.append(line)
            continue
        m = _IMPORT_PATH.search(line)
        if not m or m.group(1).endswith(".css"):
            lines.append(line)
            continue
        import_path = m.group(1)
        if variables:
            import_path = _INTERPOLATION.sub(lambda v: variables.get(v.group(1), v.group(0)), import_path)
        target = _resolve_import(import_path, directory, node_modules)
        if target.resolve() in seen:
            lines.append("")
            continue
        lines.append(combine_less(target, node_modules, keep_imports, variables, seen))
    return "\n".join(lines)


def bundle_less(src: str | Path, root_vars: dict[str, str] | None = None,
                node_modules: str | Path | None = None) -> str:
    """Single-file bundle of `src` with `root_vars` declared up front."""
    root_vars = root_vars or {}
    if node_modules is None:
        node_modules = find_node_modules(src)
    header = "".join(f"@{name}: {value};\n" for name, value in root_vars.items())
    return header + combine_less(src, node_modules, variables=root_vars)
