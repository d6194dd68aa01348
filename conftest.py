import re
from pathlib import Path

import pytest

from less_compiler import LessCompileError

_VAR_DECL = re.compile(r'^(@[\w-]+)\s*:\s*(.*?);\s*$')
_VAR_REF = re.compile(r'@[\w-]+')
_ESCAPED = re.compile(r"~'([^']*)'")
_FADE = re.compile(r'fade\((#[0-9a-fA-F]{6}),\s*(\d+)%\)')


class FakeLessCompiler:
    """
    Small in-process stand-in for lessc. Understands top-level variables
    (last declaration wins), ~'...' escapes with @{var} interpolation,
    fade(#hex, n%) and prints rules the way lessc does.
    """

    def __init__(self):
        self.calls = []

    def _resolve(self, name, variables):
        value = name
        for _ in range(20):
            if not value.startswith('@') or value not in variables:
                break
            value = variables[value]
        return value

    def _evaluate(self, value, variables):
        escaped = []

        def stash(m):
            text = re.sub(r'@\{([\w-]+)\}', lambda v: self._resolve('@' + v.group(1), variables), m.group(1))
            escaped.append(text)
            return f'\0{len(escaped) - 1}\0'

        value = _ESCAPED.sub(stash, value)
        value = _VAR_REF.sub(lambda m: self._resolve(m.group(0), variables), value)

        def fade(m):
            h = m.group(1)[1:]
            r, g, b = (int(h[i:i + 2], 16) for i in (0, 2, 4))
            return f'rgba({r}, {g}, {b}, {int(m.group(2)) / 100:g})'

        value = _FADE.sub(fade, value)
        return re.sub(r'\0(\d+)\0', lambda m: escaped[int(m.group(1))], value)

    async def render(self, text, paths=(), filename=None):
        self.calls.append(text)
        if 'SYNTAX ERROR' in text:
            raise LessCompileError('Unrecognised input', str(filename) if filename else None, 1, 1)

        variables = {}
        body = []
        for line in text.split('\n'):
            stripped = line.strip()
            m = _VAR_DECL.match(stripped)
            if m:
                variables[m.group(1)] = m.group(2)
            elif not stripped.startswith('@import'):
                body.append(line)

        rules = []
        for selector, block in re.findall(r'([^{}]+)\{([^{}]*)\}', '\n'.join(body)):
            decls = []
            for decl in block.split(';'):
                if ':' not in decl:
                    continue
                prop, value = decl.split(':', 1)
                decls.append(f'  {prop.strip()}: {self._evaluate(value.strip(), variables)};')
            if decls:
                rules.append(selector.strip() + ' {\n' + '\n'.join(decls) + '\n}')
        return '\n'.join(rules) + '\n'


@pytest.fixture
def fake_compiler():
    return FakeLessCompiler()


DEFAULT_THEME = """\
@primary-color: #1890ff;
@link-color: @primary-color;
@outline-fade: 20%;
@border-radius-base: 2px;
"""

BUTTON_STYLE = """\
.ant-btn-primary {
  color: #fff;
  background-color: @primary-color;
  border-color: @primary-color;
  padding: 4px 15px;
}
.ant-btn-primary:focus {
  box-shadow: 0 0 0 2px fade(@primary-color, 20%);
}
.ant-btn-link {
  color: @link-color;
}
.ant-layout {
  height: 100px;
}
"""


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return path


@pytest.fixture
def library(tmp_path):
    """A miniature component library laid out like node_modules/antd."""
    ant_dir = tmp_path / 'node_modules' / 'antd'
    write(ant_dir / 'dist' / 'antd.less',
          '@import "../lib/style/themes/index";\n@import "../lib/button/style/index";\n')
    write(ant_dir / 'lib' / 'style' / 'themes' / 'index.less', '@import "./@{root-entry-name}";\n')
    write(ant_dir / 'lib' / 'style' / 'themes' / 'default.less', DEFAULT_THEME)
    write(ant_dir / 'lib' / 'style' / 'color' / 'colors.less', '@blue-6: #1890ff;\n')
    write(ant_dir / 'lib' / 'style' / 'color' / 'colorPalette.less', '.colorPaletteMixin() {\n  @palette: 1;\n}\n')
    write(ant_dir / 'lib' / 'button' / 'style' / 'index.less', BUTTON_STYLE)
    return ant_dir


@pytest.fixture
def styles_dir(tmp_path):
    styles = tmp_path / 'styles'
    write(styles / 'header.less',
          '@import "~antd/lib/style/themes/default.less";\n'
          '.my-header {\n  background: @primary-color;\n  margin: 4px;\n}\n')
    return styles
