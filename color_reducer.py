import logging
import re

import tinycss2

logger = logging.getLogger(__name__)

COLOR_PROPERTIES = ['color', 'background', 'border', 'box-shadow', 'stroke', 'fill']
PALETTE_DEBUG_SELECTOR = '.main-color .palatte-'

_NUMBER = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)$')
_URL = re.compile(r'url\(.*\)')


def _is_color_property(prop: str) -> bool:
    return any(name in prop for name in COLOR_PROPERTIES)


def _clean_rule(rule) -> str | None:
    """Serialized rule with only its color declarations, None when nothing is left."""
    selector = tinycss2.serialize(rule.prelude).strip()
    if selector.startswith(PALETTE_DEBUG_SELECTOR):
        return None

    kept = []
    for decl in tinycss2.parse_declaration_list(rule.content, skip_comments=True, skip_whitespace=True):
        if decl.type != 'declaration':
            continue
        value = tinycss2.serialize(decl.value).strip()
        # url() values are never themeable
        if _URL.search(value):
            continue
        if not _is_color_property(decl.lower_name) and not _NUMBER.match(value):
            continue
        if decl.important:
            value += ' !important'
        kept.append(f'  {decl.name}: {value};')

    if not kept:
        return None
    return selector + ' {\n' + '\n'.join(kept) + '\n}'


def reduce_css(css: str) -> str:
    """
    Strip compiled CSS down to the declarations that can carry a color.
    At-rules and comments are dropped, so are rules left empty.
    """
    rules = []
    dropped = 0
    for node in tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True):
        if node.type != 'qualified-rule':
            continue
        cleaned = _clean_rule(node)
        if cleaned is None:
            dropped += 1
            continue
        rules.append(cleaned)
    logger.debug("Reduced stylesheet to %d rules (%d dropped)", len(rules), dropped)
    return '\n'.join(rules) + '\n'


def minify_css(css: str) -> str:
    # Comments and empty lines
    css = re.sub(r'/\*[\s\S]*?\*/|//.*', '', css)
    css = re.sub(r'^\s*$(?:\r\n?|\n)', '', css, flags=re.MULTILINE)

    # .abc {\n  color: red;  ->  .abc {color: red;
    css = re.sub(r'\{(\r\n?|\n)\s+', '{', css)
    # color: red;\n}  ->  color: red;}
    css = re.sub(r';(\r\n?|\n)\}', ';}', css)
    # color: red;\n  border: grey;  ->  color: red;border: grey;
    css = re.sub(r';(\r\n?|\n)\s+', ';', css)
    # .abc,\n.def  ->  .abc, .def
    css = re.sub(r',(\r\n?|\n)[.]', ', .', css)
    return css
