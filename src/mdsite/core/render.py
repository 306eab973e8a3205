"""Markdown body -> Content Node tree, built on the markdown-it token stream.

markdown-it is lenient where the site build must not be: it pads or truncates
table rows to the header width and lets an unclosed fence swallow the rest of
the document. The table and fence rules are wrapped so that, while parsing,
they record each row's text (container prefixes already stripped by the block
parser) and whether each fence found its closing marker. Both are checked
and raised as RenderError before any tree is built.
"""

import re
from typing import Iterator, Optional

from markdown_it import MarkdownIt
from markdown_it.rules_block import fence, table

from mdsite.core.models import Node, NodeKind
from mdsite.errors import RenderError


_ALIGN_RE = re.compile(r'text-align:\s*(left|center|right)')

BLOCK_OPEN_MAP: dict[str, NodeKind] = {
    'paragraph_open':    NodeKind.paragraph,
    'heading_open':      NodeKind.heading,
    'bullet_list_open':  NodeKind.list,
    'ordered_list_open': NodeKind.list,
    'list_item_open':    NodeKind.list_item,
    'blockquote_open':   NodeKind.blockquote,
    'table_open':        NodeKind.table,
    'tr_open':           NodeKind.table_row,
    'th_open':           NodeKind.table_cell,
    'td_open':           NodeKind.table_cell,
}

INLINE_OPEN_MAP: dict[str, NodeKind] = {
    'em_open':     NodeKind.emphasis,
    'strong_open': NodeKind.strong,
    's_open':      NodeKind.strikethrough,
    'link_open':   NodeKind.link,
}

_TRANSPARENT = {'thead_open', 'thead_close', 'tbody_open', 'tbody_close'}

TABLE_ROWS_KEY = "mdsite_table_rows"
FENCES_KEY = "mdsite_fences"


def _line_text(state, line: int) -> str:
    """A source line as the current block sees it, container prefix removed."""
    return state.src[state.bMarks[line] + state.tShift[line]:state.eMarks[line]]


def _recording_table(state, startLine: int, endLine: int, silent: bool) -> bool:
    matched = table(state, startLine, endLine, silent)
    if matched and not silent:
        rows = state.env.setdefault(TABLE_ROWS_KEY, {})
        for line in range(startLine, state.line):
            rows[line] = _line_text(state, line)
    return matched


def _fence_closed(state, start: int, markup: str) -> bool:
    last = state.line - 1
    if last <= start or state.sCount[last] - state.blkIndent >= 4:
        return False
    text = _line_text(state, last).rstrip()
    return len(text) >= len(markup) and text == markup[0] * len(text)


def _recording_fence(state, startLine: int, endLine: int, silent: bool) -> bool:
    matched = fence(state, startLine, endLine, silent)
    if matched and not silent:
        closed = _fence_closed(state, startLine, state.tokens[-1].markup)
        state.env.setdefault(FENCES_KEY, {})[startLine] = closed
    return matched


def _make_parser(preset: str) -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    md = MarkdownIt(preset, options_update={"linkify": False})
    md.block.ruler.at('table', _recording_table, {"alt": ["paragraph", "reference"]})
    md.block.ruler.at('fence', _recording_fence, {"alt": ["paragraph", "reference", "blockquote", "list"]})
    return md


def split_row(line: str) -> list[str]:
    """Split a pipe-table row into cells; `\\|` does not separate cells."""
    cells = re.split(r'(?<!\\)\|', line.strip())
    if cells and cells[0].strip() == "":
        cells.pop(0)
    if cells and cells[-1].strip() == "":
        cells.pop()
    return [c.strip() for c in cells]


def _check_fences(tokens: list, env: dict) -> None:
    closed = env.get(FENCES_KEY, {})
    for tok in tokens:
        if tok.type != 'fence' or not tok.map:
            continue
        start = tok.map[0]
        if not closed.get(start, True):
            label = f" '{tok.info.strip()}'" if tok.info.strip() else ""
            raise RenderError(f"line {start + 1}: fenced block{label} opened with {tok.markup} is never closed")


def _check_tables(tokens: list, env: dict) -> None:
    rows = env.get(TABLE_ROWS_KEY, {})
    width: Optional[int] = None
    for tok in tokens:
        if tok.type == 'table_open':
            width = None
        elif tok.type == 'tr_open' and tok.map and tok.map[0] in rows:
            row = tok.map[0]
            count = len(split_row(rows[row]))
            if width is None:
                width = count
            elif count != width:
                raise RenderError(
                    f"line {row + 1}: table row has {count} cells, header has {width}"
                )


class _Frame:
    """An open container collecting children until its close token arrives."""

    def __init__(self, kind: NodeKind, unwrap: bool = False, **fields):
        self.kind = kind
        self.unwrap = unwrap
        self.fields = fields
        self.children: list[Node] = []

    def close(self) -> Node:
        return Node(kind=self.kind, children=tuple(self.children), **self.fields)


def _open_block(tokens: list, i: int) -> _Frame:
    tok = tokens[i]
    kind = BLOCK_OPEN_MAP.get(tok.type)
    if kind is None:
        # unknown containers keep their content in the parent
        return _Frame(NodeKind.document, unwrap=True)
    if kind == NodeKind.paragraph:
        return _Frame(kind, unwrap=bool(tok.hidden))
    if kind == NodeKind.heading:
        return _Frame(kind, level=int(tok.tag[1:]))
    if tok.type == 'ordered_list_open':
        start = tok.attrGet('start')
        return _Frame(kind, ordered=True, start=int(start) if start is not None else 1)
    if kind == NodeKind.table_row:
        return _Frame(kind, header=i + 1 < len(tokens) and tokens[i + 1].type == 'th_open')
    if kind == NodeKind.table_cell:
        m = _ALIGN_RE.search(str(tok.attrGet('style') or ''))
        return _Frame(kind, header=tok.type == 'th_open', align=m.group(1) if m else None)
    return _Frame(kind)


def _fence_info(info: str) -> str:
    words = info.strip().split()
    return words[0] if words else ""


def _leaf_block(tok) -> Optional[Node]:
    if tok.type == 'fence':
        return Node(kind=NodeKind.fence, info=_fence_info(tok.info), text=tok.content)
    if tok.type == 'code_block':
        return Node(kind=NodeKind.code_block, text=tok.content)
    if tok.type == 'hr':
        return Node(kind=NodeKind.hr)
    if tok.type == 'html_block':
        return Node(kind=NodeKind.html, text=tok.content)
    return None


def _image(tok) -> Node:
    alt = tok.content or "".join(c.content for c in (tok.children or []))
    return Node(kind=NodeKind.image, href=tok.attrGet('src'), text=alt, title=tok.attrGet('title'))


def _build_inline(tokens: list) -> list[Node]:
    stack = [_Frame(NodeKind.document)]
    for tok in tokens:
        if tok.nesting == 1:
            kind = INLINE_OPEN_MAP.get(tok.type)
            if kind == NodeKind.link:
                stack.append(_Frame(kind, href=tok.attrGet('href'), title=tok.attrGet('title')))
            else:
                stack.append(_Frame(kind or NodeKind.document, unwrap=kind is None))
        elif tok.nesting == -1:
            frame = stack.pop()
            node = frame.close()
            stack[-1].children.extend(node.children if frame.unwrap else [node])
        elif tok.type in ('softbreak', 'hardbreak'):
            stack[-1].children.append(Node(kind=NodeKind.linebreak, hard=tok.type == 'hardbreak'))
        elif tok.type == 'code_inline':
            stack[-1].children.append(Node(kind=NodeKind.code_inline, text=tok.content))
        elif tok.type == 'image':
            stack[-1].children.append(_image(tok))
        elif tok.type == 'html_inline':
            stack[-1].children.append(Node(kind=NodeKind.html, text=tok.content))
        elif tok.content:
            stack[-1].children.append(Node(kind=NodeKind.text, text=tok.content))
    return stack[0].children


def tokens_to_tree(tokens: list) -> Node:
    """Fold a flat markdown-it block token stream into a rooted Node tree."""
    stack = [_Frame(NodeKind.document)]
    for i, tok in enumerate(tokens):
        if tok.type in _TRANSPARENT:
            continue
        if tok.nesting == 1:
            stack.append(_open_block(tokens, i))
        elif tok.nesting == -1:
            frame = stack.pop()
            node = frame.close()
            stack[-1].children.extend(node.children if frame.unwrap else [node])
        elif tok.type == 'inline':
            stack[-1].children.extend(_build_inline(tok.children or []))
        else:
            leaf = _leaf_block(tok)
            if leaf is not None:
                stack[-1].children.append(leaf)
    return stack[0].close()


def render_body(text: str, preset: str = 'gfm-like') -> Node:
    """Render markdown body text into a Content Node tree.

    Raises RenderError for an unterminated fenced block or a table body row
    whose cell count differs from its header.
    """
    env: dict = {}
    tokens = _make_parser(preset).parse(text, env)
    _check_fences(tokens, env)
    _check_tables(tokens, env)
    return tokens_to_tree(tokens)


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield node and all descendants in document order."""
    yield node
    for child in node.children:
        yield from iter_nodes(child)


def collect_images(tree: Node) -> list[str]:
    """Return image sources in document order, without duplicates."""
    return list(dict.fromkeys(n.href for n in iter_nodes(tree) if n.kind == NodeKind.image and n.href))
