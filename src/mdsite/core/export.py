"""Export: structural HTML for node trees, pages, and listing pages"""

from html import escape
from typing import Optional

from mdsite.core.models import FenceKind, Link, ListingPage, Node, NodeKind, Page


def _attr(value: str) -> str:
    return escape(value, quote=True)


def _children(node: Node) -> str:
    return "".join(render_node(c) for c in node.children)


def render_fence(node: Node) -> str:
    """Fenced block markup: external markup when present, else preformatted text."""
    token = node.info or ""
    if node.markup is not None:
        if node.fence_kind == FenceKind.diagram:
            return f'<figure class="diagram diagram-{_attr(token)}">{node.markup}</figure>\n'
        return f'<div class="code-block" data-lang="{_attr(token)}">{node.markup}</div>\n'

    payload = escape(node.text or "")
    if node.fence_kind == FenceKind.diagram:
        return f'<pre class="{_attr(token)}">{payload}</pre>\n'
    if node.fence_kind == FenceKind.code:
        return f'<pre><code class="language-{_attr(token)}">{payload}</code></pre>\n'
    return f'<pre><code>{payload}</code></pre>\n'


def _cell(node: Node) -> str:
    tag = "th" if node.header else "td"
    style = f' style="text-align:{node.align}"' if node.align else ""
    return f"<{tag}{style}>{_children(node)}</{tag}>"


def _table(node: Node) -> str:
    head = [r for r in node.children if r.header]
    body = [r for r in node.children if not r.header]

    def rows(rs: list[Node]) -> str:
        return "".join(f"<tr>{''.join(_cell(c) for c in r.children)}</tr>\n" for r in rs)

    parts = ["<table>\n"]
    if head:
        parts.append(f"<thead>\n{rows(head)}</thead>\n")
    if body:
        parts.append(f"<tbody>\n{rows(body)}</tbody>\n")
    parts.append("</table>\n")
    return "".join(parts)


def render_node(node: Node) -> str:
    """Render one node (and its subtree) to HTML."""
    k = node.kind
    if k == NodeKind.document:
        return _children(node)
    if k == NodeKind.paragraph:
        return f"<p>{_children(node)}</p>\n"
    if k == NodeKind.heading:
        return f"<h{node.level}>{_children(node)}</h{node.level}>\n"
    if k == NodeKind.list:
        if node.ordered:
            start = f' start="{node.start}"' if node.start not in (None, 1) else ""
            return f"<ol{start}>\n{_children(node)}</ol>\n"
        return f"<ul>\n{_children(node)}</ul>\n"
    if k == NodeKind.list_item:
        return f"<li>{_children(node)}</li>\n"
    if k == NodeKind.blockquote:
        return f"<blockquote>\n{_children(node)}</blockquote>\n"
    if k == NodeKind.table:
        return _table(node)
    if k == NodeKind.fence:
        return render_fence(node)
    if k == NodeKind.code_block:
        return f"<pre><code>{escape(node.text or '')}</code></pre>\n"
    if k == NodeKind.hr:
        return "<hr>\n"
    if k == NodeKind.html:
        return node.text or ""
    if k == NodeKind.text:
        return escape(node.text or "", quote=False)
    if k == NodeKind.emphasis:
        return f"<em>{_children(node)}</em>"
    if k == NodeKind.strong:
        return f"<strong>{_children(node)}</strong>"
    if k == NodeKind.strikethrough:
        return f"<s>{_children(node)}</s>"
    if k == NodeKind.code_inline:
        return f"<code>{escape(node.text or '', quote=False)}</code>"
    if k == NodeKind.link:
        title = f' title="{_attr(node.title)}"' if node.title else ""
        return f'<a href="{_attr(node.href or "")}"{title}>{_children(node)}</a>'
    if k == NodeKind.image:
        title = f' title="{_attr(node.title)}"' if node.title else ""
        return f'<img src="{_attr(node.href or "")}" alt="{_attr(node.text or "")}"{title}>'
    if k == NodeKind.linebreak:
        return "<br>\n" if node.hard else "\n"
    # table rows and cells only render through _table
    return _children(node)


def _nav(prev: Optional[Link], nxt: Optional[Link], rel_prev: str, rel_next: str) -> str:
    if not prev and not nxt:
        return ""
    parts = ['<nav class="pagination">']
    if prev:
        parts.append(f'<a rel="{rel_prev}" href="{_attr(prev.url)}">{escape(prev.title)}</a>')
    if nxt:
        parts.append(f'<a rel="{rel_next}" href="{_attr(nxt.url)}">{escape(nxt.title)}</a>')
    parts.append("</nav>\n")
    return "".join(parts)


def _document(title: str, site_title: str, body: str, description: Optional[str] = None) -> str:
    meta = f'<meta name="description" content="{_attr(description)}">\n' if description else ""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{escape(title)} | {escape(site_title)}</title>\n"
        f"{meta}"
        "</head>\n"
        "<body>\n"
        f'<header><a href="/">{escape(site_title)}</a></header>\n'
        f"<main>\n{body}</main>\n"
        "</body>\n"
        "</html>\n"
    )


def build_page_html(page: Page, site_title: str) -> str:
    """Return a complete HTML document for one content page."""
    doc = page.document
    header = [f"<h1>{escape(doc.title)}</h1>\n"]
    if doc.date:
        header.append(f'<time datetime="{doc.date.isoformat()}">{doc.date.date().isoformat()}</time>\n')
    if doc.draft:
        header.append('<p class="draft">Draft</p>\n')
    tags = ""
    if page.tags:
        links = "".join(f'<li><a href="{_attr(t.url)}">{escape(t.title)}</a></li>' for t in page.tags)
        tags = f'<ul class="tags">{links}</ul>\n'
    body = (
        "<article>\n"
        f"<header>\n{''.join(header)}</header>\n"
        f"{render_node(page.tree)}"
        f"{tags}"
        "</article>\n"
        f"{_nav(page.prev, page.next, 'prev', 'next')}"
    )
    return _document(doc.title, site_title, body, doc.description)


def build_listing_html(listing: ListingPage, site_title: str) -> str:
    """Return a complete HTML document for a listing page."""
    items = "".join(f'<li><a href="{_attr(e.url)}">{escape(e.title)}</a></li>\n' for e in listing.entries)
    title = listing.title if listing.number == 1 else f"{listing.title} (page {listing.number})"
    body = (
        f"<h1>{escape(listing.title)}</h1>\n"
        f"<ul>\n{items}</ul>\n"
        f"{_nav(listing.prev, listing.next, 'prev', 'next')}"
    )
    return _document(title, site_title, body)
