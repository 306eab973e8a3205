"""Unit tests for core/render.py"""

import pytest

from mdsite.core.models import NodeKind
from mdsite.core.parse import split_frontmatter
from mdsite.core.render import collect_images, iter_nodes, render_body, split_row
from mdsite.errors import RenderError


def _kinds(tree, kind):
    return [n for n in iter_nodes(tree) if n.kind == kind]


def test_top_level_blocks_in_source_order(sample_md):
    """Block nodes appear under the document root in source order."""
    tree = render_body(sample_md)
    assert tree.kind == NodeKind.document
    assert [c.kind for c in tree.children] == [
        NodeKind.heading, NodeKind.paragraph, NodeKind.heading,
        NodeKind.list, NodeKind.list, NodeKind.fence, NodeKind.blockquote,
        NodeKind.hr, NodeKind.paragraph,
    ]


@pytest.mark.parametrize("md,level", [
    ("# One\n", 1),
    ("### Three\n", 3),
    ("###### Six\n", 6),
    ("Setext\n------\n", 2),
])
def test_heading_levels(md, level):
    (heading,) = render_body(md).children
    assert heading.kind == NodeKind.heading
    assert heading.level == level


def test_emphasis_and_strong_spans():
    (para,) = render_body("A *b* **c** ~~d~~\n").children
    assert [c.kind for c in para.children] == [
        NodeKind.text, NodeKind.emphasis, NodeKind.text, NodeKind.strong,
        NodeKind.text, NodeKind.strikethrough,
    ]
    assert para.children[1].children[0].text == "b"


def test_tight_list_items_hold_inline_content():
    """Tight list items carry inline nodes directly, without a paragraph wrapper."""
    (lst,) = render_body("- one\n- two\n").children
    assert lst.ordered is False
    assert [item.children[0].text for item in lst.children] == ["one", "two"]


def test_ordered_list_start():
    (lst,) = render_body("3. a\n4. b\n").children
    assert lst.ordered is True
    assert lst.start == 3


def test_link_and_image_attributes():
    (para,) = render_body('[site](https://example.com "Home") ![alt text](img/a.png)\n').children
    link = para.children[0]
    assert link.kind == NodeKind.link
    assert link.href == "https://example.com"
    assert link.title == "Home"
    image = _kinds(para, NodeKind.image)[0]
    assert image.href == "img/a.png"
    assert image.text == "alt text"


def test_collect_images_deduplicates_in_order():
    tree = render_body("![a](one.png)\n\n![b](two.png) ![c](one.png)\n")
    assert collect_images(tree) == ["one.png", "two.png"]


def test_first_post_scenario(first_post):
    """Table, go code fence, and mermaid fence all come out as distinct nodes."""
    _, body = split_frontmatter(first_post)
    tree = render_body(body)

    (table,) = _kinds(tree, NodeKind.table)
    header = [r for r in table.children if r.header]
    rows = [r for r in table.children if not r.header]
    assert len(header) == 1 and len(header[0].children) == 3
    assert len(rows) == 2
    assert all(len(r.children) == 3 for r in rows)

    fences = _kinds(tree, NodeKind.fence)
    assert [f.info for f in fences] == ["go", "mermaid"]
    assert fences[0].text.startswith("package main")


def test_table_cells_process_inline_spans():
    md = "| a | b |\n|---|---|\n| *x* | `y` |\n"
    (table,) = render_body(md).children
    cells = table.children[1].children
    assert cells[0].children[0].kind == NodeKind.emphasis
    assert cells[1].children[0].kind == NodeKind.code_inline


def test_table_cell_alignment():
    md = "| a | b |\n|:--|--:|\n| 1 | 2 |\n"
    (table,) = render_body(md).children
    assert [c.align for c in table.children[0].children] == ["left", "right"]


@pytest.mark.parametrize("row", ["| 1 | 2 |", "| 1 | 2 | 3 | 4 |"])
def test_table_column_mismatch_is_render_error(row):
    """A body row whose cell count differs from the header fails, never padded."""
    md = f"| a | b | c |\n|---|---|---|\n| 1 | 2 | 3 |\n{row}\n"
    with pytest.raises(RenderError, match="line 4: table row has"):
        render_body(md)


def test_table_escaped_pipe_is_not_a_separator():
    md = "| a | b |\n|---|---|\n| x \\| y | z |\n"
    (table,) = render_body(md).children
    assert len(table.children[1].children) == 2


@pytest.mark.parametrize("md", [
    "- | a | b |\n  |---|---|\n  | 1 | 2 |\n",
    "1. | a | b |\n   |---|---|\n   | 1 | 2 |\n",
    "> | a | b |\n> |---|---|\n> | 1 | 2 |\n",
    "- > | a | b |\n  > |---|---|\n  > | 1 | 2 |\n",
])
def test_tables_inside_containers(md):
    """Row cells are counted after the list marker or quote prefix is removed."""
    (table,) = _kinds(render_body(md), NodeKind.table)
    assert [len(r.children) for r in table.children] == [2, 2]


def test_table_mismatch_inside_list_item():
    with pytest.raises(RenderError, match="line 3: table row has 3 cells, header has 2"):
        render_body("- | a | b |\n  |---|---|\n  | 1 | 2 | 3 |\n")


def test_split_row():
    assert split_row("| a | b \\| c | d |") == ["a", "b \\| c", "d"]
    assert split_row("a | b") == ["a", "b"]


@pytest.mark.parametrize("md", [
    "Intro\n\n```python\nprint(1)\n",
    "```\ncode\n\n",
    "- item\n\n  ```go\n  x := 1\n- next\n",
    "> ```\n> quoted code\n",
])
def test_unterminated_fence_is_render_error(md):
    with pytest.raises(RenderError, match="never closed"):
        render_body(md)


def test_balanced_fences_one_node_per_pair():
    md = "```a\n1\n```\n\ntext\n\n~~~b\n2\n~~~\n\n````c\n```\nnested\n```\n````\n"
    fences = _kinds(render_body(md), NodeKind.fence)
    assert [f.info for f in fences] == ["a", "b", "c"]
    assert fences[2].text == "```\nnested\n```\n"


def test_fence_info_keeps_first_word():
    (fence,) = render_body("```python {linenos=true}\nx\n```\n").children
    assert fence.info == "python"


def test_indented_code_is_not_a_fence():
    """Indented code is a code_block node; only marker-delimited pairs become fences."""
    tree = render_body("```go\nx\n```\n\n    indented\n")
    assert [f.info for f in _kinds(tree, NodeKind.fence)] == ["go"]
    (block,) = _kinds(tree, NodeKind.code_block)
    assert block.text == "indented\n"


def test_closer_indented_four_spaces_does_not_close():
    with pytest.raises(RenderError, match="line 1: fenced block 'go'"):
        render_body("```go\nx := 1\n    ```\n")


@pytest.mark.parametrize("md", [
    "```go\nx\n   ```\n",
    "- item\n\n  ```go\n  x := 1\n  ```\n",
    "> ```\n> quoted\n> ```\n",
])
def test_closers_inside_containers_and_short_indents(md):
    (fence,) = _kinds(render_body(md), NodeKind.fence)
    assert fence.text.strip() in ("x", "x := 1", "quoted")


def test_render_is_idempotent(sample_md, first_post):
    """Rendering the same text twice yields structurally identical trees."""
    for text in (sample_md, split_frontmatter(first_post)[1]):
        assert render_body(text) == render_body(text)
