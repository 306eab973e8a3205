"""Fenced-block tagging: code, diagram, or plain preformatted text"""

from typing import Optional

import structlog

from mdsite.core.external import ExternalRenderer
from mdsite.core.models import FenceKind, Node, NodeKind


log = structlog.get_logger(__name__)

CODE_LANGUAGES = frozenset({
    'bash', 'c', 'clojure', 'cpp', 'c++', 'csharp', 'cs', 'css', 'dart', 'diff', 'docker',
    'dockerfile', 'elixir', 'erlang', 'go', 'golang', 'graphql', 'groovy', 'haskell', 'html',
    'ini', 'java', 'javascript', 'js', 'json', 'jsx', 'julia', 'kotlin', 'latex', 'lua',
    'makefile', 'markdown', 'md', 'nginx', 'nix', 'objc', 'ocaml', 'perl', 'php', 'powershell',
    'protobuf', 'python', 'py', 'r', 'ruby', 'rb', 'rust', 'rs', 'scala', 'scss', 'sh',
    'shell', 'sql', 'swift', 'toml', 'ts', 'tsx', 'typescript', 'vim', 'xml', 'yaml', 'yml',
    'zig', 'zsh', 'console', 'hcl', 'terraform',
})

DIAGRAM_ENGINES = frozenset({'mermaid', 'graphviz', 'dot', 'plantuml', 'ditaa', 'd2', 'flowchart'})


def classify(token: str) -> FenceKind:
    """Map a fence kind token to its capability; anything unrecognized is plain."""
    token = token.lower()
    if token in CODE_LANGUAGES:
        return FenceKind.code
    elif token in DIAGRAM_ENGINES:
        return FenceKind.diagram
    else:
        return FenceKind.plain


def _annotate_fence(
    node: Node,
    highlighter: Optional[ExternalRenderer],
    diagrammer: Optional[ExternalRenderer],
    warnings: list[str],
    ) -> Node:
    token = node.info or ""
    kind = classify(token)
    if kind == FenceKind.plain and token:
        warnings.append(f"unknown fenced block kind '{token}', rendered as plain text")

    if kind == FenceKind.code:
        renderer = highlighter
    elif kind == FenceKind.diagram:
        renderer = diagrammer
    else:
        renderer = None
    markup = None
    if renderer is not None:
        try:
            markup = renderer(token.lower(), node.text or "")
        except Exception as e:
            log.warning("external_render_failed", token=token, error=str(e))
            warnings.append(f"{kind.value} renderer failed for '{token}', rendered as plain text: {e}")
            kind = FenceKind.plain
    return node.model_copy(update={"fence_kind": kind, "markup": markup})


def annotate(
    tree: Node,
    highlighter: Optional[ExternalRenderer] = None,
    diagrammer: Optional[ExternalRenderer] = None,
    ) -> tuple[Node, list[str]]:
    """Tag every fenced block in tree, substituting external markup where available.

    Returns the annotated tree and the warnings raised along the way; this never
    raises for an unknown token or a failing renderer.
    """
    warnings: list[str] = []

    def walk(node: Node) -> Node:
        if node.kind == NodeKind.fence:
            return _annotate_fence(node, highlighter, diagrammer, warnings)
        if not node.children:
            return node
        return node.model_copy(update={"children": tuple(walk(c) for c in node.children)})

    return walk(tree), warnings
