"""Content loading: file discovery, front-matter splitting, and typed metadata"""

from pathlib import Path, PurePosixPath
from typing import Iterator, Union

import yaml
from pydantic import ValidationError

from mdsite.core.models import Document, FrontMatter
from mdsite.core.utils.slug import slugify
from mdsite.errors import MetadataError, PipelineError


DELIMITER = "---"
MD_EXTENSIONS = {'.md', '.mdx', '.markdown'}


def _is_delimiter(line: str) -> bool:
    return line.rstrip("\r\n").rstrip() == DELIMITER


def split_frontmatter(text: str) -> tuple[str, str]:
    """Return (front-matter block, body). The block is '' when the text has none.

    A `---` line opens the block only as the first line of the text; a second
    `---` line closes it.
    """
    lines = text.splitlines(keepends=True)
    if not lines or not _is_delimiter(lines[0]):
        return "", text
    for i, line in enumerate(lines[1:], start=1):
        if _is_delimiter(line):
            return "".join(lines[1:i]), "".join(lines[i + 1:])
    raise MetadataError("front-matter opened with '---' but never closed")


def parse_frontmatter(block: str) -> FrontMatter:
    """Parse a YAML block into FrontMatter, keeping unrecognized keys in order."""
    try:
        data = yaml.safe_load(block) if block.strip() else {}
    except yaml.YAMLError as e:
        raise MetadataError(f"Invalid YAML frontmatter: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MetadataError(f"Invalid YAML frontmatter: expected a mapping, got {type(data).__name__}")
    try:
        return FrontMatter.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MetadataError(f"Invalid value for {fields}: {e.errors()[0]['msg']}") from e


def document_slug(rel_path: PurePosixPath, override: str = None) -> str:
    """Slug from the content-relative path; `override` replaces the last segment."""
    parts = list(rel_path.parent.parts)
    if rel_path.stem != "index" or not parts:
        parts.append(rel_path.stem)
    if override:
        parts[-1] = override
    return "/".join(s for s in (slugify(p) for p in parts) if s)


def discover_files(path: Path) -> Iterator[Path]:
    """Yield .md/.mdx/.markdown files under path in sorted order, or path itself if a file."""
    if path.is_file():
        if path.suffix in MD_EXTENSIONS:
            yield path
        return
    yield from sorted(p for p in path.rglob('*') if p.is_file() and p.suffix in MD_EXTENSIONS)


def load_document(path: Path, content_root: Path) -> Document:
    """Read one file and return its Document. OSError from the read propagates."""
    rel = PurePosixPath(path.relative_to(content_root).as_posix())
    try:
        raw = path.read_text(encoding='utf-8-sig')
    except UnicodeDecodeError as e:
        raise MetadataError(f"not valid UTF-8: {e}", path=str(rel)) from e
    try:
        block, body = split_frontmatter(raw)
        fm = parse_frontmatter(block)
    except MetadataError as e:
        e.path = str(rel)
        raise

    slug = document_slug(rel, fm.slug)
    if not slug:
        raise MetadataError("cannot derive a slug", path=str(rel))
    return Document(
        slug=slug,
        path=str(rel),
        title=fm.title or rel.stem,
        date=fm.date,
        draft=fm.draft,
        description=fm.description,
        tags=tuple(fm.tags),
        body=body,
        params=dict(fm.model_extra or {}),
    )


def iter_documents(root: Path) -> Iterator[tuple[Path, Union[Document, PipelineError, OSError]]]:
    """Lazily load every document under root, yielding failures in place of documents."""
    content_root = root if root.is_dir() else root.parent
    for p in discover_files(root):
        try:
            yield p, load_document(p, content_root)
        except (PipelineError, OSError) as e:
            yield p, e
