"""Data models for documents, content nodes, pages, and build reports"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class FrontMatter(BaseModel):
    """Typed view of the recognized front-matter keys; unknown keys land in model_extra."""
    model_config = ConfigDict(extra="allow", strict=False)

    title:       Optional[str] = None
    date:        Optional[datetime] = None
    draft:       bool = False
    description: Optional[str] = None
    tags:        list[str] = []
    slug:        Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        """YAML yields plain dates for `2024-01-02`; promote them to midnight."""
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day)
        return value

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Document(BaseModel):
    """A content file with its front-matter split off and typed."""
    model_config = ConfigDict(frozen=True)

    slug:        str
    path:        str                    # source path relative to the content root
    title:       str
    date:        Optional[datetime] = None
    draft:       bool = False
    description: Optional[str] = None
    tags:        tuple[str, ...] = ()
    body:        str
    params:      dict[str, Any] = {}    # unrecognized front-matter keys, in source order


class NodeKind(str, Enum):
    document      = "document"
    paragraph     = "paragraph"
    heading       = "heading"
    list          = "list"
    list_item     = "list_item"
    blockquote    = "blockquote"
    table         = "table"
    table_row     = "table_row"
    table_cell    = "table_cell"
    fence         = "fence"
    code_block    = "code_block"
    hr            = "hr"
    html          = "html"
    text          = "text"
    emphasis      = "emphasis"
    strong        = "strong"
    strikethrough = "strikethrough"
    code_inline   = "code_inline"
    link          = "link"
    image         = "image"
    linebreak     = "linebreak"


class FenceKind(str, Enum):
    code    = "code"
    diagram = "diagram"
    plain   = "plain"


class Node(BaseModel):
    """One node of a rendered body; children are kept in source order."""
    model_config = ConfigDict(frozen=True)

    kind:       NodeKind
    children:   tuple["Node", ...] = ()
    text:       Optional[str] = None            # text, inline code, html, fence payload
    level:      Optional[int] = None            # heading level (1-6)
    ordered:    bool = False                    # list
    start:      Optional[int] = None            # ordered list start number
    header:     bool = False                    # table row / cell
    align:      Optional[str] = None            # table cell: left, center, right
    href:       Optional[str] = None            # link target, image source
    title:      Optional[str] = None            # link/image title attribute
    hard:       bool = False                    # linebreak: hard vs soft
    info:       Optional[str] = None            # fence: declared kind token
    fence_kind: Optional[FenceKind] = None      # fence: set by the annotator
    markup:     Optional[str] = None            # fence: markup from an external renderer


Node.model_rebuild()


class Link(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    url:   str


class Page(BaseModel):
    """A document's rendered tree plus navigation, ready to be written."""
    model_config = ConfigDict(frozen=True)

    document:    Document
    tree:        Node
    output_path: str
    prev:        Optional[Link] = None
    next:        Optional[Link] = None
    tags:        tuple[Link, ...] = ()


class ListingPage(BaseModel):
    """One page of a paginated listing (home or a tag) or the tag overview."""
    model_config = ConfigDict(frozen=True)

    title:       str
    output_path: str
    entries:     tuple[Link, ...] = ()
    number:      int = 1
    total:       int = 1
    prev:        Optional[Link] = None
    next:        Optional[Link] = None


class Site(BaseModel):
    """The assembled page graph for one build."""
    model_config = ConfigDict(frozen=True)

    title:     str
    ordering:  tuple[str, ...]                  # published slugs, newest first
    tag_index: dict[str, tuple[str, ...]]       # canonical tag -> ordered slugs
    pages:     tuple[Page, ...]
    listings:  tuple[ListingPage, ...]


class Severity(str, Enum):
    error   = "error"
    warning = "warning"


class BuildIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: Severity
    kind:     str
    message:  str
    path:     Optional[str] = None
    slug:     Optional[str] = None


class BuildReport(BaseModel):
    """Outcome of one build run; produced once by ReportBuilder.finalize."""
    model_config = ConfigDict(frozen=True)

    processed:   tuple[str, ...] = ()
    issues:      tuple[BuildIssue, ...] = ()
    artifacts:   tuple[str, ...] = ()
    duration:    float = Field(default=0.0, description="Wall-clock seconds")

    @computed_field
    @property
    def artifact_count(self) -> int:
        return len(self.artifacts)

    @property
    def errors(self) -> list[BuildIssue]:
        return [i for i in self.issues if i.severity == Severity.error]

    @property
    def warnings(self) -> list[BuildIssue]:
        return [i for i in self.issues if i.severity == Severity.warning]

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
