"""Build orchestration: load -> render -> annotate -> assemble -> write"""

import os
import posixpath
import shutil
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional
from urllib.parse import unquote, urlsplit

import structlog

from mdsite.config import Settings
from mdsite.core.annotate import annotate
from mdsite.core.assemble import assemble, reserved_slug
from mdsite.core.export import build_listing_html, build_page_html
from mdsite.core.external import ExternalRenderer, command_renderer
from mdsite.core.models import BuildIssue, BuildReport, Document, Node, Severity, Site
from mdsite.core.parse import discover_files, load_document
from mdsite.core.render import collect_images, render_body
from mdsite.errors import (
    AssetError,
    BuildCancelled,
    BuildLockedError,
    MetadataError,
    OutputError,
    PipelineError,
    error_kind,
)


log = structlog.get_logger(__name__)


@dataclass
class DocResult:
    """Outcome of processing one source file in a worker."""
    path:     str                               # relative to the content root
    document: Optional[Document] = None
    tree:     Optional[Node] = None
    assets:   list[tuple[Path, str]] = field(default_factory=list)   # (source, output-relative dest)
    warnings: list[str] = field(default_factory=list)
    error:    Optional[BaseException] = None
    skipped:  bool = False                      # draft outside preview mode, or cancelled


@dataclass
class ReportBuilder:
    """Mutable collector for one build; finalize() produces the immutable report."""
    processed: list[str] = field(default_factory=list)
    issues:    list[BuildIssue] = field(default_factory=list)
    artifacts: list[str] = field(default_factory=list)
    started:   float = field(default_factory=time.monotonic)

    def error(self, exc: BaseException, path: str = None, slug: str = None) -> None:
        message = exc.message if isinstance(exc, PipelineError) else str(exc)
        self.issues.append(BuildIssue(
            severity=Severity.error, kind=error_kind(exc), message=message, path=path, slug=slug,
        ))

    def warning(self, message: str, path: str = None, slug: str = None, kind: str = "AnnotationWarning") -> None:
        self.issues.append(BuildIssue(
            severity=Severity.warning, kind=kind, message=message, path=path, slug=slug,
        ))

    def finalize(self) -> BuildReport:
        return BuildReport(
            processed=tuple(sorted(self.processed)),
            issues=tuple(self.issues),
            artifacts=tuple(sorted(set(self.artifacts))),
            duration=round(time.monotonic() - self.started, 6),
        )


def _is_external(src: str) -> bool:
    parts = urlsplit(src)
    return bool(parts.scheme or parts.netloc) or src.startswith('#')


def resolve_assets(
    doc: Document,
    tree: Node,
    content_root: Path,
    static_root: Path,
    ) -> list[tuple[Path, str]]:
    """Check every image a document references and return page-relative copies to make.

    Root-relative sources (`/img/x.png`) must exist under the static directory,
    which is copied wholesale. Other relative sources are resolved against the
    document's directory and copied next to the page's index.html.
    """
    copies = []
    root = content_root.resolve()
    doc_dir = PurePosixPath(doc.path).parent
    for src in collect_images(tree):
        if _is_external(src):
            continue
        ref = unquote(urlsplit(src).path)
        if ref.startswith('/'):
            if not (static_root / ref.lstrip('/')).is_file():
                raise AssetError(f"static asset '{src}' not found in {static_root}", path=doc.path)
            continue
        source = (content_root / doc_dir / ref).resolve()
        if not source.is_relative_to(root) or not source.is_file():
            raise AssetError(f"asset '{src}' not found", path=doc.path)
        dest = posixpath.normpath(f"{doc.slug}/{ref}")
        if dest.startswith('../') or dest == '..':
            raise AssetError(f"asset '{src}' resolves outside the output root", path=doc.path)
        copies.append((source, dest))
    return copies


def process_document(
    path: Path,
    content_root: Path,
    static_root: Path,
    settings: Settings,
    highlighter: Optional[ExternalRenderer] = None,
    diagrammer: Optional[ExternalRenderer] = None,
    cancel: Optional[threading.Event] = None,
    ) -> DocResult:
    """Load, render, annotate and resolve assets for one file; errors are captured."""
    rel = path.relative_to(content_root).as_posix()
    if cancel is not None and cancel.is_set():
        return DocResult(path=rel, skipped=True)
    try:
        doc = load_document(path, content_root)
        if doc.draft and not settings.include_drafts:
            return DocResult(path=rel, document=doc, skipped=True)
        try:
            tree = render_body(doc.body, settings.parser_config)
        except PipelineError as e:
            e.path = rel
            raise
        tree, warnings = annotate(tree, highlighter, diagrammer)
        assets = resolve_assets(doc, tree, content_root, static_root)
    except (PipelineError, OSError) as e:
        return DocResult(path=rel, error=e)
    return DocResult(path=rel, document=doc, tree=tree, assets=assets, warnings=warnings)


def process_documents(
    files: list[Path],
    content_root: Path,
    static_root: Path,
    settings: Settings,
    highlighter: Optional[ExternalRenderer] = None,
    diagrammer: Optional[ExternalRenderer] = None,
    cancel: Optional[threading.Event] = None,
    ) -> list[DocResult]:
    """Process files on a worker pool; results are ordered by source path."""
    workers = settings.workers or os.cpu_count() or 1
    results: list[DocResult] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mdsite") as pool:
        futures = [
            pool.submit(process_document, p, content_root, static_root, settings, highlighter, diagrammer, cancel)
            for p in files
        ]
        for future in as_completed(futures):
            results.append(future.result())
    return sorted(results, key=lambda r: r.path)


def collect(results: list[DocResult], report: ReportBuilder) -> tuple[list[Document], dict[str, Node], list[tuple[Path, str]]]:
    """Record errors and warnings, reject duplicate or reserved slugs, and return the good documents."""
    docs: list[Document] = []
    trees: dict[str, Node] = {}
    assets: list[tuple[Path, str]] = []
    owners: dict[str, str] = {}

    for r in results:
        if r.error is not None:
            log.warning("document_failed", path=r.path, kind=error_kind(r.error), error=str(r.error))
            report.error(r.error, path=r.path)
            continue
        if r.document is None:
            continue
        slug = r.document.slug
        if reserved_slug(slug):
            err = MetadataError(f"slug '{slug}' is reserved for generated listing pages", path=r.path)
        elif slug in owners:
            err = MetadataError(f"duplicate slug '{slug}' (also used by {owners[slug]})", path=r.path)
        else:
            err = None
        if err is not None:
            log.warning("document_failed", path=r.path, kind=err.kind, error=str(err))
            report.error(err, path=r.path, slug=slug)
            continue
        owners[slug] = r.path
        if r.skipped:
            log.debug("draft_skipped", path=r.path, slug=slug)
            continue
        for w in r.warnings:
            report.warning(w, path=r.path, slug=slug)
        docs.append(r.document)
        trees[slug] = r.tree
        assets.extend(r.assets)
        report.processed.append(slug)
    return docs, trees, assets


@contextmanager
def output_lock(output_root: Path) -> Iterator[Path]:
    """Hold `<output_root>.lock` for the duration of a build."""
    root = output_root.resolve()
    lock = root.with_name(root.name + ".lock")
    try:
        lock.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as e:
        raise BuildLockedError(f"output root {output_root} is locked by another build ({lock})") from e
    except OSError as e:
        raise OutputError(f"cannot create lock {lock}: {e}") from e
    try:
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        yield lock
    finally:
        lock.unlink(missing_ok=True)


def _clean(output_root: Path) -> None:
    """Remove everything inside output_root, keeping the directory itself."""
    try:
        output_root.mkdir(parents=True, exist_ok=True)
        for child in sorted(output_root.iterdir()):
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
    except OSError as e:
        raise OutputError(f"cannot clean {output_root}: {e}") from e


class SiteWriter:
    """Writes artifacts under one output root, recording each in the report."""

    def __init__(self, output_root: Path, report: ReportBuilder, cancel: Optional[threading.Event] = None):
        self.output_root = output_root
        self.report = report
        self.cancel = cancel

    def _check_cancel(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise BuildCancelled("build cancelled; re-run to completion to repair the output root")

    def write_text(self, rel: str, text: str) -> None:
        self._check_cancel()
        dest = self.output_root / rel
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(text, encoding="utf-8", newline="\n")
        except OSError as e:
            raise OutputError(f"cannot write {dest}: {e}") from e
        self.report.artifacts.append(rel)

    def copy(self, source: Path, rel: str) -> None:
        self._check_cancel()
        dest = self.output_root / rel
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError as e:
            raise OutputError(f"cannot copy {source} to {dest}: {e}") from e
        self.report.artifacts.append(rel)

    def write_site(self, site: Site, assets: list[tuple[Path, str]], static_root: Path) -> None:
        if static_root.is_dir():
            for p in sorted(static_root.rglob('*')):
                if p.is_file():
                    self.copy(p, p.relative_to(static_root).as_posix())
        for page in sorted(site.pages, key=lambda p: p.output_path):
            self.write_text(page.output_path, build_page_html(page, site.title))
        for source, rel in sorted(assets, key=lambda a: a[1]):
            self.copy(source, rel)
        for listing in sorted(site.listings, key=lambda p: p.output_path):
            self.write_text(listing.output_path, build_listing_html(listing, site.title))


def _roots(settings: Settings) -> tuple[Path, Path, Path]:
    content_root = Path(settings.content_dir)
    if not content_root.is_dir():
        raise PipelineError(f"content directory not found: {content_root}")
    return content_root, Path(settings.output_dir), Path(settings.static_dir)


def _render_stage(
    settings: Settings,
    report: ReportBuilder,
    highlighter: Optional[ExternalRenderer],
    diagrammer: Optional[ExternalRenderer],
    cancel: Optional[threading.Event],
    ) -> tuple[Site, list[tuple[Path, str]]]:
    content_root, _, static_root = _roots(settings)
    if highlighter is None:
        highlighter = command_renderer(settings.highlight_cmd)
    if diagrammer is None:
        diagrammer = command_renderer(settings.diagram_cmd)

    files = list(discover_files(content_root))
    log.info("build_started", content=str(content_root), files=len(files))
    results = process_documents(files, content_root, static_root, settings, highlighter, diagrammer, cancel)
    if cancel is not None and cancel.is_set():
        raise BuildCancelled("build cancelled before assembly")

    docs, trees, assets = collect(results, report)
    site = assemble(
        docs, trees,
        site_title=settings.site_title,
        page_size=settings.page_size,
        include_drafts=settings.include_drafts,
        tag_case=settings.tag_case,
    )
    return site, assets


def check_content(
    settings: Settings,
    highlighter: Optional[ExternalRenderer] = None,
    diagrammer: Optional[ExternalRenderer] = None,
    ) -> tuple[BuildReport, Site]:
    """Run every stage except writing; returns the report and the assembled site."""
    report = ReportBuilder()
    site, _ = _render_stage(settings, report, highlighter, diagrammer, None)
    return report.finalize(), site


def run_build(
    settings: Settings,
    highlighter: Optional[ExternalRenderer] = None,
    diagrammer: Optional[ExternalRenderer] = None,
    cancel: Optional[threading.Event] = None,
    ) -> BuildReport:
    """Build the site described by settings into settings.output_dir.

    Per-document failures are recorded and the build continues; the report is
    not ok if any occurred. OutputError, BuildLockedError and BuildCancelled
    abort the build.
    """
    content_root, output_root, static_root = _roots(settings)
    if content_root.resolve().is_relative_to(output_root.resolve()):
        raise PipelineError(f"content directory {content_root} lies inside output root {output_root}")

    report = ReportBuilder()
    with output_lock(output_root):
        site, assets = _render_stage(settings, report, highlighter, diagrammer, cancel)
        if settings.clean:
            _clean(output_root)
        SiteWriter(output_root, report, cancel).write_site(site, assets, static_root)

    final = report.finalize()
    log.info(
        "build_finished",
        processed=len(final.processed),
        errors=len(final.errors),
        warnings=len(final.warnings),
        artifacts=final.artifact_count,
        duration=final.duration,
    )
    return final
