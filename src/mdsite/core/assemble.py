"""Site assembly: global ordering, tag index, navigation, and listing pages.

Everything here is derived in one pass from the full set of rendered
documents, after all rendering has finished.
"""

from datetime import datetime, timezone
from typing import Iterable, Literal, Optional

from mdsite.core.models import Document, Link, ListingPage, Node, Page, Site
from mdsite.core.utils.slug import slugify


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

TagCase = Literal["first-seen", "lower"]


def page_path(slug: str) -> str:
    return f"{slug}/index.html"


def page_url(slug: str) -> str:
    return f"/{slug}/"


def tag_url(tag_slug: str) -> str:
    return f"/tags/{tag_slug}/"


def reserved_slug(slug: str) -> bool:
    """True when a document page at slug would land on a generated listing path."""
    head, _, rest = slug.partition("/")
    return head == "tags" or (head == "page" and rest.isdigit())


def tag_slugs(tags: Iterable[str]) -> dict[str, str]:
    """Give each tag a unique, non-empty URL segment under tags/.

    Tags that slugify to nothing fall back to "tag"; collisions get a numeric
    suffix in iteration order.
    """
    slugs: dict[str, str] = {}
    taken: set[str] = set()
    for tag in tags:
        base = slugify(tag) or "tag"
        slug, n = base, 2
        while slug in taken:
            slug, n = f"{base}-{n}", n + 1
        taken.add(slug)
        slugs[tag] = slug
    return slugs


def global_ordering(docs: Iterable[Document]) -> list[Document]:
    """Non-draft documents, newest first; ties and undated documents ordered by slug."""
    published = sorted((d for d in docs if not d.draft), key=lambda d: d.slug)
    # dated before undated, then newest first; sort is stable so slug order survives ties
    return sorted(published, key=lambda d: (d.date is None, -(d.date or _EPOCH).timestamp()))


def tag_index(ordering: list[Document], tag_case: TagCase = "first-seen") -> dict[str, list[Document]]:
    """Map each canonical tag to the documents carrying it, in global order.

    Tags are keyed by their casefolded form. With "first-seen" the canonical
    spelling is the one used by the oldest document carrying the tag (ties by
    slug); with "lower" it is the lowercased tag.
    """
    canonical: dict[str, str] = {}
    chronological = sorted(ordering, key=lambda d: d.slug)
    chronological = sorted(chronological, key=lambda d: (d.date is None, (d.date or _EPOCH).timestamp()))
    for doc in chronological:
        for tag in doc.tags:
            key = tag.casefold()
            if key not in canonical:
                canonical[key] = tag.lower() if tag_case == "lower" else tag

    index: dict[str, list[Document]] = {}
    for key in sorted(canonical):
        members = [d for d in ordering if any(t.casefold() == key for t in d.tags)]
        index[canonical[key]] = members
    return index


def _canonical_tags(doc: Document, canonical: dict[str, str], slugs: dict[str, str]) -> tuple[Link, ...]:
    seen = dict.fromkeys(canonical[t.casefold()] for t in doc.tags if t.casefold() in canonical)
    return tuple(Link(title=t, url=tag_url(slugs[t])) for t in seen)


def _link(doc: Optional[Document]) -> Optional[Link]:
    return Link(title=doc.title, url=page_url(doc.slug)) if doc else None


def paginate(
    title: str,
    base: str,
    docs: list[Document],
    page_size: int,
    ) -> list[ListingPage]:
    """Split docs into listing pages at base/index.html, base/page/<n>/index.html."""
    prefix = f"{base}/" if base else ""
    chunks = [docs[i:i + page_size] for i in range(0, len(docs), page_size)] or [[]]
    total = len(chunks)

    def path(n: int) -> str:
        return f"{prefix}index.html" if n == 1 else f"{prefix}page/{n}/index.html"

    def url(n: int) -> str:
        return f"/{prefix}" if n == 1 else f"/{prefix}page/{n}/"

    return [
        ListingPage(
            title=title,
            output_path=path(n),
            entries=tuple(_link(d) for d in chunk),
            number=n,
            total=total,
            prev=Link(title=f"Page {n - 1}", url=url(n - 1)) if n > 1 else None,
            next=Link(title=f"Page {n + 1}", url=url(n + 1)) if n < total else None,
        )
        for n, chunk in enumerate(chunks, start=1)
    ]


def assemble(
    docs: list[Document],
    trees: dict[str, Node],
    site_title: str = "mdsite",
    page_size: int = 10,
    include_drafts: bool = False,
    tag_case: TagCase = "first-seen",
    ) -> Site:
    """Build the page graph from rendered documents (trees keyed by slug)."""
    ordering = global_ordering(docs)
    index = tag_index(ordering, tag_case)
    canonical = {t.casefold(): t for t in index}
    slugs = tag_slugs(index)
    position = {d.slug: i for i, d in enumerate(ordering)}

    pages = []
    for doc in sorted(docs, key=lambda d: d.slug):
        if doc.draft and not include_drafts:
            continue
        i = position.get(doc.slug)
        prev = ordering[i - 1] if i is not None and i > 0 else None
        nxt = ordering[i + 1] if i is not None and i + 1 < len(ordering) else None
        pages.append(Page(
            document=doc,
            tree=trees[doc.slug],
            output_path=page_path(doc.slug),
            prev=_link(prev),
            next=_link(nxt),
            tags=_canonical_tags(doc, canonical, slugs),
        ))

    listings = paginate(site_title, "", ordering, page_size)
    for tag, members in index.items():
        listings.extend(paginate(f"Tag: {tag}", f"tags/{slugs[tag]}", members, page_size))
    listings.append(ListingPage(
        title="Tags",
        output_path="tags/index.html",
        entries=tuple(Link(title=f"{t} ({len(m)})", url=tag_url(slugs[t])) for t, m in index.items()),
    ))

    return Site(
        title=site_title,
        ordering=tuple(d.slug for d in ordering),
        tag_index={t: tuple(d.slug for d in m) for t, m in index.items()},
        pages=tuple(pages),
        listings=tuple(listings),
    )
