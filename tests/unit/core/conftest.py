"""Shared fixtures for core unit tests"""

from datetime import datetime, timezone

import pytest

from mdsite.core.models import Document


SAMPLE_MD = """\
# Heading 1

A paragraph with *emphasis* and **bold** text.

## Heading 2

- item one
- item two

3. third
4. fourth

```python
print("hello")
```

> quoted

---

Footer paragraph.
"""


def make_doc(slug: str, day: int = None, tags=(), draft: bool = False, title: str = None) -> Document:
    """Build a Document without touching the filesystem."""
    return Document(
        slug=slug,
        path=f"{slug}.md",
        title=title or slug.title(),
        date=datetime(2024, 1, day, tzinfo=timezone.utc) if day else None,
        draft=draft,
        tags=tuple(tags),
        body="",
    )


@pytest.fixture(name="doc_factory")
def doc_factory_fixture():
    return make_doc


@pytest.fixture(name="sample_md")
def sample_md_fixture() -> str:
    return SAMPLE_MD
