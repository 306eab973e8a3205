"""Root test configuration: isolated working directory and content-tree helpers"""

from pathlib import Path

import pytest

from mdsite.config import Settings


FIRST_POST = """\
---
title: "First Post"
date: 2024-01-15T10:00:00Z
draft: false
description: A tour of the publishing flow
tags: ["hugo", "papermod"]
---

# Publishing flow

| Stage  | Tool       | Output      |
|--------|------------|-------------|
| Write  | *Markdown* | `.md` files |
| Build  | Hugo       | HTML        |

```go
package main

func main() {}
```

```mermaid
graph LR
  A[Write] --> B[Build]
```
"""


@pytest.fixture(autouse=True)
def chdir_tmp(tmp_path, monkeypatch):
    """Run each test from a clean tmp directory so config.yaml and relative paths are isolated."""
    monkeypatch.chdir(tmp_path)
    for name in Settings.model_fields:
        monkeypatch.delenv(f"MDSITE_{name.upper()}", raising=False)


@pytest.fixture(name="content_dir")
def content_dir_fixture(tmp_path) -> Path:
    path = tmp_path / "content"
    path.mkdir()
    return path


@pytest.fixture(name="write_doc")
def write_doc_fixture(content_dir):
    """Write a markdown file under the content directory and return its path."""
    def _write(rel: str, text: str) -> Path:
        p = content_dir / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
        return p
    return _write


@pytest.fixture(name="settings")
def settings_fixture(tmp_path, content_dir) -> Settings:
    return Settings(
        content_dir=str(content_dir),
        output_dir=str(tmp_path / "public"),
        static_dir=str(tmp_path / "static"),
        workers=2,
    )


@pytest.fixture(name="first_post")
def first_post_fixture() -> str:
    return FIRST_POST
