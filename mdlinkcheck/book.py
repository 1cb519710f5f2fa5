"""Standalone book loading: builds a ``Book`` by walking a source directory."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List

from .logging import get_logger
from .models import Book, Document

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".linkcheck",
    "node_modules",
    "__pycache__",
}

_MARKDOWN_SUFFIXES = {".md", ".markdown"}


def iter_markdown_files(root: Path) -> Iterator[Path]:
    """Yield markdown files below ``root`` in a stable, sorted order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [
            name
            for name in sorted(dirnames)
            if name not in _EXCLUDED_DIRS and not name.startswith(".")
        ]
        for filename in sorted(filenames):
            if Path(filename).suffix.lower() in _MARKDOWN_SUFFIXES:
                yield Path(dirpath) / filename


def load_book(src_dir: Path | str) -> Book:
    """Read every markdown document under ``src_dir`` into a ``Book``.

    Hidden, version-control and dependency directories are skipped. Files
    that are not valid UTF-8 are logged and left out.
    """
    logger = get_logger("book")
    root = Path(src_dir).expanduser().resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Book directory not found: {root}")

    documents: List[Document] = []
    for path in iter_markdown_files(root):
        rel_path = path.relative_to(root).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping %s because it is not valid UTF-8", rel_path)
            continue
        documents.append(Document(rel_path, text))

    logger.debug("Loaded %d documents from %s", len(documents), root)
    return Book(root=root, documents=documents)


__all__ = ["iter_markdown_files", "load_book"]
