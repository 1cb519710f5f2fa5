"""Resolution and validation of links that point into the filesystem."""

from __future__ import annotations

import os
import posixpath
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from .anchors import AnchorIndex
from .logging import get_logger
from .models import Document, FilesystemLink, Outcome, ResolvedTarget

_INDEX_FILES = ("index.md", "README.md")


class PathResolver:
    """Resolves filesystem links relative to the document that contains them."""

    def __init__(
        self,
        root: Path,
        anchors: AnchorIndex,
        *,
        traverse_parent_directories: bool = False,
    ) -> None:
        self.root = root.resolve()
        self.anchors = anchors
        self.traverse_parent_directories = traverse_parent_directories
        self.logger = get_logger("resolve")

    def resolve(self, link: FilesystemLink, document: Document) -> ResolvedTarget:
        """Return the canonical target of ``link`` as written in ``document``."""
        path = unquote(link.path.split("?", 1)[0])
        absolute = path.startswith("/")
        if absolute:
            candidate = self.root / path.lstrip("/")
        else:
            candidate = self.root / document.directory / path
        canonical = Path(os.path.normpath(candidate)).resolve()
        outside = not canonical.is_relative_to(self.root)
        return ResolvedTarget(path=canonical, outside_root=outside, absolute_link=absolute)

    def check(self, link: FilesystemLink, document: Document) -> Outcome:
        """Validate ``link`` and, when it has a fragment, the heading it names."""
        if not link.path.strip() and link.fragment is None:
            return Outcome.warning("empty link target")

        try:
            target = self.resolve(link, document)
        except (OSError, ValueError) as exc:
            # e.g. a percent-encoded NUL byte or an over-long name
            self.logger.debug('Unable to resolve "%s": %s', link.path, exc)
            return Outcome.error("file not found")
        self.logger.debug("Checking %s -> %s", link.path, target.path)

        if target.outside_root and not self.traverse_parent_directories:
            self.logger.debug("%s lies outside %s and that is forbidden", target.path, self.root)
            return Outcome.error(
                "outside book root",
                "hint: set traverse-parent-directories to allow links outside the book",
            )

        try:
            existing = self._existing_file(target.path)
        except (OSError, ValueError) as exc:
            self.logger.debug("Unable to stat %s: %s", target.path, exc)
            existing = None
        if existing is None:
            return Outcome.error("file not found")

        if link.fragment and existing.suffix.lower() == ".md":
            outcome = self.anchors.check(link.fragment, self.anchors.anchors_for(existing))
            if not outcome.is_valid:
                return outcome

        if target.absolute_link:
            notes = []
            suggestion = relative_href(document.path, link)
            if suggestion:
                notes.append(f'Suggestion: change the link to "{suggestion}"')
            return Outcome.warning("absolute link should be made relative", *notes)

        return Outcome.valid()

    @staticmethod
    def _existing_file(path: Path) -> Optional[Path]:
        if path.is_file():
            return path
        # links to the rendered page, e.g. `chapter_1.html` for `chapter_1.md`
        if path.suffix.lower() == ".html" and path.with_suffix(".md").is_file():
            return path.with_suffix(".md")
        if path.is_dir():
            for name in _INDEX_FILES:
                if (path / name).is_file():
                    return path / name
        return None


def relative_href(document_path: str, link: FilesystemLink) -> Optional[str]:
    """Rewrite an absolute (book-root) link as a path relative to ``document_path``."""
    destination = link.path.lstrip("/")
    if not destination:
        return None
    start = posixpath.dirname(document_path) or "."
    relative = posixpath.relpath(destination, start)
    if link.fragment is not None:
        relative = f"{relative}#{link.fragment}"
    return relative


__all__ = ["PathResolver", "relative_href"]
