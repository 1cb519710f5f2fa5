"""Heading anchors exposed by each document, computed once per run."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional
from urllib.parse import unquote

from .logging import get_logger
from .models import Book, Document, Outcome

_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_ATX_HEADING = re.compile(r"^ {0,3}#{1,6}(?:[ \t]+(?P<title>.*?))?(?:[ \t]+#+)?[ \t]*$")
_SETEXT_UNDERLINE = re.compile(r"^ {0,3}(?:=+|-+)[ \t]*$")
# list items and quotes followed by `---` are not setext headings
_NOT_SETEXT = re.compile(r"^\s*(?:[-*+>]|\d{1,9}[.)])(?:\s|$)")
_CUSTOM_ID = re.compile(r"[ \t]*\{#(?P<id>[^\s}]+)[^}]*\}[ \t]*$")
_HTML_ANCHOR = re.compile(
    r"<[A-Za-z][^>]*?\s(?:id|name)\s*=\s*[\"'](?P<id>[^\"']+)[\"']", re.IGNORECASE
)
_HTML_TAG = re.compile(r"</?[A-Za-z][^>]*>")
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]*)\](?:\([^)]*\)|\[[^\]]*\])")
_EMPHASIS = re.compile(r"(\*{1,3}|~~)(?=\S)(.+?)(?<=\S)\1")
# intraword underscores (snake_case) are not emphasis
_UNDERSCORE_EMPHASIS = re.compile(r"(?<![A-Za-z0-9])(_{1,3})(?=\S)(.+?)(?<=\S)\1(?![A-Za-z0-9])")
_ESCAPE = re.compile(r"\\(.)")


def heading_text(raw: str) -> str:
    """Reduce inline heading markup to the text a reader would see."""
    text = _IMAGE.sub(r"\1", raw)
    text = _LINK.sub(r"\1", text)
    text = _HTML_TAG.sub("", text)
    text = text.replace("`", "")
    previous = None
    while previous != text:
        previous = text
        text = _EMPHASIS.sub(r"\2", text)
        text = _UNDERSCORE_EMPHASIS.sub(r"\2", text)
    text = _ESCAPE.sub(r"\1", text)
    return text.strip()


def normalize_id(content: str) -> str:
    """Turn heading text into an id the same way the book renderer does.

    Alphanumerics, ``_`` and ``-`` are kept (ASCII lower-cased), whitespace
    becomes ``-`` and every other character is dropped.
    """
    chars: List[str] = []
    for char in content:
        if char.isalnum() or char in "_-":
            chars.append(char.lower() if char.isascii() else char)
        elif char.isspace():
            chars.append("-")
    return "".join(chars)


def _headings(text: str) -> Iterable[str]:
    fence: Optional[str] = None
    previous = ""
    for line in text.splitlines():
        fence_match = _FENCE.match(line)
        if fence is not None:
            if fence_match and fence_match.group(1)[0] == fence[0] and len(fence_match.group(1)) >= len(fence):
                fence = None
            previous = ""
            continue
        if fence_match:
            fence = fence_match.group(1)
            previous = ""
            continue

        atx = _ATX_HEADING.match(line)
        if atx:
            yield atx.group("title") or ""
            previous = ""
            continue
        if (
            previous.strip()
            and _SETEXT_UNDERLINE.match(line)
            and not previous.startswith(("    ", "\t"))
            and not _NOT_SETEXT.match(previous)
        ):
            yield previous.strip()
            previous = ""
            continue
        previous = line


def collect_anchors(text: str) -> FrozenSet[str]:
    """Return every anchor id a rendered copy of ``text`` would expose."""
    anchors = set()
    counters: Dict[str, int] = {}
    for raw in _headings(text):
        custom = _CUSTOM_ID.search(raw)
        if custom:
            anchors.add(custom.group("id"))
            continue
        anchor = normalize_id(heading_text(raw))
        count = counters.get(anchor, 0)
        anchors.add(anchor if count == 0 else f"{anchor}-{count}")
        counters[anchor] = count + 1
    for match in _HTML_ANCHOR.finditer(text):
        anchors.add(match.group("id"))
    return frozenset(anchors)


@dataclass
class _Slot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    anchors: Optional[FrozenSet[str]] = None


class AnchorIndex:
    """Lazily computes and caches anchor sets per document.

    Concurrent requests for the same document wait on that document's lock
    and reuse the first computed result; different documents never block
    each other.
    """

    def __init__(self, book: Book) -> None:
        self.logger = get_logger("anchors")
        self._root = book.root.resolve()
        self._documents: Dict[str, Document] = {}
        for document in book.documents:
            self._documents[str((self._root / document.path).resolve())] = document
        self._slots: Dict[str, _Slot] = {}
        self._guard = threading.Lock()
        self.computations = 0

    def document_at(self, path: Path) -> Optional[Document]:
        return self._documents.get(str(path))

    def anchors_for(self, path: Path) -> FrozenSet[str]:
        """Return anchors for the markdown file at the canonical ``path``."""
        key = str(path)
        with self._guard:
            slot = self._slots.setdefault(key, _Slot())
        with slot.lock:
            if slot.anchors is None:
                slot.anchors = collect_anchors(self._load_text(path))
                with self._guard:
                    self.computations += 1
                self.logger.debug("Collected %d anchor(s) for %s", len(slot.anchors), path)
            return slot.anchors

    def anchors_for_document(self, document: Document) -> FrozenSet[str]:
        return self.anchors_for((self._root / document.path).resolve())

    def check(self, fragment: str, anchors: FrozenSet[str]) -> Outcome:
        """Return ``Valid`` when ``fragment`` names one of ``anchors``."""
        if not fragment:
            return Outcome.valid()
        decoded = unquote(fragment)
        if decoded in anchors:
            return Outcome.valid()
        return Outcome.error("anchor not found")

    def _load_text(self, path: Path) -> str:
        document = self._documents.get(str(path))
        if document is not None:
            return document.text
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            self.logger.debug("Unable to read %s for anchors: %s", path, exc)
            return ""


__all__ = ["AnchorIndex", "collect_anchors", "heading_text", "normalize_id"]
