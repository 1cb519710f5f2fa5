"""Core data models shared across mdlinkcheck components."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class Span:
    """Half-open UTF-8 byte range into a document plus its 1-based line/column."""

    start: int
    end: int
    line: int
    column: int

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, eq=False)
class Document:
    """A single markdown chapter of the book, immutable for the run.

    ``path`` is the POSIX path relative to the book root. Documents compare
    by identity so occurrences can hold them cheaply.
    """

    path: str
    text: str
    _line_starts: Tuple[int, ...] = field(init=False, repr=False)
    _line_byte_starts: Tuple[int, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        starts = [0]
        byte_starts = [0]
        byte_offset = 0
        for line in self.text.split("\n")[:-1]:
            byte_offset += len(line.encode("utf-8")) + 1
            starts.append(starts[-1] + len(line) + 1)
            byte_starts.append(byte_offset)
        object.__setattr__(self, "_line_starts", tuple(starts))
        object.__setattr__(self, "_line_byte_starts", tuple(byte_starts))

    @property
    def directory(self) -> str:
        parent = Path(self.path).parent.as_posix()
        return "" if parent == "." else parent

    def line_of(self, offset: int) -> int:
        """Return the 0-based line index holding the character ``offset``."""
        return max(bisect_right(self._line_starts, offset) - 1, 0)

    def byte_offset(self, offset: int) -> int:
        index = self.line_of(offset)
        line_start = self._line_starts[index]
        prefix = self.text[line_start:offset]
        return self._line_byte_starts[index] + len(prefix.encode("utf-8"))

    def span(self, start: int, end: int) -> Span:
        """Build a ``Span`` from character offsets into ``text``."""
        index = self.line_of(start)
        column = start - self._line_starts[index] + 1
        return Span(
            start=self.byte_offset(start),
            end=self.byte_offset(end),
            line=index + 1,
            column=column,
        )

    def line_text(self, line: int) -> str:
        """Return the 1-based ``line`` without its terminator."""
        if line < 1 or line > len(self._line_starts):
            return ""
        start = self._line_starts[line - 1]
        end = self._line_starts[line] if line < len(self._line_starts) else len(self.text)
        return self.text[start:end].rstrip("\r\n")


@dataclass
class Book:
    """The documents of a book plus the directory they are rooted at."""

    root: Path
    documents: List[Document]


@dataclass(frozen=True)
class LinkOccurrence:
    """A link-like construct found by the scanner."""

    document: Document
    href: str
    href_span: Span
    span: Span
    title: Optional[str] = None
    kind: str = "inline"


@dataclass(frozen=True)
class WebLink:
    url: str


@dataclass(frozen=True)
class FilesystemLink:
    path: str
    fragment: Optional[str] = None


@dataclass(frozen=True)
class AnchorLink:
    fragment: str


ClassifiedLink = Union[WebLink, FilesystemLink, AnchorLink]


@dataclass(frozen=True)
class ResolvedTarget:
    """Canonical location of a filesystem link."""

    path: Path
    outside_root: bool
    absolute_link: bool = False


VALID = "valid"
WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    """Result of checking one link occurrence."""

    status: str
    reason: str = ""
    notes: Tuple[str, ...] = ()

    @classmethod
    def valid(cls, reason: str = "") -> "Outcome":
        return cls(VALID, reason)

    @classmethod
    def warning(cls, reason: str, *notes: str) -> "Outcome":
        return cls(WARNING, reason, tuple(notes))

    @classmethod
    def error(cls, reason: str, *notes: str) -> "Outcome":
        return cls(ERROR, reason, tuple(notes))

    @property
    def is_valid(self) -> bool:
        return self.status == VALID


__all__ = [
    "AnchorLink",
    "Book",
    "ClassifiedLink",
    "Document",
    "ERROR",
    "FilesystemLink",
    "LinkOccurrence",
    "Outcome",
    "ResolvedTarget",
    "Span",
    "VALID",
    "WARNING",
    "WebLink",
]
