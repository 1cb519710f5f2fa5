"""Span-aware extraction of links from markdown documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..logging import get_logger
from ..models import Document, LinkOccurrence
from .regions import mask_regions

_REFERENCE_DEFINITION = re.compile(
    r"^ {0,3}\[(?P<label>(?:[^\[\]\\]|\\.){1,999})\]:[ \t]*(?:\r?\n[ \t]*)?"
    r"(?P<dest><[^<>\r\n]*>|[^\s<>][^\s]*)"
    r"(?:[ \t]+(?P<title>\"[^\"\r\n]*\"|'[^'\r\n]*'|\([^)\r\n]*\)))?[ \t]*$",
    re.MULTILINE,
)
_AUTOLINK = re.compile(r"<(?P<url>[A-Za-z][A-Za-z0-9+.-]{1,31}:[^\s<>]*)>")
_LIST_ITEM_PREFIX = re.compile(r"^\s*(?:[-*+]|\d{1,9}[.)])\s+$")
_BLANK_LINE = re.compile(r"\n[ \t]*\r?\n")


@dataclass
class ReferenceDefinition:
    """A ``[label]: destination "title"`` line."""

    label: str
    dest_start: int
    dest_end: int
    title: Optional[str]
    start: int
    end: int


@dataclass
class _ScanState:
    document: Document
    masked: str
    definitions: Dict[str, ReferenceDefinition]
    occurrences: List[LinkOccurrence] = field(default_factory=list)
    link_texts: List[Tuple[int, int]] = field(default_factory=list)
    destinations: List[Tuple[int, int]] = field(default_factory=list)
    consumed: Set[int] = field(default_factory=set)


def normalize_label(label: str) -> str:
    """Reference labels match case-insensitively with collapsed whitespace."""
    return " ".join(label.split()).casefold()


def _is_escaped(text: str, index: int) -> bool:
    backslashes = 0
    index -= 1
    while index >= 0 and text[index] == "\\":
        backslashes += 1
        index -= 1
    return backslashes % 2 == 1


def _strip_angle_brackets(text: str, start: int, end: int) -> Tuple[int, int]:
    if end - start >= 2 and text[start] == "<" and text[end - 1] == ">":
        return start + 1, end - 1
    return start, end


class LinkScanner:
    """Finds inline, image, reference and autolink occurrences with exact spans.

    Code blocks, code spans, HTML comments and math fragments are blanked
    before scanning, so anything that merely looks like a link inside them
    (``$[x](v)$``, ``\\([a](b)\\)``) is never reported.
    """

    def __init__(self) -> None:
        self.logger = get_logger("scanner")

    def scan(self, document: Document) -> List[LinkOccurrence]:
        """Return every link occurrence in ``document`` in source order."""
        masked, regions = mask_regions(document.text)
        if regions:
            self.logger.debug(
                "%s: ignoring %d code/math region(s)", document.path, len(regions)
            )
        definitions = self._collect_definitions(masked)
        state = _ScanState(document=document, masked=masked, definitions=definitions)

        index = masked.find("[")
        while index != -1:
            if not _is_escaped(masked, index):
                self._scan_bracket(state, index)
            index = masked.find("[", index + 1)

        self._scan_autolinks(state)
        state.occurrences.sort(key=lambda occurrence: (occurrence.span.start, occurrence.href_span.start))
        self.logger.debug("%s: found %d link(s)", document.path, len(state.occurrences))
        return state.occurrences

    # ------------------------------------------------------------------
    # Internal helpers

    def _collect_definitions(self, masked: str) -> Dict[str, ReferenceDefinition]:
        definitions: Dict[str, ReferenceDefinition] = {}
        for match in _REFERENCE_DEFINITION.finditer(masked):
            label = normalize_label(match.group("label"))
            if not label or label.startswith("^"):
                continue
            dest_start, dest_end = _strip_angle_brackets(
                masked, match.start("dest"), match.end("dest")
            )
            title = match.group("title")
            # the first definition of a label wins
            definitions.setdefault(
                label,
                ReferenceDefinition(
                    label=label,
                    dest_start=dest_start,
                    dest_end=dest_end,
                    title=title[1:-1] if title else None,
                    start=match.start(),
                    end=match.end(),
                ),
            )
        return definitions

    def _scan_bracket(self, state: _ScanState, start: int) -> None:
        masked = state.masked
        if start in state.consumed:
            return
        if any(d.start <= start < d.end for d in state.definitions.values()):
            return
        if any(d_start <= start < d_end for d_start, d_end in state.destinations):
            return
        close = self._matching_bracket(masked, start)
        if close is None:
            return
        is_image = start > 0 and masked[start - 1] == "!" and not _is_escaped(masked, start - 1)
        construct_start = start - 1 if is_image else start
        kind = "image" if is_image else "inline"

        after = close + 1
        if after < len(masked) and masked[after] == "(":
            parsed = self._parse_destination(masked, after)
            if parsed is not None:
                dest_start, dest_end, title, end = parsed
                state.link_texts.append((start + 1, close))
                state.destinations.append((after, end))
                self._emit(state, dest_start, dest_end, construct_start, end, title, kind)
                return

        label_start, label_end = start + 1, close
        end = after
        if after < len(masked) and masked[after] == "[":
            second = self._matching_bracket(masked, after)
            if second is not None:
                end = second + 1
                state.consumed.add(after)
                if masked[after + 1 : second].strip():
                    label_start, label_end = after + 1, second

        if end == after and after < len(masked) and masked[after] == ":":
            return  # looks like a malformed definition, not a reference

        text = state.document.text
        label = normalize_label(text[label_start:label_end])
        definition = state.definitions.get(label)
        if definition is not None:
            state.link_texts.append((start + 1, close))
            self._emit(
                state,
                definition.dest_start,
                definition.dest_end,
                construct_start,
                end,
                definition.title,
                "reference",
            )
            return

        if self._is_incomplete_candidate(state, start, close, label):
            occurrence = LinkOccurrence(
                document=state.document,
                href=text[label_start:label_end],
                href_span=state.document.span(construct_start, end),
                span=state.document.span(construct_start, end),
                kind="incomplete",
            )
            state.occurrences.append(occurrence)

    def _is_incomplete_candidate(
        self, state: _ScanState, start: int, close: int, label: str
    ) -> bool:
        if not label or label.startswith("^") or "](" in label:
            return False
        if any(text_start <= start and close <= text_end for text_start, text_end in state.link_texts):
            return False
        if label == "x":
            # task list marker
            line_start = state.masked.rfind("\n", 0, start) + 1
            if _LIST_ITEM_PREFIX.match(state.masked[line_start:start]):
                return False
        return True

    def _emit(
        self,
        state: _ScanState,
        dest_start: int,
        dest_end: int,
        start: int,
        end: int,
        title: Optional[str],
        kind: str,
    ) -> None:
        document = state.document
        dest_start, dest_end = _strip_angle_brackets(document.text, dest_start, dest_end)
        href = _unescape(document.text[dest_start:dest_end])
        state.occurrences.append(
            LinkOccurrence(
                document=document,
                href=href,
                href_span=document.span(dest_start, dest_end),
                span=document.span(start, end),
                title=title,
                kind=kind,
            )
        )

    def _scan_autolinks(self, state: _ScanState) -> None:
        for match in _AUTOLINK.finditer(state.masked):
            start, end = match.span()
            if any(d_start <= start and end <= d_end for d_start, d_end in state.destinations):
                continue
            self._emit(
                state,
                match.start("url"),
                match.end("url"),
                start,
                end,
                None,
                "autolink",
            )

    @staticmethod
    def _matching_bracket(text: str, start: int) -> Optional[int]:
        depth = 0
        index = start
        limit = len(text)
        blank = _BLANK_LINE.search(text, start)
        if blank is not None:
            limit = blank.start()
        while index < limit:
            char = text[index]
            if char == "\\":
                index += 2
                continue
            if char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    return index
            index += 1
        return None

    @staticmethod
    def _parse_destination(
        text: str, open_paren: int
    ) -> Optional[Tuple[int, int, Optional[str], int]]:
        """Parse ``(dest "title")`` starting at ``open_paren``.

        Returns the destination range, the title and the offset just past
        the closing parenthesis.
        """
        length = len(text)
        index = _skip_whitespace(text, open_paren + 1)
        if index >= length:
            return None

        if text[index] == "<":
            close = index + 1
            while close < length and text[close] not in "<>\r\n":
                if text[close] == "\\":
                    close += 1
                close += 1
            if close >= length or text[close] != ">":
                return None
            dest_start, dest_end = index, close + 1
            index = close + 1
        else:
            dest_start = index
            depth = 0
            while index < length:
                char = text[index]
                if char == "\\" and index + 1 < length:
                    index += 2
                    continue
                if char.isspace() or ord(char) < 0x20:
                    break
                if char == "(":
                    depth += 1
                elif char == ")":
                    if depth == 0:
                        break
                    depth -= 1
                index += 1
            dest_end = index

        title: Optional[str] = None
        index = _skip_whitespace(text, index)
        if index < length and text[index] in "\"'(" and index > dest_end:
            closer = ")" if text[index] == "(" else text[index]
            close = index + 1
            while close < length and text[close] != closer:
                if text[close] == "\\":
                    close += 1
                close += 1
            if close >= length:
                return None
            title = text[index + 1 : close]
            index = _skip_whitespace(text, close + 1)

        if index >= length or text[index] != ")":
            return None
        return dest_start, dest_end, title, index + 1


def _skip_whitespace(text: str, index: int) -> int:
    newlines = 0
    while index < len(text) and text[index] in " \t\r\n":
        if text[index] == "\n":
            newlines += 1
            if newlines > 1:
                break
        index += 1
    return index


_ESCAPABLE = re.compile(r"\\([!\"#$%&'()*+,./:;<=>?@\[\\\]^_`{|}~])")


def _unescape(href: str) -> str:
    # keep `\#` so the classifier can tell an escaped hash from a fragment
    return _ESCAPABLE.sub(lambda m: m.group(0) if m.group(1) == "#" else m.group(1), href)


def scan_document(document: Document) -> List[LinkOccurrence]:
    """Convenience wrapper returning a fresh occurrence list for ``document``."""
    return LinkScanner().scan(document)


__all__ = ["LinkScanner", "ReferenceDefinition", "normalize_label", "scan_document"]
