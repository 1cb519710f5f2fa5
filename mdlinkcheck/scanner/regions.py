"""Detection of code and math regions that must never yield links.

Regions are blanked out rather than removed: every character except line
breaks is replaced with a space, so offsets in the masked text are the
offsets in the original document and no index remapping is needed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

_FENCE_OPEN = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_INDENTED = re.compile(r"^(?: {4}| {0,3}\t)")
# an indented line right after a list item continues the item
_LIST_ITEM = re.compile(r"^ {0,3}(?:[-*+]|\d{1,9}[.)])(?:[ \t]|$)")
# code spans end at the first backtick run of the same length within a paragraph
_INLINE_CODE = re.compile(
    r"(?<![`\\])(?P<ticks>`+)(?!`)(?P<body>(?:(?!\n[ \t]*\r?\n).)+?)(?<!`)(?P=ticks)(?!`)",
    re.DOTALL,
)
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)

# Order matters: later patterns never see text claimed by earlier ones.
_MATH_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    # $$ ... $$, newlines allowed
    ("block", re.compile(r"(?<!\\)\$\$[^$]*\$\$")),
    # $ ... $ on a single line; a lone `$` never opens a region
    ("inline", re.compile(r"(?<!\\)\$(?:[^$\\\r\n]|\\[^\r\n])*\$")),
    # \( ... \) on a single line
    ("paren", re.compile(r"\\\([^\r\n]*?\\\)")),
    # \[ ... \], newlines allowed
    ("bracket", re.compile(r"\\\[.*?\\\]", re.DOTALL)),
)


@dataclass(frozen=True)
class Region:
    """A half-open character range that is not scanned for links."""

    start: int
    end: int
    kind: str

    def contains(self, start: int, end: int) -> bool:
        return self.start <= start and end <= self.end


def _blank(chunk: str) -> str:
    return "".join(ch if ch in "\r\n" else " " for ch in chunk)


def _mask_pattern(
    text: str, pattern: "re.Pattern[str]", kind: str, regions: List[Region]
) -> str:
    def _replace(match: "re.Match[str]") -> str:
        regions.append(Region(match.start(), match.end(), kind))
        return _blank(match.group(0))

    return pattern.sub(_replace, text)


def _mask_fences(text: str, regions: List[Region]) -> str:
    pieces: List[str] = []
    offset = 0
    fence: str | None = None
    fence_start = 0
    for line in text.splitlines(keepends=True):
        stripped = line.rstrip("\r\n")
        if fence is None:
            match = _FENCE_OPEN.match(stripped)
            if match and not (match.group("fence")[0] == "`" and "`" in match.group("info")):
                fence = match.group("fence")
                fence_start = offset
                pieces.append(_blank(line))
            else:
                pieces.append(line)
        else:
            pieces.append(_blank(line))
            candidate = stripped.strip()
            if (
                candidate
                and set(candidate) == {fence[0]}
                and len(candidate) >= len(fence)
                and len(stripped) - len(stripped.lstrip(" ")) <= 3
            ):
                regions.append(Region(fence_start, offset + len(stripped), "code"))
                fence = None
        offset += len(line)
    if fence is not None:
        regions.append(Region(fence_start, offset, "code"))
    return "".join(pieces)


def _mask_indented(text: str, regions: List[Region]) -> str:
    pieces: List[str] = []
    offset = 0
    block_start: int | None = None
    block_end = 0
    previous_blank = True
    in_list = False
    for line in text.splitlines(keepends=True):
        stripped = line.rstrip("\r\n")
        blank = not stripped.strip()
        indented = not blank and _INDENTED.match(stripped) is not None
        if block_start is not None and not (blank or indented):
            regions.append(Region(block_start, block_end, "code"))
            block_start = None
        if indented and (block_start is not None or (previous_blank and not in_list)):
            if block_start is None:
                block_start = offset
            block_end = offset + len(stripped)
            pieces.append(_blank(line))
        else:
            pieces.append(line)
            if _LIST_ITEM.match(stripped):
                in_list = True
            elif in_list and previous_blank and not blank and not indented:
                in_list = False
        previous_blank = blank
        offset += len(line)
    if block_start is not None:
        regions.append(Region(block_start, block_end, "code"))
    return "".join(pieces)


def mask_regions(text: str) -> Tuple[str, List[Region]]:
    """Return ``text`` with code, comments and math blanked, plus the regions found."""
    regions: List[Region] = []
    masked = _mask_fences(text, regions)
    masked = _mask_indented(masked, regions)
    masked = _mask_pattern(masked, _INLINE_CODE, "code", regions)
    masked = _mask_pattern(masked, _HTML_COMMENT, "comment", regions)
    for kind, pattern in _MATH_PATTERNS:
        masked = _mask_pattern(masked, pattern, f"math-{kind}", regions)
    regions.sort(key=lambda region: region.start)
    return masked, regions


def math_regions(text: str) -> List[Region]:
    """Return only the math regions of ``text``."""
    _, regions = mask_regions(text)
    return [region for region in regions if region.kind.startswith("math")]


__all__ = ["Region", "mask_regions", "math_regions"]
