"""Tests for code and math region masking."""

from __future__ import annotations

from mdlinkcheck.scanner import mask_regions, math_regions


def test_masking_preserves_offsets_and_line_breaks() -> None:
    text = "a $x$ b\n```\ncode\n```\nend `tick`\n"
    masked, regions = mask_regions(text)

    assert len(masked) == len(text)
    assert masked.count("\n") == text.count("\n")
    assert masked.startswith("a     b\n")
    assert masked.endswith("end       \n")
    assert [region.kind for region in regions] == ["math-inline", "code", "code"]


def test_math_region_kinds() -> None:
    text = "$$\nE = mc^2\n$$\ninline $a$ and \\(b\\) and \\[c\\]\n"
    kinds = [region.kind for region in math_regions(text)]

    assert kinds == ["math-block", "math-inline", "math-paren", "math-bracket"]


def test_single_dollar_never_opens_a_region() -> None:
    assert math_regions("price: $5\nand later $6\n") == []
    assert math_regions("escaped \\$ and $x$") != []
    region = math_regions("escaped \\$ and $x$")[0]
    assert region.contains(15, 18)
    assert not region.contains(8, 18)


def test_inline_math_does_not_cross_lines() -> None:
    text = "open $ here\n[link](target.md) $ close\n"
    assert math_regions(text) == []


def test_indented_code_blocks_are_masked() -> None:
    text = "Example:\n\n    let v = a[i](missing.md);\n\n    more();\nAfter.\n"
    masked, regions = mask_regions(text)

    assert [(region.kind, text[region.start : region.end]) for region in regions] == [
        ("code", "    let v = a[i](missing.md);\n\n    more();")
    ]
    assert masked.endswith("\n\n           \nAfter.\n")


def test_indented_lines_continuing_a_paragraph_or_list_are_kept() -> None:
    text = "Paragraph\n    still paragraph\n\n- item\n\n    item body\n"
    masked, regions = mask_regions(text)

    assert regions == []
    assert masked == text
