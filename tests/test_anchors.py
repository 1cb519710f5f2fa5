"""Tests for heading anchor derivation and the per-run anchor index."""

from __future__ import annotations

import threading
from pathlib import Path

from mdlinkcheck.anchors import AnchorIndex, collect_anchors, heading_text, normalize_id
from mdlinkcheck.models import Book, Document


def test_normalize_id_matches_renderer_rules() -> None:
    assert normalize_id("Hello World!") == "hello-world"
    assert normalize_id("Rust's `Option<T>` type") == "rusts-optiont-type"
    assert normalize_id("snake_case and kebab-case") == "snake_case-and-kebab-case"


def test_heading_text_strips_inline_markup() -> None:
    assert heading_text("The `LinkScanner` [type](x.md)") == "The LinkScanner type"
    assert heading_text("**Bold** and _em_ but use_snake_case") == "Bold and em but use_snake_case"
    assert heading_text("![logo](logo.png) Logo") == "logo Logo"


def test_duplicate_headings_get_numeric_suffixes() -> None:
    anchors = collect_anchors("# Intro\n\n## Intro\n\n### Intro\n")
    assert anchors == frozenset({"intro", "intro-1", "intro-2"})


def test_collect_anchors_handles_setext_custom_ids_and_html() -> None:
    text = (
        "Setext Title\n"
        "============\n"
        "\n"
        "- list item\n"
        "---\n"
        "\n"
        "## Custom {#my-id}\n"
        "\n"
        "```\n"
        "# not a heading\n"
        "```\n"
        '<a id="manual-anchor"></a>\n'
    )
    anchors = collect_anchors(text)

    assert "setext-title" in anchors
    assert "my-id" in anchors
    assert "manual-anchor" in anchors
    assert "list-item" not in anchors
    assert "not-a-heading" not in anchors


def test_anchor_check_outcomes(tmp_path: Path) -> None:
    document = Document("page.md", "# Getting Started\n")
    index = AnchorIndex(Book(root=tmp_path, documents=[document]))
    anchors = index.anchors_for_document(document)

    assert index.check("getting-started", anchors).is_valid
    assert index.check("Getting-Started", anchors).reason == "anchor not found"
    assert index.check("", anchors).is_valid
    missing = index.check("nope", anchors)
    assert missing.status == "error"
    assert missing.reason == "anchor not found"


def test_anchor_sets_are_computed_once_under_concurrency(tmp_path: Path) -> None:
    document = Document("page.md", "# One\n## Two\n")
    index = AnchorIndex(Book(root=tmp_path, documents=[document]))
    results = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(index.anchors_for_document(document))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert index.computations == 1
    assert all(result == frozenset({"one", "two"}) for result in results)
    assert len(results) == 8


def test_anchors_for_files_outside_the_book_are_read_from_disk(tmp_path: Path) -> None:
    other = tmp_path / "other.md"
    other.write_text("# Elsewhere\n", encoding="utf-8")
    index = AnchorIndex(Book(root=tmp_path / "book", documents=[]))

    assert index.anchors_for(other.resolve()) == frozenset({"elsewhere"})
