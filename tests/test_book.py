"""Tests for standalone book loading."""

from __future__ import annotations

import pytest

from mdlinkcheck.book import load_book


def test_load_book_collects_markdown_in_sorted_order(book_builder) -> None:
    book_builder.write(
        {
            "SUMMARY.md": "- [Intro](intro.md)\n",
            "intro.md": "# Intro\n",
            "nested/b.md": "",
            "nested/a.markdown": "",
            "image.png": "not really",
            ".hidden/secret.md": "",
            ".git/HEAD.md": "",
            ".linkcheck/notes.md": "",
            "node_modules/pkg/README.md": "",
        }
    )

    book = book_builder.load()

    assert book.root == book_builder.path().resolve()
    assert [document.path for document in book.documents] == [
        "SUMMARY.md",
        "intro.md",
        "nested/a.markdown",
        "nested/b.md",
    ]
    assert book.documents[1].text == "# Intro\n"


def test_load_book_skips_files_that_are_not_utf8(book_builder) -> None:
    book_builder.write({"good.md": "# Good\n"})
    (book_builder.path() / "latin1.md").write_bytes("caf\xe9\n".encode("latin-1"))

    book = load_book(book_builder.path())

    assert [document.path for document in book.documents] == ["good.md"]


def test_load_book_requires_a_directory(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_book(tmp_path / "nope")
