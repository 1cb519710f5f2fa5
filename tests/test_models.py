"""Tests for the core document and outcome models."""

from __future__ import annotations

from mdlinkcheck.models import Document, Outcome, Span


def test_document_span_reports_utf8_bytes_and_columns() -> None:
    document = Document("chapter.md", "é [a](b)\nnext [c](d)\n")

    first = document.span(3, 8)
    assert first == Span(start=4, end=9, line=1, column=4)
    assert len(first) == 5

    second_line_offset = document.text.index("[c]")
    second = document.span(second_line_offset, second_line_offset + 3)
    assert second.line == 2
    assert second.column == 6
    assert second.start == len("é [a](b)\nnext ".encode("utf-8"))


def test_document_directory_is_relative_to_book_root() -> None:
    assert Document("intro.md", "").directory == ""
    assert Document("nested/deeply/page.md", "").directory == "nested/deeply"


def test_line_text_handles_missing_trailing_newline() -> None:
    document = Document("page.md", "one\r\ntwo")
    assert document.line_text(1) == "one"
    assert document.line_text(2) == "two"
    assert document.line_text(3) == ""
    assert document.line_of(len(document.text)) == 1


def test_outcome_constructors_carry_notes() -> None:
    assert Outcome.valid().is_valid
    warning = Outcome.warning("empty link target", "note one")
    assert warning.status == "warning"
    assert warning.notes == ("note one",)
    error = Outcome.error("file not found")
    assert not error.is_valid
    assert error.reason == "file not found"
