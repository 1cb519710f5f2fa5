"""Tests for run coordination in the link checker."""

from __future__ import annotations

import os

from mdlinkcheck.config import LinkCheckConfig
from mdlinkcheck.orchestrator import LinkChecker, default_workers
from mdlinkcheck.resolve import PathResolver
from mdlinkcheck.stores import OutcomeCache


def test_default_workers_follow_available_parallelism() -> None:
    assert default_workers() == min(32, (os.cpu_count() or 1) + 4)


def test_cache_is_reused_between_runs(book_builder) -> None:
    book_builder.write({"index.md": "<https://example.com/page>\n"})
    book = book_builder.load()
    calls = []

    def fetcher(request):
        calls.append(request.url)
        return 200

    cache = OutcomeCache()
    checker = LinkChecker(LinkCheckConfig(follow_web_links=True), fetcher=fetcher, cache=cache)

    assert checker.check_book(book).success
    assert checker.check_book(book).success
    assert calls == ["https://example.com/page"]
    assert "https://example.com/page" in cache


def test_failing_web_task_becomes_an_anomaly(book_builder) -> None:
    book_builder.write(
        {"index.md": "[web](https://example.com/boom)\n[local](missing.md)\n"}
    )

    def fetcher(request):
        raise ValueError("unexpected fetcher bug")

    config = LinkCheckConfig(follow_web_links=True, jobs=2)
    report = LinkChecker(config, fetcher=fetcher).check_book(book_builder.load())

    assert len(report.anomalies) == 1
    assert "unexpected fetcher bug" in report.anomalies[0].message
    assert [diagnostic.reason for diagnostic in report.diagnostics] == ["file not found"]
    assert not report.success


def test_same_file_anchors_are_checked(book_builder) -> None:
    book_builder.write(
        {"index.md": "# Overview\n\n[up](#overview) [down](#missing-section)\n"}
    )

    report = LinkChecker().check_book(book_builder.load())

    (diagnostic,) = report.diagnostics
    assert diagnostic.occurrence.href == "#missing-section"
    assert diagnostic.reason == "anchor not found"


def test_failing_link_check_is_isolated_from_its_siblings(book_builder, monkeypatch) -> None:
    book_builder.write({"index.md": "[boom](explode.md)\n[missing](missing.md)\n"})
    original_check = PathResolver.check

    def flaky_check(self, link, document):
        if link.path == "explode.md":
            raise RuntimeError("resolver bug")
        return original_check(self, link, document)

    monkeypatch.setattr(PathResolver, "check", flaky_check)

    report = LinkChecker().check_book(book_builder.load())

    (anomaly,) = report.anomalies
    assert anomaly.document == "index.md"
    assert '"explode.md"' in anomaly.message
    assert "resolver bug" in anomaly.message
    assert [diagnostic.occurrence.href for diagnostic in report.diagnostics] == ["missing.md"]
    assert not report.success
