"""End-to-end checks over books written to disk."""

from __future__ import annotations

import re

import pytest

from mdlinkcheck import LinkChecker, LinkCheckConfig, WarningPolicy
from mdlinkcheck.scanner import LinkScanner


def test_existing_sibling_produces_no_report_entries(book_builder) -> None:
    book_builder.write({"chapter.md": "[ok](./sibling.md)\n", "sibling.md": "# Sibling\n"})

    report = LinkChecker().check_book(book_builder.load())

    assert report.diagnostics == []
    assert report.success
    assert report.checked == 1


def test_missing_sibling_yields_one_error_at_the_href(book_builder) -> None:
    book_builder.write(
        {
            "chapter.md": "[ok](./sibling.md)\n[bad](./missing.md)\n",
            "sibling.md": "# Sibling\n",
        }
    )

    report = LinkChecker().check_book(book_builder.load())

    (diagnostic,) = report.diagnostics
    assert diagnostic.reason == "file not found"
    assert diagnostic.severity == "error"
    assert diagnostic.document.path == "chapter.md"
    assert diagnostic.occurrence.href == "./missing.md"
    span = diagnostic.span
    assert (span.start, span.end, span.line, span.column) == (25, 37, 2, 7)


def test_nested_chapters_resolve_relative_to_themselves(book_builder) -> None:
    book_builder.write(
        {
            "chapter_1.md": "# Chapter 1\n",
            "nested/sub-sub/deeply-nested.md": (
                "[good](../../chapter_1.md)\n[bad](./chapter_1.md)\n"
            ),
        }
    )

    report = LinkChecker().check_book(book_builder.load())

    assert [diagnostic.occurrence.href for diagnostic in report.diagnostics] == ["./chapter_1.md"]


def test_math_fragments_are_not_checked(book_builder) -> None:
    book_builder.write(
        {
            "latex.md": (
                "# Latex\n"
                "The set $S = [x]_5$ and $$\\left[0, 1\\right](x)$$ are maths.\n"
                "Also \\([a](b)\\) inline.\n"
                "A stray $ here but [this](first_broken_link_nonlatex) is real.\n"
            )
        }
    )

    report = LinkChecker().check_book(book_builder.load())

    assert [diagnostic.occurrence.href for diagnostic in report.diagnostics] == [
        "first_broken_link_nonlatex"
    ]


@pytest.fixture
def broken_book(book_builder):
    book_builder.write(
        {
            "index.md": "[gone](gone.md)\n[empty]()\n[anchor](#nowhere)\n# Index\n",
        }
    )
    return book_builder.load()


@pytest.mark.parametrize(
    ("policy", "success", "entries"),
    [
        (WarningPolicy.WARN, True, 3),
        (WarningPolicy.ERROR, False, 3),
        (WarningPolicy.IGNORE, True, 0),
    ],
)
def test_warning_policies(broken_book, policy, success, entries) -> None:
    config = LinkCheckConfig(warning_policy=policy)

    report = LinkChecker(config).check_book(broken_book)

    assert report.success is success
    assert len(report.diagnostics) == entries


def test_error_policy_fails_on_warnings_alone(book_builder) -> None:
    book_builder.write({"index.md": "[empty]()\n"})
    book = book_builder.load()

    assert LinkChecker().check_book(book).success
    report = LinkChecker(LinkCheckConfig(warning_policy=WarningPolicy.ERROR)).check_book(book)
    assert not report.success
    assert report.diagnostics[0].severity == "error"
    assert report.diagnostics[0].outcome.status == "warning"


def test_web_targets_are_fetched_once_per_run(book_builder) -> None:
    book_builder.write(
        {
            "a.md": "[docs](https://example.com/docs) [again](https://EXAMPLE.com/docs#part)\n",
            "b.md": "[same](https://example.com/docs)\n[other](https://example.com/ok)\n",
        }
    )
    requests = []

    def fetcher(request):
        requests.append(request.url)
        return 404 if request.url.endswith("/docs") else 200

    config = LinkCheckConfig(follow_web_links=True, max_retries=0)
    report = LinkChecker(config, fetcher=fetcher).check_book(book_builder.load())

    assert sorted(requests) == ["https://example.com/docs", "https://example.com/ok"]
    assert [diagnostic.document.path for diagnostic in report.diagnostics] == ["a.md", "a.md", "b.md"]
    assert {diagnostic.reason for diagnostic in report.diagnostics} == {"HTTP status 404"}


def test_web_links_are_assumed_valid_when_not_followed(book_builder) -> None:
    book_builder.write({"a.md": "[docs](https://example.com/docs)\n"})

    def fetcher(request):
        raise AssertionError("network must not be used")

    report = LinkChecker(fetcher=fetcher).check_book(book_builder.load())
    assert report.diagnostics == []


def test_excluded_links_are_skipped(book_builder) -> None:
    book_builder.write({"a.md": "[generated](generated/api.md)\n[missing](missing.md)\n"})
    config = LinkCheckConfig(exclude=[re.compile(r"^generated/")])

    report = LinkChecker(config).check_book(book_builder.load())

    assert [diagnostic.occurrence.href for diagnostic in report.diagnostics] == ["missing.md"]


def test_incomplete_link_severity_is_configurable(book_builder) -> None:
    book_builder.write({"a.md": "A [dangling] reference.\n"})
    book = book_builder.load()

    (warning,) = LinkChecker().check_book(book).diagnostics
    assert warning.severity == "warning"

    config = LinkCheckConfig(incomplete_link_severity="error")
    (error,) = LinkChecker(config).check_book(book).diagnostics
    assert error.severity == "error"
    assert error.message == "Did you forget to define a URL for `dangling`?"


class ExplodingScanner(LinkScanner):
    def scan(self, document):
        if document.path == "bad.md":
            raise RuntimeError("scanner exploded")
        return super().scan(document)


def test_internal_failures_become_anomalies(book_builder) -> None:
    book_builder.write({"bad.md": "[x](x.md)\n", "good.md": "[y](y.md)\n"})

    report = LinkChecker(scanner=ExplodingScanner()).check_book(book_builder.load())

    assert [anomaly.document for anomaly in report.anomalies] == ["bad.md"]
    assert "scanner exploded" in report.anomalies[0].message
    assert [diagnostic.occurrence.href for diagnostic in report.diagnostics] == ["y.md"]
    assert not report.success


def test_unresolvable_path_does_not_hide_other_links(book_builder) -> None:
    book_builder.write({"index.md": "[nul](bad%00.md)\n[missing](missing.md)\n"})

    report = LinkChecker().check_book(book_builder.load())

    assert report.anomalies == []
    assert [(diagnostic.occurrence.href, diagnostic.reason) for diagnostic in report.diagnostics] == [
        ("bad%00.md", "file not found"),
        ("missing.md", "file not found"),
    ]


def test_anchor_fragments_are_case_sensitive(book_builder) -> None:
    book_builder.write(
        {
            "index.md": "# Intro\n\n[same](#intro) [shouted](#INTRO) [other](page.md#Setup)\n",
            "page.md": "## Setup\n",
        }
    )

    report = LinkChecker().check_book(book_builder.load())

    assert [(diagnostic.occurrence.href, diagnostic.reason) for diagnostic in report.diagnostics] == [
        ("#INTRO", "anchor not found"),
        ("page.md#Setup", "anchor not found"),
    ]
