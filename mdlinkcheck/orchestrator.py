"""Run coordination: scanning, checking and reporting over a whole book."""

from __future__ import annotations

import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .anchors import AnchorIndex
from .classify import classify
from .config import LinkCheckConfig
from .diagnostics import Anomaly, DiagnosticsAggregator, Report, incomplete_link_outcome
from .logging import get_logger
from .models import AnchorLink, Book, Document, LinkOccurrence, Outcome, WebLink
from .resolve import PathResolver
from .scanner import LinkScanner
from .stores import OutcomeCache
from .web import Fetcher, WebChecker, normalize_url

CheckResult = Tuple[LinkOccurrence, Outcome]
PendingWeb = List[Tuple[LinkOccurrence, str]]
DocumentResult = Tuple[List[CheckResult], PendingWeb, List[Anomaly]]


def default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class LinkChecker:
    """Checks every link of a book and aggregates the results into a ``Report``."""

    def __init__(
        self,
        config: LinkCheckConfig | None = None,
        *,
        fetcher: Fetcher | None = None,
        cache: OutcomeCache | None = None,
        scanner: LinkScanner | None = None,
        env: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or LinkCheckConfig()
        self.cache = cache if cache is not None else OutcomeCache()
        self.scanner = scanner or LinkScanner()
        self.web = WebChecker(self.config, self.cache, fetcher=fetcher, env=env, sleep=sleep)
        self.logger = get_logger("orchestrator")

    def check_book(self, book: Book) -> Report:
        """Validate every link in ``book``.

        Documents are scanned and checked locally on the worker pool; web
        links are grouped by normalised URL so each target is fetched once,
        then dispatched as separate tasks. Unexpected exceptions become
        anomalies and never stop the remaining checks.
        """
        anchors = AnchorIndex(book)
        resolver = PathResolver(
            book.root,
            anchors,
            traverse_parent_directories=self.config.traverse_parent_directories,
        )
        results: List[CheckResult] = []
        anomalies: List[Anomaly] = []
        pending: Dict[str, PendingWeb] = {}
        workers = self.config.jobs or default_workers()
        self.logger.info(
            "Checking %d documents under %s with %d workers",
            len(book.documents),
            book.root,
            workers,
        )

        with ThreadPoolExecutor(max_workers=workers) as pool:
            document_futures: List[Tuple[Document, Future[DocumentResult]]] = [
                (document, pool.submit(self._check_document, document, resolver, anchors))
                for document in book.documents
            ]
            for document, future in document_futures:
                try:
                    local, web, link_anomalies = future.result()
                except Exception as exc:
                    self.logger.error("Unable to check %s", document.path, exc_info=True)
                    anomalies.append(Anomaly(f"{type(exc).__name__}: {exc}", document.path))
                    continue
                results.extend(local)
                anomalies.extend(link_anomalies)
                for occurrence, url in web:
                    pending.setdefault(normalize_url(url), []).append((occurrence, url))

            web_futures = [
                (key, pool.submit(self.web.check, group[0][1])) for key, group in pending.items()
            ]
            for key, web_future in web_futures:
                try:
                    outcome = web_future.result()
                except Exception as exc:
                    self.logger.error("Unable to check %s", key, exc_info=True)
                    anomalies.append(Anomaly(f'{type(exc).__name__} while checking "{key}": {exc}'))
                    continue
                results.extend((occurrence, outcome) for occurrence, _ in pending[key])

        self.logger.info("Checked %d links (%d distinct web targets)", len(results), len(pending))
        aggregator = DiagnosticsAggregator(self.config.warning_policy)
        return aggregator.build(results, book.documents, anomalies)

    def _check_document(
        self,
        document: Document,
        resolver: PathResolver,
        anchors: AnchorIndex,
    ) -> DocumentResult:
        occurrences = self.scanner.scan(document)
        self.logger.debug("Found %d links in %s", len(occurrences), document.path)
        local: List[CheckResult] = []
        web: PendingWeb = []
        anomalies: List[Anomaly] = []
        for occurrence in occurrences:
            try:
                self._check_occurrence(occurrence, resolver, anchors, local, web)
            except Exception as exc:
                self.logger.error(
                    'Unable to check "%s" in %s', occurrence.href, document.path, exc_info=True
                )
                anomalies.append(
                    Anomaly(
                        f'{type(exc).__name__} while checking "{occurrence.href}": {exc}',
                        document.path,
                    )
                )
        return local, web, anomalies

    def _check_occurrence(
        self,
        occurrence: LinkOccurrence,
        resolver: PathResolver,
        anchors: AnchorIndex,
        local: List[CheckResult],
        web: PendingWeb,
    ) -> None:
        if occurrence.kind == "incomplete":
            outcome = incomplete_link_outcome(occurrence, self.config.incomplete_link_severity)
            local.append((occurrence, outcome))
            return
        if self.config.should_skip(occurrence.href):
            self.logger.debug('Skipping excluded link "%s"', occurrence.href)
            local.append((occurrence, Outcome.valid("excluded")))
            return
        link = classify(occurrence.href)
        if isinstance(link, WebLink):
            web.append((occurrence, link.url))
        elif isinstance(link, AnchorLink):
            outcome = anchors.check(link.fragment, anchors.anchors_for_document(occurrence.document))
            local.append((occurrence, outcome))
        else:
            local.append((occurrence, resolver.check(link, occurrence.document)))


__all__ = ["LinkChecker", "default_workers"]
