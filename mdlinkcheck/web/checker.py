"""Validation of web links through cached, retried HTTP requests."""

from __future__ import annotations

import http.client
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit, urlunsplit
from urllib.request import Request, urlopen

from ..classify import is_web_scheme
from ..config import LinkCheckConfig
from ..logging import get_logger
from ..models import Outcome
from ..stores import OutcomeCache
from .interpolation import InterpolationError, interpolate


class TransportError(RuntimeError):
    """Raised by fetchers when no HTTP response could be obtained."""


@dataclass
class FetchRequest:
    """A single HTTP request issued while checking a web link."""

    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    method: str = "GET"


Fetcher = Callable[[FetchRequest], int]


def normalize_url(url: str) -> str:
    """Cache key for ``url``: lower-cased scheme and host, no fragment."""
    parts = urlsplit(url.strip())
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, "")
    )


def _is_retryable(status: int) -> bool:
    return status == 429 or status >= 500


class WebChecker:
    """Checks web links, consulting the shared outcome cache before the network."""

    def __init__(
        self,
        config: LinkCheckConfig,
        cache: OutcomeCache,
        *,
        fetcher: Fetcher | None = None,
        env: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.cache = cache
        self.logger = get_logger("web")
        self._fetcher = fetcher or self._urllib_fetcher
        self._env = env
        self._sleep = sleep

    def check(self, url: str) -> Outcome:
        """Return the outcome for ``url`` following the exclusion, cache and retry policy."""
        if self.config.should_skip(url):
            self.logger.debug('Skipping excluded "%s"', url)
            return Outcome.valid("excluded")
        if not self.config.follow_web_links:
            self.logger.debug('Ignoring "%s" because web links are not followed', url)
            return Outcome.valid("not followed")
        if not is_web_scheme(url):
            self.logger.debug('Ignoring "%s" with an unsupported scheme', url)
            return Outcome.valid("unsupported scheme")

        key = normalize_url(url)
        outcome, cached = self.cache.get_or_compute(
            key,
            timeout=self.config.cache_timeout,
            compute=lambda: self._fetch(url),
        )
        if not cached:
            self.logger.debug('"%s" checked: %s', key, outcome.reason or outcome.status)
        return outcome

    def build_headers(self, url: str) -> Dict[str, str]:
        """Headers sent to ``url``; headers whose interpolation fails are skipped."""
        headers = {"User-Agent": self.config.user_agent}
        for header in self.config.headers_for(url):
            try:
                headers[header.name] = interpolate(header.value, self._env)
            except InterpolationError as exc:
                self.logger.warning('Unable to interpolate "%s" because %s', header, exc)
        return headers

    def _fetch(self, url: str) -> Outcome:
        request = FetchRequest(
            url=url,
            headers=self.build_headers(url),
            timeout=self.config.request_timeout,
        )
        attempts = self.config.max_retries + 1
        outcome = Outcome.error("transport failure: no attempt made")
        for attempt in range(1, attempts + 1):
            self.logger.debug('Sending a GET request to "%s" (attempt %d)', url, attempt)
            try:
                status = self._fetcher(request)
            except TransportError as exc:
                outcome = Outcome.error(f"transport failure: {exc}")
                retry = True
            else:
                if 200 <= status < 300:
                    return Outcome.valid()
                outcome = Outcome.error(f"HTTP status {status}")
                retry = _is_retryable(status)
            if not retry or attempt == attempts:
                break
            self.logger.debug('"%s" failed with %s; retrying', url, outcome.reason)
            self._sleep(self.config.retry_backoff * attempt)
        return outcome

    @staticmethod
    def _urllib_fetcher(request: FetchRequest) -> int:
        http_request = Request(request.url, headers=request.headers, method=request.method)
        try:
            with urlopen(http_request, timeout=request.timeout) as response:  # noqa: S310
                return int(response.status)
        except HTTPError as exc:
            exc.close()
            return int(exc.code)
        except URLError as exc:
            raise TransportError(str(exc.reason)) from exc
        except (TimeoutError, http.client.HTTPException, OSError, ValueError) as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc


__all__ = ["FetchRequest", "Fetcher", "TransportError", "WebChecker", "normalize_url"]
