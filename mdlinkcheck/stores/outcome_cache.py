"""Time-bounded cache of web check outcomes shared across a run."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from ..logging import get_logger
from ..models import Outcome

_CACHE_VERSION = 1


@dataclass(frozen=True)
class CacheEntry:
    """Last known outcome for a target key."""

    key: str
    valid: bool
    reason: str
    timestamp: float

    def outcome(self) -> Outcome:
        if self.valid:
            return Outcome.valid(self.reason)
        return Outcome.error(self.reason)


class OutcomeCache:
    """Stores outcomes keyed by normalised target, safe to share between workers.

    Reads and writes of the entry table go through a short-lived guard lock;
    ``get_or_compute`` additionally serialises work per key so two workers
    asking for the same target never both fetch it, while unrelated keys
    proceed in parallel.
    """

    def __init__(
        self, path: Path | None = None, *, clock: Callable[[], float] = time.time
    ) -> None:
        self._path = path
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._dirty = False
        self.logger = get_logger("cache")
        if self._path is not None:
            self._load(self._path)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._guard:
            return key in self._entries

    def lookup(self, key: str, *, timeout: float) -> Optional[CacheEntry]:
        """Return the entry for ``key`` unless it is older than ``timeout`` seconds."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp >= timeout:
                # expired entries are dropped on read
                del self._entries[key]
                self._dirty = True
                return None
            return entry

    def store(self, key: str, outcome: Outcome) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            valid=outcome.is_valid,
            reason=outcome.reason,
            timestamp=self._clock(),
        )
        with self._guard:
            self._entries[key] = entry
            self._dirty = True
        return entry

    def get_or_compute(
        self, key: str, *, timeout: float, compute: Callable[[], Outcome]
    ) -> Tuple[Outcome, bool]:
        """Return ``(outcome, cached)``, running ``compute`` at most once per fresh window."""
        with self._key_lock(key):
            entry = self.lookup(key, timeout=timeout)
            if entry is not None:
                self.logger.debug('Cached entry for "%s" is still fresh', key)
                return entry.outcome(), True
            outcome = compute()
            self.store(key, outcome)
            return outcome, False

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        with self._guard:
            payload = {
                "version": _CACHE_VERSION,
                "entries": {
                    key: {k: v for k, v in asdict(entry).items() if k != "key"}
                    for key, entry in self._entries.items()
                },
            }
            self._dirty = False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self.logger.debug("Saved %d cache entries to %s", len(payload["entries"]), self._path)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()
            self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _key_lock(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable cache %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        loaded: Dict[str, CacheEntry] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            valid = raw.get("valid")
            reason = raw.get("reason", "")
            timestamp = raw.get("timestamp")
            if not isinstance(valid, bool) or not isinstance(timestamp, (int, float)):
                continue
            loaded[key] = CacheEntry(
                key=key,
                valid=valid,
                reason=reason if isinstance(reason, str) else "",
                timestamp=float(timestamp),
            )
        self._entries = loaded
        self._dirty = False
        self.logger.debug("Loaded %d cache entries from %s", len(loaded), path)


__all__ = ["CacheEntry", "OutcomeCache"]
