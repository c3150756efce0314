"""
tracker.py - Duplicate transaction-hash registry for one batch run.

Two sets of lowercase hashes:
- consumed_by_valid: hashes already used by an accepted claim
- seen_in_invalid:   hashes that appeared in a rejected claim

Both only grow. The batch runner creates one tracker per run and hands it
to the validator for every claim, in input order.
"""

from __future__ import annotations

import threading
from typing import Any

from logging_config import get_logger
from normalize import normalize_hash

logger = get_logger(__name__)


class DuplicateTracker:
    """In-memory hash ledger (resets when the process exits)."""

    def __init__(self) -> None:
        self._consumed_by_valid: set[str] = set()
        self._seen_in_invalid: set[str] = set()
        self._lock = threading.Lock()

    def is_consumed_valid(self, tx_hash: Any) -> bool:
        key = normalize_hash(tx_hash)
        if not key:
            return False
        with self._lock:
            return key in self._consumed_by_valid

    def is_seen_invalid(self, tx_hash: Any) -> bool:
        key = normalize_hash(tx_hash)
        if not key:
            return False
        with self._lock:
            return key in self._seen_in_invalid

    def record_valid(self, tx_hash: Any) -> None:
        key = normalize_hash(tx_hash)
        if not key:
            return
        with self._lock:
            self._consumed_by_valid.add(key)
        logger.debug("tracker_record | registry=valid | hash=%s", key)

    def record_invalid(self, tx_hash: Any) -> None:
        key = normalize_hash(tx_hash)
        if not key:
            return
        with self._lock:
            self._seen_in_invalid.add(key)
        logger.debug("tracker_record | registry=invalid | hash=%s", key)

    def counts(self) -> tuple[int, int]:
        """Return (consumed_by_valid, seen_in_invalid) sizes."""
        with self._lock:
            return len(self._consumed_by_valid), len(self._seen_in_invalid)
