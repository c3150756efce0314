"""
results_store.py - Append-only CSV result sinks.

Each batch run writes two files into the results directory:
    all-results-<epoch_ms>.csv    every verdict
    valid-results-<epoch_ms>.csv  only verdicts with claimValidity=true

Both start with the fixed header row. Write failures are logged and
swallowed so the batch keeps going.
"""

from __future__ import annotations

import csv
import os
import time
from pathlib import Path
from typing import Optional

from logging_config import get_logger, graceful
from models import RESULT_COLUMNS, Verdict
from report import verdict_to_row

logger = get_logger(__name__)


class CsvResultSink:
    """One append-only CSV file with the fixed result header."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).resolve()
        self.rows_written = 0
        self.failures = 0

    @graceful(default_factory=lambda: False)
    def write_header(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            csv.writer(handle).writerow(RESULT_COLUMNS)
        return True

    def append(self, verdict: Verdict) -> bool:
        """Append one verdict row; returns False (and logs) on failure."""
        written = self._append_row(verdict_to_row(verdict))
        if written:
            self.rows_written += 1
        else:
            self.failures += 1
            logger.warning(
                "sink_write_warning | path=%s | claim_id=%s | fallback='continue batch'",
                self.path,
                verdict.claim.claim_id,
            )
        return written

    @graceful(default_factory=lambda: False)
    def _append_row(self, row: list[str]) -> bool:
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            csv.writer(handle).writerow(row)
        return True


class ResultWriter:
    """The pair of sinks one batch run writes to."""

    def __init__(self, results_dir: Optional[str] = None, run_id: Optional[int] = None) -> None:
        target = results_dir or os.getenv("RESULTS_DIR", "results")
        stamp = run_id if run_id is not None else int(time.time() * 1000)
        directory = Path(target)
        self.all_results = CsvResultSink(directory / f"all-results-{stamp}.csv")
        self.valid_results = CsvResultSink(directory / f"valid-results-{stamp}.csv")

    def open(self) -> None:
        for sink in (self.all_results, self.valid_results):
            if sink.write_header():
                logger.info("sink_open | path=%s", sink.path)

    def write(self, verdict: Verdict) -> None:
        self.all_results.append(verdict)
        if verdict.claim_validity:
            self.valid_results.append(verdict)
