"""
main.py - CLI orchestration for bridge claim reconciliation.

This module is orchestration-only:
1. load claims (CSV -> Claim)
2. validate each claim in input order (legs + cross-checks + dedup)
3. write verdict rows to the result files
4. print a summary
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import time
from typing import Any, Iterable, Optional

import pandas as pd

from legs import BASE_RECEIVE_LEG, DEGEN_SEND_LEG, LegVerifier
from logging_config import get_logger, setup_logging
from lookup import TransferLookup, TransferLookupError, build_transfer_lookup
from models import BatchError, BatchSummary, Claim
from normalize import parse_amount, strip_quotes
from report import format_summary_json, format_summary_table
from results_store import ResultWriter
from tracker import DuplicateTracker
from validate import DEFAULT_TIMESTAMP_DELTA_SECONDS, validate_claim

logger = get_logger("bridge-claims")

# Positional column order of the claims export (header names vary by form tool).
CLAIM_COLUMNS = [
    "claim_id",
    "wallet_address",
    "degen_amount",
    "degen_tx_hash",
    "base_amount",
    "base_tx_hash",
    "contact_info",
    "additional_info",
    "response_type",
    "start_date",
    "stage_date",
    "submit_date",
    "network_id",
    "tags",
]
AMOUNT_COLUMNS = {"degen_amount", "base_amount"}


class InvalidClaimSourceError(ValueError):
    """The claims CSV cannot be read or contains no claims."""


def _cell(row: pd.Series, index: int) -> Any:
    if index >= len(row):
        return None
    value = row.iloc[index]
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def parse_claim_row(row: pd.Series) -> Claim:
    """Build a Claim from one positional CSV row."""
    fields: dict[str, Any] = {}
    for index, name in enumerate(CLAIM_COLUMNS):
        raw = _cell(row, index)
        if name in AMOUNT_COLUMNS:
            fields[name] = parse_amount(raw)
        else:
            fields[name] = strip_quotes(raw) or None
    return Claim(**fields)


def load_claims(csv_path: str) -> list[Claim]:
    """Load the claims CSV (one header row, one claim per row)."""
    if csv_path is None:
        raise ValueError("csv_path cannot be None")

    csv_path = str(csv_path).strip()
    if not csv_path:
        raise ValueError("csv_path cannot be empty")

    if not os.path.exists(csv_path):
        raise FileNotFoundError(
            f"Claims CSV not found: {csv_path}\n"
            "Provide a valid CSV path with --claims"
        )

    def _truncate_long_row(fields: list[str]) -> list[str]:
        # Unquoted commas in free text add fields; the positional columns
        # before them stay correct.
        logger.warning(
            "csv_row_warning | path=%s | fields=%s | expected=%s | fallback='extra fields dropped' | claim_id=%r",
            csv_path,
            len(fields),
            len(CLAIM_COLUMNS),
            fields[0] if fields else None,
        )
        return fields[: len(CLAIM_COLUMNS)]

    read_kwargs: dict[str, Any] = {
        "dtype": str,
        "keep_default_na": False,
        "skipinitialspace": True,
        "index_col": False,
        "on_bad_lines": _truncate_long_row,
        "engine": "python",
    }
    try:
        df = pd.read_csv(csv_path, encoding="utf-8-sig", **read_kwargs)
    except UnicodeDecodeError:
        logger.warning(
            "csv_encoding_warning | path=%s | reason='utf-8 decode failed' | fallback=latin-1",
            csv_path,
        )
        df = pd.read_csv(csv_path, encoding="latin-1", **read_kwargs)
    except pd.errors.EmptyDataError as exc:
        raise InvalidClaimSourceError(f"Claims CSV is empty: {csv_path}") from exc
    except Exception as exc:
        raise InvalidClaimSourceError(f"Failed to read claims CSV '{csv_path}': {exc}") from exc

    # Remove fully empty rows (trailing newlines in form exports).
    df = df.replace(r"^\s*$", pd.NA, regex=True).dropna(how="all")

    if len(df.columns) < len(CLAIM_COLUMNS):
        logger.warning(
            "csv_columns_warning | found=%s | expected=%s | fallback='missing columns read as empty'",
            len(df.columns),
            len(CLAIM_COLUMNS),
        )

    claims = [parse_claim_row(row) for _, row in df.iterrows()]
    logger.info("csv_loaded | path=%s | claims=%s", csv_path, len(claims))
    return claims


def build_verifiers(lookup: TransferLookup) -> tuple[LegVerifier, LegVerifier]:
    """Return (send, receive) verifiers sharing one lookup backend."""
    return LegVerifier(DEGEN_SEND_LEG, lookup), LegVerifier(BASE_RECEIVE_LEG, lookup)


def run_batch(
    claims: Iterable[Claim],
    send_verifier: LegVerifier,
    receive_verifier: LegVerifier,
    writer: Optional[ResultWriter] = None,
    timestamp_delta: float = DEFAULT_TIMESTAMP_DELTA_SECONDS,
) -> BatchSummary:
    """Validate claims strictly in input order against one fresh tracker.

    A lookup failure aborts only the affected claim: it is reported in the
    summary, yields no verdict and leaves the tracker untouched.
    """
    batch_start = time.time()
    tracker = DuplicateTracker()
    summary = BatchSummary()

    if writer is not None:
        writer.open()
        summary.all_results_path = str(writer.all_results.path)
        summary.valid_results_path = str(writer.valid_results.path)

    logger.info("batch_start | timestamp_delta_s=%s", timestamp_delta)
    for index, claim in enumerate(claims):
        try:
            verdict = validate_claim(
                claim,
                tracker,
                send_verifier,
                receive_verifier,
                timestamp_delta=timestamp_delta,
            )
        except TransferLookupError as exc:
            logger.error(
                "batch_claim_error | index=%s | claim_id=%s | error_type=%s | error=%s",
                index,
                claim.claim_id,
                type(exc).__name__,
                exc,
            )
            summary.errors.append(
                BatchError(
                    index=index,
                    claim_id=claim.claim_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            )
            continue

        summary.verdicts.append(verdict)
        if writer is not None:
            writer.write(verdict)

    consumed, seen_invalid = tracker.counts()
    logger.info(
        "batch_complete | verdicts=%s | valid=%s | invalid=%s | errors=%s | consumed_hashes=%s | rejected_hashes=%s | duration_s=%.2f",
        len(summary.verdicts),
        summary.valid_count,
        summary.invalid_count,
        len(summary.errors),
        consumed,
        seen_invalid,
        time.time() - batch_start,
    )
    return summary


def default_timestamp_delta() -> float:
    raw = os.getenv("TIMESTAMP_DELTA_SECONDS", "").strip()
    if not raw:
        return float(DEFAULT_TIMESTAMP_DELTA_SECONDS)
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "config_warning | TIMESTAMP_DELTA_SECONDS=%r | fallback=%s",
            raw,
            DEFAULT_TIMESTAMP_DELTA_SECONDS,
        )
        return float(DEFAULT_TIMESTAMP_DELTA_SECONDS)


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for bridge claim reconciliation."""
    parser = argparse.ArgumentParser(
        prog="bridge-claims",
        description=(
            "Bridge Claim Reconciliation\n"
            "Checks Degen Chain -> Base bridge claims against on-chain "
            "transfers and computes the amount each valid claimant lost."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --claims data/claims.csv\n"
            "  %(prog)s --claims test_data/claims.csv --fixtures test_data/transfers.json\n"
            "  %(prog)s --claims data/claims.csv --timestamp-delta 300 --verbose\n"
        ),
    )
    parser.add_argument(
        "--claims",
        "-c",
        type=str,
        required=True,
        help="Path to the claims CSV export (required)",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default=None,
        help="Directory for all-results/valid-results CSV files (default: $RESULTS_DIR or results/)",
    )
    parser.add_argument(
        "--timestamp-delta",
        type=float,
        default=None,
        help="Max seconds between send and receive transactions (default: $TIMESTAMP_DELTA_SECONDS or 120)",
    )
    parser.add_argument(
        "--fixtures",
        type=str,
        default=None,
        help="Serve transfers from a fixture JSON file instead of Airstack",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print verdicts as JSON instead of the summary table",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines (for production/log aggregation)",
    )

    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.log_json,
    )

    timestamp_delta = (
        args.timestamp_delta if args.timestamp_delta is not None else default_timestamp_delta()
    )
    if timestamp_delta < 0:
        parser.error("--timestamp-delta must be non-negative")

    try:
        logger.info("cli_start | claims=%s | results_dir=%s", args.claims, args.results_dir)
        claims = load_claims(args.claims)
        lookup = build_transfer_lookup(args.fixtures)
        send_verifier, receive_verifier = build_verifiers(lookup)
        writer = ResultWriter(args.results_dir)
        summary = run_batch(
            claims,
            send_verifier,
            receive_verifier,
            writer=writer,
            timestamp_delta=timestamp_delta,
        )

        if args.json:
            print(json.dumps(format_summary_json(summary), indent=2))
        else:
            print(format_summary_table(summary))
    except FileNotFoundError as exc:
        logger.error("cli_error | type=FileNotFoundError | error=%s", exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)
    except Exception as exc:
        logger.error(
            "cli_error | type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        print(f"\nUnexpected error: {exc}")
        print("Run with --verbose for full traceback.")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
