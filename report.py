"""
report.py - CSV-row, JSON-ready and terminal formatting of verdicts.

This module converts structured `Verdict` objects into:
- string cells for the result CSV files
- plain dictionaries for the API / --json output
- a summary table for CLI usage
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from logging_config import get_logger
from models import RESULT_COLUMNS, BatchSummary, Verdict

logger = get_logger(__name__)

OUTPUT_WIDTH = 78
SEPARATOR = "=" * OUTPUT_WIDTH
MAX_NOTES_DISPLAY = 60


def format_cell(value: Any) -> str:
    """Render one output value the way the result files expect it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


def verdict_to_row(verdict: Verdict) -> list[str]:
    """Flatten a verdict into cells in RESULT_COLUMNS order."""
    record = verdict.to_record()
    return [format_cell(record[column]) for column in RESULT_COLUMNS]


def format_verdict_json(verdict: Verdict) -> dict[str, Any]:
    """Convert a verdict into a JSON-serializable dictionary."""
    record = verdict.to_record()
    payload: dict[str, Any] = {}
    for column in RESULT_COLUMNS:
        value = record[column]
        if isinstance(value, bool) or value is None:
            payload[column] = value
        else:
            payload[column] = format_cell(value)
    payload["claimId"] = verdict.claim.claim_id
    payload["sendLegValid"] = verdict.send_leg.valid
    payload["receiveLegValid"] = verdict.receive_leg.valid
    return payload


def format_summary_json(summary: BatchSummary) -> dict[str, Any]:
    return {
        "claims": len(summary.verdicts) + len(summary.errors),
        "valid": summary.valid_count,
        "invalid": summary.invalid_count,
        "errors": [error.model_dump() for error in summary.errors],
        "totalAmountLost": format_cell(summary.total_amount_lost),
        "allResultsPath": summary.all_results_path,
        "validResultsPath": summary.valid_results_path,
        "verdicts": [format_verdict_json(verdict) for verdict in summary.verdicts],
    }


def format_summary_table(summary: BatchSummary) -> str:
    """Format a batch summary as a terminal table."""
    lines: list[str] = ["", SEPARATOR]
    lines.append(
        f"  SUMMARY - {len(summary.verdicts)} claim(s) validated, "
        f"{len(summary.errors)} error(s)"
    )
    lines.append(SEPARATOR)
    lines.append("")
    lines.append(f"  {'Claim':<10} {'Valid':<6} {'Lost':>12}  Notes")
    lines.append(f"  {'─' * 10} {'─' * 6} {'─' * 12}  {'─' * 40}")

    for verdict in summary.verdicts:
        claim_id = str(verdict.claim.claim_id or "?")[:10]
        lost = format_cell(verdict.amount_lost) or "-"
        notes = verdict.notes.strip() or "(no notes)"
        if len(notes) > MAX_NOTES_DISPLAY:
            notes = notes[: MAX_NOTES_DISPLAY - 2] + ".."
        lines.append(
            f"  {claim_id:<10} {format_cell(verdict.claim_validity):<6} {lost[:12]:>12}  {notes}"
        )

    for error in summary.errors:
        claim_id = str(error.claim_id or "?")[:10]
        lines.append(f"  {claim_id:<10} {'ERROR':<6} {'-':>12}  {error.error_type}: {error.error[:40]}")

    lines.append("")
    lines.append(
        f"  Valid: {summary.valid_count}  |  Invalid: {summary.invalid_count}  |  "
        f"Total lost: {format_cell(summary.total_amount_lost)}"
    )
    if summary.all_results_path:
        lines.append(f"  All results:   {summary.all_results_path}")
    if summary.valid_results_path:
        lines.append(f"  Valid results: {summary.valid_results_path}")
    lines.append(SEPARATOR)
    lines.append("")
    return "\n".join(lines)
