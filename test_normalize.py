"""
test_normalize.py - Normalization Module Tests

Comprehensive validation for:
- strip_quotes
- normalize_hash
- is_valid_address / to_checksum_address
- same_address
- parse_amount
- parse_timestamp

Usage: python test_normalize.py
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from normalize import (
    is_valid_address,
    normalize_hash,
    parse_amount,
    parse_timestamp,
    same_address,
    strip_quotes,
    to_checksum_address,
)


def _configure_output_symbols() -> tuple[str, str, str]:
    try:
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        pass

    try:
        "✓✗═".encode(sys.stdout.encoding or "utf-8")
        return "✓", "✗", "═"
    except Exception:
        return "[OK]", "[FAIL]", "="


PASS, FAIL, LINE = _configure_output_symbols()

# EIP-55 reference vectors.
CHECKSUMMED = [
    "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
    "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
    "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
    "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
]


def main() -> int:
    passed = 0
    failed = 0

    def check(name: str, condition: bool) -> None:
        nonlocal passed, failed
        if condition:
            print(f"    {PASS} {name}")
            passed += 1
        else:
            print(f"    {FAIL} {name}")
            failed += 1

    print(LINE * 42)
    print("  Normalization Module Tests")
    print(LINE * 42)

    # Category 1: strip_quotes
    print("\n  strip_quotes:")
    quote_cases: list[tuple[Any, Any, str]] = [
        (None, None, "None input"),
        (float("nan"), None, "NaN cell"),
        ("", "", "empty string"),
        ("  0xabc  ", "0xabc", "surrounding whitespace"),
        ('"0xabc"', "0xabc", "double quotes"),
        ("'0xabc'", "0xabc", "single quotes"),
        ("'0xabc", "0xabc", "unbalanced leading quote"),
        ("o'brien", "o'brien", "inner quote kept"),
        (42, "42", "non-string input"),
    ]
    for raw, expected, label in quote_cases:
        check(f"{label}: {raw!r} -> {expected!r}", strip_quotes(raw) == expected)

    # Category 2: normalize_hash
    print("\n  normalize_hash:")
    hash_cases: list[tuple[Any, str, str]] = [
        (None, "", "None"),
        ("   ", "", "blank"),
        ("0xABCdef", "0xabcdef", "mixed case"),
        (" 0xabc ", "0xabc", "trimmed"),
    ]
    for raw, expected, label in hash_cases:
        check(f"{label}: {raw!r} -> {expected!r}", normalize_hash(raw) == expected)

    # Category 3: addresses
    print("\n  is_valid_address:")
    for address in CHECKSUMMED:
        check(f"EIP-55 vector accepted: {address[:10]}..", is_valid_address(address))
        check(
            f"checksum recomputed: {address[:10]}..",
            to_checksum_address(address.lower()) == address,
        )

    address_cases: list[tuple[Any, bool, str]] = [
        ("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed", True, "all lowercase"),
        ("0x5AAEB6053F3E94C9B9A09F33669435E7EF1BEAED", True, "all uppercase body"),
        ("5aaeb6053f3e94c9b9a09f33669435e7ef1beaed", True, "no 0x prefix"),
        ("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD", False, "bad checksum"),
        ("0x5aaeb6053f3e94c9b9a09f33669435e7ef1bea", False, "too short"),
        ("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaedff", False, "too long"),
        ("0xzzzzb6053f3e94c9b9a09f33669435e7ef1beaed", False, "non-hex"),
        ("not-an-address", False, "free text"),
        ("", False, "empty"),
        (None, False, "None"),
    ]
    for raw, expected, label in address_cases:
        check(f"{label} -> {expected}", is_valid_address(raw) is expected)

    raised = False
    try:
        to_checksum_address("0x1234")
    except ValueError:
        raised = True
    check("to_checksum_address rejects malformed input", raised)

    print("\n  same_address:")
    check("case-insensitive match", same_address(CHECKSUMMED[0], CHECKSUMMED[0].lower()))
    check("different addresses differ", not same_address(CHECKSUMMED[0], CHECKSUMMED[1]))
    check("None never matches", not same_address(None, None))
    check("empty never matches", not same_address("", ""))

    # Category 4: parse_amount
    print("\n  parse_amount:")
    amount_cases: list[tuple[Any, Any, str]] = [
        ("1000", Decimal("1000"), "integer string"),
        ("950.5", Decimal("950.5"), "decimal string"),
        ("1,234.50", Decimal("1234.50"), "thousands separator"),
        ("$12", Decimal("12"), "currency symbol"),
        ("'500'", Decimal("500"), "quoted"),
        (950.1, Decimal("950.1"), "float keeps short repr"),
        (7, Decimal("7"), "int"),
        ("", None, "empty"),
        ("N/A", None, "N/A marker"),
        ("abc", None, "unparseable"),
        (None, None, "None"),
        (True, None, "bool rejected"),
        (float("inf"), None, "infinite float"),
    ]
    for raw, expected, label in amount_cases:
        check(f"{label}: {raw!r} -> {expected!r}", parse_amount(raw) == expected)

    # Category 5: parse_timestamp
    print("\n  parse_timestamp:")
    epoch_1000 = datetime(1970, 1, 1, 0, 16, 40, tzinfo=timezone.utc)
    iso_utc = datetime(2024, 4, 1, 12, 0, 0, tzinfo=timezone.utc)
    timestamp_cases: list[tuple[Any, Any, str]] = [
        (1000, epoch_1000, "epoch int"),
        ("1000", epoch_1000, "epoch string"),
        ("2024-04-01T12:00:00Z", iso_utc, "ISO with Z"),
        ("2024-04-01T14:00:00+02:00", iso_utc, "ISO with offset"),
        ("2024-04-01T12:00:00", iso_utc, "naive ISO assumed UTC"),
        (datetime(2024, 4, 1, 12, 0, 0), iso_utc, "naive datetime assumed UTC"),
        ("", None, "empty"),
        (None, None, "None"),
        ("not a date at all", None, "unparseable"),
    ]
    for raw, expected, label in timestamp_cases:
        check(f"{label}: {raw!r}", parse_timestamp(raw) == expected)

    parsed = parse_timestamp("2024-04-01T12:00:00")
    check("parsed timestamps are timezone-aware", parsed is not None and parsed.tzinfo is not None)

    print(f"\n{LINE * 42}")
    print(f"  Results: {passed}/{passed + failed} passed")
    print(f"{LINE * 42}")
    return failed


def test_normalize_suite() -> None:
    assert main() == 0


if __name__ == "__main__":
    sys.exit(1 if main() else 0)
