"""
test_tracker.py - Duplicate Tracker Tests

Usage: python test_tracker.py
"""

from __future__ import annotations

import os
import sys
import threading

# Ensure local imports resolve from project root.
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from tracker import DuplicateTracker


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

HASH_A = "0x" + "ab" * 32
HASH_B = "0x" + "cd" * 32


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
    print("  Duplicate Tracker Tests")
    print(LINE * 42)

    tracker = DuplicateTracker()

    print("\n  Empty tracker:")
    check("nothing consumed", not tracker.is_consumed_valid(HASH_A))
    check("nothing seen", not tracker.is_seen_invalid(HASH_A))
    check("counts start at zero", tracker.counts() == (0, 0))

    print("\n  Recording:")
    tracker.record_valid(HASH_A)
    check("recorded valid hash is consumed", tracker.is_consumed_valid(HASH_A))
    check("lookup is case-insensitive", tracker.is_consumed_valid(HASH_A.upper().replace("0X", "0x")))
    check("valid hash not in invalid registry", not tracker.is_seen_invalid(HASH_A))

    tracker.record_invalid(HASH_B.upper())
    check("recorded invalid hash is seen", tracker.is_seen_invalid(HASH_B))
    check("invalid hash is not consumed", not tracker.is_consumed_valid(HASH_B))

    tracker.record_valid(HASH_A)
    check("re-recording does not grow the set", tracker.counts() == (1, 1))

    print("\n  Empty hashes:")
    for empty in (None, "", "   "):
        tracker.record_valid(empty)
        tracker.record_invalid(empty)
    check("empty hashes never recorded", tracker.counts() == (1, 1))
    check("empty hash never reported consumed", not tracker.is_consumed_valid(""))
    check("None never reported seen", not tracker.is_seen_invalid(None))

    print("\n  Concurrent writers:")
    shared = DuplicateTracker()

    def record_range(start: int) -> None:
        for value in range(start, start + 250):
            shared.record_valid(f"0x{value:064x}")

    threads = [threading.Thread(target=record_range, args=(offset * 250,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    check("all concurrent records kept", shared.counts() == (1000, 0))

    print(f"\n{LINE * 42}")
    print(f"  Results: {passed}/{passed + failed} passed")
    print(f"{LINE * 42}")
    return failed


def test_tracker_suite() -> None:
    assert main() == 0


if __name__ == "__main__":
    sys.exit(1 if main() else 0)
