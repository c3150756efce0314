"""
test_api.py - Reconciliation API checks.

Usage:
    python test_api.py
"""

from __future__ import annotations

import inspect
import io
import os
import sys
import tempfile
from pathlib import Path

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import api
from api import app
from lookup import FixtureTransferLookup


def _symbols() -> tuple[str, str, str]:
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


PASS, FAIL, LINE = _symbols()


def main() -> int:
    passed = 0
    failed = 0

    def check(name: str, condition: bool) -> None:
        nonlocal passed, failed
        if condition:
            passed += 1
            print(f"    {PASS} {name}")
        else:
            failed += 1
            print(f"    {FAIL} {name}")

    print(LINE * 62)
    print("  Reconciliation API Tests")
    print(LINE * 62)

    base_dir = Path(__file__).resolve().parent
    csv_path = base_dir / "test_data" / "claims.csv"
    fixtures_path = base_dir / "test_data" / "transfers.json"

    original_lookup = api.transfer_lookup
    original_results_dir = os.environ.pop("RESULTS_DIR", None)
    api.transfer_lookup = FixtureTransferLookup.from_json(fixtures_path)

    try:
        client = TestClient(app)

        health = client.get("/health")
        check("GET /health returns 200", health.status_code == 200)
        check("Health payload ok", health.json() == {"status": "ok"})
        check(
            "Reconcile endpoint runs in the worker threadpool",
            not inspect.iscoroutinefunction(api.reconcile_endpoint),
        )

        with csv_path.open("rb") as csv_file:
            response = client.post(
                "/reconcile",
                files={"claims": ("claims.csv", csv_file, "text/csv")},
            )
        check("POST /reconcile returns 200", response.status_code == 200)
        payload = response.json() if response.status_code == 200 else {}
        check("All claims reported", payload.get("claims") == 5)
        check("Valid count", payload.get("valid") == 2)
        check("Invalid count", payload.get("invalid") == 3)
        check("Total amount lost", payload.get("totalAmountLost") == "150")
        check("No result files without RESULTS_DIR", payload.get("allResultsPath") is None)

        verdicts = payload.get("verdicts", [])
        first = verdicts[0] if verdicts else {}
        check("Verdict has claimValidity bool", first.get("claimValidity") is True)
        check("Verdict amountLost string", first.get("amountLost") == "50")
        check("Verdict echoes hashes", first.get("sendTxHash", "").startswith("0xa1a1"))
        check("Invalid verdict amountLost null", verdicts[1].get("amountLost") is None if len(verdicts) > 1 else False)
        check("Leg flags included", "sendLegValid" in first and "receiveLegValid" in first)

        with csv_path.open("rb") as csv_file:
            relaxed = client.post(
                "/reconcile",
                files={"claims": ("claims.csv", csv_file, "text/csv")},
                data={"timestamp_delta": "400"},
            )
        check("Custom timestamp_delta accepted", relaxed.status_code == 200)
        check(
            "Wider window accepts the slow relayer claim",
            relaxed.json().get("valid") == 3 if relaxed.status_code == 200 else False,
        )

        with csv_path.open("rb") as csv_file:
            negative = client.post(
                "/reconcile",
                files={"claims": ("claims.csv", csv_file, "text/csv")},
                data={"timestamp_delta": "-1"},
            )
        check("Negative timestamp_delta returns 400", negative.status_code == 400)

        empty = client.post(
            "/reconcile",
            files={"claims": ("empty.csv", io.BytesIO(b""), "text/csv")},
        )
        check("Empty CSV returns 400", empty.status_code == 400)

        missing = client.post("/reconcile")
        check("Missing upload returns 422", missing.status_code == 422)

        with tempfile.TemporaryDirectory() as tmp_dir:
            os.environ["RESULTS_DIR"] = tmp_dir
            with csv_path.open("rb") as csv_file:
                persisted = client.post(
                    "/reconcile",
                    files={"claims": ("claims.csv", csv_file, "text/csv")},
                )
            persisted_payload = persisted.json() if persisted.status_code == 200 else {}
            all_path = persisted_payload.get("allResultsPath") or ""
            check("RESULTS_DIR enables result files", all_path.startswith(str(Path(tmp_dir).resolve())))
            check("Result file exists", bool(all_path) and Path(all_path).exists())
            os.environ.pop("RESULTS_DIR", None)
    finally:
        api.transfer_lookup = original_lookup
        if original_results_dir is not None:
            os.environ["RESULTS_DIR"] = original_results_dir

    print(f"\n{LINE * 62}")
    print(f"  Results: {passed}/{passed + failed} passed")
    print(f"{LINE * 62}")
    return failed


def test_api_suite() -> None:
    assert main() == 0


if __name__ == "__main__":
    sys.exit(1 if main() else 0)
