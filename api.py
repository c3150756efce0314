"""
api.py - FastAPI HTTP layer for bridge claim reconciliation.

Exposes the existing batch runner over HTTP:
  - GET  /health
  - POST /reconcile   (multipart claims CSV upload)

No validation logic is implemented here. Each request runs an independent
batch with its own duplicate tracker.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from logging_config import get_logger, setup_logging
from lookup import TransferLookup, build_transfer_lookup
from main import build_verifiers, default_timestamp_delta, load_claims, run_batch
from report import format_summary_json
from results_store import ResultWriter

logger = get_logger("bridge-claims-api")

app = FastAPI(
    title="Bridge Claim Reconciliation API",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# Allows local UI use from file:// or another local host/port.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Built lazily so the app can be imported without credentials or fixtures;
# tests replace it directly.
transfer_lookup: Optional[TransferLookup] = None


def _get_lookup() -> TransferLookup:
    global transfer_lookup
    if transfer_lookup is None:
        transfer_lookup = build_transfer_lookup()
    return transfer_lookup


def _save_upload(upload: UploadFile, destination: Path) -> None:
    """Copy an UploadFile's spooled body to disk."""
    try:
        with destination.open("wb") as out_file:
            shutil.copyfileobj(upload.file, out_file, 1024 * 1024)
    finally:
        upload.file.close()


@app.get("/health")
def health() -> dict[str, str]:
    """Service health check."""
    return {"status": "ok"}


@app.post("/reconcile")
def reconcile_endpoint(
    claims: UploadFile = File(...),
    timestamp_delta: Optional[float] = Form(default=None),
) -> JSONResponse:
    """Validate an uploaded claims CSV and return every verdict as JSON."""
    if not claims.filename:
        raise HTTPException(status_code=400, detail="Claims CSV file is required.")

    delta = default_timestamp_delta() if timestamp_delta is None else timestamp_delta
    if delta < 0:
        raise HTTPException(status_code=400, detail="timestamp_delta must be non-negative.")

    with tempfile.TemporaryDirectory(prefix="bridge-claims-") as tmp_dir:
        csv_name = Path(claims.filename).name or "claims.csv"
        csv_path = Path(tmp_dir) / csv_name

        try:
            _save_upload(claims, csv_path)
            parsed = load_claims(str(csv_path))

            results_dir = os.getenv("RESULTS_DIR", "").strip()
            writer = ResultWriter(results_dir) if results_dir else None

            send_verifier, receive_verifier = build_verifiers(_get_lookup())
            summary = run_batch(
                parsed,
                send_verifier,
                receive_verifier,
                writer=writer,
                timestamp_delta=delta,
            )
            payload: dict[str, Any] = format_summary_json(summary)
            logger.info(
                "api_reconcile_complete | file=%s | claims=%s | valid=%s | errors=%s",
                csv_name,
                payload["claims"],
                payload["valid"],
                len(summary.errors),
            )
            return JSONResponse(content=payload)
        except HTTPException:
            raise
        except FileNotFoundError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.error(
                "api_reconcile_error | error_type=%s | error=%s",
                type(exc).__name__,
                exc,
                exc_info=True,
            )
            raise HTTPException(
                status_code=500,
                detail="Unexpected server error while reconciling claims.",
            ) from exc


if __name__ == "__main__":
    setup_logging()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("api:app", host="0.0.0.0", port=port, reload=False)
