"""
models.py - Data Models for the Bridge Claim Reconciliation Pipeline

This file defines ALL data structures used across the reconciliation pipeline.
Every module communicates exclusively through these models:

    main.py      ->  Claim (parsed from the claims CSV)
    lookup.py    ->  list[TransferRecord] (for one TransferQuery)
    legs.py      ->  LegResult (one per leg per claim)
    validate.py  ->  Verdict (uses Claim + both LegResults)
    report.py    ->  row / dict (uses Verdict as input)

Design principles:
1. Each layer's output is the next layer's input
2. Amounts are Decimal end-to-end so `amount_lost` is exact
3. Notes are accumulated text so every verdict is auditable
4. Claims are frozen once parsed - duplicates are a validity concern,
   not a parse error

Schema relationships:
    Claim         --echoed by--> Verdict
    LegResult     --used by--> Verdict.send_leg / Verdict.receive_leg
    TransferQuery --answered by--> list[TransferRecord]
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

RESULT_COLUMNS: list[str] = [
    "claimValidity",
    "amountLost",
    "userAddress",
    "contactInfo",
    "notes",
    "sentAmount",
    "receivedAmount",
    "sendTxHash",
    "receiveTxHash",
    "sentDatetime",
    "receivedDatetime",
    "userReportedSentAmount",
    "userReportedReceivedAmount",
    "additionalInfo",
]


class CounterpartyField(str, Enum):
    """Which address list of a token transfer identifies the user."""

    # Degen Chain send leg: the user's wallet is the operator that pushed
    # tokens into the swap pool.
    OPERATOR = "operator"

    # Base receive leg: the relayer sends tokens to the user's wallet.
    TO = "to"

    FROM = "from"


class Claim(BaseModel):
    """One user-submitted bridging claim, as parsed from the claims CSV.

    Everything the user typed is kept verbatim (after quote stripping).
    Amounts the user could not be parsed become None; a missing or malformed
    hash is kept as-is so the leg verifier can explain what is wrong with it.
    """

    model_config = ConfigDict(frozen=True)

    claim_id: Optional[str] = Field(default=None, description="Form submission id.")
    wallet_address: Optional[str] = Field(
        default=None,
        description="Wallet the user bridged from and to. Expected to be an EVM address.",
    )
    degen_amount: Optional[Decimal] = Field(
        default=None,
        description="DEGEN amount the user reports sending on Degen Chain.",
    )
    degen_tx_hash: Optional[str] = Field(
        default=None,
        description="Send-leg transaction hash on Degen Chain.",
    )
    base_amount: Optional[Decimal] = Field(
        default=None,
        description="DEGEN amount the user reports receiving on Base.",
    )
    base_tx_hash: Optional[str] = Field(
        default=None,
        description="Receive-leg transaction hash on Base.",
    )
    contact_info: Optional[str] = None
    additional_info: Optional[str] = None
    response_type: Optional[str] = None
    start_date: Optional[str] = None
    stage_date: Optional[str] = None
    submit_date: Optional[str] = None
    network_id: Optional[str] = None
    tags: Optional[str] = None


class TransferQuery(BaseModel):
    """Filter for one token-transfer lookup on one chain."""

    model_config = ConfigDict(frozen=True)

    blockchain: str
    tx_hash: str
    token_address: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    counterparty_field: CounterpartyField = CounterpartyField.TO


class TransferRecord(BaseModel):
    """A single token-transfer log entry returned by the lookup service.

    Any field may be missing in the upstream response; the leg verifier
    only considers records where all three are present.
    """

    timestamp: Optional[datetime] = None
    amount: Optional[Decimal] = None
    counterparty: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return (
            self.timestamp is not None
            and self.amount is not None
            and self.amount != 0
            and bool(self.counterparty)
        )


class LegResult(BaseModel):
    """Outcome of verifying one leg of a claim against on-chain data."""

    amount: Decimal = Field(
        default=Decimal("0"),
        description="Canonical on-chain amount. 0 when the leg could not be resolved.",
    )
    timestamp: Optional[datetime] = Field(
        default=None,
        description="Block timestamp of the selected transfer record.",
    )
    valid: bool = False
    notes: str = Field(
        default="",
        description="Diagnostic sentences, each terminated by a trailing space.",
    )


class Verdict(BaseModel):
    """Final, auditable decision for one claim.

    `amount_lost` is set if and only if the claim is valid; it is the
    on-chain sent amount minus the on-chain received amount, never the
    user-reported figures.
    """

    claim_validity: bool
    amount_lost: Optional[Decimal] = None
    claim: Claim
    notes: str = ""
    send_leg: LegResult
    receive_leg: LegResult

    @model_validator(mode="after")
    def _amount_lost_iff_valid(self) -> "Verdict":
        if self.claim_validity and self.amount_lost is None:
            raise ValueError("a valid claim must carry amount_lost")
        if not self.claim_validity and self.amount_lost is not None:
            raise ValueError("an invalid claim cannot carry amount_lost")
        return self

    def to_record(self) -> dict[str, Any]:
        """Flatten into the output column order (values not yet stringified)."""
        return {
            "claimValidity": self.claim_validity,
            "amountLost": self.amount_lost,
            "userAddress": self.claim.wallet_address,
            "contactInfo": self.claim.contact_info,
            "notes": self.notes,
            "sentAmount": self.send_leg.amount,
            "receivedAmount": self.receive_leg.amount,
            "sendTxHash": self.claim.degen_tx_hash,
            "receiveTxHash": self.claim.base_tx_hash,
            "sentDatetime": self.send_leg.timestamp,
            "receivedDatetime": self.receive_leg.timestamp,
            "userReportedSentAmount": self.claim.degen_amount,
            "userReportedReceivedAmount": self.claim.base_amount,
            "additionalInfo": self.claim.additional_info,
        }


class BatchError(BaseModel):
    """A claim whose processing was aborted by a lookup failure."""

    index: int
    claim_id: Optional[str] = None
    error_type: str
    error: str


class BatchSummary(BaseModel):
    """Everything one batch run produced."""

    verdicts: list[Verdict] = Field(default_factory=list)
    errors: list[BatchError] = Field(default_factory=list)
    all_results_path: Optional[str] = None
    valid_results_path: Optional[str] = None

    @property
    def valid_count(self) -> int:
        return sum(1 for verdict in self.verdicts if verdict.claim_validity)

    @property
    def invalid_count(self) -> int:
        return len(self.verdicts) - self.valid_count

    @property
    def total_amount_lost(self) -> Decimal:
        return sum(
            (verdict.amount_lost for verdict in self.verdicts if verdict.amount_lost is not None),
            Decimal("0"),
        )
