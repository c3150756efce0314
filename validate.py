"""
validate.py - Deterministic claim validation rules.

This module converts one `Claim` plus the shared `DuplicateTracker` into a
final `Verdict`. Checks run in a fixed order and every check runs, so a
rejected claim still carries both leg results and the full set of notes.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
from typing import Optional

from legs import LegVerifier
from logging_config import get_logger
from models import Claim, LegResult, Verdict
from normalize import is_valid_address
from tracker import DuplicateTracker

logger = get_logger(__name__)

# -- Validation Thresholds --

DEFAULT_TIMESTAMP_DELTA_SECONDS = 120
# Maximum gap between the Degen Chain send and the Base payout.
# Larger gaps mean the two transactions are probably not the same bridge.

AMOUNT_TOLERANCE = Decimal("0.1")
# User-reported amounts may be off by up to 10% of the reported figure
# before a note is added. Never invalidates on its own. A missing report
# counts as 0, so any positive on-chain amount is flagged.


def _amount_off(onchain: Decimal, reported: Optional[Decimal]) -> bool:
    if reported is None:
        reported = Decimal("0")
    return abs(onchain - reported) > AMOUNT_TOLERANCE * reported


def _timestamps_too_far(
    sent: Optional[datetime],
    received: Optional[datetime],
    delta_seconds: float,
) -> bool:
    if sent is None and received is None:
        return False
    if sent is None or received is None:
        # Only one leg resolved: the legs cannot be shown to belong together.
        return True
    return abs((sent - received).total_seconds()) > delta_seconds


def verify_legs(
    claim: Claim,
    send_verifier: LegVerifier,
    receive_verifier: LegVerifier,
) -> tuple[LegResult, LegResult]:
    """Run both leg lookups concurrently and wait for both."""
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="leg") as pool:
        send_future = pool.submit(send_verifier.verify, claim.wallet_address, claim.degen_tx_hash)
        receive_future = pool.submit(
            receive_verifier.verify, claim.wallet_address, claim.base_tx_hash
        )
        return send_future.result(), receive_future.result()


def validate_claim(
    claim: Claim,
    tracker: DuplicateTracker,
    send_verifier: LegVerifier,
    receive_verifier: LegVerifier,
    timestamp_delta: float = DEFAULT_TIMESTAMP_DELTA_SECONDS,
) -> Verdict:
    """Validate one claim and record its hashes in the tracker.

    Raises whatever the lookup raises; in that case the tracker is left
    untouched for this claim.
    """
    notes = ""
    valid = True
    send_hash = claim.degen_tx_hash
    receive_hash = claim.base_tx_hash

    # -- Check 1: hash already consumed by a valid claim (hard) --
    if tracker.is_consumed_valid(send_hash):
        notes += (
            "This claim transaction hash on Degen Chain has already been "
            "processed in a previous valid claim. "
        )
        valid = False
    if tracker.is_consumed_valid(receive_hash):
        notes += (
            "This claim transaction hash on Base has already been "
            "processed in a previous valid claim. "
        )
        valid = False
    if not valid:
        logger.info("validation_rule_fired | rule=duplicate_valid_hash | claim_id=%s", claim.claim_id)

    # -- Check 2: hash seen in an earlier rejected claim (soft) --
    if valid and tracker.is_seen_invalid(send_hash):
        notes += (
            "There is a previous non-valid claim with the same transaction hash "
            "on Degen Chain. But because that claim was not valid this one could "
            "still be valid. "
        )
    if valid and tracker.is_seen_invalid(receive_hash):
        notes += (
            "There is a previous non-valid claim with the same transaction hash "
            "on Base. But because that claim was not valid this one could "
            "still be valid. "
        )

    # -- Check 3: wallet address syntax (hard) --
    if not is_valid_address(claim.wallet_address):
        notes += "Invalid wallet address. "
        valid = False
        logger.info(
            "validation_rule_fired | rule=invalid_address | claim_id=%s | address=%r",
            claim.claim_id,
            claim.wallet_address,
        )

    # -- Checks 4-5: both legs on-chain (hard, never skipped) --
    send_leg, receive_leg = verify_legs(claim, send_verifier, receive_verifier)
    notes += send_leg.notes
    notes += receive_leg.notes
    if not send_leg.valid:
        valid = False
    if not receive_leg.valid:
        valid = False

    # -- Checks 6-7: user-reported amounts (soft) --
    if _amount_off(send_leg.amount, claim.degen_amount):
        notes += "User reported DEGEN amount sent on Degen Chain is off by more than 10%. "
    if _amount_off(receive_leg.amount, claim.base_amount):
        notes += "User reported BASE amount received on Base Chain is off by more than 10%. "

    # -- Check 8: both legs close in time (hard) --
    if _timestamps_too_far(send_leg.timestamp, receive_leg.timestamp, timestamp_delta):
        notes += (
            f"Timestamp difference between Degen and Base transactions is greater "
            f"than {timestamp_delta:g} seconds. This means these two txs may not be "
            "part of the same bridging action. "
        )
        valid = False
        logger.info(
            "validation_rule_fired | rule=timestamp_gap | claim_id=%s | sent=%s | received=%s | delta_s=%s",
            claim.claim_id,
            send_leg.timestamp,
            receive_leg.timestamp,
            timestamp_delta,
        )

    # -- Bookkeeping: both hashes go to exactly one registry --
    if valid:
        tracker.record_valid(send_hash)
        tracker.record_valid(receive_hash)
    else:
        tracker.record_invalid(send_hash)
        tracker.record_invalid(receive_hash)

    amount_lost = send_leg.amount - receive_leg.amount if valid else None

    verdict = Verdict(
        claim_validity=valid,
        amount_lost=amount_lost,
        claim=claim,
        notes=notes,
        send_leg=send_leg,
        receive_leg=receive_leg,
    )
    logger.info(
        "claim_verdict | claim_id=%s | valid=%s | amount_lost=%s | sent=%s | received=%s",
        claim.claim_id,
        valid,
        amount_lost,
        send_leg.amount,
        receive_leg.amount,
    )
    return verdict
