"""
legs.py - Single-leg verification against on-chain transfer records.

One `LegVerifier` class implements the algorithm; a `LegConfig` supplies the
per-chain details (which blockchain, which address filters, which address
list identifies the user). Two stock configs cover the Degen -> Base bridge:

    DEGEN_SEND_LEG    DEGEN sent into the ProxySwap pool on Degen Chain
    BASE_RECEIVE_LEG  DEGEN paid out by the bridge relayer on Base

Outputs are `LegResult` objects whose notes explain every failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from logging_config import get_logger
from lookup import TransferLookup
from models import CounterpartyField, LegResult, TransferQuery, TransferRecord
from normalize import has_hash_prefix, same_address

logger = get_logger(__name__)

# DEGEN/ETH ProxySwap pool on Degen Chain (send-leg destination)
DEGEN_PROXYSWAP_POOL = "0x43019F8BE1F192587883b67dEA2994999f5a2de2"

# DEGEN token contract on Base
BASE_DEGEN_TOKEN = "0x4ed4E862860beD51a9570b96d89aF5E1B0Efefed"

# Bridge relayer that pays out on Base
BASE_BRIDGE_RELAYER = "0x777e05D02Ea7B42F32f103c089C175017082f531"


@dataclass(frozen=True)
class LegConfig:
    """Chain/direction configuration for one leg."""

    label: str
    blockchain: str
    build_query: Callable[[str, str], TransferQuery]


def _degen_send_query(user_address: str, tx_hash: str) -> TransferQuery:
    return TransferQuery(
        blockchain="degen",
        tx_hash=tx_hash,
        to_address=DEGEN_PROXYSWAP_POOL,
        counterparty_field=CounterpartyField.OPERATOR,
    )


def _base_receive_query(user_address: str, tx_hash: str) -> TransferQuery:
    return TransferQuery(
        blockchain="base",
        tx_hash=tx_hash,
        token_address=BASE_DEGEN_TOKEN,
        from_address=BASE_BRIDGE_RELAYER,
        to_address=user_address,
        counterparty_field=CounterpartyField.TO,
    )


DEGEN_SEND_LEG = LegConfig(
    label="Degen Chain",
    blockchain="degen",
    build_query=_degen_send_query,
)

BASE_RECEIVE_LEG = LegConfig(
    label="Base",
    blockchain="base",
    build_query=_base_receive_query,
)


def select_canonical(records: list[TransferRecord]) -> tuple[Decimal, Optional[TransferRecord]]:
    """Pick the canonical amount and the record that supplies time/counterparty.

    Only complete records count. The amount is the maximum across them; the
    timestamp and counterparty come from the LAST complete record in
    response order, so the two can come from different log entries.
    """
    amount = Decimal("0")
    last_complete: Optional[TransferRecord] = None
    for record in records:
        if not record.is_complete:
            continue
        last_complete = record
        if record.amount is not None and record.amount > amount:
            amount = record.amount
    return amount, last_complete


class LegVerifier:
    """Validates one leg of a claim through a TransferLookup."""

    def __init__(self, config: LegConfig, lookup: TransferLookup) -> None:
        self.config = config
        self.lookup = lookup

    def verify(self, user_address: Optional[str], tx_hash: Optional[str]) -> LegResult:
        """Verify that `tx_hash` is a real transfer for `user_address` on this leg.

        Failures before the lookup (missing or malformed hash) return
        immediately; lookup errors propagate to the caller.
        """
        label = self.config.label
        tx_hash = (tx_hash or "").strip()

        if not tx_hash:
            logger.info("leg_check | leg=%s | result=missing_hash", self.config.blockchain)
            return LegResult(notes=f"No {label} transaction hash provided. ")

        if not has_hash_prefix(tx_hash):
            logger.info(
                "leg_check | leg=%s | result=bad_hash_format | tx_hash=%r",
                self.config.blockchain,
                tx_hash,
            )
            return LegResult(notes=f"Invalid {label} transaction hash. ")

        query = self.config.build_query(str(user_address or ""), tx_hash)
        records = self.lookup.fetch_transfers(query)

        if not records:
            logger.info(
                "leg_check | leg=%s | result=not_found | tx_hash=%s",
                self.config.blockchain,
                tx_hash,
            )
            return LegResult(notes=f"No {label} transaction found. ")

        amount, selected = select_canonical(records)
        timestamp = selected.timestamp if selected else None
        counterparty = selected.counterparty if selected else None

        if not same_address(user_address, counterparty):
            logger.info(
                "leg_check | leg=%s | result=address_mismatch | user=%s | onchain=%s",
                self.config.blockchain,
                user_address,
                counterparty,
            )
            return LegResult(
                amount=amount,
                timestamp=timestamp,
                valid=False,
                notes=(
                    f"User address in {label} transaction does not match "
                    "user address in the form. "
                ),
            )

        logger.debug(
            "leg_check | leg=%s | result=ok | tx_hash=%s | amount=%s | timestamp=%s | records=%s",
            self.config.blockchain,
            tx_hash,
            amount,
            timestamp,
            len(records),
        )
        return LegResult(amount=amount, timestamp=timestamp, valid=True, notes="")
