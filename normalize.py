"""
normalize.py - Input normalization for claims and on-chain records.

Text cleaners:
    strip_quotes(value)          -> trimmed text without surrounding quotes
    normalize_hash(tx_hash)      -> lowercase hash, or "" when absent

Address helpers:
    is_valid_address(address)    -> EVM address syntax + EIP-55 checksum
    to_checksum_address(address) -> EIP-55 mixed-case form
    same_address(a, b)           -> case-insensitive equality

Value parsers:
    parse_amount(value)          -> Decimal | None
    parse_timestamp(value)       -> timezone-aware datetime | None

Design principles:
    - Pure transformations, no external API calls
    - Invalid input degrades to None / "" rather than raising
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from Crypto.Hash import keccak
from dateutil import parser as dateparser

from logging_config import get_logger

logger = get_logger(__name__)

HEX_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")
TX_HASH_PREFIX = "0x"
EMPTY_MARKERS = {"", "n/a", "na", "none", "null", "undefined", "nan"}


def strip_quotes(value: Any) -> Optional[str]:
    """Trim whitespace and one pair of surrounding single/double quotes."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None

    text = str(value).strip()
    text = re.sub(r"^[\"']|[\"']$", "", text)
    return text


def normalize_hash(tx_hash: Any) -> str:
    """Lowercase a transaction hash for duplicate tracking; "" when absent."""
    if tx_hash is None:
        return ""
    text = str(tx_hash).strip()
    if not text:
        return ""
    return text.lower()


def has_hash_prefix(tx_hash: str) -> bool:
    return tx_hash.startswith(TX_HASH_PREFIX)


def _keccak_hex(text: str) -> str:
    digest = keccak.new(digest_bits=256)
    digest.update(text.encode("ascii"))
    return digest.hexdigest()


def to_checksum_address(address: str) -> str:
    """Return the EIP-55 checksummed form of a 40-hex-digit address."""
    if not HEX_ADDRESS_RE.match(address or ""):
        raise ValueError(f"invalid address: {address!r}")

    body = address[2:] if address[:2] == "0x" else address
    body = body.lower()
    hashed = _keccak_hex(body)
    checksummed = "".join(
        char.upper() if int(hashed[index], 16) >= 8 else char
        for index, char in enumerate(body)
    )
    return "0x" + checksummed


def is_valid_address(address: Any) -> bool:
    """Whether `address` is a syntactically valid EVM address.

    Accepts 40 hex digits with an optional 0x prefix. All-lowercase and
    all-uppercase bodies carry no checksum and are accepted; mixed case must
    match the EIP-55 checksum.
    """
    if not isinstance(address, str):
        return False
    if not HEX_ADDRESS_RE.match(address):
        logger.debug("address_check | raw=%r | result=bad_syntax", address)
        return False

    body = address[2:] if address[:2] == "0x" else address
    if body == body.lower() or body == body.upper():
        return True

    valid = to_checksum_address(address)[2:] == body
    if not valid:
        logger.debug("address_check | raw=%r | result=bad_checksum", address)
    return valid


def same_address(left: Any, right: Any) -> bool:
    """Case-insensitive address comparison; absent never equals anything."""
    if not left or not right:
        return False
    return str(left).strip().lower() == str(right).strip().lower()


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a user or API amount into Decimal; None when absent/unparseable."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        # str() keeps the shortest round-tripping repr (950.1 not 950.0999...)
        return Decimal(str(value))

    text = strip_quotes(value) or ""
    text = text.replace(",", "").replace("$", "").strip()
    if text.lower() in EMPTY_MARKERS:
        return None

    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        logger.warning("parse_amount | parse_failed | raw=%r | fallback=None", value)
        return None

    if not amount.is_finite():
        logger.warning("parse_amount | non_finite | raw=%r | fallback=None", value)
        return None
    return amount


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a block timestamp (ISO-8601 string, epoch seconds, or datetime).

    Naive values are assumed to be UTC.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.lower() in EMPTY_MARKERS:
            return None
        if re.fullmatch(r"\d+", text):
            return datetime.fromtimestamp(int(text), tz=timezone.utc)
        try:
            parsed = dateparser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = dateparser.parse(text)
            except (ValueError, OverflowError, TypeError):
                logger.warning(
                    "parse_timestamp | parse_failed | raw=%r | fallback=None",
                    value,
                )
                return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
