"""
lookup.py - Chain Transfer Lookup boundary for the reconciliation pipeline.

This module is the only place that knows anything about Airstack.

Pipeline role:
- Given a `TransferQuery` (blockchain, tx hash, address filters) it returns
  the matching token transfers as `TransferRecord` objects.
- Downstream modules never see GraphQL or the raw response shape.

Lookup backends:
    1. Airstack (when AIRSTACK_API_KEY is set in .env):
       POSTs a `TokenTransfers` GraphQL query and parses the response.
    2. Fixtures (when no API key):
       Serves recorded Airstack responses from a JSON file so the whole
       pipeline can run offline. The default fixture file matches
       test_data/claims.csv.

Error philosophy:
    Transport and service failures are NOT recovered here. They raise
    `TransferLookupError` and the batch runner decides what to do. There is
    no retry and, unless AIRSTACK_TIMEOUT_S is set, no request timeout.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

import requests
from dotenv import load_dotenv

from logging_config import get_logger
from models import CounterpartyField, TransferQuery, TransferRecord
from normalize import normalize_hash, parse_amount, parse_timestamp, same_address

logger = get_logger(__name__)

try:
    load_dotenv()
except UnicodeDecodeError:
    # Fallback for legacy Windows-encoded .env files.
    load_dotenv(encoding="cp1252")

# -- Configuration --

DEFAULT_API_URL = "https://api.airstack.xyz/gql"
DEFAULT_FIXTURES_PATH = "test_data/transfers.json"


class TransferLookupError(RuntimeError):
    """The lookup service could not answer a query."""


class TransferLookup(Protocol):
    def fetch_transfers(self, query: TransferQuery) -> list[TransferRecord]:
        ...


def _gql_string(value: str) -> str:
    # JSON string escaping is valid GraphQL string escaping.
    return json.dumps(str(value))


def build_transfers_query(query: TransferQuery) -> str:
    """Render the Airstack `TokenTransfers` GraphQL document for a query."""
    filters: list[str] = []
    if query.token_address:
        filters.append(f"tokenAddress: {{_eq: {_gql_string(query.token_address)}}}")
    if query.to_address:
        filters.append(f"to: {{_eq: {_gql_string(query.to_address)}}}")
    if query.from_address:
        filters.append(f"from: {{_eq: {_gql_string(query.from_address)}}}")
    filters.append(f"transactionHash: {{_eq: {_gql_string(query.tx_hash)}}}")

    counterparty = query.counterparty_field.value
    filter_block = ",\n            ".join(filters)
    return f"""
    query {{
      TokenTransfers(
        input: {{
          blockchain: {query.blockchain},
          filter: {{
            {filter_block}
          }}
        }}
      ) {{
        TokenTransfer {{
          blockTimestamp
          formattedAmount
          {counterparty} {{
            addresses
          }}
        }}
      }}
    }}
    """


def _first_address(raw: dict[str, Any], field: str) -> Optional[str]:
    section = raw.get(field)
    if not isinstance(section, dict):
        return None
    addresses = section.get("addresses") or []
    if isinstance(addresses, str):
        addresses = [addresses]
    if not addresses:
        return None
    return str(addresses[0])


def parse_transfer(raw: dict[str, Any], counterparty_field: CounterpartyField) -> TransferRecord:
    """Convert one raw Airstack `TokenTransfer` object into a TransferRecord."""
    return TransferRecord(
        timestamp=parse_timestamp(raw.get("blockTimestamp")),
        amount=parse_amount(raw.get("formattedAmount")),
        counterparty=_first_address(raw, counterparty_field.value),
    )


def parse_transfers_response(body: Any, query: TransferQuery) -> list[TransferRecord]:
    """Extract `data.TokenTransfers.TokenTransfer` from a GraphQL response body."""
    if not isinstance(body, dict):
        raise TransferLookupError(
            f"Unexpected Airstack response type: {type(body).__name__}"
        )

    data = body.get("data")
    errors = body.get("errors")
    if errors and not data:
        raise TransferLookupError(f"Airstack query failed: {errors}")
    if errors:
        logger.warning(
            "lookup_partial_errors | blockchain=%s | tx_hash=%s | errors=%s",
            query.blockchain,
            query.tx_hash,
            errors,
        )

    if not isinstance(data, dict) or "TokenTransfers" not in data:
        raise TransferLookupError("Airstack response missing data.TokenTransfers")

    section = data.get("TokenTransfers") or {}
    raw_items = section.get("TokenTransfer") or []
    return [
        parse_transfer(raw, query.counterparty_field)
        for raw in raw_items
        if isinstance(raw, dict)
    ]


class AirstackTransferLookup:
    """Token-transfer lookups against the Airstack GraphQL API."""

    def __init__(
        self,
        api_key: str,
        api_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        api_key = str(api_key or "").strip()
        if not api_key:
            raise ValueError("api_key is required for AirstackTransferLookup.")
        self.api_key = api_key
        self.api_url = api_url or os.getenv("AIRSTACK_API_URL", DEFAULT_API_URL)
        self.timeout_s = timeout_s
        self.session = session

    def fetch_transfers(self, query: TransferQuery) -> list[TransferRecord]:
        document = build_transfers_query(query)
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }
        post = self.session.post if self.session is not None else requests.post

        logger.debug(
            "lookup_start | backend=airstack | blockchain=%s | tx_hash=%s",
            query.blockchain,
            query.tx_hash,
        )
        try:
            response = post(
                self.api_url,
                json={"query": document},
                headers=headers,
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise TransferLookupError(
                f"Airstack request failed for {query.blockchain} tx {query.tx_hash}: {exc}"
            ) from exc

        if response.status_code != 200:
            raise TransferLookupError(
                f"Airstack HTTP {response.status_code} for {query.blockchain} "
                f"tx {query.tx_hash}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransferLookupError(
                f"Airstack returned non-JSON body for {query.blockchain} tx {query.tx_hash}"
            ) from exc

        records = parse_transfers_response(body, query)
        logger.info(
            "lookup_complete | backend=airstack | blockchain=%s | tx_hash=%s | records=%s",
            query.blockchain,
            query.tx_hash,
            len(records),
        )
        return records


class FixtureTransferLookup:
    """Serves recorded Airstack `TokenTransfer` objects without network access.

    Fixture shape: {blockchain: {tx_hash: [raw TokenTransfer, ...]}}. The
    query's address filters are applied to whichever of `tokenAddress`,
    `from` and `to` the raw record carries, the same way Airstack filters
    server-side.
    """

    def __init__(self, fixtures: Optional[dict[str, dict[str, list[dict[str, Any]]]]] = None) -> None:
        self._fixtures: dict[str, dict[str, list[dict[str, Any]]]] = {}
        for blockchain, by_hash in (fixtures or {}).items():
            for tx_hash, raw_items in (by_hash or {}).items():
                self.add(blockchain, tx_hash, raw_items)

    @classmethod
    def from_json(cls, path: str | Path) -> "FixtureTransferLookup":
        fixture_path = Path(path)
        if not fixture_path.exists():
            raise FileNotFoundError(f"Transfer fixtures not found: {fixture_path}")
        try:
            payload = json.loads(fixture_path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ValueError(f"Transfer fixtures are not valid JSON: {fixture_path}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Transfer fixtures must be a JSON object: {fixture_path}")
        logger.info("lookup_fixtures_loaded | path=%s | chains=%s", fixture_path, sorted(payload))
        return cls(payload)

    def add(self, blockchain: str, tx_hash: str, raw_items: Iterable[dict[str, Any]]) -> None:
        bucket = self._fixtures.setdefault(str(blockchain).lower(), {})
        bucket.setdefault(normalize_hash(tx_hash), []).extend(raw_items)

    @staticmethod
    def _matches_filters(raw: dict[str, Any], query: TransferQuery) -> bool:
        if query.token_address and "tokenAddress" in raw:
            if not same_address(raw.get("tokenAddress"), query.token_address):
                return False
        for field, expected in (("to", query.to_address), ("from", query.from_address)):
            if expected and field in raw:
                if not same_address(_first_address(raw, field), expected):
                    return False
        return True

    def fetch_transfers(self, query: TransferQuery) -> list[TransferRecord]:
        raw_items = self._fixtures.get(query.blockchain.lower(), {}).get(
            normalize_hash(query.tx_hash), []
        )
        records = [
            parse_transfer(raw, query.counterparty_field)
            for raw in raw_items
            if self._matches_filters(raw, query)
        ]
        logger.debug(
            "lookup_complete | backend=fixtures | blockchain=%s | tx_hash=%s | records=%s",
            query.blockchain,
            query.tx_hash,
            len(records),
        )
        return records


def _timeout_from_env() -> Optional[float]:
    raw = os.getenv("AIRSTACK_TIMEOUT_S", "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("lookup_config_warning | AIRSTACK_TIMEOUT_S=%r | fallback=no_timeout", raw)
        return None


def build_transfer_lookup(fixtures_path: Optional[str] = None) -> TransferLookup:
    """Pick the lookup backend from the environment.

    An explicit fixtures path always wins; otherwise Airstack is used when
    AIRSTACK_API_KEY is configured, and the default fixture file when not.
    """
    if fixtures_path:
        logger.info("lookup_mode | mode=fixtures | path=%s", fixtures_path)
        return FixtureTransferLookup.from_json(fixtures_path)

    api_key = os.getenv("AIRSTACK_API_KEY", "").strip()
    if api_key:
        logger.info("lookup_mode | mode=airstack")
        return AirstackTransferLookup(api_key, timeout_s=_timeout_from_env())

    default_path = os.getenv("TRANSFER_FIXTURES", DEFAULT_FIXTURES_PATH)
    logger.info("lookup_mode | mode=fixtures | path=%s | api_key=missing", default_path)
    logger.info("lookup_mode_hint | set_env=AIRSTACK_API_KEY | action='enable live Airstack lookups'")
    return FixtureTransferLookup.from_json(default_path)
