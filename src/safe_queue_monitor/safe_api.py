from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import SafeApiError
from .types import Chain, QueuedTransaction, WalletInfo

logger = logging.getLogger(__name__)

USER_AGENT = "safe-queue-monitor/0.1.0"
CLIENT_GATEWAY_BASE = "https://safe-client.safe.global"
SAFE_APP_BASE = "https://app.safe.global"

TX_SERVICE_URLS: dict[Chain, str] = {
    Chain.MAINNET: "https://safe-transaction-mainnet.safe.global",
    Chain.ARBITRUM: "https://safe-transaction-arbitrum.safe.global",
    Chain.OPTIMISM: "https://safe-transaction-optimism.safe.global",
    Chain.POLYGON: "https://safe-transaction-polygon.safe.global",
    Chain.GNOSIS: "https://safe-transaction-gnosis-chain.safe.global",
    Chain.BASE: "https://safe-transaction-base.safe.global",
    Chain.AVALANCHE: "https://safe-transaction-avalanche.safe.global",
    Chain.ZKEVM: "https://safe-transaction-zkevm.safe.global",
}


class SafeApiClient:
    """Thin async client over the Safe transaction service and client gateway."""

    def __init__(self, timeout: float = 20.0, client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_ownership(self, address: str, chain: Chain) -> WalletInfo:
        base = TX_SERVICE_URLS.get(chain)
        if base is None:
            raise SafeApiError(f"Unsupported chain: {chain.value}", address, chain.value)

        data = await self._get(f"{base}/api/v1/safes/{address}/", address, chain)
        if not isinstance(data, dict):
            raise SafeApiError("Unexpected ownership payload", address, chain.value)

        owners = data.get("owners") or []
        threshold = data.get("threshold") or 1
        return WalletInfo(owners=tuple(str(o) for o in owners), threshold=int(threshold))

    async def fetch_queued_transactions(
        self, address: str, chain: Chain
    ) -> list[QueuedTransaction]:
        url = (
            f"{CLIENT_GATEWAY_BASE}/v1/chains/{chain.chain_id}"
            f"/safes/{address}/transactions/queued"
        )
        logger.debug("Fetching queued transactions for %s on %s: %s", address, chain.value, url)
        data = await self._get(url, address, chain)
        transactions = parse_queued_response(data, address)
        logger.debug("Found %d queued transactions for %s", len(transactions), address)
        return transactions

    async def fetch_note(self, transaction_id: str, chain: Chain) -> str | None:
        url = f"{CLIENT_GATEWAY_BASE}/v1/chains/{chain.chain_id}/transactions/{transaction_id}"
        data = await self._get(url, transaction_id, chain)
        if not isinstance(data, dict):
            return None
        note = data.get("note")
        if isinstance(note, str) and note.strip():
            return note
        return None

    async def _get(self, url: str, subject: str, chain: Chain) -> Any:
        try:
            resp = await self._client.get(url)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SafeApiError(
                f"Request to {url} failed: {exc}", subject, chain.value
            ) from exc


def wallet_url(address: str, chain: Chain) -> str:
    prefix = "eth" if chain is Chain.MAINNET else chain.value
    return f"{SAFE_APP_BASE}/home?safe={prefix}:{address}"



def parse_queued_response(payload: Any, wallet_address: str) -> list[QueuedTransaction]:
    if not isinstance(payload, dict):
        return []
    results = payload.get("results")
    if not isinstance(results, list):
        return []

    out: list[QueuedTransaction] = []
    for item in results:
        if not isinstance(item, dict) or item.get("type") != "TRANSACTION":
            continue
        tx = _convert_transaction(item.get("transaction"), wallet_address)
        if tx is not None:
            out.append(tx)
    return out


def _convert_transaction(raw: Any, wallet_address: str) -> QueuedTransaction | None:
    if not isinstance(raw, dict):
        return None
    info = raw.get("executionInfo")
    if not isinstance(info, dict):
        return None

    try:
        nonce = int(info["nonce"])
        required = int(info["confirmationsRequired"])
        submitted = int(info.get("confirmationsSubmitted", 0) or 0)
    except (KeyError, TypeError, ValueError):
        return None

    missing = [
        str(s["value"])
        for s in info.get("missingSigners") or []
        if isinstance(s, dict) and s.get("value")
    ]

    # The queue endpoint reports only a count of confirmations, not who gave them.
    # These placeholders keep the count and never match a real owner address.
    placeholders = tuple(f"signed_{i}" for i in range(submitted))

    return QueuedTransaction(
        nonce=nonce,
        signed_count=submitted,
        confirmations_required=required,
        confirmed_owners=placeholders,
        missing_signers=tuple(missing),
        id=str(raw.get("id", "")),
        wallet_address=wallet_address,
    )
