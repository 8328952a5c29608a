import asyncio
import json

import httpx
import pytest

from safe_queue_monitor.errors import SafeApiError
from safe_queue_monitor.safe_api import (
    SafeApiClient,
    parse_queued_response,
    wallet_url,
)
from safe_queue_monitor.types import Chain

SAFE = "0xbe2AB3d3d8F6a32b96414ebbd865dBD276d3d899"

QUEUED_PAYLOAD = {
    "count": 3,
    "results": [
        {"type": "LABEL", "label": "Next"},
        {
            "type": "TRANSACTION",
            "conflictType": "None",
            "transaction": {
                "id": "multisig_0xbe2_0x01",
                "timestamp": 1730000000000,
                "txStatus": "AWAITING_CONFIRMATIONS",
                "executionInfo": {
                    "type": "MULTISIG",
                    "nonce": 42,
                    "confirmationsRequired": 3,
                    "confirmationsSubmitted": 2,
                    "missingSigners": [{"value": "0xCCCC", "name": None, "logoUri": None}],
                },
            },
        },
        {"type": "CONFLICT_HEADER", "nonce": 43},
        {"type": "TRANSACTION", "transaction": {"id": "broken"}},
    ],
}


def _client(handler) -> SafeApiClient:
    return SafeApiClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_parse_queued_response_keeps_only_transactions() -> None:
    txs = parse_queued_response(QUEUED_PAYLOAD, SAFE)

    assert len(txs) == 1
    tx = txs[0]
    assert tx.nonce == 42
    assert tx.signed_count == 2
    assert tx.confirmations_required == 3
    assert tx.missing_signers == ("0xCCCC",)
    assert tx.confirmed_owners == ("signed_0", "signed_1")
    assert tx.id == "multisig_0xbe2_0x01"
    assert tx.wallet_address == SAFE
    assert tx.note is None


def test_parse_queued_response_handles_odd_payloads() -> None:
    assert parse_queued_response(None, SAFE) == []
    assert parse_queued_response({"results": "nope"}, SAFE) == []
    assert parse_queued_response({"count": 0, "results": []}, SAFE) == []


def test_wallet_url_maps_mainnet_to_eth() -> None:
    assert wallet_url(SAFE, Chain.MAINNET) == f"https://app.safe.global/home?safe=eth:{SAFE}"
    assert wallet_url(SAFE, Chain.ARBITRUM) == f"https://app.safe.global/home?safe=arbitrum:{SAFE}"


def test_fetch_queued_transactions_hits_client_gateway() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json=QUEUED_PAYLOAD)

    async def run():
        api = _client(handler)
        try:
            return await api.fetch_queued_transactions(SAFE, Chain.BASE)
        finally:
            await api.close()

    txs = asyncio.run(run())
    assert len(txs) == 1
    assert seen == [
        f"https://safe-client.safe.global/v1/chains/8453/safes/{SAFE}/transactions/queued"
    ]


def test_fetch_ownership_defaults() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "safe-transaction-gnosis-chain.safe.global"
        assert request.url.path == f"/api/v1/safes/{SAFE}/"
        return httpx.Response(200, json={"owners": ["0x1", "0x2"], "threshold": 0})

    async def run():
        api = _client(handler)
        try:
            return await api.fetch_ownership(SAFE, Chain.GNOSIS)
        finally:
            await api.close()

    info = asyncio.run(run())
    assert info.owners == ("0x1", "0x2")
    assert info.threshold == 1


def test_fetch_note_empty_is_none() -> None:
    notes = {"tx-1": "Treasury top-up", "tx-2": ""}

    def handler(request: httpx.Request) -> httpx.Response:
        tx_id = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, content=json.dumps({"txId": tx_id, "note": notes[tx_id]}))

    async def run():
        api = _client(handler)
        try:
            return [await api.fetch_note(t, Chain.MAINNET) for t in ("tx-1", "tx-2")]
        finally:
            await api.close()

    assert asyncio.run(run()) == ["Treasury top-up", None]


def test_http_errors_become_safe_api_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "unavailable"})

    async def run():
        api = _client(handler)
        try:
            await api.fetch_queued_transactions(SAFE, Chain.MAINNET)
        finally:
            await api.close()

    with pytest.raises(SafeApiError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.address == SAFE
    assert excinfo.value.chain == "mainnet"
