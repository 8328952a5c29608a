import asyncio

from safe_queue_monitor.aggregator import aggregate, group_by_chain
from safe_queue_monitor.errors import SafeApiError
from safe_queue_monitor.types import (
    Chain,
    DisplayOptions,
    MonitoredWallet,
    QueuedTransaction,
    WalletInfo,
)


def _tx(wallet: str, nonce: int) -> QueuedTransaction:
    return QueuedTransaction(
        nonce=nonce,
        signed_count=1,
        confirmations_required=2,
        confirmed_owners=("signed_0",),
        missing_signers=("0xowner2",),
        id=f"tx-{wallet}-{nonce}",
        wallet_address=wallet,
    )


class FakeApi:
    def __init__(
        self,
        queues: dict,
        owners: dict | None = None,
        notes: dict | None = None,
        failing_queues: set | None = None,
        failing_owners: set | None = None,
        failing_notes: set | None = None,
    ) -> None:
        self.queues = queues
        self.owners = owners or {}
        self.notes = notes or {}
        self.failing_queues = failing_queues or set()
        self.failing_owners = failing_owners or set()
        self.failing_notes = failing_notes or set()
        self.calls: list[tuple[str, str, Chain]] = []

    async def fetch_queued_transactions(self, address: str, chain: Chain):
        self.calls.append(("queue", address, chain))
        if address in self.failing_queues:
            raise SafeApiError("boom", address, chain.value)
        return list(self.queues.get(address, []))

    async def fetch_ownership(self, address: str, chain: Chain):
        self.calls.append(("owners", address, chain))
        if address in self.failing_owners:
            raise SafeApiError("owners down", address, chain.value)
        return self.owners.get(address, WalletInfo(owners=("0xowner1", "0xowner2"), threshold=2))

    async def fetch_note(self, transaction_id: str, chain: Chain):
        self.calls.append(("note", transaction_id, chain))
        if transaction_id in self.failing_notes:
            raise SafeApiError("note down", transaction_id, chain.value)
        return self.notes.get(transaction_id)


def test_group_by_chain_keeps_first_seen_order() -> None:
    wallets = [
        MonitoredWallet("0x1", Chain.BASE),
        MonitoredWallet("0x2", Chain.MAINNET),
        MonitoredWallet("0x3", Chain.BASE),
    ]
    grouped = group_by_chain(wallets)
    assert list(grouped) == [Chain.BASE, Chain.MAINNET]
    assert grouped[Chain.BASE] == ["0x1", "0x3"]


def test_results_follow_chain_grouping_and_drop_empty_queues() -> None:
    wallets = [
        MonitoredWallet("0x1", Chain.BASE),
        MonitoredWallet("0x2", Chain.MAINNET),
        MonitoredWallet("0x3", Chain.BASE),
    ]
    api = FakeApi({"0x1": [_tx("0x1", 1)], "0x2": [_tx("0x2", 5)], "0x3": []})

    results = asyncio.run(aggregate(api, wallets, DisplayOptions(show_tx_note=False)))

    assert [(r.chain, r.address) for r in results] == [(Chain.BASE, "0x1"), (Chain.MAINNET, "0x2")]
    assert results[0].wallet_url == "https://app.safe.global/home?safe=base:0x1"
    assert results[1].wallet_url == "https://app.safe.global/home?safe=eth:0x2"
    assert results[0].wallet_info is not None


def test_queue_failure_skips_wallet_but_run_continues() -> None:
    wallets = [MonitoredWallet("0x1", Chain.MAINNET), MonitoredWallet("0x2", Chain.MAINNET)]
    api = FakeApi({"0x2": [_tx("0x2", 1)]}, failing_queues={"0x1"})

    results = asyncio.run(aggregate(api, wallets, DisplayOptions()))

    assert [r.address for r in results] == ["0x2"]


def test_ownership_failure_keeps_wallet_without_info() -> None:
    wallets = [MonitoredWallet("0x1", Chain.MAINNET)]
    api = FakeApi({"0x1": [_tx("0x1", 1)]}, failing_owners={"0x1"})

    results = asyncio.run(aggregate(api, wallets, DisplayOptions(show_tx_note=False)))

    assert len(results) == 1
    assert results[0].wallet_info is None
    assert len(results[0].transactions) == 1


def test_ownership_not_requested_when_signer_lines_disabled() -> None:
    wallets = [MonitoredWallet("0x1", Chain.MAINNET)]
    api = FakeApi({"0x1": [_tx("0x1", 1)]})
    options = DisplayOptions(show_pending_signer=False, show_confirmed_signer=False, show_tx_note=False)

    results = asyncio.run(aggregate(api, wallets, options))

    assert results[0].wallet_info is None
    assert [c[0] for c in api.calls] == ["queue"]


def test_notes_are_best_effort() -> None:
    wallets = [MonitoredWallet("0x1", Chain.MAINNET)]
    txs = [_tx("0x1", 1), _tx("0x1", 2), _tx("0x1", 3)]
    api = FakeApi(
        {"0x1": txs},
        notes={"tx-0x1-1": "Pay contributors", "tx-0x1-3": None},
        failing_notes={"tx-0x1-2"},
    )

    results = asyncio.run(aggregate(api, wallets, DisplayOptions()))

    notes = [tx.note for tx in results[0].transactions]
    assert notes == ["Pay contributors", None, None]
    note_calls = [c[1] for c in api.calls if c[0] == "note"]
    assert note_calls == ["tx-0x1-1", "tx-0x1-2", "tx-0x1-3"]


def test_notes_not_fetched_when_disabled() -> None:
    wallets = [MonitoredWallet("0x1", Chain.MAINNET)]
    api = FakeApi({"0x1": [_tx("0x1", 1)]})

    asyncio.run(aggregate(api, wallets, DisplayOptions(show_tx_note=False)))

    assert not [c for c in api.calls if c[0] == "note"]


class RendezvousApi:
    """Queue and owner lookups for a wallet each wait until the other one has started."""

    def __init__(self, queues: dict) -> None:
        self.queues = queues
        self.started: dict[tuple[str, str], asyncio.Event] = {}
        self.active: dict[str, int] = {}
        self.max_wallets_in_flight = 0
        self.order: list[str] = []

    def _event(self, kind: str, address: str) -> asyncio.Event:
        return self.started.setdefault((kind, address), asyncio.Event())

    async def _call(self, kind: str, other: str, address: str):
        self.active[address] = self.active.get(address, 0) + 1
        busy = sum(1 for n in self.active.values() if n > 0)
        self.max_wallets_in_flight = max(self.max_wallets_in_flight, busy)
        self.order.append(address)
        try:
            self._event(kind, address).set()
            await asyncio.wait_for(self._event(other, address).wait(), timeout=1.0)
            await asyncio.sleep(0)
        finally:
            self.active[address] -= 1

    async def fetch_queued_transactions(self, address: str, chain: Chain):
        await self._call("queue", "owners", address)
        return list(self.queues.get(address, []))

    async def fetch_ownership(self, address: str, chain: Chain):
        await self._call("owners", "queue", address)
        return WalletInfo(owners=("0xowner1", "0xowner2"), threshold=2)

    async def fetch_note(self, transaction_id: str, chain: Chain):
        return None


def test_wallet_lookups_overlap_but_wallets_run_one_at_a_time() -> None:
    wallets = [
        MonitoredWallet("0x1", Chain.MAINNET),
        MonitoredWallet("0x2", Chain.BASE),
        MonitoredWallet("0x3", Chain.MAINNET),
    ]
    api = RendezvousApi({"0x1": [_tx("0x1", 1)], "0x2": [_tx("0x2", 2)], "0x3": [_tx("0x3", 3)]})

    results = asyncio.run(aggregate(api, wallets, DisplayOptions(show_tx_note=False)))

    assert [r.address for r in results] == ["0x1", "0x3", "0x2"]
    assert all(r.wallet_info is not None for r in results)
    assert api.max_wallets_in_flight == 1
    assert api.order == ["0x1", "0x1", "0x3", "0x3", "0x2", "0x2"]
