from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Sequence

from .safe_api import SafeApiClient, wallet_url
from .types import (
    AggregatedWalletResult,
    Chain,
    DisplayOptions,
    MonitoredWallet,
    QueuedTransaction,
    WalletInfo,
)

logger = logging.getLogger(__name__)


def group_by_chain(wallets: Sequence[MonitoredWallet]) -> dict[Chain, list[str]]:
    grouped: dict[Chain, list[str]] = {}
    for wallet in wallets:
        grouped.setdefault(wallet.chain, []).append(wallet.address)
    return grouped


async def aggregate(
    api: SafeApiClient,
    wallets: Sequence[MonitoredWallet],
    options: DisplayOptions,
) -> list[AggregatedWalletResult]:
    logger.debug("Fetching data for %d wallets", len(wallets))
    results: list[AggregatedWalletResult] = []

    # Chains and the wallets within them go one at a time to stay under the
    # public API's rate limits. Only a wallet's own two lookups overlap.
    for chain, addresses in group_by_chain(wallets).items():
        for address in addresses:
            result = await _collect_wallet(api, address, chain, options)
            if result is not None:
                results.append(result)

    return results


async def _collect_wallet(
    api: SafeApiClient, address: str, chain: Chain, options: DisplayOptions
) -> AggregatedWalletResult | None:
    queued, ownership = await asyncio.gather(
        api.fetch_queued_transactions(address, chain),
        _maybe_fetch_ownership(api, address, chain, options),
        return_exceptions=True,
    )

    for outcome in (queued, ownership):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome

    if isinstance(queued, Exception):
        logger.warning(
            "Failed to fetch queued transactions for %s on %s: %s", address, chain.value, queued
        )
        return None

    wallet_info: WalletInfo | None = None
    if isinstance(ownership, Exception):
        logger.warning("Failed to fetch owners for %s on %s: %s", address, chain.value, ownership)
    else:
        wallet_info = ownership

    if not queued:
        logger.debug("No queued transactions for %s on %s", address, chain.value)
        return None

    transactions = list(queued)
    if options.show_tx_note:
        transactions = await _attach_notes(api, transactions, chain)

    logger.debug("Found %d transactions for %s on %s", len(transactions), address, chain.value)
    return AggregatedWalletResult(
        chain=chain,
        address=address,
        transactions=tuple(transactions),
        wallet_info=wallet_info,
        wallet_url=wallet_url(address, chain),
    )


async def _maybe_fetch_ownership(
    api: SafeApiClient, address: str, chain: Chain, options: DisplayOptions
) -> WalletInfo | None:
    if not options.wants_ownership:
        return None
    return await api.fetch_ownership(address, chain)


async def _attach_notes(
    api: SafeApiClient, transactions: list[QueuedTransaction], chain: Chain
) -> list[QueuedTransaction]:
    out: list[QueuedTransaction] = []
    for tx in transactions:
        try:
            note = await api.fetch_note(tx.id, chain)
        except Exception as exc:
            logger.debug("Failed to fetch note for transaction %s: %s", tx.id, exc)
            note = None
        out.append(dataclasses.replace(tx, note=note) if note else tx)
    return out
