from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from .aggregator import aggregate
from .errors import ConfigurationError
from .formatting import format_results
from .notifications import DispatchReport, dispatch
from .safe_api import SafeApiClient
from .types import ChannelConfig, MonitorConfig, MonitorResult

logger = logging.getLogger(__name__)

Dispatcher = Callable[[str, Sequence[ChannelConfig]], Awaitable[DispatchReport]]


async def monitor(
    config: MonitorConfig,
    api: SafeApiClient | None = None,
    dispatcher: Dispatcher = dispatch,
) -> MonitorResult:
    """Run one fetch, format and notify cycle."""
    if not config.wallets:
        raise ConfigurationError("No safes provided in configuration")

    logger.debug(
        "Monitoring %d safes across %d chains",
        len(config.wallets),
        len({w.chain for w in config.wallets}),
    )

    own_api = api is None
    client = api or SafeApiClient()
    try:
        raw_data = await aggregate(client, config.wallets, config.display)
    finally:
        if own_api:
            await client.close()

    total = sum(len(r.transactions) for r in raw_data)
    logger.debug("Found %d total queued transactions", total)

    report = format_results(raw_data, config.signers, config.display)

    channels = [c for c in config.channels if c.enabled]
    if total > 0 and channels:
        logger.debug("Sending notifications via %d channel(s)", len(channels))
        outcome = await dispatcher("\n".join(report.messages), channels)
        if not outcome.ok:
            logger.warning("%d notification channel(s) failed", len(outcome.failures))
    else:
        logger.debug("No transactions found or no notifications configured")

    return MonitorResult(
        total_transactions=total,
        messages=report.messages,
        signer_summary=report.signer_summary,
        raw_data=tuple(raw_data),
    )
