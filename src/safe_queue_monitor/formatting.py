from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from .status import normalize_address, resolve_status, same_address
from .types import (
    AggregatedWalletResult,
    Chain,
    DisplayOptions,
    QueuedTransaction,
    ReadinessTier,
    SignerAlias,
    WalletInfo,
)

STATUS_ICONS: dict[ReadinessTier, str] = {
    ReadinessTier.READY: "🏅",
    ReadinessTier.NEARLY_READY: "📝",
    ReadinessTier.NEEDS_ATTENTION: "⚠️",
}

CHAIN_ICONS: dict[Chain, str] = {
    Chain.MAINNET: "⚫",
    Chain.ARBITRUM: "🔵",
    Chain.OPTIMISM: "🔴",
    Chain.POLYGON: "🟣",
    Chain.GNOSIS: "🟢",
    Chain.BASE: "⚪",
    Chain.AVALANCHE: "🔺",
    Chain.ZKEVM: "🟪",
}

SIGNED_ICON = "✔️ "
PENDING_ICON = "⏳"


@dataclass(frozen=True)
class FormattedReport:
    messages: tuple[str, ...]
    signer_summary: dict[str, int]


def short_address(address: str) -> str:
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def signer_handle(address: str, aliases: Sequence[SignerAlias], prefix: str = "") -> str:
    for alias in aliases:
        if same_address(alias.address, address):
            return f"{prefix}{alias.handle}"
    return short_address(address)


def status_icon(tier: ReadinessTier) -> str:
    return STATUS_ICONS[tier]


def chain_icon(chain: Chain) -> str:
    return CHAIN_ICONS.get(chain, "❓")


def format_transaction(
    tx: QueuedTransaction,
    chain: Chain,
    wallet_info: WalletInfo | None,
    aliases: Sequence[SignerAlias],
    options: DisplayOptions,
) -> str:
    status = resolve_status(tx, wallet_info)

    header: list[str] = []
    if options.show_chain_icon:
        header.append(chain_icon(chain))
    header.append(f"{chain.value.upper()} - Tx {tx.nonce}")
    if options.show_status_icon:
        header.append(status_icon(status.tier))
    header.append(f"{tx.signed_count}/{tx.confirmations_required}")
    lines = [" ".join(header)]

    if options.show_tx_note and tx.note:
        lines.append(f"    📝 Note: {tx.note}")

    # No owner list means no breakdown; the header alone still carries the tier.
    if status.partition is not None:
        if options.show_confirmed_signer and status.partition.signed:
            lines.append(_signer_line(status.partition.signed, "Signed", SIGNED_ICON, aliases))
        if options.show_pending_signer and status.partition.unsigned:
            lines.append(
                _signer_line(status.partition.unsigned, "Not Signed", PENDING_ICON, aliases)
            )

    return "\n".join(lines)


def _signer_line(
    addresses: Sequence[str], label: str, icon: str, aliases: Sequence[SignerAlias]
) -> str:
    names = ", ".join(signer_handle(addr, aliases) for addr in addresses)
    return f"    {icon} {label}: {names}"


def format_results(
    results: Sequence[AggregatedWalletResult],
    aliases: Sequence[SignerAlias],
    options: DisplayOptions,
    tally: Counter[str] | None = None,
) -> FormattedReport:
    """Render every wallet's queue plus the outstanding-signature summary.

    ``tally`` lets a caller carry a running count across several calls; a fresh
    counter is used otherwise, so repeated calls with the same input give the
    same output.
    """
    tally = Counter() if tally is None else tally
    messages: list[str] = []

    for result in results:
        for tx in result.transactions:
            messages.append(
                format_transaction(tx, result.chain, result.wallet_info, aliases, options)
            )
            if tx.missing_signers:
                tally.update(normalize_address(addr) for addr in tx.missing_signers)
        messages.append(f"🔗 Safe URL: {result.wallet_url}\n")

    for address, count in tally.items():
        name = signer_handle(address, aliases, prefix="@")
        noun = "signature" if count == 1 else "signatures"
        messages.append(f"   • {name}: {count} {noun} needed")

    return FormattedReport(messages=tuple(messages), signer_summary=dict(tally))
