from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Chain(str, Enum):
    MAINNET = "mainnet"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    POLYGON = "polygon"
    GNOSIS = "gnosis"
    BASE = "base"
    AVALANCHE = "avalanche"
    ZKEVM = "zkevm"

    @property
    def chain_id(self) -> int:
        return CHAIN_IDS[self]


CHAIN_IDS: dict[Chain, int] = {
    Chain.MAINNET: 1,
    Chain.ARBITRUM: 42161,
    Chain.OPTIMISM: 10,
    Chain.POLYGON: 137,
    Chain.GNOSIS: 100,
    Chain.BASE: 8453,
    Chain.AVALANCHE: 43114,
    Chain.ZKEVM: 1101,
}


class ReadinessTier(str, Enum):
    READY = "ready"
    NEARLY_READY = "nearly-ready"
    NEEDS_ATTENTION = "needs-attention"


@dataclass(frozen=True)
class MonitoredWallet:
    address: str
    chain: Chain


@dataclass(frozen=True)
class SignerAlias:
    address: str
    handle: str


@dataclass(frozen=True)
class QueuedTransaction:
    nonce: int
    signed_count: int
    confirmations_required: int
    # May hold placeholder entries rather than owner addresses, see safe_api.
    confirmed_owners: tuple[str, ...]
    missing_signers: tuple[str, ...] | None
    id: str
    wallet_address: str
    note: str | None = None


@dataclass(frozen=True)
class WalletInfo:
    owners: tuple[str, ...]
    threshold: int


@dataclass(frozen=True)
class AggregatedWalletResult:
    chain: Chain
    address: str
    transactions: tuple[QueuedTransaction, ...]
    wallet_info: WalletInfo | None
    wallet_url: str


@dataclass(frozen=True)
class MonitorResult:
    total_transactions: int
    messages: tuple[str, ...]
    signer_summary: dict[str, int]
    raw_data: tuple[AggregatedWalletResult, ...]


@dataclass(frozen=True)
class DisplayOptions:
    show_confirmed_signer: bool = False
    show_pending_signer: bool = True
    show_status_icon: bool = False
    show_chain_icon: bool = True
    show_tx_note: bool = True

    @property
    def wants_ownership(self) -> bool:
        return self.show_confirmed_signer or self.show_pending_signer


@dataclass(frozen=True)
class ConsoleChannel:
    enabled: bool = True
    colored: bool = True
    type: str = field(default="console", init=False)


@dataclass(frozen=True)
class TelegramChannel:
    bot_token: str
    chat_id: str
    enabled: bool = True
    disable_notification: bool = True
    parse_mode: str = "HTML"
    type: str = field(default="telegram", init=False)


@dataclass(frozen=True)
class WebhookChannel:
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    type: str = field(default="webhook", init=False)


@dataclass(frozen=True)
class UnknownChannel:
    """Channel entry with a type this version does not know how to deliver to."""

    type: str
    enabled: bool = True
    raw: dict[str, Any] = field(default_factory=dict)


ChannelConfig = Union[ConsoleChannel, TelegramChannel, WebhookChannel, UnknownChannel]


@dataclass(frozen=True)
class MonitorConfig:
    wallets: tuple[MonitoredWallet, ...]
    signers: tuple[SignerAlias, ...] = ()
    display: DisplayOptions = field(default_factory=DisplayOptions)
    channels: tuple[ChannelConfig, ...] = ()
    debug: bool = False
