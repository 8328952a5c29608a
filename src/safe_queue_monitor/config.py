from __future__ import annotations

import json
import os
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError
from .types import (
    Chain,
    ChannelConfig,
    ConsoleChannel,
    DisplayOptions,
    MonitorConfig,
    MonitoredWallet,
    SignerAlias,
    TelegramChannel,
    UnknownChannel,
    WebhookChannel,
)

DEFAULT_CONFIG_FILE = "safe-queue-monitor.config.json"

_DISPLAY_KEYS = {
    "showConfirmedSigner": "show_confirmed_signer",
    "showPendingSigner": "show_pending_signer",
    "showStatusIcon": "show_status_icon",
    "showChainIcon": "show_chain_icon",
    "showTxNote": "show_tx_note",
}


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper()


def default_config() -> MonitorConfig:
    return MonitorConfig(
        wallets=(
            MonitoredWallet("0xbe2AB3d3d8F6a32b96414ebbd865dBD276d3d899", Chain.MAINNET),
        ),
        signers=(
            SignerAlias("0x530d3F8C38C262a619C2686A7f1481815a5e6f92", "ExampleSigner"),
        ),
        display=DisplayOptions(show_status_icon=True),
        channels=(ConsoleChannel(enabled=True, colored=True),),
        debug=False,
    )


def parse_chain(value: str) -> Chain:
    try:
        return Chain(value.strip().lower())
    except ValueError:
        supported = ", ".join(c.value for c in Chain)
        raise ConfigurationError(
            f"Unsupported chain: {value!r} (expected one of {supported})"
        ) from None


def parse_wallets(text: str) -> tuple[MonitoredWallet, ...]:
    """Parse ``address:chain,address:chain``."""
    wallets = []
    for entry in _split_entries(text):
        address, _, chain = entry.partition(":")
        if not address.strip() or not chain.strip():
            raise ConfigurationError(f"Invalid safe format: {entry}. Expected format: address:chain")
        wallets.append(MonitoredWallet(address.strip(), parse_chain(chain)))
    return tuple(wallets)


def parse_signers(text: str) -> tuple[SignerAlias, ...]:
    """Parse ``address:handle,address:handle``."""
    signers = []
    for entry in _split_entries(text):
        address, _, handle = entry.partition(":")
        if not address.strip() or not handle.strip():
            raise ConfigurationError(
                f"Invalid signer format: {entry}. Expected format: address:handle"
            )
        signers.append(SignerAlias(address.strip(), handle.strip()))
    return tuple(signers)


def parse_headers(text: str | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for pair in _split_entries(text or ""):
        key, _, value = pair.partition(":")
        if key.strip() and value.strip():
            headers[key.strip()] = value.strip()
    return headers


def _split_entries(text: str) -> list[str]:
    return [e.strip() for e in text.split(",") if e.strip()]


def _flag(raw: dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"{key} must be true or false, got {value!r}")
    return value


def parse_channel(raw: dict[str, Any]) -> ChannelConfig:
    kind = str(raw.get("type", "")).strip().lower()
    enabled = _flag(raw, "enabled", True)
    if kind == "console":
        return ConsoleChannel(enabled=enabled, colored=_flag(raw, "colored", True))
    if kind == "telegram":
        return TelegramChannel(
            bot_token=str(raw.get("botToken") or ""),
            chat_id=str(raw.get("chatId") or ""),
            enabled=enabled,
            disable_notification=_flag(raw, "disableNotification", True),
            parse_mode=str(raw.get("parseMode") or "HTML"),
        )
    if kind == "webhook":
        headers = raw.get("headers") or {}
        if not isinstance(headers, dict):
            raise ConfigurationError("Webhook headers must be an object")
        return WebhookChannel(
            url=str(raw.get("url") or ""),
            headers={str(k): str(v) for k, v in headers.items()},
            enabled=enabled,
        )
    return UnknownChannel(type=kind or "unknown", enabled=enabled, raw=dict(raw))


def parse_display(raw: dict[str, Any], base: DisplayOptions | None = None) -> DisplayOptions:
    base = base or DisplayOptions()
    updates = {
        field: _flag(raw, key, getattr(base, field))
        for key, field in _DISPLAY_KEYS.items()
        if key in raw
    }
    return replace(base, **updates)


def config_from_dict(data: dict[str, Any], base: MonitorConfig | None = None) -> MonitorConfig:
    base = base or default_config()
    try:
        wallets = base.wallets
        if "safes" in data:
            wallets = tuple(
                MonitoredWallet(str(s["address"]), parse_chain(str(s["chain"])))
                for s in data["safes"]
            )
        signers = base.signers
        if "signers" in data:
            signers = tuple(
                SignerAlias(str(s["address"]), str(s["handle"])) for s in data["signers"]
            )
        channels = base.channels
        if "notifications" in data:
            channels = tuple(parse_channel(c) for c in data["notifications"])
    except (KeyError, TypeError, AttributeError) as exc:
        raise ConfigurationError(f"Malformed configuration: {exc}") from exc

    return MonitorConfig(
        wallets=wallets,
        signers=signers,
        display=parse_display(data.get("formatOptions") or {}, base.display),
        channels=channels,
        debug=_flag(data, "debug", base.debug),
    )


def load_config_file(path: str | Path) -> MonitorConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Failed to parse JSON for config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return config_from_dict(data)


def _env(name: str) -> str:
    return os.getenv(name, "").strip()


def notification_channels(
    telegram_token: str | None = None,
    telegram_chat: str | None = None,
    webhook_url: str | None = None,
    webhook_headers: str | None = None,
) -> list[ChannelConfig]:
    """Build Telegram and webhook channels from CLI values, falling back to the environment.

    Each field resolves on its own, so a token passed on the command line pairs
    with a chat id from ``TELEGRAM_CHAT_ID``. Telegram is only turned on when a
    token is available.
    """
    load_dotenv()
    channels: list[ChannelConfig] = []

    token = (telegram_token or "").strip() or _env("TELEGRAM_BOT_TOKEN")
    chat_id = (telegram_chat or "").strip() or _env("TELEGRAM_CHAT_ID")
    if token:
        if not chat_id:
            raise ConfigurationError(
                "Telegram notification requires a chat ID "
                "(--telegram-chat or TELEGRAM_CHAT_ID)"
            )
        channels.append(TelegramChannel(bot_token=token, chat_id=chat_id))

    url = (webhook_url or "").strip() or _env("WEBHOOK_URL")
    if url:
        headers = parse_headers(webhook_headers or os.getenv("WEBHOOK_HEADERS"))
        channels.append(WebhookChannel(url=url, headers=headers))
    return channels


def merge_channels(
    existing: Sequence[ChannelConfig], overrides: Sequence[ChannelConfig]
) -> tuple[ChannelConfig, ...]:
    """Replace channels of the same type with ``overrides``; append the rest."""
    if not existing:
        return tuple(overrides)
    by_type = {c.type: c for c in overrides}
    merged = [by_type.pop(c.type, c) for c in existing]
    merged.extend(c for c in overrides if c.type in by_type)
    return tuple(merged)


def config_to_dict(config: MonitorConfig) -> dict[str, Any]:
    display = config.display
    return {
        "safes": [{"address": w.address, "chain": w.chain.value} for w in config.wallets],
        "signers": [{"address": s.address, "handle": s.handle} for s in config.signers],
        "formatOptions": {key: getattr(display, field) for key, field in _DISPLAY_KEYS.items()},
        "notifications": [_channel_to_dict(c) for c in config.channels],
        "debug": config.debug,
    }


def _channel_to_dict(channel: ChannelConfig) -> dict[str, Any]:
    if isinstance(channel, ConsoleChannel):
        return {"type": "console", "enabled": channel.enabled, "colored": channel.colored}
    if isinstance(channel, TelegramChannel):
        return {
            "type": "telegram",
            "enabled": channel.enabled,
            "botToken": channel.bot_token,
            "chatId": channel.chat_id,
            "disableNotification": channel.disable_notification,
            "parseMode": channel.parse_mode,
        }
    if isinstance(channel, WebhookChannel):
        return {
            "type": "webhook",
            "enabled": channel.enabled,
            "url": channel.url,
            "headers": dict(channel.headers),
        }
    return dict(channel.raw) or {"type": channel.type, "enabled": channel.enabled}
