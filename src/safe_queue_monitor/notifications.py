from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import TextIO

import click
import httpx

from .errors import NotificationError
from .types import ChannelConfig, ConsoleChannel, TelegramChannel, UnknownChannel, WebhookChannel

logger = logging.getLogger(__name__)

GLYPH_COLOURS = {
    "🏅": "green",
    "⚠️": "yellow",
    "✔️": "green",
    "⏳": "cyan",
}


@dataclass
class DispatchReport:
    sent: list[str] = field(default_factory=list)
    failures: list[NotificationError] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def colorize(message: str) -> str:
    for glyph, colour in GLYPH_COLOURS.items():
        message = message.replace(glyph, click.style(glyph, fg=colour))
    return message


class ConsoleNotifier:
    def __init__(self, colored: bool = True, stream: TextIO | None = None) -> None:
        self.colored = colored
        self.stream = stream

    async def send(self, text: str) -> None:
        # click drops the styling when the stream is not a terminal.
        click.echo(colorize(text) if self.colored else text, file=self.stream, color=None)


class TelegramNotifier:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        client: httpx.AsyncClient,
        disable_notification: bool = True,
        parse_mode: str = "HTML",
    ) -> None:
        if not bot_token:
            raise NotificationError("Telegram bot token is required", "telegram")
        if not chat_id:
            raise NotificationError("Telegram chat ID is required", "telegram")
        self.chat_id = chat_id
        self.disable_notification = disable_notification
        self.parse_mode = parse_mode
        self._url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        self._client = client

    async def send(self, text: str) -> None:
        retries = 4
        delay = 1.0
        if self.parse_mode == "HTML":
            text = escape(text, quote=False)

        for attempt in range(retries):
            try:
                response = await self._client.post(
                    self._url,
                    json={
                        "chat_id": self.chat_id,
                        "text": text,
                        "parse_mode": self.parse_mode,
                        "disable_notification": self.disable_notification,
                        "link_preview_options": {"is_disabled": True},
                    },
                )

                if response.status_code == 429:
                    retry_after = 2.0
                    try:
                        payload = response.json()
                        retry_after = float(
                            payload.get("parameters", {}).get("retry_after", retry_after)
                        )
                    except ValueError:
                        pass
                    logger.warning("Telegram rate limited. Sleeping %.1fs", retry_after)
                    await asyncio.sleep(retry_after)
                    continue

                response.raise_for_status()
                data = response.json()
                if not data.get("ok", False):
                    raise NotificationError(f"Telegram send failed: {data}", "telegram")
                return
            except (httpx.HTTPError, ValueError, NotificationError) as exc:
                if attempt == retries - 1:
                    raise NotificationError(
                        f"Failed to send Telegram notification: {exc}", "telegram"
                    ) from exc
                logger.warning("Telegram send attempt %d failed: %s", attempt + 1, exc)
                await asyncio.sleep(delay)
                delay *= 2

        raise NotificationError("Telegram rate limit retries exhausted", "telegram")


class WebhookNotifier:
    def __init__(
        self, url: str, client: httpx.AsyncClient, headers: dict[str, str] | None = None
    ) -> None:
        if not url:
            raise NotificationError("Webhook URL is required", "webhook")
        self.url = url
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._client = client

    async def send(self, text: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        try:
            response = await self._client.post(
                self.url,
                json={"text": text, "timestamp": timestamp},
                headers=self.headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Failed to send webhook notification: {exc}", "webhook") from exc


def build_notifier(
    channel: ChannelConfig, client: httpx.AsyncClient
) -> ConsoleNotifier | TelegramNotifier | WebhookNotifier | None:
    if isinstance(channel, ConsoleChannel):
        return ConsoleNotifier(colored=channel.colored)
    if isinstance(channel, TelegramChannel):
        return TelegramNotifier(
            channel.bot_token,
            channel.chat_id,
            client,
            disable_notification=channel.disable_notification,
            parse_mode=channel.parse_mode,
        )
    if isinstance(channel, WebhookChannel):
        return WebhookNotifier(channel.url, client, headers=channel.headers)
    return None


async def dispatch(
    message: str,
    channels: Sequence[ChannelConfig],
    client: httpx.AsyncClient | None = None,
) -> DispatchReport:
    """Deliver ``message`` to every enabled channel.

    Channels are independent: each failure is collected into the report and
    logged, and nothing is raised to the caller.
    """
    report = DispatchReport()
    own_client = client is None
    http = client or httpx.AsyncClient(timeout=15.0)

    async def deliver(channel: ChannelConfig) -> None:
        if isinstance(channel, UnknownChannel):
            logger.warning("Unknown notification type: %s", channel.type)
            report.skipped.append(channel.type)
            return
        try:
            notifier = build_notifier(channel, http)
            if notifier is None:
                report.skipped.append(channel.type)
                return
            await notifier.send(message)
            report.sent.append(channel.type)
        except NotificationError as exc:
            logger.error("Failed to send %s notification: %s", channel.type, exc)
            report.failures.append(exc)
        except Exception as exc:
            logger.exception("Failed to send %s notification", channel.type)
            report.failures.append(NotificationError(str(exc), channel.type))

    try:
        await asyncio.gather(*(deliver(c) for c in channels if c.enabled))
    finally:
        if own_client:
            await http.aclose()

    if report.failures:
        logger.error("%d notification(s) failed:", len(report.failures))
        for index, error in enumerate(report.failures, start=1):
            logger.error("  %d. %s", index, error)
    return report
