from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import replace

import click

from .config import (
    DEFAULT_CONFIG_FILE,
    config_to_dict,
    default_config,
    load_config_file,
    log_level,
    merge_channels,
    notification_channels,
    parse_signers,
    parse_wallets,
)
from .errors import ConfigurationError
from .formatting import signer_handle
from .service import monitor
from .types import ConsoleChannel


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Report queued Safe multisig transactions and who still has to sign them."""


@cli.command()
@click.option(
    "-c", "--config", "config_path", type=click.Path(), help="Path to configuration file (JSON)"
)
@click.option("-s", "--safes", help="Comma-separated list of safes (format: address:chain)")
@click.option("-g", "--signers", help="Comma-separated list of signers (format: address:handle)")
@click.option("--show-confirmed", is_flag=True, help="Show which signers have already confirmed")
@click.option("--hide-pending", is_flag=True, help="Hide which signers still need to sign")
@click.option(
    "--show-status-icons", is_flag=True, help="Show status icons based on signature progress"
)
@click.option("--hide-chain-icons", is_flag=True, help="Hide chain icons for each network")
@click.option("--hide-tx-notes", is_flag=True, help="Hide transaction notes")
@click.option("--no-console", is_flag=True, help="Disable console output of the report")
@click.option("--no-color", is_flag=True, help="Disable colored console output")
@click.option("--telegram-token", help="Telegram bot token")
@click.option("--telegram-chat", help="Telegram chat ID")
@click.option("--webhook", help="Webhook URL for notifications")
@click.option("--webhook-headers", help="Webhook headers (format: key:value,key:value)")
@click.option("-d", "--debug", is_flag=True, help="Enable debug logging")
def track(
    config_path: str | None,
    safes: str | None,
    signers: str | None,
    show_confirmed: bool,
    hide_pending: bool,
    show_status_icons: bool,
    hide_tx_notes: bool,
    hide_chain_icons: bool,
    no_console: bool,
    no_color: bool,
    telegram_token: str | None,
    telegram_chat: str | None,
    webhook: str | None,
    webhook_headers: str | None,
    debug: bool,
) -> None:
    """Track queued transactions for configured Safes."""
    try:
        config = load_config_file(config_path) if config_path else default_config()
        if safes:
            config = replace(config, wallets=parse_wallets(safes))
        if signers:
            config = replace(config, signers=parse_signers(signers))

        display = config.display
        config = replace(
            config,
            display=replace(
                display,
                show_confirmed_signer=show_confirmed or display.show_confirmed_signer,
                show_pending_signer=not hide_pending and display.show_pending_signer,
                show_status_icon=show_status_icons or display.show_status_icon,
                show_chain_icon=not hide_chain_icons and display.show_chain_icon,
                show_tx_note=not hide_tx_notes and display.show_tx_note,
            ),
            debug=debug or config.debug,
        )

        overrides = notification_channels(
            telegram_token=telegram_token,
            telegram_chat=telegram_chat,
            webhook_url=webhook,
            webhook_headers=webhook_headers,
        )
        if not no_console:
            overrides.insert(0, ConsoleChannel(enabled=True, colored=not no_color))
        channels = merge_channels(config.channels, overrides)
        if no_console:
            channels = tuple(c for c in channels if not isinstance(c, ConsoleChannel))
        config = replace(config, channels=channels)

        configure_logging("DEBUG" if config.debug else log_level())

        if not config.wallets:
            raise ConfigurationError(
                "No safes configured. Provide safes via --safes option or configuration file."
            )

        chain_count = len({w.chain for w in config.wallets})
        click.echo(
            f"🔍 Tracking {len(config.wallets)} Safe(s) across {chain_count} chain(s)...", err=True
        )
        result = asyncio.run(monitor(config))
    except ConfigurationError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    if result.total_transactions == 0:
        click.echo("✅ No queued transactions found across all monitored Safes", err=True)
        return

    click.echo(f"\n📊 Summary: Found {result.total_transactions} queued transaction(s)", err=True)
    if result.signer_summary:
        click.echo("\n📋 Action Required:", err=True)
        for address, count in result.signer_summary.items():
            name = signer_handle(address, config.signers)
            click.echo(f"   • {name}: {count} signature(s) needed", err=True)


@cli.command(name="config")
@click.option(
    "-o", "--output", type=click.Path(), default=DEFAULT_CONFIG_FILE, show_default=True,
    help="Output file path",
)
def write_config(output: str) -> None:
    """Generate a sample configuration file."""
    sample = config_to_dict(default_config())
    sample["notifications"].append(
        {
            "type": "telegram",
            "enabled": False,
            "botToken": "YOUR_BOT_TOKEN_HERE",
            "chatId": "YOUR_CHAT_ID_HERE",
            "disableNotification": True,
            "parseMode": "HTML",
        }
    )

    with open(output, "w") as f:
        json.dump(sample, f, indent=2)
    click.echo(f"📄 Sample configuration written to: {output}")
    click.echo(f"💡 Run with: safe-queue-monitor track --config {output}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
