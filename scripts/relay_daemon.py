#!/usr/bin/env python
"""
Signal Relay - Command Line Entry Point

Start the signal relay daemon or run single ticks by hand.

Usage:
    # Start daemon (runs continuously)
    python scripts/relay_daemon.py start

    # Start without sending anything to chat (messages go to the log)
    python scripts/relay_daemon.py start --dry-run

    # Deliver ready signals once
    python scripts/relay_daemon.py poll

    # Evaluate announcements now, or at a given business-time instant
    python scripts/relay_daemon.py announce
    python scripts/relay_daemon.py announce --at "2024-03-08 11:33"

    # Test destination connections
    python scripts/relay_daemon.py test

    # Show configuration and queue status
    python scripts/relay_daemon.py status

Environment Variables:
    GOOGLE_SERVICE_ACCOUNT_EMAIL: Service account email
    GOOGLE_PRIVATE_KEY: Service account private key
    GOOGLE_SPREADSHEET_ID: Spreadsheet holding Signals and Messages
    DISCORD_TOKEN: Discord bot token
    DISCORD_CHANNEL_NAME: Channel name to deliver to (default: bobbypro-signals)
    DISCORD_CHANNEL_IDS: Optional comma-separated channel id allow-list
    TELEGRAM_BOT_TOKEN: Telegram bot token
    TELEGRAM_CHAT_ID: Telegram chat id
    RELAY_DRY_RUN: Log messages instead of sending them (true/false)
    RELAY_LOG_LEVEL: Log level (default: INFO)
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import (
    load_config,
    get_discord_token,
    get_google_credentials,
    get_telegram_credentials,
)
from signal_relay import RelayConfig, RelayDaemon
from signal_relay.config import resolve_log_level


def setup_logging(level: str = 'INFO') -> None:
    """Configure logging for the daemon. Unknown level names fall back to INFO."""
    logging.basicConfig(
        level=resolve_log_level(level),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def build_config(args: argparse.Namespace) -> RelayConfig:
    """Load configuration from the environment and apply CLI overrides."""
    config = RelayConfig.from_env()
    if getattr(args, 'dry_run', False):
        config.dry_run = True
    return config


def print_issues(config: RelayConfig) -> None:
    issues = config.validate()
    if issues:
        print("\nConfiguration Issues:")
        for issue in issues:
            print(f"  [!] {issue}")


def cmd_start(args: argparse.Namespace) -> int:
    """Start the daemon."""
    print("=" * 60)
    print("Signal Relay")
    print("=" * 60)

    config = build_config(args)
    print_issues(config)

    print(f"\nConfiguration:")
    print(f"  Spreadsheet: {config.sheets.spreadsheet_id or '(not set)'}")
    print(f"  Discord: {'Enabled' if config.discord.enabled else 'Disabled'}"
          f" (#{config.discord.channel_name})")
    print(f"  Telegram: {'Enabled' if config.telegram.enabled else 'Disabled'}")
    print(f"  Dry run: {'Yes' if config.dry_run else 'No'}")
    print(f"  Signal poll: every {config.schedule.signal_poll_seconds}s")
    print(f"  Announcements: every {config.schedule.announcement_poll_seconds}s "
          f"({config.announcements.timezone})")
    print()

    try:
        daemon = RelayDaemon.from_config(config)

        print("Testing destinations...")
        for key, passed in daemon.test_destinations().items():
            status = "OK" if passed else "FAIL"
            print(f"  {key}: {status}")

        print("\nStarting daemon (Ctrl+C to stop)...")
        daemon.start(block=True)

    except KeyboardInterrupt:
        print("\nShutdown requested")
        return 0

    except Exception as e:
        print(f"\nError: {e}")
        return 1

    return 0


def cmd_poll(args: argparse.Namespace) -> int:
    """Deliver ready signals once."""
    config = build_config(args)
    daemon = RelayDaemon.from_config(config)

    print("Polling for ready signals...")
    processed = daemon.poll_signals()

    if daemon.stats.error_count:
        print("\nPoll failed (see log)")
        return 1

    print(f"\nProcessed {processed} signal(s)")
    if daemon.stats.delivery_failures:
        print(f"Delivery failures: {daemon.stats.delivery_failures}")
    return 0


def cmd_announce(args: argparse.Namespace) -> int:
    """Evaluate status announcements once."""
    config = build_config(args)
    daemon = RelayDaemon.from_config(config)

    now = None
    if args.at:
        try:
            now = datetime.strptime(args.at, '%Y-%m-%d %H:%M')
        except ValueError:
            print(f"Invalid --at value: {args.at} (expected 'YYYY-MM-DD HH:MM')")
            return 2

    event = daemon.check_announcements(now)

    if daemon.stats.error_count:
        print("\nAnnouncement check failed (see log)")
        return 1

    if event is None:
        print("No announcement due")
    else:
        print(f"Dispatched {event.type.value} announcement for {event.date_key}")
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    """Test destination connections."""
    config = build_config(args)
    daemon = RelayDaemon.from_config(config)

    print("Testing destination connections...")
    print()

    results = daemon.test_destinations()
    if not results:
        print("  No destinations discovered")
        return 1

    all_passed = True
    for key, passed in results.items():
        status = "OK" if passed else "FAIL"
        print(f"  {key}: {status}")
        if not passed:
            all_passed = False

    if all_passed:
        print("\nAll tests passed")
        return 0
    else:
        print("\nSome tests failed")
        return 1


def cmd_status(args: argparse.Namespace) -> int:
    """Show configuration and queue status."""
    config = build_config(args)

    google = get_google_credentials()
    telegram = get_telegram_credentials()

    print("Signal Relay Status")
    print("=" * 40)
    print(f"Google service account: {google['service_account_email'] or '(not set)'}")
    print(f"Spreadsheet: {google['spreadsheet_id'] or '(not set)'}")
    print(f"Discord token: {'set' if get_discord_token() else 'not set'}")
    print(f"Telegram: {'chat ' + telegram['chat_id'] if telegram else 'not set'}")
    print_issues(config)

    if not config.sheets.configured:
        return 1

    daemon = RelayDaemon.from_config(config)
    try:
        ready = daemon.queue.list_ready_signals()
    except Exception as e:
        print(f"\nCould not read Signals sheet: {e}")
        return 1

    print(f"\nReady signals: {len(ready)}")
    for item in ready:
        s = item.signal
        print(f"  row {item.row_id}: {s.trend} {s.securities} (score {s.trend_score:g})")

    if daemon.market_hours is not None:
        session = daemon.market_hours.session_summary()
        print(f"\nMarket open: {session['open']} (next open: {session['next_open']})")

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Signal Relay',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: RELAY_LOG_LEVEL or INFO)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Log messages instead of sending them'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    subparsers.add_parser('start', help='Start the daemon')
    subparsers.add_parser('poll', help='Deliver ready signals once')

    announce_parser = subparsers.add_parser('announce', help='Evaluate announcements once')
    announce_parser.add_argument(
        '--at',
        help="Business-time instant to evaluate, 'YYYY-MM-DD HH:MM'"
    )

    subparsers.add_parser('test', help='Test destination connections')
    subparsers.add_parser('status', help='Show configuration and queue status')

    args = parser.parse_args()

    load_config()
    setup_logging(args.log_level or RelayConfig.from_env().log_level)

    commands = {
        'start': cmd_start,
        'poll': cmd_poll,
        'announce': cmd_announce,
        'test': cmd_test,
        'status': cmd_status,
    }

    if args.command not in commands:
        parser.print_help()
        return 1

    return commands[args.command](args)


if __name__ == '__main__':
    sys.exit(main())
