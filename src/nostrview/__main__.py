"""CLI entry point for nostrview.

Renders profiles, feeds and threads from public relays as plain text, and
exposes the key conversion helpers.

Examples:
    ```bash
    python -m nostrview profile npub1...
    python -m nostrview feed npub1... --relay wss://relay.damus.io
    python -m nostrview thread note1... --log-level DEBUG
    python -m nostrview watch --kind 1 --metrics
    python -m nostrview decode note1...
    python -m nostrview encode 82341f88... --type pubkey
    ```

Exit codes:
    0 success, 1 failure, 2 undecodable key or reference, 3 not found.
"""

import argparse
import asyncio
import datetime
import json
import signal
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nostrview.client import Client, ClientConfig
from nostrview.core import start_metrics_server
from nostrview.core.exceptions import ConfigurationError, DecodeError
from nostrview.core.logger import Logger, setup_logging
from nostrview.core.yaml import load_yaml
from nostrview.models import Event, Filter, ReferenceType
from nostrview.models._validation import HEX64_RE
from nostrview.services import Reactions, load_feed, load_profile_page, load_thread, referenced_notes
from nostrview.utils.keys import (
    SELF_CHECK_HEX,
    decode_reference,
    hex_to_note,
    hex_to_npub,
    normalize_key,
    self_check,
    validate_pubkey,
)


DEFAULT_CONFIG = Path("config") / "nostrview.yaml"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_DECODE_ERROR = 2
EXIT_NOT_FOUND = 3

logger = Logger("cli")


# ---------------------------------------------------------------------------
# Input resolution
# ---------------------------------------------------------------------------


def resolve_pubkey(text: str) -> str:
    """Turn an ``npub``/hex (optionally ``nostr:``-prefixed) key into hex.

    Raises:
        DecodeError: If the input is not a public key.
    """
    value = text.strip().removeprefix("nostr:")
    if not validate_pubkey(value):
        raise DecodeError(f"not a valid public key: {text!r}")
    return normalize_key(value).lower()


def resolve_event_id(text: str) -> str:
    """Turn a ``note``/hex (optionally ``nostr:``-prefixed) event id into hex.

    Raises:
        DecodeError: If the input is not an event id.
    """
    value = text.strip().removeprefix("nostr:")
    if HEX64_RE.match(value):
        return value.lower()
    reference = decode_reference(value)
    if reference.type is not ReferenceType.EVENT_ID:
        raise DecodeError(f"not an event id: {text!r}")
    return reference.hex


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _timestamp(created_at: int) -> str:
    return datetime.datetime.fromtimestamp(created_at, datetime.UTC).strftime("%Y-%m-%d %H:%M")


def format_note(event: Event, author: str | None = None) -> str:
    author = author or f"{event.pubkey[:8]}..."
    return f"[{_timestamp(event.created_at)}] {author}: {event.content}"


def _print_details(
    event: Event,
    indent: str,
    embedded: Mapping[str, Event] | None = None,
    reactions: Mapping[str, Reactions] | None = None,
) -> None:
    """Print the quoted notes and the reaction summary under *event*."""
    for event_id in referenced_notes([event]):
        quoted = (embedded or {}).get(event_id)
        if quoted is not None:
            print(f"{indent}> {format_note(quoted)}")
    summary = (reactions or {}).get(event.id)
    if summary is not None:
        counts = " ".join(f"{emoji}{count}" for emoji, count in summary.counts.items())
        print(f"{indent}{counts or 'no reactions yet'}")


# ---------------------------------------------------------------------------
# Network commands
# ---------------------------------------------------------------------------


async def cmd_profile(client: Client, args: argparse.Namespace) -> int:
    page = await load_profile_page(client, args.pubkey, posts_limit=args.limit)
    if page.profile is None and not page.posts:
        print(f"no profile or posts found for {hex_to_npub(args.pubkey, witness_version=False)}")
        return EXIT_NOT_FOUND

    label = page.profile.label if page.profile else f"{args.pubkey[:8]}..."
    print(label)
    if page.profile is not None:
        for name in ("about", "nip05", "website", "lud16"):
            value = getattr(page.profile, name)
            if value:
                print(f"  {name}: {value}")
    following = "unknown" if page.following is None else str(len(page.following))
    print(f"  posts: {len(page.posts)}  following: {following}")
    print()
    for post in page.posts:
        print(format_note(post, label))
        _print_details(post, "    ", reactions=page.reactions)
    return EXIT_OK


async def cmd_feed(client: Client, args: argparse.Namespace) -> int:
    feed = await load_feed(client, args.pubkey, limit=args.limit)
    if not feed.following:
        print("no following list found")
        return EXIT_NOT_FOUND
    print(f"following {len(feed.following)} accounts, {len(feed.posts)} posts")
    print()
    for post in feed.posts:
        print(format_note(post, feed.author_label(post.pubkey)))
        _print_details(post, "    ", embedded=feed.embedded)
    return EXIT_OK


async def cmd_thread(client: Client, args: argparse.Namespace) -> int:
    thread = await load_thread(client, args.event_id)
    if thread.root is None and not thread.replies:
        print("original post not found")
        return EXIT_NOT_FOUND
    if thread.root is not None:
        author = thread.author.label if thread.author else None
        print(format_note(thread.root, author))
        _print_details(thread.root, "    ", thread.embedded, thread.reactions)
    else:
        print("original post not found")
    print(f"  {len(thread.replies)} replies")
    for reply in thread.replies:
        print("  " + format_note(reply))
        _print_details(reply, "      ", thread.embedded, thread.reactions)
    return EXIT_OK


async def cmd_event(client: Client, args: argparse.Namespace) -> int:
    event = await client.get_event(args.event_id)
    if event is None:
        print("event not found")
        return EXIT_NOT_FOUND
    print(json.dumps(event.to_dict(), indent=2, ensure_ascii=False))
    return EXIT_OK


def build_watch_filter(args: argparse.Namespace) -> Filter:
    """Build the ``watch`` filter from ``--kind``/``--author``/``--tag``.

    Raises:
        DecodeError: If an author key or tag selector is malformed.
    """
    tags: dict[str, list[str]] = {}
    for selector in args.tag or ():
        name, sep, value = selector.partition("=")
        if not sep or len(name) != 1 or not value:
            raise DecodeError(f"tag selector must look like e=<value>, got {selector!r}")
        tags.setdefault(name, []).append(value)
    authors = [resolve_pubkey(a) for a in args.author] if args.author else None
    try:
        return Filter(kinds=args.kind or None, authors=authors, tags=tags, limit=args.limit)
    except ValidationError as e:
        raise DecodeError(f"invalid watch filter: {e.errors()[0]['msg']}") from e


async def cmd_watch(client: Client, args: argparse.Namespace) -> int:
    filter_ = build_watch_filter(args)
    stop = asyncio.Event()
    seen: set[str] = set()

    def on_event(event: Event, _relay_url: str) -> None:
        if event.id not in seen:
            seen.add(event.id)
            print(format_note(event), flush=True)

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    metrics_config = client.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    subscription_id = client.new_subscription_id("watch")
    client.subscribe(subscription_id, filter_, on_event)
    try:
        await stop.wait()
    finally:
        client.unsubscribe(subscription_id)
        await metrics_server.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    logger.info("watch_stopped", events=len(seen))
    return EXIT_OK


# ---------------------------------------------------------------------------
# Offline commands
# ---------------------------------------------------------------------------


def cmd_decode(args: argparse.Namespace) -> int:
    reference = decode_reference(args.identifier.strip().removeprefix("nostr:"))
    print(f"{reference.type} {reference.hex}")
    return EXIT_OK


def cmd_encode(args: argparse.Namespace) -> int:
    encoder = hex_to_npub if args.type == "pubkey" else hex_to_note
    print(encoder(args.hex, witness_version=not args.nip19))
    return EXIT_OK


def cmd_selftest(_args: argparse.Namespace) -> int:
    npub, back = self_check()
    print(f"{SELF_CHECK_HEX} -> {npub} -> {back}")
    if back != SELF_CHECK_HEX:
        logger.error("selftest_failed", expected=SELF_CHECK_HEX, got=back)
        return EXIT_FAILURE
    return EXIT_OK


NetworkCommand = Callable[[Client, argparse.Namespace], Awaitable[int]]

NETWORK_COMMANDS: dict[str, NetworkCommand] = {
    "profile": cmd_profile,
    "feed": cmd_feed,
    "thread": cmd_thread,
    "event": cmd_event,
    "watch": cmd_watch,
}

OFFLINE_COMMANDS: dict[str, Callable[[argparse.Namespace], int]] = {
    "decode": cmd_decode,
    "encode": cmd_encode,
    "selftest": cmd_selftest,
}


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="nostrview", description="Read-only Nostr viewer")

    parser.add_argument("--config", type=Path, help=f"Config path (default: {DEFAULT_CONFIG} if present)")
    parser.add_argument(
        "--relay",
        action="append",
        metavar="URL",
        help="Relay URL; repeat to use several (replaces the configured list)",
    )
    parser.add_argument("--timeout", type=float, help="Per-relay connect timeout in seconds")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON objects")
    parser.add_argument("--metrics", action="store_true", help="Serve Prometheus metrics (watch only)")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("profile", help="Show a profile and its posts")
    p.add_argument("key", help="npub or hex public key")
    p.add_argument("--limit", type=int, default=50, help="Maximum posts (default: 50)")

    p = sub.add_parser("feed", help="Show the home feed of the accounts a key follows")
    p.add_argument("key", help="npub or hex public key")
    p.add_argument("--limit", type=int, default=100, help="Maximum posts (default: 100)")

    p = sub.add_parser("thread", help="Show a note and its replies")
    p.add_argument("note", help="note or hex event id")

    p = sub.add_parser("event", help="Fetch one event and print it as JSON")
    p.add_argument("note", help="note or hex event id")

    p = sub.add_parser("watch", help="Stream matching events until interrupted")
    p.add_argument("--kind", type=int, action="append", help="Event kind; repeatable")
    p.add_argument("--author", action="append", help="npub or hex author; repeatable")
    p.add_argument("--tag", action="append", metavar="X=VALUE", help="Tag selector, e.g. e=<id>; repeatable")
    p.add_argument("--limit", type=int, default=20, help="Stored events per relay (default: 20)")

    p = sub.add_parser("decode", help="Decode an npub/note identifier")
    p.add_argument("identifier")

    p = sub.add_parser("encode", help="Encode a hex value as npub/note")
    p.add_argument("hex")
    p.add_argument("--type", choices=["pubkey", "note"], default="pubkey")
    p.add_argument("--nip19", action="store_true", help="Omit the leading version byte")

    sub.add_parser("selftest", help="Run the key conversion self-check")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Load the YAML config (if any) and apply command-line overrides.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
        ConfigurationError: If the YAML is malformed.
        pydantic.ValidationError: If a value is out of range.
    """
    data: dict[str, Any] = {}
    if args.config is not None:
        data = load_yaml(args.config)
    elif DEFAULT_CONFIG.exists():
        data = load_yaml(DEFAULT_CONFIG)

    pool = data.setdefault("pool", {})
    if args.relay:
        pool["relays"] = args.relay
    if args.timeout is not None:
        pool["connect_timeout"] = args.timeout
    if args.metrics:
        data.setdefault("metrics", {})["enabled"] = True
    return ClientConfig(**data)


def _resolve_targets(args: argparse.Namespace) -> None:
    if args.command in ("profile", "feed"):
        args.pubkey = resolve_pubkey(args.key)
    elif args.command in ("thread", "event"):
        args.event_id = resolve_event_id(args.note)


async def run_network_command(config: ClientConfig, args: argparse.Namespace) -> int:
    """Connect, run one network command and tear the session down."""
    async with Client(config) as client:
        if client.connected_count == 0:
            logger.error("no_relays_connected", relays=len(config.pool.relays))
            return EXIT_FAILURE
        logger.info("relays_connected", connected=client.connected_count)
        return await NETWORK_COMMANDS[args.command](client, args)


async def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point: parse args, configure logging, run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level, json_output=args.log_json)

    try:
        if args.command in OFFLINE_COMMANDS:
            return OFFLINE_COMMANDS[args.command](args)
        _resolve_targets(args)
        if args.command == "watch":
            build_watch_filter(args)
        config = build_config(args)
    except DecodeError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except (ConfigurationError, FileNotFoundError, ValidationError) as e:
        logger.error("config_invalid", error=str(e))
        return EXIT_FAILURE

    try:
        return await run_network_command(config, args)
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error(f"{args.command}_failed", error=f"{type(e).__name__}: {e}")
        return EXIT_FAILURE


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
