"""Entry point for ``python -m wa_events``.

Runs the WhatsApp group event listener, or inspects the events it has
stored.  Uses stdlib :mod:`argparse` for argument parsing.

Subcommands:
    run            -- Default. Connect and extract events from group messages.
    events list    -- Print every stored event, earliest first.
    events show    -- Print one stored event by slug.
    events delete  -- Delete one stored event by slug.

Exit codes:
    0 -- Success (or a clean Ctrl-C of ``run``).
    1 -- Configuration error, logged-out session, exhausted reconnects,
         unknown slug, or storage failure.
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from wa_events.config import ConfigError, load_database_settings, load_settings
from wa_events.exceptions import (
    ConnectionTerminalError,
    EventNotFoundError,
    ReconnectExhaustedError,
    StorageError,
)
from wa_events.log import setup_logging
from wa_events.models.event import StoredEvent
from wa_events.pipeline import run_listener
from wa_events.storage import EventStore, create_engine_from_settings


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="wa-events",
        description="Extract scheduled events from WhatsApp group messages.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- "run" subcommand (default) -----------------------------------
    run_parser = subparsers.add_parser(
        "run",
        help="Connect to WhatsApp and store events from monitored groups.",
    )
    run_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    # --- "events" subcommand ------------------------------------------
    events_parser = subparsers.add_parser("events", help="Inspect stored events.")
    events_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    events_sub = events_parser.add_subparsers(dest="events_command", required=True)
    events_sub.add_parser("list", help="List stored events, earliest first.")
    show_parser = events_sub.add_parser("show", help="Show one stored event.")
    show_parser.add_argument("slug", help="Slug of the event.")
    delete_parser = events_sub.add_parser("delete", help="Delete one stored event.")
    delete_parser.add_argument("slug", help="Slug of the event.")

    return parser


def _resolve_command(
    parser: argparse.ArgumentParser,
    argv: list[str],
) -> argparse.Namespace:
    """Parse *argv*, defaulting to the ``run`` subcommand."""
    if not argv or (argv[0] not in {"run", "events", "-h", "--help"}):
        argv = ["run", *argv]
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_event_line(event: StoredEvent) -> str:
    """One-line summary: ``start | slug | title (location)``."""
    where = event.location.full_address or event.location.type
    return f"{event.start_at} | {event.slug} | {event.title} ({where})"


def format_event_detail(event: StoredEvent) -> str:
    """Multi-line rendering of every stored field."""
    lines = [
        event.title,
        "=" * len(event.title),
        f"Slug:        {event.slug}",
        f"Organizer:   {event.organizer}",
        f"Starts:      {event.start_at}",
        f"Ends:        {event.end_at or '-'}",
        f"Location:    {event.location.type}"
        + (f", {event.location.full_address}" if event.location.full_address else ""),
        f"Description: {event.description}",
        f"Group:       {event.whatsapp_group_jid}",
        f"Sender:      {event.whatsapp_sender_jid}",
        f"Message id:  {event.whatsapp_message_id}",
        f"Created:     {event.created_at}",
        f"Updated:     {event.updated_at}",
        "",
        event.message_body,
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_run(args: argparse.Namespace) -> int:
    """Execute the ``run`` subcommand."""
    try:
        settings = load_settings()
        if not args.verbose:
            setup_logging(settings.log_level)
    except (ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_listener(settings))
    except KeyboardInterrupt:
        print("\nStopped.", file=sys.stderr)
        return 0
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ConnectionTerminalError as exc:
        print(
            f"Error: {exc}. Delete the saved credentials in "
            f"{settings.auth_dir!r} and pair the device again.",
            file=sys.stderr,
        )
        return 1
    except ReconnectExhaustedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def _handle_events(args: argparse.Namespace) -> int:
    """Execute the ``events`` subcommands."""
    try:
        engine = create_engine_from_settings(load_database_settings())
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    store = EventStore(engine)
    try:
        store.create_schema()
        if args.events_command == "list":
            stored = store.list_all()
            if not stored:
                print("No events stored.")
            for event in stored:
                print(format_event_line(event))
        elif args.events_command == "show":
            print(format_event_detail(store.find_by_slug(args.slug)))
        elif args.events_command == "delete":
            store.delete_by_slug(args.slug)
            print(f"Deleted {args.slug}")
    except EventNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except StorageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the wa-events CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code.
    """
    parser = build_parser()
    args = _resolve_command(parser, argv if argv is not None else sys.argv[1:])

    setup_logging("DEBUG" if getattr(args, "verbose", False) else "INFO")

    if args.command == "events":
        return _handle_events(args)
    return _handle_run(args)


if __name__ == "__main__":
    raise SystemExit(main())
