#!/usr/bin/env python3
"""
Main entry point for chatvault.

Command-line interface for importing chat exports and browsing the store.
"""
from typing import List, Optional
import argparse
import logging
import sys
from pathlib import Path

from chatvault.analysis import add_tag, filter_noise, get_smart_tags, get_statistics
from chatvault.config import Config, set_config
from chatvault.ingest.dispatcher import ArchiveDispatcher, ProgressEvent
from chatvault.logger_config import setup_logging
from chatvault.merge import ContactMergeGraph
from chatvault.store import SQLiteStore
from chatvault.utils import Colors, format_message_count, format_timestamp

logger = logging.getLogger(__name__)


def print_section(title: str) -> None:
    """Print a formatted section title."""
    print(f"\n{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{title}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}\n")


def _print_progress(event: ProgressEvent) -> None:
    color = Colors.FAIL if event.stage == "error" else Colors.OKCYAN
    if event.stage == "done":
        color = Colors.OKGREEN
    print(f"{color}{event.message}{Colors.ENDC}")


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import Instagram and Snapchat chat exports into a local store."
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to the store (defaults to $CHATVAULT_DB_PATH or ~/.chatvault/chatvault.db).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Import a zip or JSON export.")
    p.add_argument("path", help="Export file (.zip or .json).")
    p.add_argument(
        "--alias",
        action="append",
        default=None,
        help="Your own username (repeatable; added to $CHATVAULT_ALIASES).",
    )
    p.add_argument(
        "--ignore-alias",
        action="append",
        default=None,
        help="Drop a configured alias for this import (repeatable).",
    )
    p.add_argument("--platform", default=None, help="Platform of a standalone JSON file.")

    p = sub.add_parser("contacts", help="List contacts.")
    p.add_argument("--all", action="store_true", help="Include hidden contacts.")

    p = sub.add_parser("search", help="Search message content.")
    p.add_argument("query")

    p = sub.add_parser("timeline", help="Show a contact's merged timeline.")
    p.add_argument("contact_id")
    p.add_argument("--smart-filter", action="store_true", help="Hide reactions and system noise.")
    p.add_argument("--limit", type=int, default=50, help="Show only the last N messages.")
    p.add_argument("--chart", default=None, help="Write a messages-per-month chart (HTML).")

    for name, help_text in (("link", "Absorb CANDIDATE into REP."), ("unlink", "Undo a link.")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("representative_id")
        p.add_argument("candidate_id")

    p = sub.add_parser("tag", help="Set a contact's tags (comma separated).")
    p.add_argument("contact_id")
    p.add_argument("tags")
    p.add_argument("--add", action="store_true", help="Append one tag instead of replacing.")

    p = sub.add_parser("nickname", help="Set or clear a contact's nickname.")
    p.add_argument("contact_id")
    p.add_argument("nickname", nargs="?", default=None)

    for name in ("pin", "hide"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a contact.")
        p.add_argument("contact_id")
        p.add_argument("--off", action="store_true", help=f"Un{name} instead.")

    p = sub.add_parser("stats", help="Show store statistics.")
    p.add_argument("--chart", default=None, help="Write a top-contacts chart (HTML).")

    p = sub.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def _cmd_import(args: argparse.Namespace, config: Config, store: SQLiteStore) -> int:
    path = Path(args.path)
    if not path.exists():
        print(f"{Colors.FAIL}Error: file not found: {path}{Colors.ENDC}")
        return 1

    for alias in args.alias or []:
        config.add_alias(alias)
    for alias in args.ignore_alias or []:
        config.remove_alias(alias)
    aliases = config.aliases
    with path.open("rb") as stream:
        result = ArchiveDispatcher(store).run_import(
            stream,
            filename=str(path),
            aliases=aliases,
            platform=args.platform,
            on_progress=_print_progress,
        )
    store.record_import(result)
    print(result)
    return 0 if result.success else 1


def _cmd_contacts(args: argparse.Namespace, store: SQLiteStore) -> int:
    print_section("Contacts")
    for contact in store.list_contacts(include_hidden=args.all):
        flags = ("📌 " if contact.is_pinned else "") + ("(hidden) " if contact.is_hidden else "")
        linked = f" +{len(contact.merged_with)} linked" if contact.merged_with else ""
        print(
            f"{flags}{contact.label:30s} {contact.id:25s} "
            f"{format_message_count(contact.message_count):>7s} {contact.platforms}{linked}"
        )
    return 0


def _cmd_search(args: argparse.Namespace, store: SQLiteStore) -> int:
    print_section(f"Search: {args.query}")
    for message in store.search_messages(args.query):
        print(
            f"[{format_timestamp(message.timestamp)}] {message.chat_id} / "
            f"{message.sender_name}: {message.content[:80]}"
        )
    return 0


def _cmd_timeline(args: argparse.Namespace, store: SQLiteStore) -> int:
    contact = store.get_contact(args.contact_id)
    if contact is None:
        print(f"{Colors.FAIL}Error: unknown contact {args.contact_id}{Colors.ENDC}")
        return 1

    messages = ContactMergeGraph(store).timeline(contact.id)
    if args.smart_filter:
        messages = filter_noise(messages)

    print_section(f"{contact.label} ({len(messages)} messages)")
    for message in messages[-args.limit:]:
        who = "You" if message.is_from_me else message.sender_name
        print(f"[{format_timestamp(message.timestamp)}] {who}: {message.content}")

    if args.chart:
        from chatvault.visualization import plot_messages_over_time

        plot_messages_over_time(messages, output_file=args.chart, title=contact.label)
        print(f"{Colors.OKGREEN}Chart written to {args.chart}{Colors.ENDC}")
    return 0


def _cmd_update(args: argparse.Namespace, store: SQLiteStore) -> int:
    graph = ContactMergeGraph(store)
    if args.command == "link":
        graph.link(args.representative_id, args.candidate_id)
    elif args.command == "unlink":
        graph.unlink(args.representative_id, args.candidate_id)
    elif args.command == "tag":
        tags = args.tags
        if args.add:
            contact = store.get_contact(args.contact_id)
            if contact is None:
                raise KeyError(args.contact_id)
            tags = add_tag(contact.tags, args.tags.strip())
        store.update_tags(args.contact_id, tags)
    elif args.command == "nickname":
        store.update_nickname(args.contact_id, args.nickname)
    elif args.command == "pin":
        store.set_pinned(args.contact_id, not args.off)
    elif args.command == "hide":
        store.set_hidden(args.contact_id, not args.off)
    print(f"{Colors.OKGREEN}OK{Colors.ENDC}")
    return 0


def _cmd_stats(args: argparse.Namespace, store: SQLiteStore) -> int:
    stats = get_statistics(store)
    print_section("Statistics")
    print(f"Total messages: {stats['total_messages']:,}")
    print(f"Total contacts: {stats['total_contacts']:,}")
    print(f"\n{Colors.BOLD}Top contacts:{Colors.ENDC}")
    for i, contact in enumerate(stats["top_contacts"], 1):
        print(f"{i:2d}. {contact.label:30s}: {contact.message_count:>6,} messages")

    tags = get_smart_tags(store)
    if tags:
        print(f"\n{Colors.BOLD}Tags:{Colors.ENDC} {', '.join(tags)}")

    if args.chart:
        from chatvault.visualization import plot_top_contacts

        plot_top_contacts(stats["top_contacts"], output_file=args.chart)
        print(f"{Colors.OKGREEN}Chart written to {args.chart}{Colors.ENDC}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else None)

    config = Config(db_path=args.db_path)
    set_config(config)

    if args.command == "serve":
        import uvicorn

        config.ensure_db_dir()
        uvicorn.run("chatvault.api:app", host=args.host, port=args.port)
        return 0

    try:
        with SQLiteStore(config.db_path) as store:
            if args.command == "import":
                return _cmd_import(args, config, store)
            if args.command == "contacts":
                return _cmd_contacts(args, store)
            if args.command == "search":
                return _cmd_search(args, store)
            if args.command == "timeline":
                return _cmd_timeline(args, store)
            if args.command == "stats":
                return _cmd_stats(args, store)
            return _cmd_update(args, store)
    except (KeyError, ValueError) as e:
        print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
        return 1
    except Exception as e:
        print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
        logger.exception("Error during execution")
        return 1


if __name__ == "__main__":
    sys.exit(main())
