#!/usr/bin/env python3
"""Manage registered missing persons.

Usage:
    python scripts/manage_persons.py list --name asha --city Kochi
    python scripts/manage_persons.py show <id>
    python scripts/manage_persons.py feedback <id> "Seen near the bus stand"
    python scripts/manage_persons.py mark-found <id>
    python scripts/manage_persons.py found
    python scripts/manage_persons.py delete <id>
    python scripts/manage_persons.py stats
    python scripts/manage_persons.py recent --limit 5
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from person_finder.core.config import Config
from person_finder.core.errors import PersonFinderError
from person_finder.core.logging_config import setup_logging
from person_finder.services import PersonRegistry, create_services
from person_finder.storage import PersonRecord

logger = setup_logging(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Manage registered missing persons",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List open cases")
    list_parser.add_argument("--name", type=str, default=None, help="Name pattern (case-insensitive)")
    list_parser.add_argument("--age", type=int, default=None, help="Exact age")
    list_parser.add_argument("--state", type=str, default=None, help="Exact state")
    list_parser.add_argument("--city", type=str, default=None, help="Exact city")

    show_parser = subparsers.add_parser("show", help="Show one record")
    show_parser.add_argument("id", type=str, help="Record id")

    feedback_parser = subparsers.add_parser("feedback", help="Add feedback to a record")
    feedback_parser.add_argument("id", type=str, help="Record id")
    feedback_parser.add_argument("text", type=str, help="Feedback text")

    found_parser = subparsers.add_parser("mark-found", help="Mark a person as found")
    found_parser.add_argument("id", type=str, help="Record id")

    subparsers.add_parser("found", help="List found persons")

    delete_parser = subparsers.add_parser("delete", help="Delete a record and its photo")
    delete_parser.add_argument("id", type=str, help="Record id")

    subparsers.add_parser("stats", help="Show case statistics")

    recent_parser = subparsers.add_parser("recent", help="List the newest registrations")
    recent_parser.add_argument("--limit", type=int, default=None, help="Number of records. Default: RECENT_LIMIT")

    return parser.parse_args()


def print_section(title: str) -> None:
    """Print a section divider."""
    print()
    print("=" * 70)
    print(f"  {title}")
    print("=" * 70)


def print_records(records: Iterable[PersonRecord]) -> None:
    records = list(records)
    for record in records:
        status = "FOUND" if record.is_found else "MISSING"
        location = ", ".join(part for part in (record.city, record.state) if part) or "-"
        print(f"  {record.id}  {record.name:<25} age={record.age or '-':<4} {location:<25} [{status}]")
    print(f"\n{len(records)} record(s)")


def run(registry: PersonRegistry, args: argparse.Namespace) -> None:
    if args.command == "list":
        print_section("Missing Persons")
        print_records(registry.list_missing(name=args.name, age=args.age, state=args.state, city=args.city))

    elif args.command == "show":
        print_section("Person")
        print(json.dumps(registry.get_person(args.id).to_dict(), indent=2))

    elif args.command == "feedback":
        feedback = registry.add_feedback(args.id, args.text)
        print_section("Feedback")
        print(json.dumps({"feedback": [fb.to_dict() for fb in feedback]}, indent=2))

    elif args.command == "mark-found":
        record = registry.mark_found(args.id)
        print_section("Marked As Found")
        print(json.dumps(record.to_dict(), indent=2))

    elif args.command == "found":
        print_section("Found Persons")
        print_records(registry.list_found())

    elif args.command == "delete":
        registry.delete_person(args.id)
        print_section("Deleted")
        print(f"Person deleted successfully: {args.id}")

    elif args.command == "stats":
        print_section("Statistics")
        stats = registry.statistics()
        print(f"Total cases:   {stats['total_cases']}")
        print(f"Found persons: {stats['found_persons']}")

    elif args.command == "recent":
        print_section("Recent Persons")
        print_records(registry.recent_persons(args.limit))


def main() -> int:
    """Main function."""
    args = parse_args()

    config = Config.from_env()
    services = create_services(config)

    try:
        run(services.registry, args)
    except (PersonFinderError, ValueError) as e:
        logger.error(str(e))
        return 1

    if services.cache is not None and services.cache.dirty:
        try:
            services.cache.save()
        except PersistenceError as e:
            logger.warning(f"Embedding cache not saved: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
