#!/usr/bin/env python3
"""Register a missing person, optionally with a photo.

The photo is stored as-is; it is described only when a match request walks
the gallery.

Usage:
    python scripts/add_person.py --name "Asha Rao" --age 9 --photo asha.jpg
    python scripts/add_person.py --name "Ravi" --state Kerala --city Kochi
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from person_finder.core.config import Config
from person_finder.core.errors import PersonFinderError
from person_finder.core.logging_config import setup_logging
from person_finder.services import create_services

logger = setup_logging(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Register a missing person",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--name", type=str, required=True, help="Full name")
    parser.add_argument("--photo", type=str, default=None, help="Path to a photo of the person")
    parser.add_argument("--age", type=int, default=None, help="Age in years")
    parser.add_argument("--last-seen", type=str, default=None, help="When last seen (ISO date)")
    parser.add_argument("--details", type=str, default=None, help="Free-text description")
    parser.add_argument("--phone-number", type=str, default=None, help="Family contact number")
    parser.add_argument("--state", type=str, default=None, help="State of last known location")
    parser.add_argument("--city", type=str, default=None, help="City of last known location")
    parser.add_argument("--address", type=str, default=None, help="Address of last known location")
    parser.add_argument("--police-station", type=str, default=None, help="Police station handling the case")
    parser.add_argument("--fir-date", type=str, default=None, help="FIR filing date (ISO date)")
    parser.add_argument("--fir-case-number", type=str, default=None, help="FIR case number")
    parser.add_argument(
        "--officer-in-charge-number",
        type=str,
        default=None,
        help="Contact number of the officer in charge",
    )

    return parser.parse_args()


def print_section(title: str) -> None:
    """Print a section divider."""
    print()
    print("=" * 70)
    print(f"  {title}")
    print("=" * 70)


def main() -> int:
    """Main function."""
    args = parse_args()

    print_section("Register Missing Person")
    print(f"Name:          {args.name}")
    print(f"Photo:         {args.photo or 'None'}")
    print()

    image = None
    suffix = ".jpg"
    if args.photo:
        photo_path = Path(args.photo)
        if not photo_path.exists():
            print(f"Error: Photo not found: {photo_path}")
            return 1
        image = photo_path.read_bytes()
        suffix = photo_path.suffix or suffix

    fields = {
        "name": args.name,
        "age": args.age,
        "last_seen": args.last_seen,
        "details": args.details,
        "phone_number": args.phone_number,
        "state": args.state,
        "city": args.city,
        "address": args.address,
        "police_station": args.police_station,
        "fir_date": args.fir_date,
        "fir_case_number": args.fir_case_number,
        "officer_in_charge_number": args.officer_in_charge_number,
    }
    fields = {key: value for key, value in fields.items() if value is not None}

    config = Config.from_env()
    services = create_services(config)

    try:
        record = services.registry.add_person(image=image, image_suffix=suffix, **fields)
    except (PersonFinderError, ValueError) as e:
        logger.error(f"Could not register person: {e}")
        return 1

    print_section("Registered")
    print(json.dumps(record.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
