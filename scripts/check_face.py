#!/usr/bin/env python3
"""Check whether the person in a photo is registered.

Prints the verdict as JSON. Exit codes:
    0  match found
    1  no match
    2  no face in the submitted photo
    3  any other failure (undecodable photo, model or storage error)

Usage:
    python scripts/check_face.py --photo sighting.jpg
    python scripts/check_face.py --photo sighting.jpg --detector-model cnn
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from person_finder.core.config import Config
from person_finder.core.errors import NoFaceDetectedError, PersonFinderError
from person_finder.core.logging_config import setup_logging
from person_finder.services import create_services

logger = setup_logging(__name__)

EXIT_MATCH = 0
EXIT_NO_MATCH = 1
EXIT_NO_FACE = 2
EXIT_ERROR = 3


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Match a photo against registered missing persons",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--photo",
        type=str,
        required=True,
        help="Path to the photo to check",
    )

    parser.add_argument(
        "--detector-model",
        type=str,
        choices=["hog", "cnn"],
        default=None,
        help="Face detector model (hog=faster, cnn=more accurate). Default: DETECTOR_MODEL",
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

    if args.detector_model:
        os.environ["DETECTOR_MODEL"] = args.detector_model

    photo_path = Path(args.photo)
    if not photo_path.exists():
        print(f"Error: Photo not found: {photo_path}")
        return EXIT_ERROR

    config = Config.from_env()

    print_section("Check Face")
    print(f"Photo:         {photo_path}")
    print(f"Detector:      {config.detector_model} (upsample={config.upsample})")
    print(f"Cache:         {'on' if config.embedding_cache else 'off'}")

    print_section("Loading Models")
    try:
        services = create_services(config)
    except PersonFinderError as e:
        logger.error(f"Could not start services: {e}")
        return EXIT_ERROR

    try:
        services.loader.load()
    except PersonFinderError as e:
        logger.error(f"Could not load models: {e}")
        return EXIT_ERROR

    print_section("Matching")
    try:
        verdict = services.matching.check_face(photo_path.read_bytes())
    except NoFaceDetectedError as e:
        logger.warning(str(e))
        print(json.dumps({"error": str(e)}, indent=2))
        return EXIT_NO_FACE
    except PersonFinderError as e:
        stage = e.stage.value if e.stage is not None else "unknown"
        logger.error(f"Match failed at stage '{stage}': {e}")
        return EXIT_ERROR

    print(json.dumps(verdict.to_dict(), indent=2))

    print_section("Complete")
    return EXIT_MATCH if verdict.match else EXIT_NO_MATCH


if __name__ == "__main__":
    sys.exit(main())
