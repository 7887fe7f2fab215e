"""Subcommand dispatcher for rampstitch.

Usage:
    rampstitch ramp      clip.mp4 --output ramped.mp4 --easing easeInOutCubic
    rampstitch stitch    --manifest stitch.yaml --output final.mp4
    rampstitch curve     easeInOutCubic --input-duration 5 --output-duration 1.5
    rampstitch --verbose stitch --manifest stitch.yaml --validate
"""

import argparse
import logging
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="rampstitch",
        description="Speed-curve retiming and multi-clip stitching.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Show debug logging (probe details, tier negotiation)",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("ramp", help="Retime one clip along an easing curve")
    subparsers.add_parser("stitch", help="Stitch clips from a YAML manifest")
    subparsers.add_parser("curve", help="Validate and analyze an easing curve")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if parsed.command == "ramp":
        from .ramp_cli import main as ramp_main
        ramp_main(remaining)
    elif parsed.command == "stitch":
        from .stitch_cli import main as stitch_main
        stitch_main(remaining)
    elif parsed.command == "curve":
        from .curve_cli import main as curve_main
        curve_main(remaining)


if __name__ == "__main__":
    main()
