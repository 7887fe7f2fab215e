"""CLI for inspecting an easing curve before rendering with it.

Usage:
    rampstitch curve easeInOutCubic
    rampstitch curve --bezier 0.85 0 0.15 1 --input-duration 5 --output-duration 1.5
    rampstitch curve --list
"""

import argparse
import sys

from .easing import get_all_easing_names, get_easing_bezier
from .speed_curve import (
    DEFAULT_EASING,
    DEFAULT_INPUT_DURATION,
    DEFAULT_OUTPUT_DURATION,
    analyze_warp_curve,
    validate_warp_function,
    warp_time,
)

BAR_WIDTH = 40


def _speed_bar(multiplier: float, max_speed: float) -> str:
    filled = round(BAR_WIDTH * min(1.0, multiplier / max_speed)) if max_speed > 0 else 0
    return "#" * filled


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Validate an easing curve and show its speed profile.",
    )
    parser.add_argument(
        "easing", nargs="?", default=DEFAULT_EASING,
        help=f"Easing name (default: {DEFAULT_EASING})",
    )
    parser.add_argument(
        "--bezier", type=float, nargs=4, metavar=("X1", "Y1", "X2", "Y2"),
        help="Custom cubic-bezier handles instead of a named easing",
    )
    parser.add_argument("--input-duration", type=float, default=DEFAULT_INPUT_DURATION)
    parser.add_argument("--output-duration", type=float, default=DEFAULT_OUTPUT_DURATION)
    parser.add_argument(
        "--samples", type=int, default=10,
        help="Number of input segments in the speed table",
    )
    parser.add_argument(
        "--list", action="store_true",
        help="List the easing catalog with bezier approximations",
    )
    parsed = parser.parse_args(args)

    if parsed.list:
        for name in get_all_easing_names():
            handles = ", ".join(f"{v:g}" for v in get_easing_bezier(name))
            print(f"  {name:<22} cubic-bezier({handles})")
        return

    easing = tuple(parsed.bezier) if parsed.bezier else parsed.easing
    input_duration = parsed.input_duration
    output_duration = parsed.output_duration

    valid, errors = validate_warp_function(easing, input_duration, output_duration)
    print(f"Curve: {easing}  {input_duration:g}s -> {output_duration:g}s")
    if not valid:
        for error in errors:
            print(f"  - {error}")
        print("Curve invalid.")
        sys.exit(1)
    print("Curve valid.")

    analysis = analyze_warp_curve(easing, input_duration, output_duration, parsed.samples)
    print(
        f"Speed: min {analysis.min_speed:.2f}x  max {analysis.max_speed:.2f}x  "
        f"avg {analysis.avg_speed:.2f}x"
    )
    step = input_duration / parsed.samples
    for i, multiplier in enumerate(analysis.speed_multipliers):
        t = (i + 1) * step
        out = warp_time(t, input_duration, output_duration, easing)
        bar = _speed_bar(multiplier, analysis.max_speed)
        print(f"  {t:6.2f}s -> {out:6.2f}s  {multiplier:7.2f}x  {bar}")


if __name__ == "__main__":
    main()
