"""CLI for retiming a single clip along an easing curve.

Two backends produce the same timing:
  - inprocess: decode, re-timestamp every frame and encode (apply_speed_curve).
  - ffmpeg: setpts or frame-LUT reassembly on files (apply_speed_ramp).

Usage:
    rampstitch ramp clip.mp4 --output ramped.mp4 --easing easeInOutCubic
    rampstitch ramp clip.mp4 --output ramped.mp4 --bezier 0.42 0 0.58 1 \
        --output-duration 2.5
    rampstitch ramp clip.mp4 --output ramped.mp4 --backend ffmpeg --easing easeInQuad
"""

import argparse
import subprocess
import sys
from pathlib import Path

from .errors import RampStitchError
from .ffmpeg_stitch import apply_speed_ramp
from .progress import print_progress
from .speed_ramp import (
    DEFAULT_EASING,
    DEFAULT_INPUT_DURATION,
    DEFAULT_OUTPUT_DURATION,
    apply_speed_curve,
)
from .encoding import DEFAULT_BITRATE


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Retime a clip along an easing curve.",
    )
    parser.add_argument("source", help="Path to the source clip")
    parser.add_argument("--output", required=True, help="Output mp4 path")
    curve = parser.add_mutually_exclusive_group()
    curve.add_argument(
        "--easing", default=None,
        help=f"Easing name (default: {DEFAULT_EASING})",
    )
    curve.add_argument(
        "--bezier", type=float, nargs=4, metavar=("X1", "Y1", "X2", "Y2"),
        help="Custom cubic-bezier handles (inprocess backend only)",
    )
    parser.add_argument(
        "--input-duration", type=float, default=DEFAULT_INPUT_DURATION,
        help="Nominal source duration, used when probing fails",
    )
    parser.add_argument(
        "--output-duration", type=float, default=DEFAULT_OUTPUT_DURATION,
        help="Target duration in seconds (0 keeps the source duration)",
    )
    parser.add_argument(
        "--bitrate", type=int, default=DEFAULT_BITRATE,
        help="Requested bitrate in bits/s (the source bitrate wins if higher)",
    )
    parser.add_argument(
        "--backend", choices=("inprocess", "ffmpeg"), default="inprocess",
        help="Retime in-process (default) or through ffmpeg filters",
    )
    parsed = parser.parse_args(args)

    source = Path(parsed.source)
    if not source.exists():
        parser.error(f"Source clip not found: {source}")
    if parsed.backend == "ffmpeg" and parsed.bezier:
        parser.error("--bezier requires the inprocess backend")

    easing = tuple(parsed.bezier) if parsed.bezier else (parsed.easing or DEFAULT_EASING)
    output = Path(parsed.output)
    output.parent.mkdir(parents=True, exist_ok=True)

    print(f"Ramping {source} with {easing} ({parsed.backend})")
    try:
        if parsed.backend == "ffmpeg":
            apply_speed_ramp(source, output, easing)
        else:
            data = apply_speed_curve(
                source.read_bytes(),
                input_duration=parsed.input_duration,
                output_duration=parsed.output_duration,
                on_progress=print_progress,
                easing=easing,
                bitrate=parsed.bitrate,
            )
            output.write_bytes(data)
    except (RampStitchError, ValueError, OSError, subprocess.CalledProcessError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Done: {output}")


if __name__ == "__main__":
    main()
