"""CLI for stitching — join clips described by a YAML manifest.

The inprocess backend optionally retimes every clip (apply_speed_curve),
prepares the audio track over the stitched length, and stitches with
stitch_videos. The ffmpeg backend hands the file list to stitch_files.

Usage:
    rampstitch stitch --manifest stitch.yaml --output final.mp4
    rampstitch stitch --manifest stitch.yaml --validate
"""

import argparse
import logging
import subprocess
import sys
from pathlib import Path

from .audio import prepare_audio
from .errors import RampStitchError
from .ffmpeg_stitch import stitch_files
from .manifest import load_stitch_manifest, validate_stitch_paths
from .media import open_video_input
from .progress import print_progress
from .speed_ramp import apply_speed_curve
from .stitch import stitch_videos

logger = logging.getLogger(__name__)


def _clip_duration(data: bytes) -> float:
    """Probed duration of an encoded clip; 0 when it can't be probed."""
    video_input = open_video_input(data)
    try:
        if not video_input.video_found:
            return 0.0
        probe = video_input.probe()
        return probe.track_duration or probe.container_duration or 0.0
    finally:
        video_input.dispose()


def stitch_inprocess(config: dict, output_path: str) -> None:
    clips = [Path(p).read_bytes() for p in config["clips"]]

    curve = config["speed_curve"]
    if curve:
        ramped = []
        for i, data in enumerate(clips):
            print(f"Ramping clip {i + 1}/{len(clips)} ({config['clips'][i]})")
            ramped.append(apply_speed_curve(
                data,
                input_duration=curve["input_duration"],
                output_duration=curve["output_duration"],
                on_progress=print_progress,
                easing=curve["easing"],
                bitrate=curve["bitrate"],
            ))
        clips = ramped

    clips = clips * config["loop_count"]

    audio = None
    if config["audio"]:
        settings = config["audio"]
        target = sum(_clip_duration(data) for data in clips)
        print(f"Preparing audio: {settings['path']} ({target:.2f}s)")
        audio = prepare_audio(
            Path(settings["path"]).read_bytes(),
            target,
            on_progress=print_progress,
            offset=settings["offset"],
            fade_in=settings["fade_in"],
            fade_out=settings["fade_out"],
        )

    print(f"Stitching {len(clips)} clips...")
    data = stitch_videos(clips, audio, on_progress=print_progress)
    Path(output_path).write_bytes(data)


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Stitch clips from a YAML manifest into one video.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML stitch manifest",
    )
    parser.add_argument(
        "--output",
        help="Output mp4 path (overrides the manifest's output)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate manifest only — check paths, don't render",
    )
    parsed = parser.parse_args(args)

    try:
        config = load_stitch_manifest(parsed.manifest)
        validate_stitch_paths(config)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if parsed.validate:
        print(f"Stitch manifest valid: {len(config['clips'])} clips ({config['backend']})")
        for i, path in enumerate(config["clips"]):
            print(f"  {i}: {path}")
        if config["loop_count"] > 1:
            print(f"  looped {config['loop_count']} times")
        curve = config["speed_curve"]
        if curve:
            print(f"  speed curve: {curve['easing']}")
        if config["audio"]:
            print(f"  audio: {config['audio']['path']}")
        print("All paths verified.")
        return

    output_path = parsed.output or config["output"]
    if not output_path:
        parser.error("--output is required when the manifest has no 'output'")
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    try:
        if config["backend"] == "ffmpeg":
            curve = config["speed_curve"]
            print(f"Stitching {len(config['clips'])} clips with ffmpeg...")
            stitch_files(
                config["clips"], output_path,
                easing_name=curve["easing"] if curve else None,
                loop_count=config["loop_count"],
            )
        else:
            stitch_inprocess(config, output_path)
    except (RampStitchError, ValueError, OSError, subprocess.CalledProcessError) as e:
        logger.debug("Stitch failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Done: {output_path}")


if __name__ == "__main__":
    main()
