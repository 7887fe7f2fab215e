"""File-based speed ramp and concatenation with the bundled ffmpeg binary.

The in-process jobs decode and encode frame by frame. This module does
the same work on files on disk through ffmpeg command lines:

  - three easings with a closed-form inverse become one `setpts` filter;
  - every other easing extracts frames to PNG and reassembles them through
    a concat-demuxer script built from a frame lookup table;
  - concatenation re-encodes each clip to H.264 MPEG-TS at a shared
    resolution, then joins them with stream copy.

The lookup table uses the same easing catalog and the same rounding as
the rest of the package, so LUT test vectors carry over.
"""

import logging
import shutil
import tempfile
from pathlib import Path

import imageio_ffmpeg

from .common import round_half_up, run_ffmpeg
from .easing import get_easing_function
from .encoding import DEFAULT_BITRATE, standard_tiers

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0

# Inverse easing as a setpts expression; DURATION is the clip length in seconds.
SIMPLE_SETPTS = {
    "easeInQuad": "sqrt(PTS*TB/DURATION)*DURATION/TB",
    "easeOutQuad": "(1-sqrt(1-PTS*TB/DURATION))*DURATION/TB",
    "easeInOutSine": "acos(1-2*PTS*TB/DURATION)/3.14159265*DURATION/TB",
}

X264_OPTIONS = ["-c:v", "libx264", "-preset", "fast", "-crf", "18", "-pix_fmt", "yuv420p"]


# ── Probing ────────────────────────────────────────────────────────

def _read_meta(path) -> dict:
    reader = imageio_ffmpeg.read_frames(str(path))
    try:
        return next(reader)
    finally:
        reader.close()


def probe_video_duration(path) -> float:
    """Duration of the video stream in seconds."""
    _, seconds = imageio_ffmpeg.count_frames_and_secs(str(path))
    if not seconds or seconds <= 0:
        raise ValueError(f"Could not determine duration for {path}")
    return float(seconds)


def probe_video_fps(path) -> float:
    """Nominal frame rate of the video stream; 30 when ffmpeg reports none."""
    fps = _read_meta(path).get("fps")
    try:
        fps = float(fps)
    except (TypeError, ValueError):
        return DEFAULT_FPS
    return fps if fps > 0 else DEFAULT_FPS


def probe_video_size(path) -> tuple[int, int]:
    width, height = _read_meta(path)["size"]
    return int(width), int(height)


# ── Speed ramp ─────────────────────────────────────────────────────

def compute_easing_lut(easing_name: str, total_frames: int) -> list[int]:
    """Source frame index to show at each output frame index.

    Output progress i/(N-1) goes through the easing to source progress,
    then back to a frame index clamped to [0, N-1].
    """
    if total_frames <= 0:
        return []
    if total_frames == 1:
        return [0]

    fn = get_easing_function(easing_name)
    last = total_frames - 1
    return [
        max(0, min(last, round_half_up(fn(i / last) * last)))
        for i in range(total_frames)
    ]


def setpts_expression(easing_name: str, duration: float) -> str | None:
    """Closed-form setpts expression for `easing_name`, or None."""
    template = SIMPLE_SETPTS.get(easing_name)
    if template is None:
        return None
    return template.replace("DURATION", f"{duration:.6f}")


def _concat_line(path: Path) -> str:
    escaped = path.as_posix().replace("'", "'\\''")
    return f"file '{escaped}'"


def apply_speed_ramp(input_path, output_path, easing_name: str) -> None:
    """Retime `input_path` along `easing_name`, writing `output_path` (no audio)."""
    input_path, output_path = Path(input_path), Path(output_path)
    duration = probe_video_duration(input_path)

    expr = setpts_expression(easing_name, duration)
    if expr is not None:
        logger.debug(f"Ramping {input_path.name} with setpts ({easing_name})")
        run_ffmpeg([
            "-i", str(input_path),
            "-vf", f"setpts='{expr}'",
            "-an",
            *X264_OPTIONS,
            str(output_path),
        ])
        return

    fps = probe_video_fps(input_path)
    total_frames = round_half_up(duration * fps)
    if total_frames <= 1:
        shutil.copyfile(input_path, output_path)
        return

    lut = compute_easing_lut(easing_name, total_frames)
    work_dir = Path(tempfile.mkdtemp(prefix="rampstitch-frames-"))
    try:
        run_ffmpeg([
            "-i", str(input_path),
            "-fps_mode", "passthrough",
            str(work_dir / "frame_%06d.png"),
        ])
        extracted = len(list(work_dir.glob("frame_*.png")))
        if extracted == 0:
            raise ValueError(f"No frames extracted from {input_path}")
        if extracted != total_frames:
            logger.debug(
                f"{input_path.name}: expected {total_frames} frames, extracted {extracted}"
            )

        frame_duration = 1.0 / fps
        lines = []
        for source_frame in lut:
            index = min(source_frame, extracted - 1) + 1
            lines.append(_concat_line(work_dir / f"frame_{index:06d}.png"))
            lines.append(f"duration {frame_duration:.6f}")
        # The concat demuxer ignores the last entry's duration unless the
        # file is listed once more.
        lines.append(lines[-2])

        script = work_dir / "concat.txt"
        script.write_text("\n".join(lines) + "\n", encoding="utf-8")
        run_ffmpeg([
            "-f", "concat", "-safe", "0",
            "-i", str(script),
            *X264_OPTIONS,
            "-r", f"{fps:g}",
            str(output_path),
        ])
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)


# ── Concatenation ──────────────────────────────────────────────────

def concatenate_clips(input_paths, output_path, fps: float = DEFAULT_FPS) -> None:
    """Join clips in order into `output_path`.

    Every clip is first normalized to H.264 MPEG-TS at one standard
    resolution (letterboxed) and `fps`, then the pieces are joined with
    stream copy.

    Raises:
        ValueError: Empty clip list.
    """
    input_paths = [Path(p) for p in input_paths]
    output_path = Path(output_path)
    if not input_paths:
        raise ValueError("No input paths provided for concatenation")
    if len(input_paths) == 1:
        shutil.copyfile(input_paths[0], output_path)
        return

    sizes = [probe_video_size(p) for p in input_paths]
    max_width = max(w for w, _ in sizes)
    max_height = max(h for _, h in sizes)
    tier = standard_tiers(max_width, max_height, DEFAULT_BITRATE)[0]
    w, h = tier.width, tier.height
    video_filter = (
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1,fps={fps:g}"
    )
    logger.info(f"Concatenating {len(input_paths)} clips at {w}x{h} @ {fps:g}fps")

    work_dir = Path(tempfile.mkdtemp(prefix="rampstitch-concat-"))
    try:
        normalized = []
        for i, path in enumerate(input_paths):
            target = work_dir / f"clip_{i:03d}.ts"
            run_ffmpeg([
                "-i", str(path),
                "-vf", video_filter,
                *X264_OPTIONS,
                "-an",
                "-f", "mpegts",
                str(target),
            ])
            normalized.append(target)

        listing = work_dir / "list.txt"
        listing.write_text(
            "\n".join(_concat_line(p) for p in normalized) + "\n", encoding="utf-8",
        )
        run_ffmpeg([
            "-f", "concat", "-safe", "0",
            "-i", str(listing),
            "-c", "copy",
            "-movflags", "+faststart",
            str(output_path),
        ])
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)


def stitch_files(input_paths, output_path, easing_name: str | None = None, loop_count: int = 1) -> None:
    """Repeat the clip list `loop_count` times, ramp each clip, and concatenate."""
    input_paths = [Path(p) for p in input_paths]
    if not input_paths:
        raise ValueError("No input paths provided for concatenation")
    loop_count = max(1, int(loop_count))

    work_dir = Path(tempfile.mkdtemp(prefix="rampstitch-stitch-"))
    try:
        clips = input_paths
        if easing_name:
            clips = []
            for i, path in enumerate(input_paths):
                ramped = work_dir / f"ramped_{i:03d}.mp4"
                apply_speed_ramp(path, ramped, easing_name)
                clips.append(ramped)
        concatenate_clips(clips * loop_count, output_path)
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)
