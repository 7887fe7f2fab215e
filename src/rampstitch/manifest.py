"""Stitch manifest loader — describe a stitch job in YAML.

Uses the same ${var} path resolution for clips, audio and output.

Stitch manifest schema:
  paths:
    clips: "/data/clips"
  output: "${clips}/final.mp4"
  backend: inprocess            # or "ffmpeg"
  loop_count: 1
  speed_curve:                  # optional, applied to every clip
    easing: easeInOutSine       # catalog name or [x1, y1, x2, y2]
    input_duration: 5.0
    output_duration: 0          # 0 = keep each clip's length
    bitrate: 8000000
  clips:
    - "${clips}/a.mp4"
    - path: "${clips}/b.mp4"
  audio:                        # optional, inprocess backend only
    path: "${clips}/music.mp3"
    offset: 0.0
    fade_in: 0.5
    fade_out: 1.0
"""

from pathlib import Path

import yaml

from .common import resolve_path_vars
from .easing import EASING
from .encoding import DEFAULT_BITRATE
from .speed_ramp import DEFAULT_EASING, DEFAULT_INPUT_DURATION, DEFAULT_OUTPUT_DURATION

BACKENDS = ("inprocess", "ffmpeg")


def _parse_easing(value, where: str):
    if isinstance(value, str):
        if value not in EASING:
            raise ValueError(
                f"{where}: unknown easing '{value}'. "
                f"Available: {', '.join(EASING)}"
            )
        return value
    if isinstance(value, (list, tuple)) and len(value) == 4:
        try:
            return tuple(float(v) for v in value)
        except (TypeError, ValueError):
            pass
    raise ValueError(f"{where}: easing must be a name or [x1, y1, x2, y2], got {value!r}")


def _parse_speed_curve(raw: dict) -> dict:
    if not isinstance(raw, dict):
        raise ValueError("Stitch manifest: 'speed_curve' must be a mapping")
    curve = {
        "easing": _parse_easing(raw.get("easing", DEFAULT_EASING), "speed_curve"),
        "input_duration": float(raw.get("input_duration", DEFAULT_INPUT_DURATION)),
        "output_duration": float(raw.get("output_duration", DEFAULT_OUTPUT_DURATION)),
        "bitrate": int(raw.get("bitrate", DEFAULT_BITRATE)),
    }
    if curve["input_duration"] <= 0:
        raise ValueError(
            f"speed_curve: input_duration must be > 0, got {curve['input_duration']}"
        )
    if curve["bitrate"] <= 0:
        raise ValueError(f"speed_curve: bitrate must be > 0, got {curve['bitrate']}")
    return curve


def _parse_audio(raw, paths: dict) -> dict:
    if isinstance(raw, str):
        raw = {"path": raw}
    if not isinstance(raw, dict) or "path" not in raw:
        raise ValueError("Audio: missing required field 'path'")
    audio = {
        "path": resolve_path_vars(str(raw["path"]), paths),
        "offset": float(raw.get("offset", 0.0)),
        "fade_in": float(raw.get("fade_in", 0.0)),
        "fade_out": float(raw.get("fade_out", 0.0)),
    }
    for key in ("fade_in", "fade_out"):
        if audio[key] < 0:
            raise ValueError(f"Audio: {key} must be >= 0, got {audio[key]}")
    return audio


def load_stitch_manifest(manifest_path: str | Path) -> dict:
    """Load, validate, and normalize a stitch manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Resolve ${path} variables in output, clips and audio.
      3. Validate backend, loop_count, speed_curve and audio settings.

    Args:
        manifest_path: Path to the YAML stitch manifest.

    Returns:
        Normalized config dict. Missing optional sections come back as None.

    Raises:
        ValueError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError("Stitch manifest: expected a mapping at the top level")
    if "clips" not in raw:
        raise ValueError("Stitch manifest: missing required 'clips' field")

    paths = raw.get("paths", {})

    clips = []
    for i, entry in enumerate(raw["clips"] or []):
        if isinstance(entry, dict):
            if "path" not in entry:
                raise ValueError(f"Clip {i}: missing required field 'path'")
            entry = entry["path"]
        clips.append(resolve_path_vars(str(entry), paths))
    if not clips:
        raise ValueError("Stitch manifest: 'clips' must list at least one clip")

    backend = str(raw.get("backend", "inprocess"))
    if backend not in BACKENDS:
        raise ValueError(
            f"Stitch manifest: unknown backend '{backend}'. "
            f"Available: {', '.join(BACKENDS)}"
        )

    loop_count = int(raw.get("loop_count", 1))
    if loop_count < 1:
        raise ValueError(f"Stitch manifest: loop_count must be >= 1, got {loop_count}")

    speed_curve = None
    if raw.get("speed_curve") is not None:
        speed_curve = _parse_speed_curve(raw["speed_curve"])
        if backend == "ffmpeg" and not isinstance(speed_curve["easing"], str):
            raise ValueError("speed_curve: the ffmpeg backend only accepts easing names")

    audio = None
    if raw.get("audio") is not None:
        if backend == "ffmpeg":
            raise ValueError("Audio: only supported by the inprocess backend")
        audio = _parse_audio(raw["audio"], paths)

    output = raw.get("output")
    if output is not None:
        output = resolve_path_vars(str(output), paths)

    return {
        "output": output,
        "backend": backend,
        "loop_count": loop_count,
        "speed_curve": speed_curve,
        "clips": clips,
        "audio": audio,
    }


def validate_stitch_paths(config: dict) -> None:
    """Check that every clip (and the audio file, if any) exists on disk.

    Raises:
        FileNotFoundError: Lists every missing file.
    """
    missing = [p for p in config["clips"] if not Path(p).exists()]
    if config.get("audio") and not Path(config["audio"]["path"]).exists():
        missing.append(config["audio"]["path"])
    if missing:
        msg = f"Missing {len(missing)} file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
