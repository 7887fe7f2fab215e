"""rampstitch.common — shared helpers.

Contains: path variable resolution, the bundled ffmpeg executable and a
thin runner for it, even-dimension and rounding helpers.
"""

import math
import re
import subprocess

import imageio_ffmpeg

FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── ffmpeg ─────────────────────────────────────────────────────────

def run_ffmpeg(args: list[str]) -> subprocess.CompletedProcess:
    """Run the bundled ffmpeg with `args`; raises CalledProcessError on failure."""
    cmd = [FFMPEG, "-y", "-hide_banner", "-loglevel", "error", *args]
    return subprocess.run(cmd, check=True, capture_output=True)


# ── Numeric helpers ────────────────────────────────────────────────

def ensure_even(value: float) -> int:
    """Round a pixel dimension down to an even number, minimum 2.

    Non-positive or non-finite input gives 0 so callers can detect it.
    """
    if not math.isfinite(value) or value <= 0:
        return 0
    even = int(value) & ~1
    return even if even > 0 else 2


def round_half_up(x: float) -> int:
    """Round halves away from zero (Python's round() rounds halves to even)."""
    return int(math.floor(x + 0.5)) if x >= 0 else -int(math.floor(-x + 0.5))
