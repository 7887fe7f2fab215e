#!/usr/bin/env python3
"""Generate synthetic clips and a stitch manifest for trying rampstitch.

Creates 4 clips in examples/demo-clips/, each a solid color with its frame
number burned in, so retiming is easy to see: a speed ramp makes the
counter crawl and then race. Also writes a looping tone and a manifest
that ramps and stitches the clips over it.

Usage:
    python examples/generate_demo_clips.py
    # Then render:
    rampstitch stitch --manifest examples/demo-clips/stitch.yaml
"""

import numpy as np
import yaml
from moviepy import AudioArrayClip, ImageSequenceClip
from pathlib import Path
from PIL import Image, ImageDraw, ImageFont

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-clips"
SIZE = (320, 240)
FPS = 30
SAMPLE_RATE = 44100

CLIPS = [
    ("clip-01", (180, 60, 60),  2.0),  # red
    ("clip-02", (60, 60, 180),  3.0),  # blue
    ("clip-03", (60, 160, 60),  2.5),  # green
    ("clip-04", (200, 130, 40), 1.5),  # orange
]


def _load_font(size: int):
    try:
        return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _counter_frames(color: tuple[int, int, int], count: int) -> list[np.ndarray]:
    """One frame per index, the index drawn centered in white."""
    font = _load_font(64)
    frames = []
    for i in range(count):
        img = Image.new("RGB", SIZE, color)
        draw = ImageDraw.Draw(img)
        text = str(i)
        bbox = draw.textbbox((0, 0), text, font=font)
        tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
        draw.text(((SIZE[0] - tw) / 2, (SIZE[1] - th) / 2), text, fill=(255, 255, 255), font=font)
        frames.append(np.array(img))
    return frames


def _write_tone(out: Path, seconds: float = 4.0) -> None:
    """Two-note tone, so looping over a longer video is audible."""
    t = np.arange(int(seconds * SAMPLE_RATE)) / SAMPLE_RATE
    freq = np.where(t < seconds / 2, 440.0, 660.0)
    wave = (0.2 * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    clip = AudioArrayClip(np.stack([wave, wave], axis=1), fps=SAMPLE_RATE)
    clip.write_audiofile(str(out), fps=SAMPLE_RATE, logger=None)
    clip.close()


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, color, duration in CLIPS:
        out = OUTPUT_DIR / f"{name}.mp4"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue
        clip = ImageSequenceClip(_counter_frames(color, round(duration * FPS)), fps=FPS)
        clip.write_videofile(str(out), fps=FPS, audio=False, logger=None)
        clip.close()
        print(f"  wrote {name} ({duration}s)")

    tone = OUTPUT_DIR / "tone.wav"
    if not tone.exists():
        _write_tone(tone)
        print("  wrote tone.wav")

    manifest = {
        "paths": {"clips": str(OUTPUT_DIR)},
        "output": "${clips}/stitched.mp4",
        "speed_curve": {"easing": "easeInOutSine", "output_duration": 1.5},
        "clips": [f"${{clips}}/{name}.mp4" for name, _, _ in CLIPS],
        "audio": {"path": "${clips}/tone.wav", "fade_in": 0.25, "fade_out": 1.0},
    }
    (OUTPUT_DIR / "stitch.yaml").write_text(yaml.safe_dump(manifest, sort_keys=False))

    print(f"\nDone. {len(CLIPS)} clips and stitch.yaml in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
