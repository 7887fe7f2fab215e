"""Decode side of the sample pipeline.

MediaSample is one decoded frame. Whoever holds a sample closes it exactly
once; reading the payload after close raises SampleClosedError.

VideoInput is what jobs decode from. MoviepyVideoInput spills the input
bytes to a temp file and decodes through moviepy's VideoFileClip (which
drives the bundled ffmpeg); dispose() closes the reader and deletes the
file. Jobs take the opener as a parameter, so tests can hand in fakes.
"""

import logging
import math
import shutil
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image
from moviepy import VideoFileClip

from .common import round_half_up
from .errors import SampleClosedError

logger = logging.getLogger(__name__)

VALID_ROTATIONS = (0, 90, 180, 270)


def normalize_rotation(value) -> int:
    """Snap a probed rotation to 0/90/180/270; anything else becomes 0."""
    try:
        value = int(value) % 360
    except (TypeError, ValueError):
        return 0
    return value if value in VALID_ROTATIONS else 0


def positive(value) -> float | None:
    """`value` as a float if it is finite and > 0, else None."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) and value > 0 else None


class MediaSample:
    """One decoded video frame with its presentation timing."""

    def __init__(self, timestamp: float, duration: float, payload):
        self.timestamp = timestamp
        self.duration = duration
        self._payload = payload
        self.closed = False

    @property
    def payload(self):
        if self.closed:
            raise SampleClosedError(f"Sample at {self.timestamp:.3f}s was already closed")
        return self._payload

    def close(self) -> None:
        if self.closed:
            raise SampleClosedError(f"Sample at {self.timestamp:.3f}s closed twice")
        self.closed = True
        self._payload = None


class FrameGrid:
    """Fixed output frame-rate grid. Positions are integer slot indices."""

    def __init__(self, fps: int):
        self.fps = fps
        self.interval = 1.0 / fps

    def slot(self, t: float) -> int:
        return round_half_up(t * self.fps)

    def time(self, slot: int) -> float:
        return slot / self.fps


@dataclass
class VideoProbe:
    """Probed stream facts. Any field is None when probing it failed."""
    track_duration: float | None = None
    container_duration: float | None = None
    frame_rate: float | None = None
    average_bitrate: float | None = None
    width: int | None = None
    height: int | None = None
    rotation: int = 0


class VideoInput(Protocol):
    video_found: bool

    def probe(self) -> VideoProbe: ...

    def samples(self, start: float = 0.0, end: float | None = None) -> Iterator[MediaSample]: ...

    def dispose(self) -> None: ...


class MoviepyVideoInput:
    """Video input decoded with moviepy from an in-memory blob."""

    def __init__(self, data: bytes, suffix: str = ".mp4"):
        self._work_dir = Path(tempfile.mkdtemp(prefix="rampstitch-in-"))
        self.path = self._work_dir / f"input{suffix}"
        self.clip = None
        try:
            self.path.write_bytes(data)
            self.clip = VideoFileClip(str(self.path), audio=False)
        except (OSError, KeyError, IndexError, ValueError) as e:
            # moviepy raises a mix of these when ffmpeg finds no video stream.
            logger.debug(f"No decodable video stream: {e}")
        except Exception:
            self.dispose()
            raise

    @property
    def video_found(self) -> bool:
        return self.clip is not None

    def probe(self) -> VideoProbe:
        infos = getattr(self.clip.reader, "infos", None) or {}
        bitrate_kbps = positive(infos.get("video_bitrate"))

        width = height = None
        try:
            w, h = self.clip.size
            width, height = int(w), int(h)
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to read video dimensions: {e}")

        return VideoProbe(
            track_duration=positive(infos.get("video_duration")) or positive(self.clip.duration),
            container_duration=positive(infos.get("duration")),
            frame_rate=positive(infos.get("video_fps")) or positive(self.clip.fps),
            average_bitrate=bitrate_kbps * 1000 if bitrate_kbps else None,
            width=width,
            height=height,
            rotation=normalize_rotation(
                getattr(self.clip, "rotation", None) or infos.get("video_rotation", 0)
            ),
        )

    def samples(self, start: float = 0.0, end: float | None = None) -> Iterator[MediaSample]:
        """Yield frames with start <= timestamp < end, in presentation order."""
        frame_duration = 1.0 / self.clip.fps
        for t, frame in self.clip.iter_frames(with_times=True, dtype="uint8"):
            if t < start:
                continue
            if end is not None and t >= end:
                break
            yield MediaSample(float(t), frame_duration, frame)

    def dispose(self) -> None:
        if self.clip is not None:
            clip, self.clip = self.clip, None
            clip.close()
        shutil.rmtree(self._work_dir, ignore_errors=True)


def open_video_input(data: bytes) -> MoviepyVideoInput:
    return MoviepyVideoInput(data)


def fit_frame(frame, size: tuple[int, int]) -> np.ndarray:
    """Scale an RGB frame to fit `size`, letterboxing onto black.

    Aspect ratio is preserved; frames already at `size` pass through.
    """
    frame = np.ascontiguousarray(np.asarray(frame)[..., :3], dtype=np.uint8)
    target_w, target_h = size
    h, w = frame.shape[:2]
    if (w, h) == (target_w, target_h):
        return frame

    scale = min(target_w / w, target_h / h)
    new_w = max(1, round_half_up(w * scale))
    new_h = max(1, round_half_up(h * scale))
    resized = Image.fromarray(frame).resize((new_w, new_h), Image.Resampling.BILINEAR)

    canvas = Image.new("RGB", (target_w, target_h), (0, 0, 0))
    canvas.paste(resized, ((target_w - new_w) // 2, (target_h - new_h) // 2))
    return np.asarray(canvas)
