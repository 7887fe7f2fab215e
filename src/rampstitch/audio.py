"""Audio preparation for stitched output.

Decodes an audio blob to float32 PCM at 44.1 kHz, lays it out over the
target duration (offset, then end-to-start looping), and applies linear
fades. The result is an AudioTrackData the stitch job trims to the final
video length and hands to the audio encoder.
"""

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from moviepy import AudioFileClip

from .common import run_ffmpeg
from .errors import AudioDecodeFailed
from .progress import ProgressCallback, ProgressReporter

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
CHANNELS = 2


@dataclass
class AudioTrackData:
    """Decoded PCM. `buffer` is float32 shaped (samples, channels)."""
    buffer: np.ndarray
    sample_rate: int = SAMPLE_RATE

    @property
    def length(self) -> int:
        return int(self.buffer.shape[0])

    @property
    def channels(self) -> int:
        return int(self.buffer.shape[1]) if self.buffer.ndim > 1 else 1

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate


def _as_frames(buffer) -> np.ndarray:
    buffer = np.asarray(buffer, dtype=np.float32)
    if buffer.ndim == 1:
        buffer = buffer[:, np.newaxis]
    return np.ascontiguousarray(buffer)


# ── Decoding ───────────────────────────────────────────────────────

def _decode_with_moviepy(path: Path, sample_rate: int) -> np.ndarray:
    clip = AudioFileClip(str(path), fps=sample_rate)
    try:
        return clip.to_soundarray(fps=sample_rate)
    finally:
        clip.close()


def _decode_with_ffmpeg(path: Path, sample_rate: int) -> np.ndarray:
    result = run_ffmpeg([
        "-i", str(path),
        "-vn",
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-ac", str(CHANNELS),
        "-ar", str(sample_rate),
        "pipe:1",
    ])
    pcm = np.frombuffer(result.stdout, dtype=np.float32)
    if pcm.size == 0:
        raise ValueError("ffmpeg produced no audio samples")
    return pcm[: pcm.size - pcm.size % CHANNELS].reshape(-1, CHANNELS)


def decode_audio(audio_bytes: bytes, sample_rate: int = SAMPLE_RATE) -> AudioTrackData:
    """Decode an audio (or audio-bearing video) blob.

    moviepy is tried first. If it fails, the bundled ffmpeg is piped to raw
    f32le instead.

    Raises:
        AudioDecodeFailed: Neither path produced samples.
    """
    work_dir = Path(tempfile.mkdtemp(prefix="rampstitch-audio-"))
    path = work_dir / "source"
    try:
        path.write_bytes(audio_bytes)
        try:
            pcm = _decode_with_moviepy(path, sample_rate)
        except Exception as e:
            logger.warning(f"moviepy audio decode failed, falling back to ffmpeg: {e}")
            try:
                pcm = _decode_with_ffmpeg(path, sample_rate)
            except (OSError, ValueError, subprocess.CalledProcessError) as fallback_error:
                raise AudioDecodeFailed(
                    f"Failed to process audio: {fallback_error}"
                ) from fallback_error
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    track = AudioTrackData(_as_frames(pcm), sample_rate)
    if track.length == 0:
        raise AudioDecodeFailed("Failed to process audio: no samples decoded")
    logger.debug(
        f"Decoded audio: {track.duration:.2f}s, {track.channels} channel(s) @ {sample_rate}Hz"
    )
    return track


# ── Buffer operations ──────────────────────────────────────────────

def loop_audio(track: AudioTrackData, target_duration: float, offset: float = 0.0) -> AudioTrackData:
    """Lay `track` out over exactly `target_duration` seconds.

    A positive `offset` left-pads that many seconds of silence. A negative
    one skips that many seconds of the source. Whatever remains is filled
    by repeating the source end-to-start.
    """
    rate = track.sample_rate
    source = _as_frames(track.buffer)
    total = max(0, int(round(target_duration * rate)))
    out = np.zeros((total, source.shape[1]), dtype=np.float32)

    pad = min(total, int(round(offset * rate))) if offset > 0 else 0
    skip = int(round(-offset * rate)) if offset < 0 else 0
    remaining = total - pad
    if remaining == 0 or len(source) == 0:
        return AudioTrackData(out, rate)

    # Sample index i of the remainder reads source[(skip + i) mod len].
    indices = (skip + np.arange(remaining)) % len(source)
    out[pad:] = source[indices]
    return AudioTrackData(out, rate)


def apply_fades(buffer: np.ndarray, sample_rate: int, fade_in: float = 0.0, fade_out: float = 0.0) -> np.ndarray:
    """Linear fade-in/fade-out applied in place to every channel.

    When the two fades together are longer than the buffer, both are
    scaled down proportionally so they still fit. Returns `buffer`.
    """
    length = len(buffer)
    if length == 0 or (fade_in <= 0 and fade_out <= 0):
        return buffer

    fade_in = max(0.0, fade_in)
    fade_out = max(0.0, fade_out)
    duration = length / sample_rate
    if fade_in + fade_out > duration:
        scale = duration / (fade_in + fade_out)
        fade_in *= scale
        fade_out *= scale

    fade_in_samples = min(length, int(fade_in * sample_rate))
    fade_out_samples = min(length, int(fade_out * sample_rate))

    if fade_in_samples > 0:
        gain = np.arange(fade_in_samples, dtype=np.float32) / fade_in_samples
        if buffer.ndim > 1:
            gain = gain[:, np.newaxis]
        buffer[:fade_in_samples] *= gain
    if fade_out_samples > 0:
        gain = np.arange(fade_out_samples - 1, -1, -1, dtype=np.float32) / fade_out_samples
        if buffer.ndim > 1:
            gain = gain[:, np.newaxis]
        buffer[length - fade_out_samples:] *= gain
    return buffer


def trim_audio(track: AudioTrackData, duration: float) -> AudioTrackData:
    """Cut `track` to at most `duration` seconds. Never extends."""
    keep = max(1, int(round(duration * track.sample_rate)))
    if keep >= track.length:
        return track
    return AudioTrackData(track.buffer[:keep], track.sample_rate)


# ── Entry point ────────────────────────────────────────────────────

def prepare_audio(
    audio_bytes: bytes,
    target_duration: float,
    on_progress: ProgressCallback | None = None,
    offset: float = 0.0,
    fade_in: float = 0.0,
    fade_out: float = 0.0,
) -> AudioTrackData:
    """Decode, offset/loop to `target_duration`, and fade.

    A `target_duration` of 0 or below keeps the source's own length.
    """
    progress = ProgressReporter(on_progress)
    progress.processing("Loading audio file...", 10)
    track = decode_audio(audio_bytes)

    if target_duration <= 0:
        target_duration = track.duration
    progress.processing(
        f"Preparing {target_duration:.2f}s of audio from {track.duration:.2f}s source...", 50,
    )
    track = loop_audio(track, target_duration, offset)

    if fade_in > 0 or fade_out > 0:
        progress.processing("Applying fades...", 80)
        apply_fades(track.buffer, track.sample_rate, fade_in, fade_out)

    progress.complete("Audio ready")
    return track
