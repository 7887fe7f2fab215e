"""Shared test fixtures for rampstitch tests.

Two kinds of fixture live here:
  - real media generated with the bundled ffmpeg (lavfi color/sine sources);
  - in-memory fakes for the job seams (video inputs, output container,
    capability provider) so job logic can be checked without encoding.
"""

import subprocess

import numpy as np
import pytest
import imageio_ffmpeg

from rampstitch.media import MediaSample, VideoProbe

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def _run_ffmpeg(args):
    subprocess.run([_FFMPEG, "-y", *args], check=True, capture_output=True)


@pytest.fixture
def source_video(tmp_path):
    """2-second test video (320x240, 10fps) with a sine audio track."""
    out = tmp_path / "source.mp4"
    _run_ffmpeg([
        "-f", "lavfi", "-i", "color=c=blue:s=320x240:d=2:r=10",
        "-f", "lavfi", "-i", "sine=frequency=440:sample_rate=44100:duration=2",
        "-shortest",
        "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
        "-c:a", "aac", "-b:a", "32k",
        str(out),
    ])
    return out


@pytest.fixture
def small_video(tmp_path):
    """1-second silent test video (160x120, 10fps)."""
    out = tmp_path / "small.mp4"
    _run_ffmpeg([
        "-f", "lavfi", "-i", "color=c=red:s=160x120:d=1:r=10",
        "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
        str(out),
    ])
    return out


@pytest.fixture
def audio_file(tmp_path):
    """1-second 440Hz mono WAV."""
    out = tmp_path / "tone.wav"
    _run_ffmpeg([
        "-f", "lavfi", "-i", "sine=frequency=440:sample_rate=44100:duration=1",
        "-c:a", "pcm_s16le",
        str(out),
    ])
    return out


# ── Fakes ──────────────────────────────────────────────────────────

class FakeInput:
    """Video input yielding tiny frames at the given timestamps."""

    def __init__(
        self, timestamps=(), probe=None, video_found=True, fail_after=None,
        log=None, name="input",
    ):
        self.timestamps = list(timestamps)
        self._probe = probe or VideoProbe(
            track_duration=1.0, container_duration=1.0, frame_rate=30.0,
            average_bitrate=2_000_000, width=64, height=48,
        )
        self.video_found = video_found
        self.fail_after = fail_after
        self.log = log if log is not None else []
        self.name = name
        self.yielded: list[MediaSample] = []
        self.disposed = 0

    def probe(self):
        return self._probe

    def samples(self, start=0.0, end=None):
        for i, t in enumerate(self.timestamps):
            if self.fail_after is not None and i >= self.fail_after:
                raise RuntimeError(f"decode failed at sample {i}")
            if t < start or (end is not None and t >= end):
                continue
            sample = MediaSample(t, 1 / 30, np.zeros((48, 64, 3), dtype=np.uint8))
            self.yielded.append(sample)
            yield sample

    def dispose(self):
        self.disposed += 1
        self.log.append(f"dispose {self.name}")


class FakeVideoSource:
    def __init__(self, log, fail_on_close=False):
        self.log = log
        self.fail_on_close = fail_on_close
        self.written: list[tuple[float, float]] = []
        self.closed = False

    def add(self, sample):
        sample.payload  # raises if the sample was already closed
        self.written.append((sample.timestamp, sample.duration))

    def close(self):
        self.log.append("close video")
        self.closed = True
        if self.fail_on_close:
            raise RuntimeError("video close failed")


class FakeAudioSource:
    def __init__(self, log, codec, bitrate):
        self.log = log
        self.codec = codec
        self.bitrate = bitrate
        self.tracks = []
        self.closed = False

    def add(self, track):
        self.tracks.append(track)

    def close(self):
        self.log.append("close audio")
        self.closed = True


class FakeContainer:
    def __init__(self, log=None, video_fail_on_close=False):
        self.log = log if log is not None else []
        self.video_fail_on_close = video_fail_on_close
        self.video = None
        self.audio = None
        self.config = None
        self.started = False
        self.finalized = False
        self.cancelled = False

    def add_video_track(self, config):
        self.config = config
        self.video = FakeVideoSource(self.log, self.video_fail_on_close)
        return self.video

    def add_audio_track(self, codec, bitrate=128_000):
        self.audio = FakeAudioSource(self.log, codec, bitrate)
        return self.audio

    def start(self):
        self.log.append("start")
        self.started = True

    def finalize(self):
        self.log.append("finalize")
        self.finalized = True
        return b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 1024

    def cancel(self):
        self.log.append("cancel")
        self.cancelled = True


class ScriptedCapabilities:
    """Capability provider answering from a predicate and recording queries."""

    def __init__(self, supports=lambda w, h, bitrate, profile: True, audio_codec="aac"):
        self.supports = supports
        self.audio_codec = audio_codec
        self.queries = []
        self.audio_queries = []

    def can_encode(self, codec_family, width, height, bitrate, profile=None):
        self.queries.append((width, height, bitrate, profile))
        return self.supports(width, height, bitrate, profile)

    def best_audio_codec(self, preferences, channels, sample_rate, bitrate):
        self.audio_queries.append((tuple(preferences), channels, sample_rate, bitrate))
        return self.audio_codec


class FakeOpener:
    """Opener building a fresh FakeInput per call from per-blob settings."""

    def __init__(self, specs=None, log=None):
        self.specs = specs or {}
        self.log = log if log is not None else []
        self.opened: list[FakeInput] = []

    def __call__(self, data):
        kwargs = dict(self.specs.get(data, {}))
        video_input = FakeInput(log=self.log, name=data.decode(errors="replace"), **kwargs)
        self.opened.append(video_input)
        return video_input


def frame_times(count, fps=30.0, start=0.0):
    return [start + i / fps for i in range(count)]


@pytest.fixture
def event_log():
    return []


@pytest.fixture
def fake_container(event_log):
    return FakeContainer(event_log)


@pytest.fixture
def capabilities():
    return ScriptedCapabilities()

