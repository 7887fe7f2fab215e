"""Encode side of the sample pipeline — MP4 output container.

Mp4Container owns a temp directory created on start(). The video track
streams raw RGB frames into imageio-ffmpeg's libx264 writer; the audio
track is written with moviepy's AudioArrayClip; finalize() muxes both
into a faststart MP4 and returns its bytes. cancel() discards everything.

The writer is constant-rate. A sample placed at grid slot k is held on
screen until the next written slot, and the last sample is held for one
slot, so the variable timing computed by the jobs survives encoding.
"""

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

import imageio_ffmpeg
from moviepy import AudioArrayClip

from .common import run_ffmpeg
from .encoding import AUDIO_BITRATE, VideoTrackConfig
from .errors import ContainerFinalizeFailed
from .media import FrameGrid, MediaSample, fit_frame

logger = logging.getLogger(__name__)

# Audio codec -> (ffmpeg encoder, file suffix).
AUDIO_CODECS = {
    "aac": ("aac", ".m4a"),
    "mp3": ("libmp3lame", ".mp3"),
}


class VideoSampleSource(Protocol):
    def add(self, sample: MediaSample) -> None: ...

    def close(self) -> None: ...


class AudioBufferSource(Protocol):
    def add(self, track) -> None: ...

    def close(self) -> None: ...


class OutputContainer(Protocol):
    def add_video_track(self, config: VideoTrackConfig) -> VideoSampleSource: ...

    def add_audio_track(self, codec: str, bitrate: int = AUDIO_BITRATE) -> AudioBufferSource: ...

    def start(self) -> None: ...

    def finalize(self) -> bytes: ...

    def cancel(self) -> None: ...


class FFmpegVideoSource:
    """H.264 video track fed one retimed sample at a time."""

    def __init__(self, config: VideoTrackConfig):
        self.config = config
        self.grid = FrameGrid(config.framerate)
        self.path: Path | None = None
        self.frames_written = 0
        self.closed = False
        self._writer = None
        self._pending: bytes | None = None
        self._pending_slot = -1

    def open(self, path: Path) -> None:
        self.path = path
        self._writer = imageio_ffmpeg.write_frames(
            str(path),
            self.config.size,
            fps=self.config.framerate,
            codec="libx264",
            quality=None,
            bitrate=self.config.tier.bitrate,
            pix_fmt_out="yuv420p",
            macro_block_size=2,
            ffmpeg_log_level="error",
            output_params=[*self.config.x264_params(), "-movflags", "+faststart"],
        )
        self._writer.send(None)  # start the ffmpeg process

    def add(self, sample: MediaSample) -> None:
        if self._writer is None or self.closed:
            raise RuntimeError("Video track is not open")
        slot = self.grid.slot(sample.timestamp)
        if self._pending is not None and slot <= self._pending_slot:
            raise ValueError(
                f"Sample timestamps must increase: slot {slot} after {self._pending_slot}"
            )
        # Copy out of the sample now; its owner closes it after add().
        frame = fit_frame(sample.payload, self.config.size).tobytes()
        if self._pending is None:
            # Output starts at 0: the first frame also covers any leading slots.
            self._write(frame, slot)
        else:
            self._write(self._pending, slot - self._pending_slot)
        self._pending = frame
        self._pending_slot = slot

    def _write(self, frame: bytes, count: int) -> None:
        for _ in range(count):
            self._writer.send(frame)
        self.frames_written += count

    @property
    def duration(self) -> float:
        return self.grid.time(self.frames_written)

    def close(self) -> None:
        """Flush the held frame and let ffmpeg finish the file."""
        if self.closed:
            return
        self.closed = True
        if self._writer is None:
            return
        try:
            if self._pending is not None:
                self._write(self._pending, 1)
        finally:
            self._pending = None
            writer, self._writer = self._writer, None
            writer.close()

    def abort(self) -> None:
        """Stop the writer without flushing the held frame."""
        self._pending = None
        self.closed = True
        if self._writer is not None:
            writer, self._writer = self._writer, None
            writer.close()


class MoviepyAudioSource:
    """Audio track encoded from a prepared PCM buffer."""

    def __init__(self, codec: str, bitrate: int = AUDIO_BITRATE):
        if codec not in AUDIO_CODECS:
            raise ValueError(f"Unsupported audio codec: '{codec}'")
        self.codec = codec
        self.bitrate = bitrate
        self.directory: Path | None = None
        self.path: Path | None = None
        self.closed = False

    def add(self, track) -> None:
        if self.directory is None or self.closed:
            raise RuntimeError("Audio track is not open")
        encoder, suffix = AUDIO_CODECS[self.codec]
        self.path = self.directory / f"audio{suffix}"
        clip = AudioArrayClip(track.buffer, fps=track.sample_rate)
        clip.write_audiofile(
            str(self.path),
            fps=track.sample_rate,
            codec=encoder,
            bitrate=f"{self.bitrate // 1000}k",
            logger=None,
        )

    def close(self) -> None:
        self.closed = True


class Mp4Container:
    """MP4 output with one video track and an optional audio track."""

    def __init__(self):
        self.video: FFmpegVideoSource | None = None
        self.audio: MoviepyAudioSource | None = None
        self.started = False
        self.finalized = False
        self._work_dir: Path | None = None

    def add_video_track(self, config: VideoTrackConfig) -> FFmpegVideoSource:
        if self.started:
            raise RuntimeError("Tracks must be added before start()")
        self.video = FFmpegVideoSource(config)
        return self.video

    def add_audio_track(self, codec: str, bitrate: int = AUDIO_BITRATE) -> MoviepyAudioSource:
        if self.started:
            raise RuntimeError("Tracks must be added before start()")
        self.audio = MoviepyAudioSource(codec, bitrate)
        return self.audio

    def start(self) -> None:
        if self.video is None:
            raise RuntimeError("Output needs a video track")
        self._work_dir = Path(tempfile.mkdtemp(prefix="rampstitch-out-"))
        try:
            self.video.open(self._work_dir / "video.mp4")
        except Exception:
            self._remove_work_dir()
            raise
        if self.audio is not None:
            self.audio.directory = self._work_dir
        self.started = True

    def finalize(self) -> bytes:
        if not self.started:
            raise ContainerFinalizeFailed("Output was never started")
        if not self.video.closed:
            raise ContainerFinalizeFailed("Video track must be closed before finalizing")
        if self.video.frames_written == 0:
            raise ContainerFinalizeFailed("Failed to generate output buffer: no frames written")

        try:
            result_path = self.video.path
            if self.audio is not None and self.audio.path is not None:
                result_path = self._work_dir / "output.mp4"
                run_ffmpeg([
                    "-i", str(self.video.path),
                    "-i", str(self.audio.path),
                    "-map", "0:v:0", "-map", "1:a:0",
                    "-c", "copy",
                    "-movflags", "+faststart",
                    str(result_path),
                ])
            data = result_path.read_bytes()
        except (OSError, subprocess.CalledProcessError) as e:
            raise ContainerFinalizeFailed(f"Failed to generate output buffer: {e}") from e
        finally:
            self._remove_work_dir()

        self.finalized = True
        logger.debug(f"Finalized MP4: {len(data)} bytes, {self.video.duration:.2f}s")
        return data

    def cancel(self) -> None:
        try:
            if self.video is not None and not self.video.closed:
                self.video.abort()
        finally:
            self._remove_work_dir()

    def _remove_work_dir(self) -> None:
        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            self._work_dir = None
