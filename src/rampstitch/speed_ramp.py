"""Speed-curve job — redistribute a clip's playback speed along an easing.

Source-driven: every decoded frame is read once and its timestamp is moved.
Source progress s = t / input_duration is inverted through the easing to
output progress p (f(p) = s), scaled to the output duration, and snapped
to the 60 fps output grid. In slow sections frames spread apart and each
stays on screen longer. In fast sections several frames land on the same
slot and all but the first are dropped.

An output duration of 0 (or below) keeps the input duration: the curve
reshapes timing without compressing the clip.
"""

import logging

from .encoding import (
    DEFAULT_BITRATE,
    FALLBACK_HEIGHT,
    FALLBACK_WIDTH,
    FFmpegCapabilityProvider,
    VideoTrackConfig,
    negotiate_tier,
    scaled_tiers,
)
from .container import Mp4Container
from .errors import NoFramesEmitted, NoVideoTrack
from .media import open_video_input, positive
from .pipeline import Job
from .speed_curve import TimeWarp

logger = logging.getLogger(__name__)

DEFAULT_INPUT_DURATION = 5.0
DEFAULT_OUTPUT_DURATION = 0.0
DEFAULT_EASING = "easeInOutSine"
TARGET_FRAME_RATE = 30


class SpeedCurveJob(Job):
    kind = "Speed curve"

    def __init__(
        self,
        video_bytes: bytes,
        input_duration: float = DEFAULT_INPUT_DURATION,
        output_duration: float = DEFAULT_OUTPUT_DURATION,
        on_progress=None,
        easing=DEFAULT_EASING,
        bitrate: int = DEFAULT_BITRATE,
        *,
        capabilities=None,
        opener=None,
        container_factory=None,
    ):
        super().__init__(on_progress)
        self.video_bytes = video_bytes
        self.input_duration = input_duration
        self.output_duration = output_duration
        self.easing = easing
        self.bitrate = bitrate
        self.capabilities = capabilities or FFmpegCapabilityProvider()
        self.opener = opener or open_video_input
        self.container_factory = container_factory or Mp4Container

    def _execute(self) -> bytes:
        progress = self.progress
        progress.processing("Creating input from video bytes...", 5)
        video_input = self.open_input(self.opener, self.video_bytes)
        if not video_input.video_found:
            raise NoVideoTrack("No video tracks found in input")

        progress.processing("Analyzing video metadata...", 10)
        probe = video_input.probe()

        input_duration = (
            probe.track_duration
            or probe.container_duration
            or positive(self.input_duration)
        )
        if input_duration is None:
            raise NoFramesEmitted("Could not determine the input duration")
        output_duration = self.output_duration if self.output_duration > 0 else input_duration
        frame_rate = probe.frame_rate or TARGET_FRAME_RATE

        bitrate = positive(self.bitrate) or DEFAULT_BITRATE
        if probe.average_bitrate:
            bitrate = max(bitrate, probe.average_bitrate)
        bitrate = max(1, int(bitrate))

        width, height = probe.width, probe.height
        if not width or not height:
            logger.warning(
                f"Failed to get video dimensions, using {FALLBACK_WIDTH}x{FALLBACK_HEIGHT}"
            )
            width, height = FALLBACK_WIDTH, FALLBACK_HEIGHT

        progress.processing(
            f"Metadata analyzed ({input_duration:.2f}s @ {frame_rate:.1f}fps "
            f"@ {bitrate / 1_000_000:.1f}Mbps)",
            18,
        )

        progress.processing("Configuring encoder...", 20)
        tier = negotiate_tier(scaled_tiers(width, height, bitrate), self.capabilities)
        config = VideoTrackConfig(tier, framerate=self.grid.fps)
        progress.processing(
            f"Encoder selected: {tier.label} ({tier.width}x{tier.height} @ {config.framerate}fps)",
            22,
        )

        container = self.container_factory()
        self.video_source = container.add_video_track(config)
        progress.processing("Starting output encoding...", 25)
        self.start_output(container)

        warp = TimeWarp(self.easing, input_duration, output_duration)
        estimated_frames = max(1, round(input_duration * frame_rate))
        progress.processing(f"Processing ~{estimated_frames} source frames...", 30)

        def report(written):
            if written % 10 == 0:
                share = min(1.0, written / estimated_frames)
                progress.processing(f"Encoding: {written} frames...", 30 + share * 60)

        emitted = self.pump(
            video_input.samples(0, input_duration),
            lambda sample: self.grid.slot(warp.warp(sample.timestamp)),
            on_write=report,
        )
        if emitted == 0:
            raise NoFramesEmitted("No frames were emitted from source video")
        logger.debug(f"Emitted {emitted} frames, {self.written_duration:.2f}s of output")

        progress.processing("Finalizing output...", 95)
        self.close_video_source()
        data = self.finalize_output()

        progress.complete(f"Successfully created {len(data) / 1024 / 1024:.2f}MB video")
        return data


def apply_speed_curve(
    video_bytes: bytes,
    input_duration: float = DEFAULT_INPUT_DURATION,
    output_duration: float = DEFAULT_OUTPUT_DURATION,
    on_progress=None,
    easing=DEFAULT_EASING,
    bitrate: int = DEFAULT_BITRATE,
    **kwargs,
) -> bytes:
    """Retime one clip along `easing` and return the encoded MP4 bytes.

    Args:
        video_bytes: Source clip (any container ffmpeg can read).
        input_duration: Nominal source duration, used only when probing fails.
        output_duration: Target duration; <= 0 keeps the source duration.
        on_progress: Optional observer receiving ProgressEvent objects.
        easing: Catalog name, callable, or (x1, y1, x2, y2) bezier handles.
        bitrate: Requested bitrate; the probed source bitrate wins if higher.
        **kwargs: capabilities / opener / container_factory overrides.

    Raises:
        NoVideoTrack, UnsupportedProfile, NoFramesEmitted,
        ContainerFinalizeFailed, or the underlying decode/encode error.
        Every handle is released before the error propagates.
    """
    job = SpeedCurveJob(
        video_bytes, input_duration, output_duration, on_progress, easing, bitrate,
        **kwargs,
    )
    return job.run()
