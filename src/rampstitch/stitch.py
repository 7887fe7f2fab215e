"""Stitch job — concatenate clips into one continuous 60 fps timeline.

Every clip is normalized to start at 0 and placed right after the last
slot the previous clip wrote, so clips butt together with no gap and no
overlap. All clips share one encoder tier from the standard 1080p/720p
allow-list; smaller or differently shaped clips are letterboxed into it.

An optional prepared audio track (see rampstitch.audio) is trimmed to the
final video length and muxed in. If the host cannot encode any of the
preferred audio codecs the output is silent rather than failing.
"""

import logging

from .audio import AudioTrackData, trim_audio
from .container import Mp4Container
from .encoding import (
    AUDIO_BITRATE,
    AUDIO_CODEC_PREFERENCE,
    DEFAULT_BITRATE,
    FALLBACK_HEIGHT,
    FALLBACK_WIDTH,
    FFmpegCapabilityProvider,
    VideoTrackConfig,
    negotiate_audio_codec,
    negotiate_tier,
    standard_tiers,
)
from .errors import NoFramesEmitted, NoVideosProvided
from .media import open_video_input
from .pipeline import Job

logger = logging.getLogger(__name__)

# Rough per-clip frame count, only used to spread progress percentages.
ESTIMATED_CLIP_FRAMES = 300


class StitchJob(Job):
    kind = "Stitch"
    gap_durations = False

    def __init__(
        self,
        video_bytes_list,
        audio: AudioTrackData | None = None,
        on_progress=None,
        *,
        capabilities=None,
        opener=None,
        container_factory=None,
    ):
        clips = list(video_bytes_list)
        super().__init__(on_progress, total_items=len(clips))
        self.clips = clips
        self.audio = audio
        self.capabilities = capabilities or FFmpegCapabilityProvider()
        self.opener = opener or open_video_input
        self.container_factory = container_factory or Mp4Container
        self.rotation = 0
        self.skipped: list[int] = []

    def _determine_encode_parameters(self) -> tuple[int, int, int]:
        """Largest width/height/bitrate across clips. Each input is released after probing."""
        max_width = max_height = 0
        max_bitrate = 0.0
        rotation = None

        for index, data in enumerate(self.clips, start=1):
            try:
                video_input = self.open_input(self.opener, data)
            except Exception as e:
                logger.warning(f"Failed to probe metadata for video {index}: {e}")
                continue
            try:
                if not video_input.video_found:
                    continue
                probe = video_input.probe()
            except Exception as e:
                logger.warning(f"Failed to probe metadata for video {index}: {e}")
                continue
            finally:
                self.release_input(video_input)

            if probe.width and probe.height:
                max_width = max(max_width, probe.width)
                max_height = max(max_height, probe.height)
            if probe.average_bitrate:
                max_bitrate = max(max_bitrate, probe.average_bitrate)
            if rotation is None:
                rotation = probe.rotation
            elif probe.rotation != rotation:
                logger.warning(
                    f"Video {index} rotation {probe.rotation} differs from "
                    f"{rotation}; keeping {rotation}"
                )

        self.rotation = rotation or 0
        if not max_width or not max_height:
            logger.warning(
                f"No usable clip dimensions, using {FALLBACK_WIDTH}x{FALLBACK_HEIGHT}"
            )
            max_width, max_height = FALLBACK_WIDTH, FALLBACK_HEIGHT
        bitrate = int(min(max_bitrate, DEFAULT_BITRATE)) if max_bitrate else DEFAULT_BITRATE
        return max_width, max_height, bitrate

    def _execute(self) -> bytes:
        if not self.clips:
            raise NoVideosProvided("No videos to stitch")
        progress = self.progress
        total = len(self.clips)

        progress.processing("Analyzing video metadata...", 5)
        width, height, source_bitrate = self._determine_encode_parameters()
        # Stitched output always encodes at the default bitrate.
        tier = negotiate_tier(
            standard_tiers(width, height, DEFAULT_BITRATE), self.capabilities,
        )
        config = VideoTrackConfig(tier, framerate=self.grid.fps)
        logger.info(
            f"Stitch encoder: {tier.label} {tier.width}x{tier.height} @ "
            f"{tier.bitrate} (source max {width}x{height} @ {source_bitrate})"
        )

        container = self.container_factory()
        self.video_source = container.add_video_track(config)

        if self.audio is not None:
            progress.processing("Detecting supported audio codec...", 8)
            codec = negotiate_audio_codec(
                self.capabilities, self.audio.channels, self.audio.sample_rate,
                AUDIO_CODEC_PREFERENCE, AUDIO_BITRATE,
            )
            if codec is None:
                logger.warning("No supported audio codec found, continuing without audio")
            else:
                progress.processing(f"Adding audio track ({codec})...", 10)
                self.audio_source = container.add_audio_track(codec, AUDIO_BITRATE)

        progress.processing(
            f"Creating output ({tier.label}: {tier.width}x{tier.height})...", 10,
        )
        self.start_output(container)

        written = 0
        for index, data in enumerate(self.clips):
            written += self._append_clip(index, data, total)
        if written == 0:
            raise NoFramesEmitted("No frames were emitted from source videos")

        if self.audio_source is not None:
            progress.processing("Encoding audio track...", 92)
            self.audio_source.add(trim_audio(self.audio, self.written_duration))
            self.close_audio_source()

        self.close_video_source()
        progress.processing("Finalizing stitched video...", 97)
        data = self.finalize_output()

        progress.complete(
            f"Successfully stitched {total} videos into "
            f"{len(data) / 1024 / 1024:.2f}MB file"
        )
        return data

    def _append_clip(self, index: int, data: bytes, total: int) -> int:
        number = index + 1
        progress = self.progress
        progress.processing(
            f"Processing video {number}/{total}...", 5 + index / total * 90, current_item=number,
        )

        video_input = self.open_input(self.opener, data)
        try:
            if not video_input.video_found:
                logger.warning(f"No video tracks in video {number}, skipping")
                self.skipped.append(number)
                return 0

            base_slot = self.cursor + 1
            first = None

            def place(sample):
                nonlocal first
                if first is None:
                    first = sample.timestamp
                return base_slot + self.grid.slot(sample.timestamp - first)

            def report(count):
                if count % 10 == 0:
                    share = min(1.0, count / ESTIMATED_CLIP_FRAMES)
                    progress.processing(
                        f"Processing video {number}/{total}: {count} frames...",
                        5 + (index + share) / total * 90,
                        current_item=number,
                    )

            count = self.pump(video_input.samples(0, None), place, on_write=report)
            logger.debug(f"Video {number}: wrote {count} frames, cursor at slot {self.cursor}")
            return count
        finally:
            self.release_input(video_input)


def stitch_videos(video_bytes_list, audio: AudioTrackData | None = None, on_progress=None, **kwargs) -> bytes:
    """Concatenate `video_bytes_list` in order and return MP4 bytes.

    Raises:
        NoVideosProvided: Empty clip list (before anything is opened).
        UnsupportedProfile: Neither 1080p nor 720p can be encoded.
        NoFramesEmitted: No clip produced a single frame.
    """
    return StitchJob(video_bytes_list, audio, on_progress, **kwargs).run()
