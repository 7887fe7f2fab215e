"""Encoder-tier negotiation — pick a (resolution, bitrate, profile) the host can encode.

Tiers are tried top to bottom against a CapabilityProvider; the first one
reported as supported is used for the whole job and later tiers are never
queried. Two tier lists exist:

  - scaled_tiers: source resolution, then 1080p- and 720p-capped versions
    that keep the source aspect ratio (single-clip retime).
  - standard_tiers: a fixed 1080p/720p allow-list (stitching). Hardware
    encoders reject odd sizes like 1620x1080 even when they claim support,
    so stitched output only ever uses these two sizes.
"""

import logging
import math
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from .common import FFMPEG, ensure_even, round_half_up
from .errors import UnsupportedProfile

logger = logging.getLogger(__name__)

# H.264 High profile, level 4.0 (up to 1080p) and level 5.1 (above 1080p).
AVC_LEVEL_4_0 = "avc1.640028"
AVC_LEVEL_5_1 = "avc1.640033"

DEFAULT_BITRATE = 8_000_000
MAX_OUTPUT_FPS = 60
DEFAULT_KEYFRAME_INTERVAL = 1.0
FALLBACK_WIDTH = 1920
FALLBACK_HEIGHT = 1080

AUDIO_BITRATE = 128_000
AUDIO_CODEC_PREFERENCE = ("aac", "mp3")

_AVC_LEVELS = {AVC_LEVEL_4_0: "4.0", AVC_LEVEL_5_1: "5.1"}

# Level -> (max frame size in 16x16 macroblocks, max High-profile bitrate).
_LEVEL_LIMITS = {
    "4.0": (8192, 25_000_000),
    "5.1": (36864, 300_000_000),
}

UNSUPPORTED_MESSAGE = (
    "Device encoder does not support the required H.264 profiles for this "
    "video. Try reducing resolution/bitrate, or use different software."
)


def avc_level(codec_profile: str | None) -> str | None:
    """Map an avc1 codec string to its H.264 level, e.g. '4.0'."""
    return _AVC_LEVELS.get(codec_profile or "")


@dataclass(frozen=True)
class EncodeTier:
    width: int
    height: int
    bitrate: int
    codec_profile: str
    label: str


@dataclass(frozen=True)
class VideoTrackConfig:
    """Everything the encoder needs for the single video track of a job."""
    tier: EncodeTier
    framerate: int = MAX_OUTPUT_FPS
    keyframe_interval: float = DEFAULT_KEYFRAME_INTERVAL

    @property
    def size(self) -> tuple[int, int]:
        return self.tier.width, self.tier.height

    def x264_params(self) -> list[str]:
        gop = max(1, int(round(self.framerate * self.keyframe_interval)))
        params = ["-profile:v", "high", "-g", str(gop)]
        level = avc_level(self.tier.codec_profile)
        if level:
            params += ["-level:v", level]
        return params


class CapabilityProvider(Protocol):
    def can_encode(
        self, codec_family: str, width: int, height: int, bitrate: int,
        profile: str | None = None,
    ) -> bool: ...

    def best_audio_codec(
        self, preferences: Sequence[str], channels: int, sample_rate: int,
        bitrate: int,
    ) -> str | None: ...


class FFmpegCapabilityProvider:
    """Answers capability queries from the bundled ffmpeg's encoder list.

    Video support additionally requires the frame size and bitrate to fit
    the H.264 level named by the profile string.
    """

    VIDEO_ENCODERS = {"avc": "libx264"}
    AUDIO_ENCODERS = {"aac": "aac", "mp3": "libmp3lame"}

    def __init__(self, ffmpeg: str = FFMPEG):
        self.ffmpeg = ffmpeg
        self._encoders: set[str] | None = None

    def encoders(self) -> set[str]:
        if self._encoders is None:
            self._encoders = self._list_encoders()
        return self._encoders

    def _list_encoders(self) -> set[str]:
        try:
            result = subprocess.run(
                [self.ffmpeg, "-hide_banner", "-encoders"],
                capture_output=True, text=True, check=True, timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not list ffmpeg encoders: {e}")
            return set()

        names = set()
        in_table = False
        for line in result.stdout.splitlines():
            if line.strip().startswith("------"):
                in_table = True
                continue
            parts = line.split()
            if in_table and len(parts) >= 2:
                names.add(parts[1])
        return names

    def can_encode(self, codec_family, width, height, bitrate, profile=None):
        encoder = self.VIDEO_ENCODERS.get(codec_family)
        if encoder is None or encoder not in self.encoders():
            return False
        if width <= 0 or height <= 0 or width % 2 or height % 2 or bitrate <= 0:
            return False
        if profile is None:
            return True
        level = avc_level(profile)
        if level is None:
            return False
        max_mbs, max_bitrate = _LEVEL_LIMITS[level]
        mbs = math.ceil(width / 16) * math.ceil(height / 16)
        return mbs <= max_mbs and bitrate <= max_bitrate

    def best_audio_codec(self, preferences, channels, sample_rate, bitrate):
        if channels <= 0 or sample_rate <= 0:
            return None
        available = self.encoders()
        for codec in preferences:
            if self.AUDIO_ENCODERS.get(codec) in available:
                return codec
        return None


# ── Tier lists ─────────────────────────────────────────────────────

def scaled_tiers(width: int, height: int, bitrate: int) -> list[EncodeTier]:
    """Original -> 1080p-capped -> 720p-capped, aspect ratio preserved."""
    candidates = [
        (width, height, AVC_LEVEL_5_1, "Original"),
        (min(width, 1920), min(height, 1080), AVC_LEVEL_4_0, "1080p"),
        (min(width, 1280), min(height, 720), AVC_LEVEL_4_0, "720p"),
    ]
    tiers = []
    for cap_w, cap_h, profile, label in candidates:
        target_w, target_h = cap_w, cap_h
        if target_w < width or target_h < height:
            scale = min(cap_w / width, cap_h / height)
            target_w = round_half_up(width * scale)
            target_h = round_half_up(height * scale)
        tiers.append(EncodeTier(
            width=ensure_even(target_w),
            height=ensure_even(target_h),
            bitrate=bitrate,
            codec_profile=profile,
            label=label,
        ))
    return tiers


def standard_tiers(width: int, height: int, bitrate: int) -> list[EncodeTier]:
    """1080p then 720p; sources that fit in 720p start at 720p."""
    tiers = [
        EncodeTier(1920, 1080, bitrate, AVC_LEVEL_4_0, "1080p"),
        EncodeTier(1280, 720, bitrate, AVC_LEVEL_4_0, "720p"),
    ]
    if width <= 1280 and height <= 720:
        return tiers[1:]
    return tiers


# ── Negotiation ────────────────────────────────────────────────────

def negotiate_tier(
    tiers: Sequence[EncodeTier],
    capabilities: CapabilityProvider,
    codec_family: str = "avc",
) -> EncodeTier:
    """Return the first tier the host can encode.

    Raises:
        UnsupportedProfile: No tier is supported.
    """
    for tier in tiers:
        supported = capabilities.can_encode(
            codec_family, tier.width, tier.height, tier.bitrate, tier.codec_profile,
        )
        logger.debug(
            f"Tier {tier.label} {tier.width}x{tier.height} "
            f"@ {tier.bitrate} ({tier.codec_profile}): "
            f"{'supported' if supported else 'rejected'}"
        )
        if supported:
            return tier
    raise UnsupportedProfile(UNSUPPORTED_MESSAGE)


def negotiate_audio_codec(
    capabilities: CapabilityProvider,
    channels: int,
    sample_rate: int,
    preferences: Sequence[str] = AUDIO_CODEC_PREFERENCE,
    bitrate: int = AUDIO_BITRATE,
) -> str | None:
    """First encodable audio codec from `preferences`, or None."""
    return capabilities.best_audio_codec(preferences, channels, sample_rate, bitrate)
