"""Tests for encoder-tier lists and negotiation."""

import pytest

from conftest import ScriptedCapabilities
from rampstitch.encoding import (
    AVC_LEVEL_4_0,
    AVC_LEVEL_5_1,
    UNSUPPORTED_MESSAGE,
    EncodeTier,
    FFmpegCapabilityProvider,
    VideoTrackConfig,
    avc_level,
    negotiate_audio_codec,
    negotiate_tier,
    scaled_tiers,
    standard_tiers,
)
from rampstitch.errors import UnsupportedProfile


def _sizes(tiers):
    return [(t.width, t.height) for t in tiers]


class TestScaledTiers:
    def test_4k_landscape(self):
        tiers = scaled_tiers(3840, 2160, 20_000_000)
        assert _sizes(tiers) == [(3840, 2160), (1920, 1080), (1280, 720)]
        assert [t.label for t in tiers] == ["Original", "1080p", "720p"]
        assert [t.codec_profile for t in tiers] == [AVC_LEVEL_5_1, AVC_LEVEL_4_0, AVC_LEVEL_4_0]
        assert all(t.bitrate == 20_000_000 for t in tiers)

    def test_portrait_keeps_aspect_ratio(self):
        tiers = scaled_tiers(1080, 1920, 8_000_000)
        assert _sizes(tiers) == [(1080, 1920), (608, 1080), (404, 720)]

    def test_small_source_is_not_upscaled(self):
        tiers = scaled_tiers(640, 480, 1_000_000)
        assert _sizes(tiers) == [(640, 480)] * 3

    def test_odd_dimensions_rounded_to_even(self):
        tiers = scaled_tiers(641, 481, 1_000_000)
        assert all(t.width % 2 == 0 and t.height % 2 == 0 for t in tiers)


class TestStandardTiers:
    def test_large_source_starts_at_1080p(self):
        assert _sizes(standard_tiers(2560, 1440, 8_000_000)) == [(1920, 1080), (1280, 720)]

    def test_source_that_fits_720p_starts_at_720p(self):
        assert _sizes(standard_tiers(1280, 720, 8_000_000)) == [(1280, 720)]
        assert _sizes(standard_tiers(320, 240, 8_000_000)) == [(1280, 720)]

    def test_all_level_4_0(self):
        assert all(t.codec_profile == AVC_LEVEL_4_0 for t in standard_tiers(1920, 1080, 1))


class TestNegotiateTier:
    def test_first_supported_wins_and_later_tiers_are_not_queried(self):
        caps = ScriptedCapabilities()
        tier = negotiate_tier(scaled_tiers(3840, 2160, 8_000_000), caps)
        assert tier.label == "Original"
        assert len(caps.queries) == 1

    def test_falls_through_to_1080p(self):
        caps = ScriptedCapabilities(supports=lambda w, h, b, p: w <= 1920 and h <= 1080)
        tier = negotiate_tier(scaled_tiers(3840, 2160, 8_000_000), caps)
        assert tier.label == "1080p"
        assert len(caps.queries) == 2

    def test_exhaustion_raises(self):
        caps = ScriptedCapabilities(supports=lambda w, h, b, p: False)
        with pytest.raises(UnsupportedProfile) as exc_info:
            negotiate_tier(scaled_tiers(3840, 2160, 8_000_000), caps)
        assert str(exc_info.value) == UNSUPPORTED_MESSAGE
        assert "reducing resolution/bitrate" in str(exc_info.value)
        assert len(caps.queries) == 3

    def test_profile_passed_through(self):
        caps = ScriptedCapabilities()
        negotiate_tier(standard_tiers(1920, 1080, 8_000_000), caps)
        assert caps.queries[0] == (1920, 1080, 8_000_000, AVC_LEVEL_4_0)

    def test_audio_codec(self):
        caps = ScriptedCapabilities(audio_codec="mp3")
        assert negotiate_audio_codec(caps, 2, 44100) == "mp3"
        assert caps.audio_queries[0][0] == ("aac", "mp3")
        assert negotiate_audio_codec(ScriptedCapabilities(audio_codec=None), 2, 44100) is None


class TestFFmpegCapabilityProvider:
    def _provider(self, encoders):
        provider = FFmpegCapabilityProvider()
        provider._encoders = set(encoders)
        return provider

    def test_bundled_ffmpeg_lists_libx264(self):
        assert "libx264" in FFmpegCapabilityProvider().encoders()

    def test_level_limits(self):
        provider = self._provider({"libx264"})
        assert provider.can_encode("avc", 1920, 1080, 8_000_000, AVC_LEVEL_4_0)
        assert not provider.can_encode("avc", 3840, 2160, 8_000_000, AVC_LEVEL_4_0)
        assert provider.can_encode("avc", 3840, 2160, 8_000_000, AVC_LEVEL_5_1)
        assert not provider.can_encode("avc", 1920, 1080, 50_000_000, AVC_LEVEL_4_0)

    def test_rejects_odd_sizes_and_unknown_profiles(self):
        provider = self._provider({"libx264"})
        assert not provider.can_encode("avc", 1921, 1080, 8_000_000, AVC_LEVEL_4_0)
        assert not provider.can_encode("avc", 1920, 1080, 8_000_000, "avc1.42001f")
        assert not provider.can_encode("hevc", 1920, 1080, 8_000_000)

    def test_missing_encoder(self):
        provider = self._provider({"aac"})
        assert not provider.can_encode("avc", 1280, 720, 8_000_000, AVC_LEVEL_4_0)

    def test_audio_preference_order(self):
        assert self._provider({"aac", "libmp3lame"}).best_audio_codec(("aac", "mp3"), 2, 44100, 128_000) == "aac"
        assert self._provider({"libmp3lame"}).best_audio_codec(("aac", "mp3"), 2, 44100, 128_000) == "mp3"
        assert self._provider(set()).best_audio_codec(("aac", "mp3"), 2, 44100, 128_000) is None
        assert self._provider({"aac"}).best_audio_codec(("aac",), 0, 44100, 128_000) is None


class TestVideoTrackConfig:
    def test_x264_params(self):
        config = VideoTrackConfig(EncodeTier(1280, 720, 8_000_000, AVC_LEVEL_4_0, "720p"))
        assert config.size == (1280, 720)
        assert config.x264_params() == ["-profile:v", "high", "-g", "60", "-level:v", "4.0"]

    def test_avc_level(self):
        assert avc_level(AVC_LEVEL_4_0) == "4.0"
        assert avc_level(AVC_LEVEL_5_1) == "5.1"
        assert avc_level(None) is None
