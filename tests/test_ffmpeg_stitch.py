"""Tests for the ffmpeg command-line ramp and concatenation backend."""

import pytest
from moviepy import VideoFileClip

from rampstitch.ffmpeg_stitch import (
    SIMPLE_SETPTS,
    apply_speed_ramp,
    compute_easing_lut,
    concatenate_clips,
    probe_video_duration,
    probe_video_fps,
    probe_video_size,
    setpts_expression,
    stitch_files,
)


class TestEasingLut:
    def test_linear_is_identity(self):
        assert compute_easing_lut("linear", 5) == [0, 1, 2, 3, 4]

    def test_ease_in_quad(self):
        assert compute_easing_lut("easeInQuad", 5) == [0, 0, 1, 2, 4]

    def test_halves_round_up(self):
        assert compute_easing_lut("easeInQuad", 3) == [0, 1, 2]

    def test_degenerate_sizes(self):
        assert compute_easing_lut("easeInQuad", 0) == []
        assert compute_easing_lut("easeInQuad", 1) == [0]

    def test_unknown_name_falls_back_to_linear(self):
        assert compute_easing_lut("bogus", 4) == [0, 1, 2, 3]

    @pytest.mark.parametrize("name", ["easeInExpo", "easeOutCirc", "easeInOutQuint"])
    def test_endpoints_and_bounds(self, name):
        lut = compute_easing_lut(name, 30)
        assert lut[0] == 0
        assert lut[-1] == 29
        assert all(0 <= i <= 29 for i in lut)


class TestSetptsExpression:
    def test_substitutes_duration(self):
        expr = setpts_expression("easeInQuad", 2.5)
        assert expr == "sqrt(PTS*TB/2.500000)*2.500000/TB"

    def test_only_closed_form_easings(self):
        assert set(SIMPLE_SETPTS) == {"easeInQuad", "easeOutQuad", "easeInOutSine"}
        assert setpts_expression("easeInCubic", 1.0) is None


class TestProbing:
    def test_probes(self, source_video):
        assert probe_video_duration(source_video) == pytest.approx(2.0, abs=0.2)
        assert probe_video_fps(source_video) == pytest.approx(10)
        assert probe_video_size(source_video) == (320, 240)


class TestApplySpeedRamp:
    @pytest.mark.parametrize("easing_name", ["easeInQuad", "easeInCubic"])
    def test_ramps_clip(self, small_video, tmp_path, easing_name):
        out = tmp_path / f"{easing_name}.mp4"
        apply_speed_ramp(small_video, out, easing_name)
        with VideoFileClip(str(out)) as clip:
            assert tuple(clip.size) == (160, 120)
            assert clip.audio is None
            assert 0.5 < clip.duration < 1.5


class TestConcatenate:
    def test_empty_list_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            concatenate_clips([], tmp_path / "out.mp4")

    def test_single_clip_is_copied(self, small_video, tmp_path):
        out = tmp_path / "copy.mp4"
        concatenate_clips([small_video], out)
        assert out.read_bytes() == small_video.read_bytes()

    def test_joins_at_shared_resolution(self, source_video, small_video, tmp_path):
        out = tmp_path / "joined.mp4"
        concatenate_clips([source_video, small_video], out)
        with VideoFileClip(str(out)) as clip:
            assert tuple(clip.size) == (1280, 720)
            assert clip.duration == pytest.approx(3.0, abs=0.3)


class TestStitchFiles:
    def test_loops_and_ramps(self, small_video, tmp_path):
        out = tmp_path / "looped.mp4"
        stitch_files([small_video], out, easing_name="easeInOutSine", loop_count=2)
        with VideoFileClip(str(out)) as clip:
            assert clip.duration == pytest.approx(2.0, abs=0.4)

    def test_empty_list_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            stitch_files([], tmp_path / "out.mp4")
