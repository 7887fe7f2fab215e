"""Tests for the easing catalog and the cubic-bezier evaluator."""

import logging
import math

import pytest

from rampstitch import easing
from rampstitch.easing import (
    DEFAULT_CUSTOM_BEZIER,
    EASING,
    EASING_BEZIER_MAP,
    PRESET_BEZIERS,
    create_bezier_easing,
    get_all_easing_names,
    get_easing_bezier,
    get_easing_function,
    get_preset_bezier,
    resolve_easing,
)


class TestCatalog:
    def test_has_24_entries(self):
        assert len(EASING) == 24
        assert get_all_easing_names() == list(EASING)
        assert get_all_easing_names()[0] == "linear"

    @pytest.mark.parametrize("name", list(EASING))
    def test_endpoints(self, name):
        fn = EASING[name]
        assert abs(fn(0.0)) < 1e-5
        assert abs(fn(1.0) - 1.0) < 1e-5

    @pytest.mark.parametrize("name", list(EASING))
    def test_non_decreasing(self, name):
        fn = EASING[name]
        values = [fn(i / 100) for i in range(101)]
        for a, b in zip(values, values[1:]):
            assert b >= a - 1e-9

    @pytest.mark.parametrize("name", [n for n in EASING if "InOut" in n])
    def test_in_out_midpoint(self, name):
        assert abs(EASING[name](0.5) - 0.5) <= 0.01

    @pytest.mark.parametrize(
        "name", [n for n in EASING if n.startswith("easeIn") and "Out" not in n],
    )
    def test_ease_in_starts_slow(self, name):
        assert EASING[name](0.2) < 0.2

    @pytest.mark.parametrize("name", [n for n in EASING if n.startswith("easeOut")])
    def test_ease_out_starts_fast(self, name):
        assert EASING[name](0.2) > 0.2

    def test_hybrids_are_asymmetric(self):
        for name in ("easeInExpoOutCubic", "easeInQuartOutQuad"):
            fn = EASING[name]
            assert abs(fn(0.5) - 0.5) <= 0.01
            # Expo/quart entry is slower than the cubic/quad exit is fast.
            assert fn(0.25) < 1 - fn(0.75)

    def test_inputs_outside_unit_interval_are_clamped(self):
        fn = EASING["easeInOutCubic"]
        assert fn(-1.0) == 0.0
        assert fn(2.0) == 1.0


class TestLookup:
    def test_known_name(self):
        assert get_easing_function("easeInQuad") is EASING["easeInQuad"]

    def test_unknown_name_falls_back_to_linear(self):
        fn = get_easing_function("noSuchCurve")
        assert fn(0.3) == pytest.approx(0.3)

    def test_unknown_name_warns_once(self, caplog, monkeypatch):
        monkeypatch.setattr(easing, "_warned_unknown_names", set())
        with caplog.at_level(logging.WARNING, logger="rampstitch.easing"):
            get_easing_function("bogusCurve")
            get_easing_function("bogusCurve")
            get_easing_function("otherBogusCurve")
        warnings = [r for r in caplog.records if "Unknown easing" in r.getMessage()]
        assert len(warnings) == 2

    def test_resolve_name_callable_and_handles(self):
        assert resolve_easing("linear")(0.4) == pytest.approx(0.4)

        def custom(t):
            return t * t

        assert resolve_easing(custom) is custom
        fn = resolve_easing((0.0, 0.0, 1.0, 1.0))
        assert fn(0.25) == pytest.approx(0.25, abs=1e-4)

    @pytest.mark.parametrize("selector", [None, 3.5, (0.1, 0.2), {"x": 1}])
    def test_resolve_rejects_other_selectors(self, selector):
        with pytest.raises(TypeError):
            resolve_easing(selector)


class TestBezier:
    def test_endpoints_exact(self):
        fn = create_bezier_easing(0.42, 0.0, 0.58, 1.0)
        assert fn(0.0) == 0.0
        assert fn(1.0) == 1.0

    def test_ease_in_out_shape(self):
        fn = create_bezier_easing(0.42, 0.0, 0.58, 1.0)
        assert fn(0.5) == pytest.approx(0.5, abs=1e-3)
        assert fn(0.2) < 0.2
        assert fn(0.8) > 0.8

    def test_linear_handles(self):
        fn = create_bezier_easing(0.0, 0.0, 1.0, 1.0)
        for t in (0.1, 0.33, 0.5, 0.9):
            assert fn(t) == pytest.approx(t, abs=1e-4)

    def test_all_zero_controls_do_not_diverge(self):
        fn = create_bezier_easing(0.0, 0.0, 0.0, 0.0)
        values = [fn(i / 50) for i in range(51)]
        assert all(math.isfinite(v) and 0.0 <= v <= 1.0 for v in values)

    def test_controls_are_clamped(self):
        clamped = create_bezier_easing(1.5, -0.5, -2.0, 3.0)
        reference = create_bezier_easing(1.0, 0.0, 0.0, 1.0)
        for t in (0.1, 0.5, 0.9):
            assert clamped(t) == pytest.approx(reference(t), abs=1e-6)

    def test_out_of_range_input_clamped(self):
        fn = create_bezier_easing(0.25, 0.1, 0.25, 1.0)
        assert fn(-0.5) == 0.0
        assert fn(1.5) == 1.0

    def test_monotonic(self):
        fn = create_bezier_easing(0.85, 0.0, 0.15, 1.0)
        values = [fn(i / 200) for i in range(201)]
        for a, b in zip(values, values[1:]):
            assert b >= a - 1e-6


class TestBezierHandles:
    def test_preset_lookup(self):
        assert get_preset_bezier("easeInOutSine") == PRESET_BEZIERS["easeInOutSine"]
        assert get_preset_bezier("linear") == DEFAULT_CUSTOM_BEZIER
        assert get_preset_bezier(None) == DEFAULT_CUSTOM_BEZIER

    def test_every_catalog_name_has_handles(self):
        assert set(EASING_BEZIER_MAP) == set(EASING)
        assert get_easing_bezier("nope") == DEFAULT_CUSTOM_BEZIER

    def test_handles_approximate_catalog_curves(self):
        for name in ("easeInQuad", "easeOutCubic", "easeInOutSine"):
            approx = create_bezier_easing(*get_easing_bezier(name))
            for t in (0.25, 0.5, 0.75):
                assert approx(t) == pytest.approx(EASING[name](t), abs=0.05)
