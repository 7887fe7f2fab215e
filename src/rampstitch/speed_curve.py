"""Time-warp mapping — remap a clip's timeline through an easing curve.

An easing f maps output progress to source progress: at output progress p
the viewer sees the source at f(p). Retiming therefore runs the curve
backwards: a source frame at progress s lands at output progress p where
f(p) = s. `TimeWarp` holds one such mapping; the module-level functions
are thin wrappers used for display, validation, and tests.

Inversion needs a non-decreasing curve. A custom curve that fails the
monotonicity probe is mapped directly (output = f(s)) instead, with one
warning per distinct function.
"""

import logging
import math
import weakref
from dataclasses import dataclass

from .easing import resolve_easing

logger = logging.getLogger(__name__)

DEFAULT_INPUT_DURATION = 5.0
DEFAULT_OUTPUT_DURATION = 1.5
DEFAULT_EASING = "easeInOutCubic"

INVERSE_ITERATIONS = 32
MONOTONIC_PROBES = 64
# Reported for segments that collapse to zero output length.
MAX_SPEED_MULTIPLIER = 1000.0

_warned_non_monotonic = weakref.WeakSet()
_warned_non_monotonic_ids: set[int] = set()


def inverse_easing(fn, source_progress: float, iterations: int = INVERSE_ITERATIONS) -> float:
    """Find p in [0, 1] with fn(p) ≈ source_progress by binary search."""
    if source_progress <= 0:
        return 0.0
    if source_progress >= 1:
        return 1.0
    lo, hi = 0.0, 1.0
    for _ in range(iterations):
        mid = (lo + hi) / 2
        val = fn(mid)
        if abs(val - source_progress) < 1e-6:
            return mid
        if val < source_progress:
            lo = mid
        else:
            hi = mid
    return (lo + hi) / 2


def is_monotonic(fn, probes: int = MONOTONIC_PROBES) -> bool:
    """Probe fn on an even grid; False on any decrease or non-finite value."""
    prev = fn(0.0)
    if not math.isfinite(prev):
        return False
    for i in range(1, probes + 1):
        val = fn(i / probes)
        if not math.isfinite(val) or val < prev - 1e-9:
            return False
        prev = val
    return True


def _warn_non_monotonic_once(fn) -> None:
    try:
        if fn in _warned_non_monotonic:
            return
        _warned_non_monotonic.add(fn)
    except TypeError:
        # Builtins can't be weak-referenced; key those by identity.
        if id(fn) in _warned_non_monotonic_ids:
            return
        _warned_non_monotonic_ids.add(id(fn))
    name = getattr(fn, "__name__", repr(fn))
    logger.warning(
        f"Easing function {name} is not monotonic; using direct mapping "
        f"instead of the inverse curve"
    )


class TimeWarp:
    """Maps instants of an input timeline onto an output timeline."""

    def __init__(self, easing, input_duration: float, output_duration: float):
        self.fn = resolve_easing(easing)
        self.input_duration = float(input_duration)
        self.output_duration = float(output_duration)
        self.inverted = is_monotonic(self.fn)
        if not self.inverted:
            _warn_non_monotonic_once(self.fn)

    def output_progress(self, source_progress: float) -> float:
        source_progress = max(0.0, min(1.0, source_progress))
        if self.inverted:
            return inverse_easing(self.fn, source_progress)
        return max(0.0, min(1.0, self.fn(source_progress)))

    def warp(self, t: float) -> float:
        if self.input_duration <= 0:
            return 0.0
        t = max(0.0, min(self.input_duration, t))
        if t == 0.0:
            return 0.0
        if t == self.input_duration:
            return self.output_duration
        return self.output_duration * self.output_progress(t / self.input_duration)


def warp_time(
    t: float,
    input_duration: float = DEFAULT_INPUT_DURATION,
    output_duration: float = DEFAULT_OUTPUT_DURATION,
    easing=DEFAULT_EASING,
) -> float:
    """Map input time `t` to output time. Out-of-range `t` is clamped."""
    return TimeWarp(easing, input_duration, output_duration).warp(t)


def calculate_warped_duration(
    segment_start: float,
    segment_length: float,
    input_duration: float = DEFAULT_INPUT_DURATION,
    output_duration: float = DEFAULT_OUTPUT_DURATION,
    easing=DEFAULT_EASING,
) -> float:
    """Output-timeline length of the input segment [start, start + length]."""
    warp = TimeWarp(easing, input_duration, output_duration)
    return max(0.0, warp.warp(segment_start + segment_length) - warp.warp(segment_start))


def validate_warp_function(
    easing=DEFAULT_EASING,
    input_duration: float = DEFAULT_INPUT_DURATION,
    output_duration: float = DEFAULT_OUTPUT_DURATION,
) -> tuple[bool, list[str]]:
    """Sanity-check a curve's boundaries.

    Returns (valid, errors); errors is empty when valid. Never raises for a
    bad selector, it is reported as an error entry instead.
    """
    errors = []
    try:
        fn = resolve_easing(easing)
    except TypeError as e:
        return False, [str(e)]

    if input_duration <= 0:
        errors.append(f"Input duration must be > 0, got {input_duration}")
    if output_duration <= 0:
        errors.append(f"Output duration must be > 0, got {output_duration}")
    if errors:
        return False, errors

    start = output_duration * fn(0.0)
    end = output_duration * fn(1.0)
    if not math.isfinite(start) or abs(start) > 1e-3:
        errors.append(f"Start point should map to 0, got {start}")
    if not math.isfinite(end) or abs(end - output_duration) > 1e-3:
        errors.append(f"End point should map to {output_duration}, got {end}")

    for i in range(1, 10):
        if not math.isfinite(fn(i / 10)):
            errors.append(f"Curve is not finite at t={i / 10:.1f}")
            break

    return not errors, errors


@dataclass
class WarpAnalysis:
    speed_multipliers: list[float]
    min_speed: float
    max_speed: float
    avg_speed: float


def analyze_warp_curve(
    easing=DEFAULT_EASING,
    input_duration: float = DEFAULT_INPUT_DURATION,
    output_duration: float = DEFAULT_OUTPUT_DURATION,
    sample_count: int = 100,
) -> WarpAnalysis:
    """Per-segment playback speed of the warp, for display.

    The input timeline is split into `sample_count` equal segments. Each
    multiplier compares the segment's speed against the uniform speed
    output_duration / input_duration, so a linear curve gives 1.0 everywhere.
    """
    if sample_count <= 0 or input_duration <= 0 or output_duration <= 0:
        return WarpAnalysis([], 0.0, 0.0, 0.0)

    warp = TimeWarp(easing, input_duration, output_duration)
    uniform = output_duration / input_duration
    step = input_duration / sample_count

    multipliers = []
    prev_out = warp.warp(0.0)
    for i in range(sample_count):
        out = warp.warp((i + 1) * step)
        out_seg = out - prev_out
        prev_out = out
        if out_seg > 1e-12:
            multipliers.append(min(MAX_SPEED_MULTIPLIER, (step / out_seg) * uniform))
        else:
            multipliers.append(MAX_SPEED_MULTIPLIER)

    return WarpAnalysis(
        speed_multipliers=multipliers,
        min_speed=min(multipliers),
        max_speed=max(multipliers),
        avg_speed=sum(multipliers) / len(multipliers),
    )
