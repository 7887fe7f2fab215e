"""Easing library — normalized progress curves for speed ramps.

Every catalog entry maps [0, 1] onto [0, 1] with f(0) = 0, f(1) = 1 and is
non-decreasing, so it can be inverted when retiming frames. Inputs are
clamped before evaluation.

Catalog names keep the camelCase identifiers used by manifests and the
curve editor ("easeInOutSine", "easeInExpoOutCubic", ...).
"""

import logging
import math
from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

EasingFunction = Callable[[float], float]


def _clamp01(t: float) -> float:
    return max(0.0, min(1.0, t))


def _clamped(fn: EasingFunction) -> EasingFunction:
    """Clamp the input of an easing to [0, 1] before evaluating it."""
    def wrapper(t: float) -> float:
        return fn(_clamp01(t))
    wrapper.__name__ = fn.__name__
    wrapper.__doc__ = fn.__doc__
    return wrapper


# ── Closed-form easings ────────────────────────────────────────────
# Formulas follow the conventional easings.net definitions.

@_clamped
def linear(t):
    return t


@_clamped
def ease_in_quad(t):
    return t * t


@_clamped
def ease_out_quad(t):
    return 1 - (1 - t) * (1 - t)


@_clamped
def ease_in_out_quad(t):
    return 2 * t * t if t < 0.5 else 1 - (-2 * t + 2) ** 2 / 2


@_clamped
def ease_in_cubic(t):
    return t ** 3


@_clamped
def ease_out_cubic(t):
    return 1 - (1 - t) ** 3


@_clamped
def ease_in_out_cubic(t):
    return 4 * t ** 3 if t < 0.5 else 1 - (-2 * t + 2) ** 3 / 2


@_clamped
def ease_in_quart(t):
    return t ** 4


@_clamped
def ease_out_quart(t):
    return 1 - (1 - t) ** 4


@_clamped
def ease_in_out_quart(t):
    return 8 * t ** 4 if t < 0.5 else 1 - (-2 * t + 2) ** 4 / 2


@_clamped
def ease_in_quint(t):
    return t ** 5


@_clamped
def ease_out_quint(t):
    return 1 - (1 - t) ** 5


@_clamped
def ease_in_out_quint(t):
    return 16 * t ** 5 if t < 0.5 else 1 - (-2 * t + 2) ** 5 / 2


@_clamped
def ease_in_sine(t):
    return 1 - math.cos(t * math.pi / 2)


@_clamped
def ease_out_sine(t):
    return math.sin(t * math.pi / 2)


@_clamped
def ease_in_out_sine(t):
    return -(math.cos(math.pi * t) - 1) / 2


@_clamped
def ease_in_expo(t):
    return 0.0 if t == 0 else 2 ** (10 * t - 10)


@_clamped
def ease_out_expo(t):
    return 1.0 if t == 1 else 1 - 2 ** (-10 * t)


@_clamped
def ease_in_out_expo(t):
    if t == 0:
        return 0.0
    if t == 1:
        return 1.0
    if t < 0.5:
        return 2 ** (20 * t - 10) / 2
    return (2 - 2 ** (-20 * t + 10)) / 2


@_clamped
def ease_in_circ(t):
    return 1 - math.sqrt(1 - t * t)


@_clamped
def ease_out_circ(t):
    return math.sqrt(1 - (t - 1) ** 2)


@_clamped
def ease_in_out_circ(t):
    if t < 0.5:
        return (1 - math.sqrt(1 - (2 * t) ** 2)) / 2
    return (math.sqrt(1 - (-2 * t + 2) ** 2) + 1) / 2


# ── Hybrid compositions ────────────────────────────────────────────
# First half eases in with one family, second half eases out with another.
# Both halves meet at (0.5, 0.5), so they read as InOut curves.

@_clamped
def ease_in_expo_out_cubic(t):
    if t < 0.5:
        return ease_in_expo(2 * t) / 2
    return 0.5 + ease_out_cubic(2 * t - 1) / 2


@_clamped
def ease_in_quart_out_quad(t):
    if t < 0.5:
        return ease_in_quart(2 * t) / 2
    return 0.5 + ease_out_quad(2 * t - 1) / 2


EASING: dict[str, EasingFunction] = {
    "linear": linear,
    "easeInQuad": ease_in_quad,
    "easeOutQuad": ease_out_quad,
    "easeInOutQuad": ease_in_out_quad,
    "easeInCubic": ease_in_cubic,
    "easeOutCubic": ease_out_cubic,
    "easeInOutCubic": ease_in_out_cubic,
    "easeInQuart": ease_in_quart,
    "easeOutQuart": ease_out_quart,
    "easeInOutQuart": ease_in_out_quart,
    "easeInQuint": ease_in_quint,
    "easeOutQuint": ease_out_quint,
    "easeInOutQuint": ease_in_out_quint,
    "easeInSine": ease_in_sine,
    "easeOutSine": ease_out_sine,
    "easeInOutSine": ease_in_out_sine,
    "easeInExpo": ease_in_expo,
    "easeOutExpo": ease_out_expo,
    "easeInOutExpo": ease_in_out_expo,
    "easeInCirc": ease_in_circ,
    "easeOutCirc": ease_out_circ,
    "easeInOutCirc": ease_in_out_circ,
    "easeInExpoOutCubic": ease_in_expo_out_cubic,
    "easeInQuartOutQuad": ease_in_quart_out_quad,
}


# ── Bezier handles ─────────────────────────────────────────────────
# Used to seed the curve editor. Hybrid entries are approximations, since
# an asymmetric composition can't be represented by one cubic bezier.

DEFAULT_CUSTOM_BEZIER: tuple[float, float, float, float] = (0.42, 0.0, 0.58, 1.0)

PRESET_BEZIERS: dict[str, tuple[float, float, float, float]] = {
    "easeInExpoOutCubic": (0.85, 0.0, 0.15, 1.0),
    "easeInOutExpo": (0.87, 0.0, 0.13, 1.0),
    "easeInQuartOutQuad": (0.8, 0.0, 0.2, 1.0),
    "easeInOutCubic": (0.65, 0.0, 0.35, 1.0),
    "easeInOutSine": (0.37, 0.0, 0.63, 1.0),
}

EASING_BEZIER_MAP: dict[str, tuple[float, float, float, float]] = {
    **PRESET_BEZIERS,
    "linear": (0.0, 0.0, 1.0, 1.0),
    "easeInSine": (0.12, 0.0, 0.39, 0.0),
    "easeOutSine": (0.61, 1.0, 0.88, 1.0),
    "easeInQuad": (0.11, 0.0, 0.5, 0.0),
    "easeOutQuad": (0.5, 1.0, 0.89, 1.0),
    "easeInOutQuad": (0.45, 0.0, 0.55, 1.0),
    "easeInCubic": (0.32, 0.0, 0.67, 0.0),
    "easeOutCubic": (0.33, 1.0, 0.68, 1.0),
    "easeInQuart": (0.5, 0.0, 0.75, 0.0),
    "easeOutQuart": (0.25, 1.0, 0.5, 1.0),
    "easeInOutQuart": (0.76, 0.0, 0.24, 1.0),
    "easeInQuint": (0.64, 0.0, 0.78, 0.0),
    "easeOutQuint": (0.22, 1.0, 0.36, 1.0),
    "easeInOutQuint": (0.83, 0.0, 0.17, 1.0),
    "easeInExpo": (0.7, 0.0, 0.84, 0.0),
    "easeOutExpo": (0.16, 1.0, 0.3, 1.0),
    "easeInCirc": (0.55, 0.0, 1.0, 0.45),
    "easeOutCirc": (0.0, 0.55, 0.45, 1.0),
    "easeInOutCirc": (0.85, 0.0, 0.15, 1.0),
}


def get_preset_bezier(preset: str | None) -> tuple[float, float, float, float]:
    """Handles for one of the five UI presets, else the default custom curve."""
    return PRESET_BEZIERS.get(preset or "", DEFAULT_CUSTOM_BEZIER)


def get_easing_bezier(name: str | None) -> tuple[float, float, float, float]:
    """Bezier approximation of any catalog easing, else the default curve."""
    return EASING_BEZIER_MAP.get(name or "", DEFAULT_CUSTOM_BEZIER)


# ── Cubic bezier evaluator ─────────────────────────────────────────

_NEWTON_ITERATIONS = 8
_BISECTION_ITERATIONS = 50
_EPSILON = 1e-6


def create_bezier_easing(
    x1: float, y1: float, x2: float, y2: float,
) -> EasingFunction:
    """Build an easing from CSS-style cubic-bezier control points.

    The curve runs from (0, 0) to (1, 1) with handles (x1, y1) and (x2, y2),
    all clamped to [0, 1]. Clamping x keeps x(s) monotonic, so for a given
    input t the parameter s with x(s) = t is unique. It is found with
    Newton-Raphson starting at s = t; when the derivative flattens out
    (degenerate handles such as all zeros) the solver falls back to
    bisection, which always converges on [0, 1].
    """
    x1, y1, x2, y2 = (_clamp01(v) for v in (x1, y1, x2, y2))

    cx = 3.0 * x1
    bx = 3.0 * (x2 - x1) - cx
    ax = 1.0 - cx - bx
    cy = 3.0 * y1
    by = 3.0 * (y2 - y1) - cy
    ay = 1.0 - cy - by

    def sample_x(s):
        return ((ax * s + bx) * s + cx) * s

    def sample_y(s):
        return ((ay * s + by) * s + cy) * s

    def slope_x(s):
        return (3.0 * ax * s + 2.0 * bx) * s + cx

    def solve_s(t):
        s = t
        for _ in range(_NEWTON_ITERATIONS):
            err = sample_x(s) - t
            if abs(err) < _EPSILON:
                return s
            d = slope_x(s)
            if abs(d) < _EPSILON:
                break
            s -= err / d
        # Newton stalled or left the domain: bisect.
        lo, hi = 0.0, 1.0
        s = t
        for _ in range(_BISECTION_ITERATIONS):
            x = sample_x(s)
            if abs(x - t) < _EPSILON:
                return s
            if t > x:
                lo = s
            else:
                hi = s
            s = (lo + hi) / 2
        return s

    def bezier(t: float) -> float:
        t = _clamp01(t)
        if t <= 0.0:
            return 0.0
        if t >= 1.0:
            return 1.0
        return _clamp01(sample_y(solve_s(t)))

    bezier.__name__ = f"cubic_bezier({x1}, {y1}, {x2}, {y2})"
    return bezier


# ── Lookup ─────────────────────────────────────────────────────────

_warned_unknown_names: set[str] = set()


def get_easing_function(name: str) -> EasingFunction:
    """Return the catalog easing for `name`, falling back to linear.

    An unknown name is logged once; later lookups of the same name fall
    back silently.
    """
    fn = EASING.get(name)
    if fn is not None:
        return fn
    if name not in _warned_unknown_names:
        _warned_unknown_names.add(name)
        logger.warning(f"Unknown easing function '{name}', falling back to linear")
    return linear


def get_all_easing_names() -> list[str]:
    return list(EASING)


def resolve_easing(selector) -> EasingFunction:
    """Turn a name, callable, or (x1, y1, x2, y2) handles into an easing."""
    if callable(selector):
        return selector
    if isinstance(selector, str):
        return get_easing_function(selector)
    if isinstance(selector, Sequence) and len(selector) == 4:
        return create_bezier_easing(*(float(v) for v in selector))
    raise TypeError(
        f"Easing must be a name, a callable, or 4 bezier handles; got {selector!r}"
    )
