"""
Response curves applied in normalized space.

Pure math: no state, no I/O. A curve maps a normalized input t in [0, 1]
to a normalized output in [0, 1].

Key behaviors:
- Identity returns t unchanged
- Bezier is a response curve y = f(x) evaluated with De Casteljau's
  algorithm; 2 points is a straight line, 3 quadratic, 4 cubic, up to 8
- With evenly spaced x coordinates the Bezier parameter is t itself,
  otherwise the parameter whose x equals t is found by bisection
- t is clamped to [0, 1] before evaluation, never extrapolated
- validate_curve() checks point count, coordinate range and endpoints
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

MIN_CONTROL_POINTS = 2
MAX_CONTROL_POINTS = 8

# 2**-52 resolution on the Bezier parameter
BISECTION_STEPS = 52

CurveErrorCode = Literal["point_count", "coordinate_range", "endpoint", "unsupported"]


# --- Errors ---


class CurveValidationError(ValueError):
    """Raised when a curve definition violates its shape constraints."""

    def __init__(self, code: CurveErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class CurveEvaluationError(ValueError):
    """Raised when a curve cannot be evaluated at the requested parameter."""


# --- Curve Variants ---


@dataclass(frozen=True)
class ControlPoint:
    """Bezier control point in normalized coordinates."""

    x: float
    y: float


@dataclass(frozen=True)
class IdentityCurve:
    """Linear response (y = t)."""


@dataclass(frozen=True)
class BezierCurve:
    """Bezier response defined by 2-8 control points from (0,0) to (1,1)."""

    control_points: tuple[ControlPoint, ...]

    @classmethod
    def from_pairs(cls, pairs: list[tuple[float, float]]) -> BezierCurve:
        return cls(control_points=tuple(ControlPoint(float(x), float(y)) for x, y in pairs))


CurveDefinition = IdentityCurve | BezierCurve

IDENTITY = IdentityCurve()


# --- Validation ---


def validate_curve(curve: CurveDefinition) -> None:
    """
    Check a curve definition's shape.

    Identity is always valid. Bezier curves need 2-8 control points, every
    coordinate within [0, 1], a first point of exactly (0, 0) and a last
    point of exactly (1, 1).

    Raises:
        CurveValidationError: On the first violation found.
    """
    if isinstance(curve, IdentityCurve):
        return
    if not isinstance(curve, BezierCurve):
        raise CurveValidationError(
            "unsupported", f"Unsupported curve type: {type(curve).__name__}"
        )

    points = curve.control_points
    count = len(points)
    if count < MIN_CONTROL_POINTS or count > MAX_CONTROL_POINTS:
        raise CurveValidationError(
            "point_count",
            f"Bezier curve requires {MIN_CONTROL_POINTS}-{MAX_CONTROL_POINTS} "
            f"control points, got {count}",
        )

    for index, point in enumerate(points):
        for axis, value in (("x", point.x), ("y", point.y)):
            if not math.isfinite(value) or value < 0.0 or value > 1.0:
                raise CurveValidationError(
                    "coordinate_range",
                    f"Control point {index} has {axis}={value}, expected a value in [0, 1]",
                )

    first, last = points[0], points[-1]
    if first.x != 0.0 or first.y != 0.0:
        raise CurveValidationError(
            "endpoint",
            f"First control point must be (0, 0), got ({first.x}, {first.y})",
        )
    if last.x != 1.0 or last.y != 1.0:
        raise CurveValidationError(
            "endpoint",
            f"Last control point must be (1, 1), got ({last.x}, {last.y})",
        )


# --- Evaluation ---


def _lerp(a: float, b: float, t: float) -> float:
    # Exact at both ends: t=0 gives a, t=1 gives b.
    return a * (1.0 - t) + b * t


def _de_casteljau(coordinates: tuple[float, ...], t: float) -> float:
    values = list(coordinates)
    for level in range(1, len(values)):
        for i in range(len(values) - level):
            values[i] = _lerp(values[i], values[i + 1], t)
    return values[0]


def _evenly_spaced(xs: tuple[float, ...]) -> bool:
    last = len(xs) - 1
    if last < 1:
        return True
    return all(x == i / last for i, x in enumerate(xs))


def _solve_parameter(xs: tuple[float, ...], t: float) -> float:
    """Bezier parameter s with x(s) == t, for t in [0, 1]."""
    if t == 0.0 or t == 1.0 or _evenly_spaced(xs):
        return t

    lo, hi = 0.0, 1.0
    for _ in range(BISECTION_STEPS):
        mid = (lo + hi) / 2.0
        if _de_casteljau(xs, mid) < t:
            lo = mid
        else:
            hi = mid
    return (lo + hi) / 2.0


def evaluate_curve(curve: CurveDefinition, t: float) -> float:
    """
    Evaluate a curve at normalized parameter t.

    Args:
        curve: Curve definition (Identity or Bezier).
        t: Normalized parameter; clamped to [0, 1].

    Returns:
        Normalized curve output.

    Raises:
        CurveEvaluationError: If t is NaN or the curve type is unknown.
    """
    if math.isnan(t):
        raise CurveEvaluationError("Curve parameter t is NaN")
    t = min(1.0, max(0.0, t))

    if isinstance(curve, IdentityCurve):
        return t
    if isinstance(curve, BezierCurve):
        if not curve.control_points:
            raise CurveEvaluationError("Bezier curve has no control points")
        xs = tuple(p.x for p in curve.control_points)
        ys = tuple(p.y for p in curve.control_points)
        return _de_casteljau(ys, _solve_parameter(xs, t))

    raise CurveEvaluationError(f"Unsupported curve type: {type(curve).__name__}")


def describe_curve(curve: CurveDefinition | None) -> str:
    """Display name for a curve ("Linear" or "Bezier (N points)")."""
    if curve is None or isinstance(curve, IdentityCurve):
        return "Linear"
    if isinstance(curve, BezierCurve):
        return f"Bezier ({len(curve.control_points)} points)"
    return type(curve).__name__
