"""
Neighbour corrections for the movement extractor.

A neighbour (the target before the previous one, or the target after the
current one) changes how hard the current movement is. The ratio of time gaps
decides which model applies:

- far   (ratio > 1.4):   angle based moving/stationary blend
- near  (ratio < 1/1.4): (1 - cos) scaled by a distance sigmoid
- middle:                flow and snap correction surfaces evaluated in a
                         frame aligned with the current movement
"""

from typing import NamedTuple, Optional

import numpy as np

from src.difficulty.mathutil import LinearSpline, logistic, power_mean

T_RATIO_THRESHOLD = 1.4
CORRECTION_STILL = 0.0
MOVING_SPLINE = LinearSpline([-1.0, 1.0], [1.1, 0.0])


class CorrectionSurface:
    """
    2D correction surface parameterised by the current movement distance.

    Every coefficient is linearly interpolated over the anchor distances; the
    surface value is logistic(k + sum(c3 * sqrt((x - c0)^2 + (y - c1)^2 + c2))) * scale.
    """

    def __init__(self, ds, ks, scales, coeffs):
        self.k = LinearSpline(ds, ks)
        self.scale = LinearSpline(ds, scales)
        coeffs = np.asarray(coeffs, dtype=float)
        # coeffs[term, coefficient, anchor]
        self.coeffs = [[LinearSpline(ds, coeffs[i, j]) for j in range(4)] for i in range(coeffs.shape[0])]

    def __call__(self, d: float, x: float, y: float) -> float:
        raw = self.k(d)
        for term in self.coeffs:
            c0, c1, c2, c3 = (spline(d) for spline in term)
            raw += c3 * np.sqrt((x - c0) ** 2 + (y - c1) ** 2 + c2)
        return logistic(raw) * self.scale(d)


PREV_FLOW = CorrectionSurface(
    ds=[0, 1, 1.35, 1.7, 2.3, 3],
    ks=[-11.5, -5.9, -5.4, -5.6, -2, -2],
    scales=[1, 1, 1, 1, 1, 1],
    coeffs=[
        [[0, -0.5, -1.15, -1.8, -2, -2], [0, 0, 0, 0, 0, 0], [1, 1, 1, 1, 1, 1], [6, 1, 1, 1, 1, 1]],
        [[0, -0.8, -0.9, -1, -1, -1], [0, 0.5, 0.75, 1, 2, 2], [1, 0.5, 0.4, 0.3, 0, 0], [3, 0.7, 0.7, 0.7, 1, 1]],
        [[0, -0.8, -0.9, -1, -1, -1], [0, -0.5, -0.75, -1, -2, -2], [1, 0.5, 0.4, 0.3, 0, 0], [3, 0.7, 0.7, 0.7, 1, 1]],
        [[0, 0, 0, 0, 0, 0], [0, 0.95, 0.975, 1, 0, 0], [0, 0, 0, 0, 0, 0], [0, 0.7, 0.55, 0.4, 0, 0]],
        [[0, 0, 0, 0, 0, 0], [0, -0.95, -0.975, -1, 0, 0], [0, 0, 0, 0, 0, 0], [0, 0.7, 0.55, 0.4, 0, 0]],
    ],
)

PREV_SNAP = CorrectionSurface(
    ds=[0, 1.5, 2.5, 4, 6, 8],
    ks=[-1, -5, -6.7, -6.5, -4.3, -4.3],
    scales=[1, 0.85, 0.6, 0.8, 1, 1],
    coeffs=[
        [[0.5, 2, 2.8, 5, 5, 5], [0, 0, 0, 0, 0, 0], [1, 1, 1, 0, 0, 0], [0.6, 1, 0.8, 0.6, 0.2, 0.2]],
        [[0.25, 1, 0.7, 2, 2, 2], [0.5, 2, 2.8, 4, 6, 6], [1, 1, 1, 1, 1, 1], [0.6, 1, 0.8, 0.3, 0.2, 0.2]],
        [[0.25, 1, 0.7, 2, 2, 2], [-0.5, -2, -2.8, -4, -6, -6], [1, 1, 1, 1, 1, 1], [0.6, 1, 0.8, 0.3, 0.2, 0.2]],
        [[0, 0, -0.5, -2, -3, -3], [0, 0, 0, 0, 0, 0], [1, 1, 1, 1, 1, 1], [-0.7, -1, -0.9, -0.1, -0.1, -0.1]],
    ],
)

NEXT_FLOW = CorrectionSurface(
    ds=[0, 1, 2, 3, 4],
    ks=[-4, -5.3, -5.2, -2.5, -2.5],
    scales=[1, 1, 1, 1, 1],
    coeffs=[
        [[0, 1.2, 2, 2, 2], [0, 0, 0, 0, 0], [0, 0, 0, 0, 0], [1.5, 1, 0.4, 0, 0]],
        [[0, 0, 0, 0, 0], [0, 0, 0, 0, 0], [0, 0, 0, 0, 0], [2, 1.5, 2.5, 3.5, 3.5]],
        [[0, 0.3, 0.6, 0.6, 0.6], [0, 1, 2.4, 2.4, 2.4], [0, 0, 0, 0, 0], [0, 0.4, 0.4, 0, 0]],
        [[0, 0.3, 0.6, 0.6, 0.6], [0, -1, -2.4, -2.4, -2.4], [0, 0, 0, 0, 0], [0, 0.4, 0.4, 0, 0]],
    ],
)

NEXT_SNAP = CorrectionSurface(
    ds=[1, 1.5, 2.5, 4, 6, 8],
    ks=[-2, -2, -3, -5.4, -4.9, -4.9],
    scales=[1, 1, 1, 1, 1, 1],
    coeffs=[
        [[-2, -2, -3, -4, -6, -6], [0, 0, 0, 0, 0, 0], [1, 1, 1, 0, 0, 0], [0.4, 0.4, 0.2, 0.4, 0.3, 0.3]],
        [[-1, -1, -1.5, -2, -3, -3], [1.4, 1.4, 2.1, 2, 3, 3], [1, 1, 1, 1, 1, 1], [0.4, 0.4, 0.2, 0.4, 0.2, 0.2]],
        [[-1, -1, -1.5, -2, -3, -3], [-1.4, -1.4, -2.1, -2, -3, -3], [1, 1, 1, 1, 1, 1], [0.4, 0.4, 0.2, 0.4, 0.2, 0.2]],
        [[0, 0, 0, 0, 0, 0], [0, 0, 0, 0, 0, 0], [0, 0, 0, 0, 0, 0], [0, 0, 1, 0.6, 0.6, 0.6]],
        [[1, 1, 1.5, 2, 3, 3], [0, 0, 0, 0, 0, 0], [1, 1, 1, 1, 1, 1], [0, 0, -0.6, -0.4, -0.3, -0.3]],
    ],
)


class NeighbourCorrection(NamedTuple):
    value: float = 0.0
    flowiness: float = 0.0
    in_the_middle: bool = False


def _clamped_cos(a: np.ndarray, b: np.ndarray, len_a: float, len_b: float) -> float:
    return float(np.clip(-np.dot(a, b) / len_a / len_b, -1, 1))


def _local_frame(pos: np.ndarray, s12: np.ndarray, d12: float):
    """Projects a neighbour position onto the axis of the current movement."""
    x = float(np.dot(pos, s12) / d12)
    y = float(np.linalg.norm(pos - x * s12 / d12))
    return x, y


def _flowiness(snap: float, flow: float) -> float:
    return logistic((snap - flow - 0.05) * 20)


def _stop_correction(x: float, y: float) -> float:
    return logistic(10 * np.sqrt(x * x + y * y + 1) - 12)


def previous_correction(
    s01: Optional[np.ndarray], s12: np.ndarray, t01: float, t12: float
) -> NeighbourCorrection:
    """How the target two steps back affects hitting the current target."""
    d12 = float(np.linalg.norm(s12))
    if s01 is None or d12 == 0:
        return NeighbourCorrection()

    d01 = float(np.linalg.norm(s01))
    t_ratio = t12 / t01

    if t_ratio > T_RATIO_THRESHOLD:
        if d01 == 0:
            return NeighbourCorrection(CORRECTION_STILL)
        moving = MOVING_SPLINE(_clamped_cos(s01, s12, d01, d12))
        movingness = logistic(d01 * 6 - 5) - logistic(-5)
        return NeighbourCorrection((movingness * moving + (1 - movingness) * CORRECTION_STILL) * 1.5)

    if t_ratio < 1 / T_RATIO_THRESHOLD:
        if d01 == 0:
            return NeighbourCorrection()
        cos012 = _clamped_cos(s01, s12, d01, d12)
        return NeighbourCorrection((1 - cos012) * logistic((d01 * t_ratio - 1.5) * 4) * 0.3)

    x, y = _local_frame(-s01 / t01 * t12, s12, d12)
    flow = PREV_FLOW(d12, x, y)
    snap = PREV_SNAP(d12, x, y)
    stop = _stop_correction(x, y)
    return NeighbourCorrection(power_mean([flow, snap, stop], -10) * 1.3, _flowiness(snap, flow), True)


def next_correction(
    s23: Optional[np.ndarray], s12: np.ndarray, t12: float, t23: float
) -> NeighbourCorrection:
    """How the next target affects hitting the current target."""
    d12 = float(np.linalg.norm(s12))
    if s23 is None or d12 == 0:
        return NeighbourCorrection()

    d23 = float(np.linalg.norm(s23))
    t_ratio = t12 / t23

    if t_ratio > T_RATIO_THRESHOLD:
        if d23 == 0:
            return NeighbourCorrection()
        moving = MOVING_SPLINE(_clamped_cos(s12, s23, d12, d23))
        movingness = logistic(d23 * 6 - 5) - logistic(-5)
        return NeighbourCorrection(movingness * moving * 0.5)

    if t_ratio < 1 / T_RATIO_THRESHOLD:
        if d23 == 0:
            return NeighbourCorrection()
        cos123 = _clamped_cos(s12, s23, d12, d23)
        return NeighbourCorrection((1 - cos123) * logistic((d23 * t_ratio - 1.5) * 4) * 0.15)

    x, y = _local_frame(s23 / t23 * t12, s12, d12)
    flow = NEXT_FLOW(d12, x, y)
    snap = NEXT_SNAP(d12, x, y)
    value = max(power_mean([flow, snap], -10) - 0.1, 0) * 0.5
    return NeighbourCorrection(value, _flowiness(snap, flow), True)
