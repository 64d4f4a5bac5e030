"""
Shared numeric helpers: logistic, power mean, piecewise-linear curves and the
accuracy -> deviation conversion used by every performance sub-calculator.
"""

import math
from typing import Iterable, Sequence, Tuple

import numpy as np
from scipy.special import erfinv, expit

# exp(acc - 1) 변환 전에 정확도를 안전한 범위로 제한
_ACCURACY_FLOOR = -10.0
_ACCURACY_CEIL = 1.0 - 1e-9


def logistic(x):
    """1 / (1 + e^-x); works on scalars and arrays."""
    result = expit(x)
    return float(result) if np.ndim(result) == 0 else result


def power_mean(values: Iterable[float], order: float) -> float:
    """(mean(x^p))^(1/p). Non-positive entries contribute zero for p > 0."""
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return 0.0
    if order > 0:
        return float(np.mean(arr**order) ** (1.0 / order))
    # 음수 차수는 가장 작은 값 쪽으로 기울어짐 (smooth minimum)
    if np.any(arr <= 0):
        return 0.0
    return float(np.mean(arr**order) ** (1.0 / order))


def difficulty_range(difficulty: float, low: float, mid: float, high: float) -> float:
    """Maps a 0-10 difficulty setting linearly through (0: low, 5: mid, 10: high)."""
    if difficulty > 5:
        return mid + (high - mid) * (difficulty - 5) / 5
    if difficulty < 5:
        return mid - (mid - low) * (5 - difficulty) / 5
    return mid


class LinearSpline:
    """
    Piecewise-linear lookup over sorted anchors.
    Out-of-range input returns the boundary sample (no extrapolation).
    """

    def __init__(self, xs: Sequence[float], ys: Sequence[float]):
        self.xs = np.asarray(xs, dtype=float)
        self.ys = np.asarray(ys, dtype=float)
        if self.xs.shape != self.ys.shape or self.xs.size == 0:
            raise ValueError("Spline needs matching, non-empty anchor arrays")

    def __call__(self, x):
        result = np.interp(x, self.xs, self.ys)
        return float(result) if np.ndim(result) == 0 else result


class MonotoneCurve(LinearSpline):
    """
    Samples of a monotone relationship (combo% -> tp, misses -> tp, ...),
    stored sorted by the independent variable.
    """

    def __init__(self, xs: Sequence[float], ys: Sequence[float]):
        xs_arr = np.asarray(xs, dtype=float)
        ys_arr = np.asarray(ys, dtype=float)
        order = np.argsort(xs_arr, kind="stable")
        super().__init__(xs_arr[order], ys_arr[order])

    def as_lists(self) -> Tuple[list, list]:
        return self.xs.tolist(), self.ys.tolist()


def accuracy_to_deviation(accuracy: float, window_ms: float) -> float:
    """
    Hit-error standard deviation implied by an accuracy on a timing window.

    The accuracy may be negative after the stream/cheese scaling; exp(acc - 1)
    keeps it positive while preserving values close to 1.
    """
    acc = min(max(accuracy, _ACCURACY_FLOOR), _ACCURACY_CEIL)
    positive_acc = math.exp(acc - 1)
    return window_ms / (math.sqrt(2) * float(erfinv(positive_acc)))
