"""
Aiming model interface and the default Fitts's-law implementation.

Any object exposing the two methods of `AimingModel` can be plugged into the
movement extractor and the hit probability model. Both methods must accept
numpy arrays as well as scalars.
"""

from typing import Protocol

import numpy as np
from scipy.special import erf


class AimingModel(Protocol):
    def index_of_performance(self, distance, time):
        """Required bandwidth; >= 0, increasing in distance, decreasing in time."""
        ...

    def hit_probability(self, distance, time, throughput):
        """P(hit) in (0, 1]; increasing in throughput and time, decreasing in distance."""
        ...


class FittsAimingModel:
    """Shannon-form Fitts's law with a Gaussian endpoint spread."""

    MIN_MOVEMENT_TIME = 0.03
    MAX_BANDWIDTH = 50.0
    SPREAD = 2.066

    def index_of_performance(self, distance, time):
        result = np.log2(np.asarray(distance, dtype=float) + 1) / (np.asarray(time, dtype=float) + 1e-10)
        return float(result) if np.ndim(result) == 0 else result

    def hit_probability(self, distance, time, throughput):
        d = np.asarray(distance, dtype=float)
        mt = np.maximum(np.asarray(time, dtype=float), self.MIN_MOVEMENT_TIME)
        bits = np.minimum(mt * throughput, self.MAX_BANDWIDTH)

        with np.errstate(divide="ignore", invalid="ignore"):
            p = erf(self.SPREAD / d * (np.exp2(bits) - 1) / np.sqrt(2))

        # 거리 0 이거나 대역폭이 충분하면 무조건 적중
        p = np.where((d == 0) | (bits >= self.MAX_BANDWIDTH), 1.0, p)
        return float(p) if np.ndim(p) == 0 else p
