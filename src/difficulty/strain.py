"""
Percentile-weighted strain reduction shared by every skill.
"""

from typing import Iterable

import numpy as np


class StrainAggregator:
    """
    Reduces a strain history to one scalar: (1 - k) * sum(strain_i * k^i) over
    strains sorted in descending order. The hardest moments dominate but the
    whole history contributes.
    """

    def __init__(self, decay: float):
        if not 0 < decay < 1:
            raise ValueError(f"Decay constant must be in (0, 1), got {decay}")
        self.decay = decay

    def reduce(self, strains: Iterable[float]) -> float:
        values = np.sort(np.asarray(list(strains), dtype=float))[::-1]
        if values.size == 0:
            return 0.0
        weights = self.decay ** np.arange(values.size)
        return float((1 - self.decay) * np.dot(values, weights))
