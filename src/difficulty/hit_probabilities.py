"""
Sectioned hit probability model.

The movement sequence is split into a fixed number of near-equal sections.
For a hypothesised throughput every section yields its full-combo probability
and the expected time needed to clear it, cached per throughput value.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from config import settings
from src.difficulty.aiming import AimingModel, FittsAimingModel
from src.difficulty.core import Movement

# 재시도/준비 시간 (s): 구간 체인의 시작값
SETUP_TIME_S = 15.0
PROBABILITY_EPSILON = 1e-10


@dataclass(frozen=True)
class SectionResult:
    expected_time: float
    fc_probability: float


def penalise_low_probability(p: np.ndarray) -> np.ndarray:
    """p' = 1 - (sqrt(1 - p + 0.25) - 0.5); low-probability notes lose super-linearly."""
    return 1 - (np.sqrt(1 - p + 0.25) - 0.5)


class MapSection:
    """Contiguous slice of movements with an exact-match throughput cache."""

    def __init__(self, movements: Sequence[Movement], cheese_level: float, aiming_model: AimingModel):
        self.movements = list(movements)
        self.cheese_level = cheese_level
        self.aiming_model = aiming_model
        self.cache_hits = 0
        self.cache_misses = 0
        self._cache: Dict[float, SectionResult] = {}

        self._distance = np.array([m.distance for m in self.movements], dtype=float)
        self._raw_time = np.array([m.raw_time_s for m in self.movements], dtype=float)

        # 슬라이더로 끝나는 이동은 최소 0.5 만큼 치즈 가능
        levels = np.array(
            [0.5 * cheese_level + 0.5 if m.ends_on_extended else cheese_level for m in self.movements],
            dtype=float,
        )
        cheesable = np.array([m.cheesable_ratio for m in self.movements], dtype=float)
        movement_time = np.array([m.movement_time_s for m in self.movements], dtype=float)
        self._cheese_time = movement_time * (1 + levels * cheesable)

    def __len__(self):
        return len(self.movements)

    def hit_probabilities(self, tp: float) -> np.ndarray:
        """Penalised per-movement hit probabilities at throughput tp."""
        if not self.movements:
            return np.zeros(0)
        p = np.asarray(self.aiming_model.hit_probability(self._distance, self._cheese_time, tp), dtype=float)
        return penalise_low_probability(p + PROBABILITY_EPSILON)

    def evaluate(self, tp: float) -> SectionResult:
        cached = self._cache.get(tp)
        if cached is not None:
            self.cache_hits += 1
            return cached
        self.cache_misses += 1

        p = self.hit_probabilities(tp)
        # expected = (expected + raw_time) / p, unrolled: sum(raw_i / prod(p_i..p_n))
        with np.errstate(divide="ignore", over="ignore"):
            suffix_products = np.cumprod(p[::-1])[::-1]
            terms = np.divide(
                self._raw_time, suffix_products, out=np.zeros_like(self._raw_time), where=self._raw_time > 0
            )
            expected_time = float(np.sum(terms))
        result = SectionResult(expected_time=expected_time, fc_probability=float(np.prod(p)))

        self._cache[tp] = result
        return result


class HitProbabilityModel:
    """Full-combo probability and expected clear time over the whole chart."""

    def __init__(
        self,
        movements: Sequence[Movement],
        cheese_level: float = 0.0,
        section_count: Optional[int] = None,
        aiming_model: Optional[AimingModel] = None,
    ):
        section_count = section_count or settings.SECTION_COUNT
        aiming_model = aiming_model or FittsAimingModel()
        n = len(movements)

        self.sections: List[MapSection] = []
        for i in range(section_count):
            start = n * i // section_count
            end = n * (i + 1) // section_count
            self.sections.append(MapSection(movements[start:end], cheese_level, aiming_model))

    @property
    def cache_hits(self) -> int:
        return sum(s.cache_hits for s in self.sections)

    @property
    def cache_misses(self) -> int:
        return sum(s.cache_misses for s in self.sections)

    def count(self, start: int, section_count: int) -> int:
        return sum(len(s) for s in self.sections[start : start + section_count])

    def is_empty(self, section_count: int) -> bool:
        """True if any window of section_count sections holds no movement."""
        return any(
            self.count(i, section_count) == 0 for i in range(len(self.sections) - section_count + 1)
        )

    def length(self, start: int, section_count: int) -> float:
        """Duration covered by a window of sections (s)."""
        window = [s for s in self.sections[start : start + section_count] if len(s) > 0]
        if not window:
            return 0.0
        return window[-1].movements[-1].time_s - window[0].movements[0].time_s

    def fc_probability(self, tp: float) -> float:
        fc_prob = 1.0
        for section in self.sections:
            fc_prob *= section.evaluate(tp).fc_probability
        return fc_prob

    def expected_fc_time(self, tp: float, start: int, section_count: int) -> float:
        fc_time = SETUP_TIME_S
        for section in self.sections[start : start + section_count]:
            if len(section) == 0:
                continue
            result = section.evaluate(tp)
            fc_time = fc_time / result.fc_probability if result.fc_probability > 0 else math.inf
            fc_time += result.expected_time
        return fc_time

    def min_expected_time_for_count(self, tp: float, section_count: int) -> float:
        """
        (expected time to FC - window duration), minimised over every window of
        section_count sections: the hardest contiguous stretch of that width.
        """
        fc_time = float("inf")
        for i in range(len(self.sections) - section_count + 1):
            fc_time = min(fc_time, self.expected_fc_time(tp, i, section_count) - self.length(i, section_count))
        return fc_time

    def note_hit_probabilities(self, tp: float) -> np.ndarray:
        return np.concatenate([s.hit_probabilities(tp) for s in self.sections])

    def log_cache_stats(self):
        logger.debug(f"Hit probability cache: {self.cache_hits} hits / {self.cache_misses} misses")
