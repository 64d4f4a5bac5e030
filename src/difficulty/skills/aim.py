"""
Aim skill: inverts the hit probability model into throughput curves.

Every curve answers "what throughput does a player need so that ... ?":
  - combo curve: the hardest stretch of i/N of the chart is cleared in time
  - miss curve: a full run ends with at most m misses as often as an FC would
  - cheese curve: the chart is FC-able with a given amount of cheesing
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger
from scipy.optimize import bisect, brentq
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from config import settings
from src.difficulty.core import CalculationContext, Movement
from src.difficulty.hit_probabilities import HitProbabilityModel
from src.difficulty.mathutil import MonotoneCurve
from src.difficulty.processing import MovementExtractor
from .base import SkillStrategy

PROB_THRESHOLD = 0.02
TIME_THRESHOLD_S = 1200.0
TP_MIN = 0.1
TP_MAX = 100.0
CHEESE_NOTE_THRESHOLD = 0.5


class UnbracketedRootError(Exception):
    """Criterion still unmet at the largest throughput tried."""

    def __init__(self, bound: float):
        super().__init__(f"criterion not reached at tp={bound:.3f}")
        self.bound = bound


def poisson_binomial_cdf(miss_probabilities: Sequence[float]) -> np.ndarray:
    """P(misses <= k) for independent notes with the given miss probabilities."""
    dist = np.ones(1)
    for q in miss_probabilities:
        nxt = np.zeros(dist.size + 1)
        nxt[:-1] += dist * (1 - q)
        nxt[1:] += dist * q
        dist = nxt
    return np.cumsum(dist)


def count_cheese_notes(movements: Sequence[Movement]) -> int:
    return sum(1 for m in movements if m.cheesability > CHEESE_NOTE_THRESHOLD)


def fractional_miss_count(cdf: np.ndarray, target: float) -> float:
    """Smallest (linearly interpolated) k with CDF(k) >= target."""
    reached = np.nonzero(cdf >= target * (1 - 1e-6))[0]
    if reached.size == 0:
        return float(cdf.size - 1)
    k = int(reached[0])
    if k == 0:
        return 0.0
    lo, hi = cdf[k - 1], cdf[k]
    return (k - 1) + float((target - lo) / (hi - lo))


class AimSkillSolver:
    """
    Root finding over throughput for one movement sequence. Both criteria are
    monotone increasing in tp, so a bracket [TP_MIN, upper] plus brentq/bisect
    is enough. The upper bound doubles a bounded number of times.
    """

    def __init__(
        self,
        section_count: Optional[int] = None,
        max_iterations: Optional[int] = None,
        prob_precision: Optional[float] = None,
        time_tp_precision: Optional[float] = None,
        bracket_expansions: Optional[int] = None,
    ):
        self.section_count = section_count if section_count is not None else settings.SECTION_COUNT
        self.max_iterations = max_iterations if max_iterations is not None else settings.SOLVER_MAX_ITERATIONS
        self.prob_precision = prob_precision if prob_precision is not None else settings.PROB_PRECISION
        self.time_tp_precision = time_tp_precision if time_tp_precision is not None else settings.TIME_TP_PRECISION
        self.bracket_expansions = bracket_expansions if bracket_expansions is not None else settings.BRACKET_EXPANSIONS
        if self.section_count < 1 or self.bracket_expansions < 0:
            raise ValueError("Solver needs at least one section and a non-negative expansion count")

    def model(self, movements: Sequence[Movement], cheese_level: float = 0.0) -> HitProbabilityModel:
        return HitProbabilityModel(movements, cheese_level=cheese_level, section_count=self.section_count)

    def find_upper_bound(self, criterion: Callable[[float], float]) -> float:
        bounds = iter(TP_MAX * 2**i for i in range(self.bracket_expansions + 1))

        def attempt() -> float:
            upper = next(bounds)
            if criterion(upper) < 0:
                raise UnbracketedRootError(upper)
            return upper

        retrying = Retrying(
            stop=stop_after_attempt(self.bracket_expansions + 1),
            retry=retry_if_exception_type(UnbracketedRootError),
            reraise=True,
        )
        return retrying(attempt)

    def solve(self, criterion: Callable[[float], float], method=brentq, xtol: float = 1e-4) -> float:
        """Smallest tp with criterion(tp) >= 0."""
        if criterion(TP_MIN) >= 0:
            return TP_MIN
        try:
            upper = self.find_upper_bound(criterion)
        except UnbracketedRootError as e:
            logger.warning(f"Aim solver: {e}, returning the boundary")
            return e.bound

        return float(method(criterion, TP_MIN, upper, xtol=xtol, maxiter=self.max_iterations, disp=False))

    def fc_probability_tp(self, model: HitProbabilityModel) -> float:
        """Throughput at which a full combo happens with PROB_THRESHOLD probability."""
        return self.solve(lambda tp: model.fc_probability(tp) - PROB_THRESHOLD, brentq, self.prob_precision)

    def fc_time_tp(self, model: HitProbabilityModel, section_count: int) -> float:
        """Throughput at which the hardest window of section_count sections is FC'd within TIME_THRESHOLD_S."""
        if model.is_empty(section_count):
            return 0.0
        return self.solve(
            lambda tp: TIME_THRESHOLD_S - model.min_expected_time_for_count(tp, section_count),
            bisect,
            self.time_tp_precision,
        )

    def combo_curve(self, model: HitProbabilityModel) -> MonotoneCurve:
        counts = range(1, self.section_count + 1)
        return MonotoneCurve(
            [i / self.section_count for i in counts],
            [self.fc_time_tp(model, i) for i in counts],
        )

    def miss_curve(self, model: HitProbabilityModel, fc_time_tp: float, sample_count: int) -> MonotoneCurve:
        """
        Relaxed full-combo criterion: at a reduced throughput, how many misses can
        be tolerated so that the run is as likely as an FC at fc_time_tp.
        """
        target = model.fc_probability(fc_time_tp)
        miss_counts: List[float] = []
        miss_tps: List[float] = []
        for i in range(sample_count):
            tp = fc_time_tp * (1 - i**1.5 * 0.005)
            q = np.clip(1 - model.note_hit_probabilities(tp), 0, 1)
            count = fractional_miss_count(poisson_binomial_cdf(q[q > 1e-12]), target)
            # tp 감소 순서: 미스 수가 늘지 않으면 앞선 (더 높은) tp 만 남김
            if miss_counts and count <= miss_counts[-1]:
                continue
            miss_counts.append(count)
            miss_tps.append(tp)
        return MonotoneCurve(miss_counts, miss_tps)

    def cheese_curve(self, movements: Sequence[Movement], baseline_tp: float, level_count: int) -> MonotoneCurve:
        levels = np.linspace(0, 1, level_count)
        factors = [1.0] + [
            self.fc_probability_tp(self.model(movements, cheese_level=level)) / baseline_tp for level in levels[1:]
        ]
        return MonotoneCurve(levels, factors)


class AimSkill(SkillStrategy):
    """Aim difficulty and throughput curves; needs tap strains and note densities in the context."""

    @staticmethod
    def extract_movements(ctx: CalculationContext):
        args = (ctx.targets, ctx.tap_strain_history or None, ctx.note_densities or None)
        ctx.movements = MovementExtractor(clock_rate=ctx.clock_rate).extract(*args)
        ctx.hidden_movements = MovementExtractor(clock_rate=ctx.clock_rate, hidden=True).extract(*args)

    def calculate(self, ctx: CalculationContext) -> Dict[str, Any]:
        solver = AimSkillSolver(section_count=self.params.get("section_count"))
        cheese_level_count = self.params.get("cheese_level_count", settings.CHEESE_LEVEL_COUNT)
        miss_tp_count = self.params.get("miss_tp_count", settings.MISS_TP_COUNT)

        if not ctx.movements:
            self.extract_movements(ctx)
        movements = ctx.movements
        model = solver.model(movements)
        aim_difficulty = solver.fc_probability_tp(model)

        hidden_tp = solver.fc_probability_tp(solver.model(ctx.hidden_movements or movements))
        hidden_factor = hidden_tp / aim_difficulty

        combo = solver.combo_curve(model)
        fc_time_tp = float(combo.ys[-1])
        miss = solver.miss_curve(model, fc_time_tp, miss_tp_count)
        cheese = solver.cheese_curve(movements, aim_difficulty, cheese_level_count)
        model.log_cache_stats()

        logger.debug(f"Aim difficulty {aim_difficulty:.3f}, FC time tp {fc_time_tp:.3f}, hidden x{hidden_factor:.3f}")

        _, combo_tps = combo.as_lists()
        miss_counts, miss_tps = miss.as_lists()
        cheese_levels, cheese_factors = cheese.as_lists()
        return {
            "aim_difficulty": aim_difficulty,
            "aim_hidden_factor": hidden_factor,
            "combo_tps": combo_tps,
            "miss_counts": miss_counts,
            "miss_tps": miss_tps,
            "cheese_levels": cheese_levels,
            "cheese_factors": cheese_factors,
            "cheese_note_count": float(count_cheese_notes(movements)),
        }
