"""
Finger control skill: difficulty of irregular, non-repeating rhythm.
"""

import math
from typing import Dict, Any, List, Tuple

from src.difficulty.core import CalculationContext, Target
from src.difficulty.mathutil import LinearSpline
from src.difficulty.strain import StrainAggregator
from .base import SkillStrategy

GAP_TOLERANCE_S = 0.008
MIN_STRAIN_TIME_S = 0.035
STRAIN_DECAY_HALF_LIFE_S = 0.21

PREV_FRACTION_SPLINE = LinearSpline([1.0, 1.5, 2.0, 3.0], [0.5, 1.5, 1, 1])
NEXT_FRACTION_SPLINE = LinearSpline([1.0, 7.0 / 6.0, 1.75, 2.0, 3.0, 4.0], [0.05, 1, 1, 0.5, 0, 0])


class GapHistory:
    """
    Rolling window of recent gaps ("virtual" gaps are measured from the end of
    an extended path). Owned by one calculation call.
    """

    MAX_TOTAL_S = 4.0
    MAX_COUNT = 32

    def __init__(self):
        self.real: List[float] = []
        self.virtual: List[float] = []

    def push(self, real: float, virtual: float):
        self.real.append(real)
        self.virtual.append(virtual)

        while sum(self.real) > self.MAX_TOTAL_S or len(self.real) > self.MAX_COUNT:
            self.real.pop(0)
        while len(self.real) < len(self.virtual):
            self.virtual.pop(0)

    def __len__(self):
        return len(self.real)


def _close(a: float, b: float) -> bool:
    return abs(a - b) < GAP_TOLERANCE_S


def _same_run(a: List[float], b: List[float]) -> bool:
    return all(abs(x - y) <= GAP_TOLERANCE_S for x, y in zip(a, b))


def compare_gaps(gap1: float, gap2: float, spline: LinearSpline) -> float:
    if gap1 == 0 or gap2 == 0:
        return 1.0
    return spline(max(gap1 / gap2, gap2 / gap1))


def check_anomaly(history: List[float]) -> Tuple[float, bool]:
    """
    Number of distinct earlier gaps, and whether the current gap (or its
    double/half) was seen before.
    """
    unique: List[float] = []
    for gap in history[:-1]:
        if not any(_close(u, gap) for u in unique):
            unique.append(gap)

    current = history[-1]
    exists = any(_close(current, u) or _close(current * 2, u) or _close(current / 2, u) for u in unique)
    return float(len(unique)), exists


def calculate_expectancy(history: List[float], repetition_weight: float = 0.7) -> float:
    """How predictable the latest gap is given the rhythm seen so far (1 = fully)."""
    anomaly, exists = check_anomaly(history)
    recent_first = history[::-1]

    # 최근 간격과 다른 간격이 처음 나오는 지점까지를 기준 패턴으로 사용
    pattern: List[float] = []
    current = recent_first[0]
    for i in range(1, len(recent_first)):
        if abs(recent_first[i] - current) > GAP_TOLERANCE_S:
            pattern = recent_first[: i + 1]
            break

    if not pattern:
        return 1.0

    if len(pattern) > len(recent_first) / 2.0:
        return len(pattern) / len(recent_first)

    # size 2 -> 0, size 8+ -> 1
    pattern_length = math.sin(math.pi * (min(len(pattern), 8) - 2) / 12) ** 2

    instances = 0
    reverse_instances = 0
    for i in range(len(pattern), len(recent_first)):
        compare = recent_first[i : i + len(pattern)]
        if len(compare) != len(pattern):
            break
        if _same_run(pattern, compare):
            instances += 1
        elif _same_run(pattern, compare[::-1]):
            reverse_instances += 1

    possible_instances = (len(recent_first) - len(pattern)) // len(pattern)
    if possible_instances <= 0:
        return 0.0

    repetition = min(
        1.0,
        repetition_weight * max(instances, reverse_instances) / possible_instances
        + (1.0 - repetition_weight) * pattern_length,
    )

    if not exists:
        # a count of 1 gets 1, a count of 8+ gets 0
        unique_scale = ((-min(7.0, anomaly - 1.0) / 7.0) ** 5 + 1.0) ** 2
        repetition = min(1.0, repetition + unique_scale)

    return repetition


def _rarity_scale(fraction: float) -> float:
    return math.sin(math.pi * (max(0.5, fraction) - 1.0)) ** 2


def calculate_downtime(gap: float, history: List[float]) -> float:
    long_gaps = sum(1 for g in history if g > gap * 2 - GAP_TOLERANCE_S)
    return _rarity_scale(long_gaps / len(history))


def calculate_appearance(gap: float, history: List[float]) -> float:
    appearances = sum(1 for g in history if _close(g, gap))
    return _rarity_scale(appearances / len(history))


class FingerControlSkill(SkillStrategy):
    """
    Strain from rhythm changes. Repeated patterns, long idle stretches and
    over-represented gaps all pull the strain towards zero.
    """

    STRAIN_MULTIPLIER = 0.9
    REPETITION_WEIGHT = 0.7
    AGGREGATOR_DECAY = 0.95

    def calculate(self, ctx: CalculationContext) -> Dict[str, Any]:
        targets = ctx.targets
        if not targets:
            ctx.finger_strain_history = []
            return {"finger_control_difficulty": 0.0}

        history = GapHistory()
        prev_ms = targets[0].start_time_ms
        prev_gap = 0.0
        prev_virtual_gap = 0.0
        curr_strain = 0.0
        strain_history = [0.0]
        instant_strains = [0.0]

        for i in range(1, len(targets)):
            current = targets[i]
            delta = ctx.gap_s(current.start_time_ms, prev_ms)

            gap = max(delta, MIN_STRAIN_TIME_S)
            virtual_gap = gap
            decay_base = 0.75 ** (1 / min(gap, STRAIN_DECAY_HALF_LIFE_S))

            curr_strain *= decay_base**delta
            strain_history.append(curr_strain)

            if targets[i - 1].is_extended:
                virtual_gap = max(ctx.gap_s(current.start_time_ms, targets[i - 1].end_ms), MIN_STRAIN_TIME_S)

            strain = self.STRAIN_MULTIPLIER * self._strain_value_of(
                current, gap, virtual_gap, prev_gap, prev_virtual_gap, history
            )

            if i < len(targets) - 1:
                nxt = targets[i + 1]
                next_gap = max(ctx.gap_s(nxt.start_time_ms, current.start_time_ms), MIN_STRAIN_TIME_S)
                next_virtual_gap = 0.0
                if current.is_extended:
                    next_virtual_gap = max(ctx.gap_s(nxt.start_time_ms, current.end_ms), MIN_STRAIN_TIME_S)

                strain *= min(
                    compare_gaps(gap, next_gap, NEXT_FRACTION_SPLINE),
                    compare_gaps(gap, next_virtual_gap, NEXT_FRACTION_SPLINE),
                    compare_gaps(virtual_gap, next_gap, NEXT_FRACTION_SPLINE),
                    compare_gaps(virtual_gap, next_virtual_gap, NEXT_FRACTION_SPLINE),
                )

            instant_strains.append(strain)
            curr_strain += strain

            # 겹친 노트(35ms 이하)는 기준 시점을 옮기지 않음
            if delta > MIN_STRAIN_TIME_S:
                prev_ms = current.start_time_ms
                prev_gap = gap
                prev_virtual_gap = virtual_gap

        ctx.finger_strain_history = instant_strains
        difficulty = StrainAggregator(self.AGGREGATOR_DECAY).reduce(strain_history)
        return {"finger_control_difficulty": difficulty}

    def _strain_value_of(
        self,
        current: Target,
        gap: float,
        virtual_gap: float,
        prev_gap: float,
        prev_virtual_gap: float,
        history: GapHistory,
    ) -> float:
        if current.is_spinner:
            return 0.0

        history.push(gap, virtual_gap)

        repetition_value = 0.0
        downtime_scale = 1.0
        appearance_scale = 1.0
        unique_scale = 1.0
        if len(history) > 2:
            repetition = 1.0 - calculate_expectancy(history.real, self.REPETITION_WEIGHT)
            virtual_repetition = 1.0 - calculate_expectancy(history.virtual, self.REPETITION_WEIGHT)
            exponent = min(2.0, 48.75 * min(gap, virtual_gap) - 1.65625)
            repetition_value = min(repetition, virtual_repetition) ** exponent

            # When there is major downtime / not much actually happening
            downtime_scale = min(
                calculate_downtime(gap, history.real), calculate_downtime(virtual_gap, history.virtual)
            )
            # When there's a huge stream before a pack of doubles / triples
            appearance_scale = min(
                calculate_appearance(gap, history.real), calculate_appearance(virtual_gap, history.virtual)
            )
            # Many distinct gaps: wild BPM area
            unique_count, _ = check_anomaly(history.real)
            virtual_unique_count, _ = check_anomaly(history.virtual)
            unique_scale = 1.0 + ((min(unique_count, virtual_unique_count) - 1.0) / 11.0) ** 4

        multiplier = min(
            compare_gaps(gap, prev_gap, PREV_FRACTION_SPLINE),
            compare_gaps(gap, prev_virtual_gap, PREV_FRACTION_SPLINE),
            compare_gaps(virtual_gap, prev_gap, PREV_FRACTION_SPLINE),
            compare_gaps(virtual_gap, prev_virtual_gap, PREV_FRACTION_SPLINE),
        )

        return repetition_value * multiplier * downtime_scale * appearance_scale * unique_scale / gap
