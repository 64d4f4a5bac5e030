"""
Movement extraction engine.
Converts the target sequence into one corrected Movement per judged hit
(nested ticks/tails included as zero-difficulty placeholders).
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from src.difficulty.aiming import AimingModel, FittsAimingModel
from src.difficulty.core import Movement, Target
from src.difficulty.corrections import NeighbourCorrection, next_correction, previous_correction
from src.difficulty.mathutil import logistic, power_mean

# 0 으로 나누기 방지를 위한 최소 시간 간격 (s)
MIN_TIME_DELTA_S = 0.001


@dataclass
class PatternWindow:
    """
    Normalised geometry of the window obj_m2, obj0, obj1, obj2, obj3 around the
    movement obj1 -> obj2. Distances are in units of the current target diameter.
    """

    s01: Optional[np.ndarray]
    s12: np.ndarray
    s23: Optional[np.ndarray]
    t01: float
    t12: float
    t23: float
    d01: float
    d12: float
    d23: float
    d02: Optional[float]
    d13: Optional[float]
    d03: Optional[float]
    d_m22: Optional[float]

    @property
    def has_previous(self) -> bool:
        return self.s01 is not None

    @property
    def has_next(self) -> bool:
        return self.s23 is not None


@dataclass
class AngularTerms:
    """Corrections that depend on neighbour angles; overrides may zero them."""

    previous: float = 0.0
    next: float = 0.0
    pattern: float = 0.0
    tap: float = 0.0


def stacked_wiggle_rule(window: PatternWindow, terms: AngularTerms) -> AngularTerms:
    """All six pairwise distances among obj0..obj3 below one diameter: no real movement."""
    if not (window.has_previous and window.has_next):
        return terms
    distances = (window.d01, window.d02, window.d03, window.d12, window.d13, window.d23)
    if all(d < 1 for d in distances):
        return AngularTerms()
    return terms


def pattern_correction(w: PatternWindow, prev: NeighbourCorrection, nxt: NeighbourCorrection) -> float:
    """Four-target pattern term; only when both neighbours are roughly equidistant in time."""
    if not (prev.in_the_middle and nxt.in_the_middle):
        return 0.0
    gap = np.linalg.norm(w.s12 - w.s23 / 2 - w.s01 / 2) / (w.d12 + 0.1)
    return (
        (logistic((gap - 1) * 8) - logistic(-6))
        * logistic((w.d01 - 0.7) * 10)
        * logistic((w.d23 - 0.7) * 10)
        * power_mean([prev.flowiness, nxt.flowiness], 2)
        * 0.6
    )


def jump_overlap_factor(w: PatternWindow) -> float:
    """Repetitive jump nerf: landing near where the cursor was 2 or 4 targets ago."""
    overlap = 0.0
    if w.d02 is not None:
        overlap += max(0.15 - 0.1 * w.d02, 0)
    if w.d_m22 is not None:
        overlap += max(0.1125 - 0.075 * w.d_m22, 0)
    return 1 - overlap * logistic((w.d12 - 3.3) / 0.25)


def distance_increase_factor(w: PatternWindow) -> float:
    """Buff for a jump much longer than the previous one at a similar rhythm."""
    if not w.has_previous:
        return 1.0
    d12, t12 = w.d12, w.t12
    overlap_nerf = min(1.0, w.d01**3)
    time_difference_nerf = np.exp(-4 * (1 - max(t12 / (w.t01 + 1e-10), w.t01 / (t12 + 1e-10))) ** 2)
    distance_ratio = d12 / max(1.0, w.d01)
    bpm_scaling = max(1.0, -16 * t12 + 3.4)
    return float(1 + 0.225 * bpm_scaling * time_difference_nerf * overlap_nerf * max(0.0, distance_ratio - 2))


# 각도 보정이 모두 계산된 뒤, 최종 곱셈 전에 순서대로 적용
OVERRIDE_RULES: Tuple[Callable[[PatternWindow, AngularTerms], AngularTerms], ...] = (stacked_wiggle_rule,)


class MovementExtractor:
    """Per-target movement descriptors with every distance/time correction applied."""

    def __init__(
        self,
        aiming_model: Optional[AimingModel] = None,
        clock_rate: float = 1.0,
        hidden: bool = False,
    ):
        self.aiming_model = aiming_model or FittsAimingModel()
        self.clock_rate = clock_rate
        self.hidden = hidden

    def extract(
        self,
        targets: Sequence[Target],
        tap_strain_history: Optional[Sequence[np.ndarray]] = None,
        note_densities: Optional[Sequence[float]] = None,
    ) -> List[Movement]:
        if not targets:
            return []

        movements = self._with_nested(Movement.empty(self._seconds(targets[0].start_time_ms)), targets[0])

        for i in range(1, len(targets)):
            obj_m2 = targets[i - 4] if i > 3 else None
            obj0 = targets[i - 2] if i > 1 else None
            obj3 = targets[i + 1] if i < len(targets) - 1 else None
            tap_strain = tap_strain_history[i] if tap_strain_history is not None else None
            density = note_densities[i] if note_densities is not None else 0.0

            movement = self.extract_one(obj_m2, obj0, targets[i - 1], targets[i], obj3, tap_strain, density)
            movements.extend(self._with_nested(movement, targets[i]))

        logger.debug(f"Extracted {len(movements)} movements from {len(targets)} targets (hidden={self.hidden})")
        return movements

    def extract_one(
        self,
        obj_m2: Optional[Target],
        obj0: Optional[Target],
        obj1: Target,
        obj2: Target,
        obj3: Optional[Target],
        tap_strain: Optional[np.ndarray] = None,
        note_density: float = 0.0,
    ) -> Movement:
        """Movement obj1 -> obj2, corrected by up to two neighbours on each side."""
        raw_t12 = self._gap(obj2, obj1)
        time_s = self._seconds(obj2.start_time_ms)

        if obj2.is_spinner or obj1.is_spinner:
            return Movement(
                raw_time_s=raw_t12,
                distance=0.0,
                movement_time_s=1.0,
                index_of_performance=0.0,
                time_s=time_s,
            )

        # 스피너는 이웃으로 취급하지 않음
        obj0 = None if obj0 is not None and obj0.is_spinner else obj0
        obj3 = None if obj3 is not None and obj3.is_spinner else obj3
        obj_m2 = None if obj_m2 is not None and obj_m2.is_spinner else obj_m2

        w = self._window(obj_m2, obj0, obj1, obj2, obj3)
        ip12 = self.aiming_model.index_of_performance(w.d12, w.t12)

        # 1-2. 이전/다음 타겟 보정
        prev = previous_correction(w.s01, w.s12, w.t01, w.t12)
        nxt = next_correction(w.s23, w.s12, w.t12, w.t23)

        # 3. 4-object pattern
        pattern = pattern_correction(w, prev, nxt)

        # 4. Tap strain
        tap = 0.0
        if w.d12 > 0 and tap_strain is not None:
            tap = logistic((power_mean(tap_strain, 2) / ip12 - 1.34) / 0.1) * 0.3

        terms = AngularTerms(prev.value, nxt.value, pattern, tap)
        for rule in OVERRIDE_RULES:
            terms = rule(w, terms)

        # 5. Cheese (hit the previous target early / the next target late)
        cheesability, cheesable_ratio = self._cheese(w, ip12, obj0 is not None, obj3 is not None)

        factors = self._distance_factors(w, obj2, note_density)

        distance = (
            factors["stacked"]
            * (1 + terms.previous + terms.next + terms.pattern)
            * (1 + terms.tap)
            * factors["product"]
        )

        return Movement(
            raw_time_s=raw_t12,
            distance=distance,
            movement_time_s=w.t12,
            index_of_performance=ip12,
            cheesability=cheesability,
            cheesable_ratio=cheesable_ratio,
            ends_on_extended=obj2.is_extended,
            time_s=time_s,
            raw_distance=w.d12,
        )

    def _distance_factors(self, w: PatternWindow, obj2: Target, note_density: float) -> dict:
        """Pure scalar multipliers on the normalised distance."""
        d12, t12 = w.d12, w.t12
        effective_bpm = 30 / (t12 + 1e-10)

        high_bpm_jump_buff = logistic((effective_bpm - 354) / 16) * logistic((d12 - 1.9) / 0.15) * 0.23
        small_circle_bonus = logistic((55 - 2 * obj2.radius) / 3.0) * 0.3
        stacked = max(0.0, min(d12, 1.2 * d12 - 0.185, 1.4 * d12 - 0.32))
        small_jump_nerf = 1 - 0.17 * np.exp(-(((d12 - 2.2) / 0.7) ** 2)) * logistic((255 - effective_bpm) / 10)
        big_jump_buff = 1 + 0.15 * logistic((d12 - 6) / 0.5) * logistic((210 - effective_bpm) / 8)
        hidden = 0.05 + 0.008 * note_density if self.hidden else 0.0

        jump_overlap = jump_overlap_factor(w)
        distance_increase = distance_increase_factor(w)

        product = (
            (1 + small_circle_bonus)
            * (1 + high_bpm_jump_buff)
            * small_jump_nerf
            * big_jump_buff
            * (1 + hidden)
            * jump_overlap
            * distance_increase
        )
        return {"stacked": stacked, "product": float(product)}

    def _cheese(self, w: PatternWindow, ip12: float, has_obj0: bool, has_obj3: bool) -> Tuple[float, float]:
        if w.d12 <= 0:
            return 0.0, 0.0

        def boundary(has_neighbour: bool, d: float, t: float) -> Tuple[float, float]:
            if has_neighbour:
                t_reciprocal = 1 / (t + 1e-10)
                ip = self.aiming_model.index_of_performance(d, t)
            else:
                t_reciprocal = 0.0
                ip = 0.0
            cheesability = logistic((ip / ip12 - 0.6) * (-15)) * 0.5
            stolen_time = cheesability * (1 / (1 / (w.t12 + 0.07) + t_reciprocal))
            return cheesability, stolen_time

        early, time_early = boundary(has_obj0, w.d01, w.t01)
        late, time_late = boundary(has_obj3, w.d23, w.t23)
        return early + late, (time_early + time_late) / (w.t12 + 1e-10)

    def _window(self, obj_m2, obj0, obj1, obj2, obj3) -> PatternWindow:
        diameter = 2 * obj2.radius
        pos1, pos2 = obj1.position, obj2.position
        s12 = (pos2 - pos1) / diameter

        s01 = s23 = None
        t01 = t23 = 0.0
        d02 = d13 = d03 = d_m22 = None
        if obj0 is not None:
            s01 = (pos1 - obj0.position) / diameter
            t01 = max(self._gap(obj1, obj0), MIN_TIME_DELTA_S)
            d02 = float(np.linalg.norm(pos2 - obj0.position) / diameter)
        if obj3 is not None:
            s23 = (obj3.position - pos2) / diameter
            t23 = max(self._gap(obj3, obj2), MIN_TIME_DELTA_S)
            d13 = float(np.linalg.norm(obj3.position - pos1) / diameter)
        if obj0 is not None and obj3 is not None:
            d03 = float(np.linalg.norm(obj3.position - obj0.position) / diameter)
        if obj_m2 is not None:
            d_m22 = float(np.linalg.norm(pos2 - obj_m2.position) / diameter)

        return PatternWindow(
            s01=s01,
            s12=s12,
            s23=s23,
            t01=t01,
            t12=max(self._gap(obj2, obj1), MIN_TIME_DELTA_S),
            t23=t23,
            d01=float(np.linalg.norm(s01)) if s01 is not None else 0.0,
            d12=float(np.linalg.norm(s12)),
            d23=float(np.linalg.norm(s23)) if s23 is not None else 0.0,
            d02=d02,
            d13=d13,
            d03=d03,
            d_m22=d_m22,
        )

    @staticmethod
    def _with_nested(movement: Movement, target: Target) -> List[Movement]:
        # 슬라이더 틱/테일마다 0 난이도 이동을 추가해 콤보 정렬 유지
        return [movement] + [Movement.empty(movement.time_s) for _ in range(target.nested_count)]

    def _gap(self, later: Target, earlier: Target) -> float:
        return (later.start_time_ms - earlier.start_time_ms) / 1000.0 / self.clock_rate

    def _seconds(self, time_ms: float) -> float:
        return time_ms / 1000.0 / self.clock_rate
