"""
Tap skill: multi-timescale tapping strain plus the mash-level sweep.
"""

from typing import Dict, Any, List, Sequence, Tuple

import numpy as np
from loguru import logger

from config import settings
from src.difficulty.core import CalculationContext
from src.difficulty.mathutil import logistic, power_mean
from src.difficulty.strain import StrainAggregator
from .base import SkillStrategy

# 짧은 반감기 -> 긴 반감기 순서의 4개 채널
DECAY_COEFFS = np.exp(np.linspace(2.3, -2.8, 4))
TIMESCALE_FACTORS = np.array([1.02, 1.02, 1.05, 1.15])
MIN_DELTA_S = 0.01


def mash_nerf_factor(relative_d: float, mash_level: float) -> float:
    """1 when not mashing; down to 0.73 for fully mashed, closely spaced notes."""
    full_mash_factor = 0.73 + 0.27 * logistic(relative_d * 7 - 6)
    return mash_level * full_mash_factor + (1 - mash_level)


class TapSkill(SkillStrategy):
    AGGREGATOR_DECAY = 0.99

    def calculate(self, ctx: CalculationContext) -> Dict[str, Any]:
        mash_level_count = self.params.get("mash_level_count", settings.MASH_LEVEL_COUNT)
        targets = ctx.targets
        finger_strains = ctx.finger_strain_history or [0.0] * len(targets)

        strain_history, tap_difficulty = self.tap_strain(ctx, 0.0, finger_strains)
        ctx.tap_strain_history = strain_history

        burst_strain = max((float(s[0]) for s in strain_history), default=0.0)
        streamness = self.streamness_mask(ctx, burst_strain)

        mash_levels = np.linspace(0, 1, mash_level_count)
        mash_difficulties = [tap_difficulty] + [
            self.tap_strain(ctx, level, finger_strains)[1] for level in mash_levels[1:]
        ]
        logger.debug(f"Tap difficulty {tap_difficulty:.3f}, fully mashed {mash_difficulties[-1]:.3f}")

        return {
            "tap_difficulty": tap_difficulty,
            "stream_note_count": float(np.sum(streamness)),
            "mash_levels": mash_levels.tolist(),
            "mash_tap_difficulties": [float(v) for v in mash_difficulties],
        }

    def tap_strain(
        self, ctx: CalculationContext, mash_level: float, finger_strains: Sequence[float]
    ) -> Tuple[List[np.ndarray], float]:
        """Per-target channel strains and the combined difficulty at one mash level."""
        targets = ctx.targets
        strain_history = [DECAY_COEFFS * 0 for _ in range(min(len(targets), 2))]
        curr_strain = DECAY_COEFFS * 1

        if len(targets) >= 2:
            prev_prev_ms = targets[0].start_time_ms
            prev_ms = targets[1].start_time_ms

            for i in range(2, len(targets)):
                target = targets[i]
                curr_strain = curr_strain * np.exp(-DECAY_COEFFS * ctx.gap_s(target.start_time_ms, prev_ms))
                strain_history.append(curr_strain ** (1.1 / 3) * 1.5)

                relative_d = np.linalg.norm(target.position - targets[i - 1].position) / (2 * target.radius)
                delta = max(ctx.gap_s(target.start_time_ms, prev_prev_ms), MIN_DELTA_S)

                # for 1/4 notes above 200 bpm the exponent is -2.7, otherwise it's -2
                strain_base = max(delta**-2.7 * 0.265, delta**-2)
                strain = (
                    strain_base
                    * mash_nerf_factor(relative_d, mash_level) ** 3
                    * (1 + finger_strains[i]) ** 0.75
                )
                curr_strain = curr_strain + DECAY_COEFFS * strain

                prev_prev_ms = prev_ms
                prev_ms = target.start_time_ms

        if not strain_history:
            return strain_history, 0.0

        aggregator = StrainAggregator(self.AGGREGATOR_DECAY)
        channels = np.vstack(strain_history)
        channel_results = [aggregator.reduce(channels[:, j]) * TIMESCALE_FACTORS[j] for j in range(len(DECAY_COEFFS))]
        return strain_history, power_mean(channel_results, 6)

    @staticmethod
    def streamness_mask(ctx: CalculationContext, skill: float) -> np.ndarray:
        """Per target, how much it belongs to a stream (gap close to the threshold)."""
        targets = ctx.targets
        mask = np.zeros(len(targets))
        if len(targets) < 2 or skill <= 0:
            return mask

        stream_time_threshold = skill ** (-2.7 / 3.2)
        for i in range(1, len(targets)):
            t = ctx.gap_s(targets[i].start_time_ms, targets[i - 1].start_time_ms)
            mask[i] = 1 - logistic((t / stream_time_threshold - 1) * 15)
        return mask
