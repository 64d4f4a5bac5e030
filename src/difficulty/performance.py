"""
Performance value of one play on a rated chart.

Inverse direction of the difficulty pipeline: the play's combo, misses and
accuracy pick points on the fingerprint's throughput curves, which are turned
into aim / tap / accuracy values and combined.
"""

import math

from loguru import logger

from src.difficulty.mathutil import MonotoneCurve, accuracy_to_deviation, logistic, power_mean
from src.difficulty.models import DifficultyFingerprint, PerformanceResult, ScoreOutcome

TOTAL_MULTIPLIER = 2.14
NO_FAIL_MULTIPLIER = 0.90
SPUN_OUT_MULTIPLIER = 0.95


def effective_miss_count(fingerprint: DifficultyFingerprint, score: ScoreOutcome) -> float:
    """Reported misses, or more if the combo deficit implies unreported slider breaks."""
    max_combo = fingerprint.max_combo
    combo = score.max_combo
    extended = fingerprint.extended_count

    combo_based = 0.0
    if extended == 0:
        if combo < max_combo:
            combo_based = max_combo / max(combo, 1)
    else:
        full_combo_threshold = max_combo - 0.1 * extended
        if combo < full_combo_threshold:
            combo_based = full_combo_threshold / max(combo, 1)
        elif combo < max_combo:
            combo_based = ((max_combo - combo) / (0.1 * extended)) ** 3

    return max(float(score.count_miss), combo_based)


def modified_accuracy(fingerprint: DifficultyFingerprint, score: ScoreOutcome) -> float:
    """Accuracy over hit circles only, assuming every other judgement was a great."""
    circles = fingerprint.circle_count
    total_hits = score.total_hits
    great_on_circles = score.count_great - (total_hits - circles)
    return (great_on_circles * 3 + score.count_good * 2 + score.count_meh) / ((circles + 2) * 3)


class PerformanceCalculator:
    AIM_CONSTANT = 0.118
    AIM_EXPONENT = 2.7
    TAP_CONSTANT = 0.115
    TAP_EXPONENT = 2.7
    ACCURACY_CONSTANT = 46000
    TOTAL_POWER_MEAN_ORDER = 1.5

    def __init__(self, fingerprint: DifficultyFingerprint, score: ScoreOutcome):
        self.fingerprint = fingerprint
        self.score = score
        self.mods = score.mods

        self.total_hits = score.total_hits
        self.great_window = 79.5 - 6 * fingerprint.overall_difficulty
        self.effective_miss_count = effective_miss_count(fingerprint, score)
        self.modified_accuracy = modified_accuracy(fingerprint, score)

    def calculate(self) -> PerformanceResult:
        if not self.mods.ranked or self.fingerprint.object_count <= 1:
            return PerformanceResult()

        multiplier = TOTAL_MULTIPLIER
        if self.mods.no_fail:
            multiplier *= NO_FAIL_MULTIPLIER
        if self.mods.spun_out:
            multiplier *= SPUN_OUT_MULTIPLIER

        aim = self.aim_value()
        tap = self.tap_value()
        acc = self.accuracy_value()
        total = power_mean([aim, tap, acc], self.TOTAL_POWER_MEAN_ORDER) * multiplier

        logger.debug(f"pp {total:.2f} (aim {aim:.2f}, tap {tap:.2f}, acc {acc:.2f})")
        return PerformanceResult(
            aim=aim,
            tap=tap,
            accuracy=acc,
            total=total,
            breakdown={
                "Aim": aim,
                "Tap": tap,
                "Accuracy": acc,
                "OD": self.fingerprint.overall_difficulty,
                "AR": self.fingerprint.approach_rate,
                "Max Combo": float(self.fingerprint.max_combo),
                "Effective Miss Count": self.effective_miss_count,
            },
        )

    def aim_throughput(self) -> float:
        """Throughput shown by the play: near-minimum of the combo- and miss-based estimates."""
        fp = self.fingerprint
        combo_ratio = self.score.max_combo / fp.max_combo if fp.max_combo else 1.0
        combo_curve = MonotoneCurve([(i + 1) / len(fp.combo_tps) for i in range(len(fp.combo_tps))], fp.combo_tps)
        miss_curve = MonotoneCurve(fp.miss_counts, fp.miss_tps)

        combo_tp = combo_curve(combo_ratio)
        miss_tp = max(miss_curve(self.effective_miss_count), 0.0)
        return power_mean([combo_tp, miss_tp], 20)

    def aim_value(self) -> float:
        fp = self.fingerprint
        ar = fp.approach_rate
        tp = self.aim_throughput()

        if self.mods.hidden:
            tp *= self._hidden_factor(ar)

        cheese_curve = MonotoneCurve(fp.cheese_levels, fp.cheese_factors)
        acc_on_cheese = 1 - (1 - self.modified_accuracy) * math.sqrt(
            self.total_hits / max(fp.cheese_note_count, 1)
        )
        ur_on_cheese = 10 * accuracy_to_deviation(acc_on_cheese, self.great_window)
        cheese_level = logistic((ur_on_cheese * fp.aim_difficulty - 3200) / 2000)
        cheese_factor = cheese_curve(cheese_level)

        if self.mods.touch_device:
            tp = min(tp, 1.47 * tp**0.8)

        value = self.AIM_CONSTANT * (tp * cheese_factor) ** self.AIM_EXPONENT

        value *= 0.96 ** max(self.effective_miss_count - 0.5, 0)

        length_bonus = logistic((self.total_hits - 2800) / 500) - logistic(-5.6)
        value *= 1 + length_bonus * 0.22

        ar_factor = 1.0
        if ar > 10:
            ar_factor += (0.05 + 0.35 * math.sin(math.pi * min(self.total_hits, 1250) / 2500) ** 1.7) * (ar - 10) ** 2
        elif ar < 8:
            ar_factor += 0.01 * (8 - ar)
        value *= ar_factor

        if self.mods.flashlight:
            th = self.total_hits
            bonus = 0.35 * min(1.0, th / 200)
            if th > 200:
                bonus += 0.3 * min(1.0, (th - 200) / 300)
                if th > 500:
                    bonus += (th - 500) / 2000
            value *= 1 + bonus

        # 정확도 페널티: 판정이 좁고 조준 난이도가 높을수록 정확도 영향 증가
        acc_length = self.great_window * fp.aim_difficulty / 300
        penalty = (0.09 / (self.score.accuracy - 1.3) + 0.3) * (acc_length + 1.5)
        value *= math.exp(-penalty)

        return value

    def tap_value(self) -> float:
        fp = self.fingerprint
        th = self.total_hits

        acc_on_streams = 1 - (1 - self.modified_accuracy) * math.sqrt(th / max(fp.stream_note_count, 1))
        ur_on_streams = 10 * accuracy_to_deviation(acc_on_streams, self.great_window)
        mash_level = logistic((ur_on_streams * fp.tap_difficulty - 4000) / 1000)

        if fp.mash_levels:
            tap_skill = MonotoneCurve(fp.mash_levels, fp.mash_tap_difficulties)(mash_level)
        else:
            tap_skill = fp.tap_difficulty

        value = self.TAP_CONSTANT * tap_skill**self.TAP_EXPONENT

        value += math.exp((acc_on_streams - 1) * 60) * value * 0.2
        value *= 0.5 + 0.5 * (logistic((self.score.accuracy - 0.65) / 0.1) + logistic(-3.5))

        value *= 0.93 ** max(self.effective_miss_count - 0.5, 0)
        meh = self.score.count_meh
        value *= 0.98 ** (0.5 * meh if meh < th / 500 else meh - th / 500 * 0.5)

        ar = fp.approach_rate
        if ar > 10.33:
            value *= 1 + 0.8 * (logistic(th / 500) - 0.5) * (ar - 10.33) / 0.67

        return value

    def accuracy_value(self) -> float:
        fp = self.fingerprint
        deviation = accuracy_to_deviation(self.modified_accuracy - 0.003, self.great_window + 20)
        value = deviation**-2.2 * fp.finger_control_difficulty**0.5 * self.ACCURACY_CONSTANT

        value *= 0.96 ** max(self.effective_miss_count - 0.5, 0)

        length = fp.length_s
        if length < 120:
            length_factor = logistic((length - 300) / 60) + logistic(2.5) - logistic(-2.5)
        else:
            length_factor = logistic(length / 60)
        value *= length_factor

        if self.mods.hidden:
            value *= 1.08
        if self.mods.flashlight:
            value *= 1.02

        return value

    def _hidden_factor(self, ar: float) -> float:
        """Full hidden bonus below AR 9.75, fading to none above AR 10.75."""
        hidden_factor = self.fingerprint.aim_hidden_factor
        if ar > 10.75:
            return 1.0
        if ar > 9.75:
            return 1 + (1 - math.sin((ar - 9.75) * math.pi / 2) ** 2) * (hidden_factor - 1)
        return hidden_factor

