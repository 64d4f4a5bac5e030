"""
Chart Difficulty Pipeline Manager.
Runs the registered skills in order over one request-scoped context and folds
their results into a DifficultyFingerprint.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from src.difficulty.core import CalculationContext, Chart, TargetKind
from src.difficulty.density import calculate_note_densities
from src.difficulty.mathutil import difficulty_range, power_mean
from src.difficulty.models import DifficultyFingerprint, Mods
from src.difficulty.skills.aim import AimSkill
from src.difficulty.skills.base import SkillStrategy
from src.difficulty.skills.finger_control import FingerControlSkill
from src.difficulty.skills.tap import TapSkill


def display_approach_rate(approach_rate: float, clock_rate: float) -> float:
    preempt = int(difficulty_range(approach_rate, 1800, 1200, 450)) / clock_rate
    return (1800 - preempt) / 120 if preempt > 1200 else (1200 - preempt) / 150 + 5


def display_overall_difficulty(overall_difficulty: float, clock_rate: float) -> float:
    great_window = int(80 - 6 * overall_difficulty) / clock_rate
    return (80 - great_window) / 6


class ChartDifficultyCalculator:
    AIM_MULTIPLIER = 0.641
    TAP_MULTIPLIER = 0.641
    FINGER_CONTROL_MULTIPLIER = 1.245
    SR_EXPONENT = 0.83
    SR_POWER_MEAN_ORDER = 7
    SR_MULTIPLIER = 1.131

    def __init__(self, skills: Optional[List[SkillStrategy]] = None):
        # 순서 중요: finger control -> tap (finger strain 사용) -> aim (tap strain 사용)
        self.skills: List[SkillStrategy] = (
            list(skills) if skills is not None else [FingerControlSkill(), TapSkill(), AimSkill()]
        )

    def add_skill(self, skill: SkillStrategy):
        self.skills.append(skill)

    def calculate(self, chart: Chart, mods: Optional[Mods] = None) -> DifficultyFingerprint:
        """
        차트와 모드(배속)를 받아 난이도 지문을 계산합니다.
        타겟이 1개 이하인 차트는 예외 없이 0 난이도를 반환합니다.
        """
        mods = mods or Mods()
        clock_rate = mods.clock_rate
        summary = self._chart_summary(chart, clock_rate)

        if len(chart.targets) <= 1:
            logger.warning(f"Chart has {len(chart.targets)} target(s); returning zero difficulty")
            return DifficultyFingerprint.zero(**summary)

        ctx = CalculationContext(chart=chart, clock_rate=clock_rate)
        # 밀도는 배속과 무관한 AR 기준 preempt 로 계산
        preempt_ms = difficulty_range(chart.approach_rate, 1800, 1200, 450)
        ctx.note_densities = calculate_note_densities(chart.targets, preempt_ms)

        results: Dict[str, Any] = {}
        for skill in self.skills:
            results.update(skill.calculate(ctx))

        star = self.star_rating(
            results["tap_difficulty"], results["aim_difficulty"], results["finger_control_difficulty"]
        )
        mash_tap = results.get("mash_tap_difficulties") or [results["tap_difficulty"]]

        fingerprint = DifficultyFingerprint(
            **summary,
            **star,
            mashed_tap_difficulty=mash_tap[-1],
            **results,
        )
        logger.info(
            f"SR {fingerprint.star_rating:.2f} (tap {fingerprint.tap_difficulty:.2f}, "
            f"aim {fingerprint.aim_difficulty:.2f}, fc {fingerprint.finger_control_difficulty:.2f}) "
            f"for {len(chart.targets)} targets at x{clock_rate}"
        )
        return fingerprint

    def star_rating(self, tap: float, aim: float, finger_control: float) -> Dict[str, float]:
        tap_sr = self.TAP_MULTIPLIER * tap**self.SR_EXPONENT
        aim_sr = self.AIM_MULTIPLIER * aim**self.SR_EXPONENT
        fc_sr = self.FINGER_CONTROL_MULTIPLIER * finger_control**self.SR_EXPONENT

        components = [tap_sr, aim_sr, fc_sr]
        lowest = min(components)
        # 한 스킬에 치우친 맵은 가장 낮은 스킬 항을 부풀려 보정
        balance = lowest * max(1.0, max(components) / lowest / 4) if lowest > 0 else 0.0
        star_rating = power_mean(components + [balance], self.SR_POWER_MEAN_ORDER) * self.SR_MULTIPLIER

        return {"star_rating": star_rating, "tap_sr": tap_sr, "aim_sr": aim_sr, "finger_control_sr": fc_sr}

    @staticmethod
    def _chart_summary(chart: Chart, clock_rate: float) -> Dict[str, Any]:
        targets = chart.targets
        length_s = (targets[-1].start_time_ms - targets[0].start_time_ms) / 1000 / clock_rate if targets else 0.0
        return {
            "approach_rate": display_approach_rate(chart.approach_rate, clock_rate),
            "overall_difficulty": display_overall_difficulty(chart.overall_difficulty, clock_rate),
            "max_combo": chart.hit_count,
            "length_s": length_s,
            "object_count": len(targets),
            "circle_count": chart.count_of(TargetKind.POINT),
            "extended_count": chart.count_of(TargetKind.EXTENDED_PATH),
            "spinner_count": chart.count_of(TargetKind.SPINNER),
        }
