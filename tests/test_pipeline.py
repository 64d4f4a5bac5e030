import pytest

from conftest import build_chart, jump_chart, mixed_chart
from src.difficulty.core import Chart
from src.difficulty.models import DifficultyFingerprint, Mods
from src.difficulty.pipeline import ChartDifficultyCalculator, display_approach_rate, display_overall_difficulty


def test_single_target_chart_is_zero():
    fp = ChartDifficultyCalculator().calculate(build_chart([1000], [(0, 0)]))
    assert fp.star_rating == 0
    assert fp.aim_difficulty == 0
    assert fp.combo_tps == []
    assert fp.max_combo == 1


def test_empty_chart_is_zero():
    fp = ChartDifficultyCalculator().calculate(Chart(targets=[]))
    assert fp.star_rating == 0
    assert fp.max_combo == 0
    assert fp.length_s == 0


def test_fingerprint_fields(jump_fingerprint):
    fp = jump_fingerprint
    assert fp.star_rating > 0
    assert fp.object_count == fp.circle_count == 60
    assert fp.max_combo == 60
    assert fp.length_s == pytest.approx(59 * 0.15)
    assert fp.mashed_tap_difficulty == fp.mash_tap_difficulties[-1]
    assert fp.aim_sr == pytest.approx(0.641 * fp.aim_difficulty**0.83)


def test_fingerprint_is_serialisable(jump_fingerprint):
    restored = DifficultyFingerprint.model_validate_json(jump_fingerprint.model_dump_json())
    assert restored == jump_fingerprint


def test_mixed_chart_counts():
    fp = ChartDifficultyCalculator().calculate(mixed_chart())
    assert fp.object_count == 22
    assert fp.extended_count == 1
    assert fp.spinner_count == 1
    assert fp.circle_count == 20
    assert fp.max_combo == 25


def test_star_rating_balance_term():
    calculator = ChartDifficultyCalculator()
    balanced = calculator.star_rating(4.0, 4.0, 1.0)
    assert balanced["star_rating"] > 0
    assert calculator.star_rating(0.0, 0.0, 0.0)["star_rating"] == 0.0
    # one dominant skill still raises the rating
    assert calculator.star_rating(8.0, 4.0, 1.0)["star_rating"] > balanced["star_rating"]


def test_display_scalars():
    assert display_approach_rate(9.0, 1.0) == pytest.approx(9.0)
    assert display_approach_rate(9.0, 1.5) == pytest.approx(10 + 1 / 3)
    assert display_approach_rate(3.0, 1.0) == pytest.approx(3.0)
    assert display_overall_difficulty(8.0, 1.0) == pytest.approx(8.0)
    assert display_overall_difficulty(8.0, 1.5) > 8.0


def test_faster_clock_rate_raises_star_rating():
    chart = jump_chart(count=40)
    calculator = ChartDifficultyCalculator()
    normal = calculator.calculate(chart)
    fast = calculator.calculate(chart, Mods(clock_rate=1.5))

    assert fast.tap_difficulty > normal.tap_difficulty
    assert fast.length_s == pytest.approx(normal.length_s / 1.5)
    assert fast.approach_rate > normal.approach_rate
