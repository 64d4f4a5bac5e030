import pytest
from pydantic import ValidationError

from conftest import build_chart
from src.difficulty.models import DifficultyFingerprint, Mods, ScoreOutcome
from src.difficulty.performance import PerformanceCalculator, effective_miss_count, modified_accuracy
from src.difficulty.pipeline import ChartDifficultyCalculator


def full_combo(fp, **mods):
    return ScoreOutcome(
        accuracy=1.0,
        max_combo=fp.max_combo,
        count_great=fp.max_combo,
        mods=Mods(**mods),
    )


def test_full_combo_uses_top_combo_sample(jump_fingerprint):
    fp = jump_fingerprint
    calc = PerformanceCalculator(fp, full_combo(fp))

    assert calc.effective_miss_count == 0
    assert calc.aim_throughput() == pytest.approx(fp.combo_tps[-1], rel=1e-9)


@pytest.mark.parametrize("wiggle", [0, 10])
def test_full_combo_on_aim_trivial_chart_uses_top_combo_sample(wiggle):
    # 겹친 노트 또는 지름보다 훨씬 작은 흔들림: 실질적인 조준 없음
    chart = build_chart([1000 + i * 150 for i in range(40)], [(256 + wiggle * (i % 2), 192) for i in range(40)])
    fp = ChartDifficultyCalculator().calculate(chart)
    calc = PerformanceCalculator(fp, full_combo(fp))

    assert calc.effective_miss_count == 0
    assert calc.aim_throughput() == pytest.approx(fp.combo_tps[-1], rel=1e-9)


def test_performance_result(jump_fingerprint):
    result = PerformanceCalculator(jump_fingerprint, full_combo(jump_fingerprint)).calculate()

    assert result.total > 0
    assert result.aim > 0 and result.tap > 0
    # perfectly regular rhythm: no finger control, no accuracy value
    assert result.accuracy == 0
    assert set(result.breakdown) == {"Aim", "Tap", "Accuracy", "OD", "AR", "Max Combo", "Effective Miss Count"}
    assert result.breakdown["Max Combo"] == jump_fingerprint.max_combo


def test_misses_lower_performance(jump_fingerprint):
    fp = jump_fingerprint
    fc = PerformanceCalculator(fp, full_combo(fp)).calculate()
    missed = PerformanceCalculator(
        fp, ScoreOutcome(accuracy=0.95, max_combo=30, count_great=55, count_miss=5)
    ).calculate()
    assert missed.total < fc.total
    assert missed.aim < fc.aim


def test_unranked_mods_give_zero(jump_fingerprint):
    result = PerformanceCalculator(jump_fingerprint, full_combo(jump_fingerprint, ranked=False)).calculate()
    assert result.total == 0


def test_no_fail_multiplier(jump_fingerprint):
    fp = jump_fingerprint
    normal = PerformanceCalculator(fp, full_combo(fp)).calculate()
    no_fail = PerformanceCalculator(fp, full_combo(fp, no_fail=True)).calculate()
    assert no_fail.total == pytest.approx(normal.total * 0.9)


def test_hidden_bonus_at_normal_approach_rate(jump_fingerprint):
    fp = jump_fingerprint
    normal = PerformanceCalculator(fp, full_combo(fp)).calculate()
    hidden = PerformanceCalculator(fp, full_combo(fp, hidden=True)).calculate()
    assert hidden.aim > normal.aim
    assert hidden.accuracy == pytest.approx(normal.accuracy * 1.08)


def test_touch_device_caps_aim(jump_fingerprint):
    fp = jump_fingerprint
    normal = PerformanceCalculator(fp, full_combo(fp)).calculate()
    touch = PerformanceCalculator(fp, full_combo(fp, touch_device=True)).calculate()
    assert touch.aim <= normal.aim


def test_degenerate_fingerprint_gives_zero():
    fp = DifficultyFingerprint.zero(max_combo=1, object_count=1, circle_count=1)
    result = PerformanceCalculator(fp, ScoreOutcome(accuracy=1.0, max_combo=1, count_great=1)).calculate()
    assert result.total == 0


def test_effective_miss_count_without_extended_paths():
    fp = DifficultyFingerprint(max_combo=60, circle_count=60, object_count=60)
    assert effective_miss_count(fp, ScoreOutcome(accuracy=1, max_combo=60, count_great=60)) == 0
    assert effective_miss_count(fp, ScoreOutcome(accuracy=1, max_combo=30, count_great=60)) == 2.0
    assert effective_miss_count(fp, ScoreOutcome(accuracy=1, max_combo=30, count_great=57, count_miss=3)) == 3


def test_effective_miss_count_with_extended_paths():
    fp = DifficultyFingerprint(max_combo=100, extended_count=10, circle_count=70, object_count=80)
    # one dropped slider tail near the end counts as a single miss
    assert effective_miss_count(fp, ScoreOutcome(accuracy=1, max_combo=99, count_great=80)) == pytest.approx(1.0)
    assert effective_miss_count(fp, ScoreOutcome(accuracy=1, max_combo=50, count_great=80)) == pytest.approx(99 / 50)


def test_modified_accuracy():
    fp = DifficultyFingerprint(circle_count=60, object_count=70)
    score = ScoreOutcome(accuracy=1, max_combo=70, count_great=70)
    assert modified_accuracy(fp, score) == pytest.approx(60 * 3 / (62 * 3))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"accuracy": 1.2, "max_combo": 10, "count_great": 10},
        {"accuracy": 0.9, "max_combo": -1, "count_great": 10},
        {"accuracy": 0.9, "max_combo": 10, "count_great": 10, "count_miss": -2},
        {"accuracy": 0.9, "max_combo": 0},
    ],
)
def test_score_outcome_validation(kwargs):
    with pytest.raises(ValidationError):
        ScoreOutcome(**kwargs)


def test_mods_reject_non_positive_clock_rate():
    with pytest.raises(ValidationError):
        Mods(clock_rate=0)


@pytest.mark.parametrize(
    "ar, expected",
    [
        (8.0, 1.2),
        (9.75, 1.2),
        (10.25, 1.1),
        (10.75, 1.0),
        (11.0, 1.0),
    ],
)
def test_hidden_factor_fades_with_approach_rate(ar, expected):
    fp = DifficultyFingerprint(aim_hidden_factor=1.2, max_combo=10, circle_count=10, object_count=10)
    calc = PerformanceCalculator(fp, ScoreOutcome(accuracy=1.0, max_combo=10, count_great=10))
    assert calc._hidden_factor(ar) == pytest.approx(expected)


def test_hidden_factor_ramp_is_monotone():
    fp = DifficultyFingerprint(aim_hidden_factor=1.2, max_combo=10, circle_count=10, object_count=10)
    calc = PerformanceCalculator(fp, ScoreOutcome(accuracy=1.0, max_combo=10, count_great=10))
    factors = [calc._hidden_factor(9.75 + 0.1 * i) for i in range(11)]
    assert all(a >= b for a, b in zip(factors, factors[1:]))
