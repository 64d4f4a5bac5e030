import numpy as np
import pytest

from conftest import build_chart, jump_chart
from src.difficulty.core import CalculationContext
from src.difficulty.skills.finger_control import (
    FingerControlSkill,
    GapHistory,
    calculate_expectancy,
    check_anomaly,
)
from src.difficulty.skills.tap import TapSkill, mash_nerf_factor


def stream_chart(gaps_ms, radius=30.0):
    times = np.concatenate([[1000.0], 1000.0 + np.cumsum(gaps_ms)])
    positions = [(100 + 20 * (i % 5), 200) for i in range(len(times))]
    return build_chart(times, positions, radius=radius)


def finger_difficulty(chart):
    ctx = CalculationContext(chart=chart)
    return FingerControlSkill().calculate(ctx)["finger_control_difficulty"], ctx


def test_repeated_gaps_have_minimal_finger_control():
    difficulty, ctx = finger_difficulty(stream_chart([150.0] * 120))
    assert difficulty == pytest.approx(0.0, abs=1e-9)
    assert len(ctx.finger_strain_history) == 121


def test_irregular_gaps_have_finger_control(rng):
    gaps = rng.choice([100.0, 150.0, 230.0, 310.0, 75.0], size=120)
    difficulty, _ = finger_difficulty(stream_chart(gaps))
    assert difficulty > 0


def test_gap_history_is_bounded():
    history = GapHistory()
    for _ in range(100):
        history.push(0.05, 0.05)
    assert len(history) == GapHistory.MAX_COUNT

    history = GapHistory()
    for _ in range(10):
        history.push(1.0, 1.0)
    assert sum(history.real) <= GapHistory.MAX_TOTAL_S
    assert len(history.virtual) == len(history.real)


def test_expectancy_of_constant_rhythm():
    assert calculate_expectancy([0.2] * 10) == 1.0


def test_check_anomaly_counts_distinct_gaps():
    unique, exists = check_anomaly([0.1, 0.2, 0.1, 0.3, 0.2])
    assert unique == 3
    assert exists

    _, exists = check_anomaly([0.1, 0.1, 0.37])
    assert not exists


def test_mash_nerf_factor_bounds():
    assert mash_nerf_factor(0.0, 0.0) == 1.0
    assert mash_nerf_factor(5.0, 1.0) == pytest.approx(1.0, abs=1e-3)
    assert 0.73 <= mash_nerf_factor(0.0, 1.0) < 0.75


def tap_results(chart, clock_rate=1.0):
    ctx = CalculationContext(chart=chart, clock_rate=clock_rate)
    FingerControlSkill().calculate(ctx)
    return TapSkill().calculate(ctx), ctx


def test_tap_history_and_mash_curve():
    results, ctx = tap_results(stream_chart([110.0] * 80))

    assert len(ctx.tap_strain_history) == 81
    assert results["tap_difficulty"] > 0
    assert len(results["mash_levels"]) == len(results["mash_tap_difficulties"]) == 11
    assert results["mash_tap_difficulties"][0] == results["tap_difficulty"]
    assert results["mash_tap_difficulties"][-1] <= results["tap_difficulty"]
    assert results["stream_note_count"] > 0


def test_tap_harder_at_higher_clock_rate():
    chart = stream_chart([120.0] * 60)
    normal, _ = tap_results(chart)
    fast, _ = tap_results(chart, clock_rate=1.5)
    assert fast["tap_difficulty"] > normal["tap_difficulty"]


def test_tap_is_radius_independent():
    small, _ = tap_results(jump_chart(radius=30))
    large, _ = tap_results(jump_chart(radius=60))
    assert large["tap_difficulty"] == pytest.approx(small["tap_difficulty"], rel=1e-12)


def test_tap_on_two_targets_is_zero():
    results, _ = tap_results(jump_chart(count=2))
    assert results["tap_difficulty"] == 0.0
