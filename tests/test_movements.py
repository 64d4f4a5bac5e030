import numpy as np
import pytest

from conftest import build_chart, jump_chart, mixed_chart
from src.difficulty.core import Chart, Target, TargetKind
from src.difficulty.density import calculate_note_densities
from src.difficulty.processing import AngularTerms, MovementExtractor, PatternWindow, stacked_wiggle_rule


def test_movement_count_matches_hit_count():
    chart = mixed_chart()
    movements = MovementExtractor().extract(chart.targets)

    assert chart.hit_count == len(chart.targets) + 3
    assert len(movements) == chart.hit_count


@pytest.mark.parametrize("count", [1, 2, 5, 30])
def test_movement_count_for_plain_charts(count):
    chart = jump_chart(count=count)
    assert len(MovementExtractor().extract(chart.targets)) == chart.hit_count == count


def test_two_target_jump_is_buffed():
    # 100ms apart, radius 20, 200 units apart
    chart = build_chart([1000, 1100], [(100, 100), (300, 100)], radius=20)
    movements = MovementExtractor().extract(chart.targets)

    jump = movements[1]
    assert jump.raw_distance == pytest.approx(5.0)
    assert jump.distance > jump.raw_distance
    assert jump.raw_time_s == pytest.approx(0.1)


def test_first_movement_is_placeholder():
    movements = MovementExtractor().extract(jump_chart(count=4).targets)
    assert movements[0].distance == 0
    assert movements[0].movement_time_s == 1.0


def test_spinner_movements_have_no_difficulty():
    chart = mixed_chart()
    movements = MovementExtractor().extract(chart.targets)
    spinner_index = next(i for i, t in enumerate(chart.targets) if t.kind is TargetKind.SPINNER)
    # 12 circles + extended head + 3 nested before the spinner
    spinner_movement = movements[spinner_index + 3]
    after_spinner = movements[spinner_index + 4]

    assert spinner_movement.distance == 0
    assert after_spinner.distance == 0


def test_extended_path_flag():
    chart = mixed_chart()
    movements = MovementExtractor().extract(chart.targets)
    assert movements[12].ends_on_extended
    assert not movements[11].ends_on_extended


def test_clock_rate_shortens_times():
    chart = jump_chart(count=5)
    normal = MovementExtractor().extract(chart.targets)
    fast = MovementExtractor(clock_rate=1.5).extract(chart.targets)
    assert fast[2].raw_time_s == pytest.approx(normal[2].raw_time_s / 1.5)
    assert fast[2].time_s == pytest.approx(normal[2].time_s / 1.5)


def test_hidden_increases_distance():
    chart = jump_chart(count=20)
    densities = calculate_note_densities(chart.targets, 600)
    plain = MovementExtractor().extract(chart.targets, note_densities=densities)
    hidden = MovementExtractor(hidden=True).extract(chart.targets, note_densities=densities)
    assert all(h.distance >= p.distance for h, p in zip(hidden, plain))
    assert hidden[10].distance > plain[10].distance


def test_stacked_wiggle_rule_zeroes_angular_terms():
    v = np.array([0.3, 0.0])
    window = PatternWindow(
        s01=v, s12=v, s23=v, t01=0.1, t12=0.1, t23=0.1,
        d01=0.3, d12=0.3, d23=0.3, d02=0.6, d13=0.6, d03=0.9, d_m22=None,
    )
    terms = stacked_wiggle_rule(window, AngularTerms(0.5, 0.4, 0.3, 0.2))
    assert terms == AngularTerms()

    window.d03 = 1.5
    kept = stacked_wiggle_rule(window, AngularTerms(0.5, 0.4, 0.3, 0.2))
    assert kept.previous == 0.5


def test_note_density_of_isolated_targets():
    chart = build_chart([0, 5000, 10000], [(0, 0)] * 3)
    assert calculate_note_densities(chart.targets, 600) == [1.0, 1.0, 1.0]


def test_note_density_counts_neighbours():
    chart = build_chart([0, 300, 600], [(0, 0)] * 3)
    densities = calculate_note_densities(chart.targets, 600)
    assert densities[1] == pytest.approx(1 + 0.5 + 0.5)


def test_chart_rejects_non_positive_radius():
    with pytest.raises(ValueError):
        Chart(targets=[Target(index=0, start_time_ms=0, x=0, y=0, radius=0)])
