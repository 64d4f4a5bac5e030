import numpy as np
import pytest

from conftest import jump_chart, mixed_chart
from src.difficulty.core import Movement
from src.difficulty.hit_probabilities import HitProbabilityModel, MapSection, penalise_low_probability
from src.difficulty.aiming import FittsAimingModel
from src.difficulty.processing import MovementExtractor


@pytest.fixture(scope="module")
def movements():
    return MovementExtractor().extract(jump_chart(count=80).targets)


def test_sections_partition_movements(movements):
    model = HitProbabilityModel(movements, section_count=20)
    assert len(model.sections) == 20
    assert model.count(0, 20) == len(movements)
    assert [len(s) for s in model.sections] == [4] * 20
    assert not model.is_empty(1)


def test_short_chart_has_empty_sections():
    moves = MovementExtractor().extract(jump_chart(count=5).targets)
    model = HitProbabilityModel(moves, section_count=20)
    assert model.count(0, 20) == 5
    assert model.is_empty(1)
    assert not model.is_empty(20)


def test_fc_probability_monotone_in_throughput(movements, rng):
    model = HitProbabilityModel(movements)
    for lo, hi in np.sort(rng.uniform(0.1, 30, size=(40, 2)), axis=1):
        assert model.fc_probability(lo) <= model.fc_probability(hi) + 1e-12


def test_min_expected_time_monotone_in_throughput(movements, rng):
    model = HitProbabilityModel(movements)
    for count in (1, 5, 20):
        for lo, hi in np.sort(rng.uniform(0.5, 30, size=(20, 2)), axis=1):
            assert model.min_expected_time_for_count(hi, count) <= model.min_expected_time_for_count(lo, count) + 1e-9


def test_cache_returns_identical_result(movements):
    section = HitProbabilityModel(movements).sections[3]
    first = section.evaluate(4.2)
    second = section.evaluate(4.2)

    assert second is first
    assert section.cache_misses == 1
    assert section.cache_hits == 1

    section.evaluate(4.3)
    assert section.cache_misses == 2


def test_model_cache_counters_sum_sections(movements):
    model = HitProbabilityModel(movements)
    model.fc_probability(3.0)
    model.fc_probability(3.0)
    assert model.cache_misses == 20
    assert model.cache_hits == 20


def test_empty_section_evaluates_to_certain_fc():
    section = MapSection([], 0.0, FittsAimingModel())
    result = section.evaluate(1.0)
    assert result.fc_probability == 1.0
    assert result.expected_time == 0.0


def test_section_expected_time_recurrence():
    moves = [
        Movement(raw_time_s=0.2, distance=3.0, movement_time_s=0.2, index_of_performance=0.0),
        Movement(raw_time_s=0.3, distance=4.0, movement_time_s=0.3, index_of_performance=0.0),
    ]
    aiming = FittsAimingModel()
    section = MapSection(moves, 0.0, aiming)
    result = section.evaluate(6.0)

    p = [float(penalise_low_probability(aiming.hit_probability(m.distance, m.movement_time_s, 6.0) + 1e-10)) for m in moves]
    expected = 0.0
    for m, pi in zip(moves, p):
        expected = (expected + m.raw_time_s) / pi
    assert result.expected_time == pytest.approx(expected)
    assert result.fc_probability == pytest.approx(p[0] * p[1])


def test_cheese_makes_fc_more_likely(movements):
    plain = HitProbabilityModel(movements, cheese_level=0.0)
    cheesed = HitProbabilityModel(movements, cheese_level=1.0)
    assert cheesed.fc_probability(5.0) >= plain.fc_probability(5.0)


def test_penalise_low_probability_endpoints():
    assert penalise_low_probability(np.array(1.0)) == pytest.approx(1.0)
    assert penalise_low_probability(np.array(0.0)) == pytest.approx(1.5 - np.sqrt(1.25))


def test_length_of_window():
    chart = mixed_chart()
    moves = MovementExtractor().extract(chart.targets)
    model = HitProbabilityModel(moves, section_count=4)
    total = model.length(0, 4)
    assert total == pytest.approx(moves[-1].time_s - moves[0].time_s)
    assert model.length(1, 2) < total
