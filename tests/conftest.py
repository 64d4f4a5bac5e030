import numpy as np
import pytest

from src.difficulty.core import Chart, Target, TargetKind
from src.difficulty.pipeline import ChartDifficultyCalculator


def build_chart(times_ms, positions, radius=30.0, approach_rate=9.0, overall_difficulty=8.0):
    targets = [
        Target(index=i, start_time_ms=float(t), x=float(p[0]), y=float(p[1]), radius=radius)
        for i, (t, p) in enumerate(zip(times_ms, positions))
    ]
    return Chart(targets=targets, approach_rate=approach_rate, overall_difficulty=overall_difficulty)


def jump_chart(count=60, gap_ms=150.0, spacing=300.0, radius=30.0):
    """Back-and-forth jumps between two points."""
    times = [1000 + i * gap_ms for i in range(count)]
    positions = [(100 + spacing * (i % 2), 200) for i in range(count)]
    return build_chart(times, positions, radius=radius)


def mixed_chart():
    """Circles, one extended path with nested ticks and one spinner."""
    targets = []
    t = 1000.0
    for i in range(12):
        targets.append(Target(index=len(targets), start_time_ms=t, x=100 + 40 * (i % 4), y=200, radius=30))
        t += 180
    targets.append(
        Target(
            index=len(targets),
            start_time_ms=t,
            x=250,
            y=250,
            radius=30,
            kind=TargetKind.EXTENDED_PATH,
            end_time_ms=t + 400,
            nested_count=3,
        )
    )
    t += 600
    targets.append(
        Target(
            index=len(targets),
            start_time_ms=t,
            x=256,
            y=192,
            radius=30,
            kind=TargetKind.SPINNER,
            end_time_ms=t + 1500,
        )
    )
    t += 2000
    for i in range(8):
        targets.append(Target(index=len(targets), start_time_ms=t, x=300 - 30 * i, y=100 + 20 * i, radius=30))
        t += 200
    return Chart(targets=targets)


@pytest.fixture(scope="session")
def jump_fingerprint():
    return ChartDifficultyCalculator().calculate(jump_chart())


@pytest.fixture
def rng():
    return np.random.default_rng(42)
