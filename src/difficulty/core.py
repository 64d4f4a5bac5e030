"""
Core data structures for chart difficulty analysis.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any
import numpy as np


class TargetKind(Enum):
    POINT = "point"
    EXTENDED_PATH = "extended_path"
    SPINNER = "spinner"


@dataclass(frozen=True)
class Target:
    """
    차트의 타겟 하나 (비트맵 로더가 소유하는 불변 객체).
    nested_count 는 헤드를 제외한 틱/테일 개수입니다.
    """

    index: int
    start_time_ms: float
    x: float
    y: float
    radius: float
    kind: TargetKind = TargetKind.POINT
    end_time_ms: Optional[float] = None
    nested_count: int = 0

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    @property
    def is_spinner(self) -> bool:
        return self.kind is TargetKind.SPINNER

    @property
    def is_extended(self) -> bool:
        return self.kind is TargetKind.EXTENDED_PATH

    @property
    def end_ms(self) -> float:
        """Path end time; equals start time for point targets."""
        return self.end_time_ms if self.end_time_ms is not None else self.start_time_ms

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Target":
        return cls(
            index=int(data["index"]),
            start_time_ms=float(data["start_time_ms"]),
            x=float(data["x"]),
            y=float(data["y"]),
            radius=float(data["radius"]),
            kind=TargetKind(data.get("kind", "point")),
            end_time_ms=data.get("end_time_ms"),
            nested_count=int(data.get("nested_count", 0)),
        )


@dataclass(frozen=True)
class Chart:
    """Ordered targets plus the base metadata the calculators read."""

    targets: List[Target]
    approach_rate: float = 9.0
    overall_difficulty: float = 8.0

    def __post_init__(self):
        if any(t.radius <= 0 for t in self.targets):
            raise ValueError("Target radius must be positive")

    @property
    def hit_count(self) -> int:
        """Total judged hits including nested sub-targets (= max combo)."""
        return len(self.targets) + sum(t.nested_count for t in self.targets)

    def count_of(self, kind: TargetKind) -> int:
        return sum(1 for t in self.targets if t.kind is kind)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chart":
        return cls(
            targets=[Target.from_dict(t) for t in data["targets"]],
            approach_rate=float(data.get("approach_rate", 9.0)),
            overall_difficulty=float(data.get("overall_difficulty", 8.0)),
        )


@dataclass(frozen=True)
class Movement:
    """
    타겟 하나에 대응하는 보정된 이동 정보.
    시간 단위는 초(s), 거리 단위는 타겟 지름입니다.
    """

    raw_time_s: float  # 이전 타겟과의 실제 시간 간격
    distance: float  # 보정된 유효 거리
    movement_time_s: float  # 보정된 이동 시간
    index_of_performance: float
    cheesability: float = 0.0
    cheesable_ratio: float = 0.0
    ends_on_extended: bool = False
    time_s: float = 0.0
    raw_distance: float = 0.0  # 보정 전 정규화 거리

    @classmethod
    def empty(cls, time_s: float) -> "Movement":
        """Zero-difficulty placeholder (first target, nested ticks, spinners)."""
        return cls(
            raw_time_s=0.0,
            distance=0.0,
            movement_time_s=1.0,
            index_of_performance=0.0,
            time_s=time_s,
        )


@dataclass
class CalculationContext:
    """
    한 번의 난이도 계산 동안만 유효한 요청 범위 컨테이너.
    각 스킬이 순서대로 결과를 기록하고 다음 스킬이 읽어갑니다.
    """

    chart: Chart
    clock_rate: float = 1.0
    note_densities: List[float] = field(default_factory=list)
    finger_strain_history: List[float] = field(default_factory=list)
    tap_strain_history: List[np.ndarray] = field(default_factory=list)
    movements: List[Movement] = field(default_factory=list)
    hidden_movements: List[Movement] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.clock_rate <= 0:
            raise ValueError("Clock rate must be positive")

    @property
    def targets(self) -> List[Target]:
        return self.chart.targets

    def gap_s(self, later_ms: float, earlier_ms: float) -> float:
        """Clock-rate adjusted gap in seconds."""
        return (later_ms - earlier_ms) / 1000.0 / self.clock_rate
