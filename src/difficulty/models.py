"""
Validated input/output models for the star rating and performance calculators.
Pydantic v2 validation keeps malformed score data out of the numeric code.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Mods(BaseModel):
    """Gameplay modifiers relevant to difficulty and performance."""

    model_config = ConfigDict(frozen=True)

    clock_rate: float = Field(1.0, gt=0, description="Playback speed multiplier")
    hidden: bool = False
    flashlight: bool = False
    no_fail: bool = False
    spun_out: bool = False
    touch_device: bool = False
    ranked: bool = True


class ScoreOutcome(BaseModel):
    """
    One play's judgement counts. The performance calculator never looks at
    anything else from the replay.
    """

    model_config = ConfigDict(frozen=True)

    accuracy: float = Field(..., ge=0, le=1, description="Hit accuracy fraction")
    max_combo: int = Field(..., ge=0)
    count_great: int = Field(0, ge=0)
    count_good: int = Field(0, ge=0)
    count_meh: int = Field(0, ge=0)
    count_miss: int = Field(0, ge=0)
    mods: Mods = Field(default_factory=Mods)

    @model_validator(mode="after")
    def check_judgements(self) -> "ScoreOutcome":
        if self.total_hits == 0:
            raise ValueError("Score must contain at least one judgement")
        return self

    @property
    def total_hits(self) -> int:
        return self.count_great + self.count_good + self.count_meh + self.count_miss


class DifficultyFingerprint(BaseModel):
    """
    Everything the performance calculator needs from a chart, computed once
    per (chart, clock rate, hidden) combination. Immutable and serialisable.
    """

    model_config = ConfigDict(frozen=True)

    star_rating: float = 0.0

    tap_difficulty: float = 0.0
    mashed_tap_difficulty: float = 0.0
    aim_difficulty: float = 0.0
    finger_control_difficulty: float = 0.0

    tap_sr: float = 0.0
    aim_sr: float = 0.0
    finger_control_sr: float = 0.0

    mash_levels: List[float] = Field(default_factory=list)
    mash_tap_difficulties: List[float] = Field(default_factory=list)

    combo_tps: List[float] = Field(default_factory=list)
    miss_counts: List[float] = Field(default_factory=list)
    miss_tps: List[float] = Field(default_factory=list)

    cheese_levels: List[float] = Field(default_factory=list)
    cheese_factors: List[float] = Field(default_factory=list)
    aim_hidden_factor: float = 1.0

    stream_note_count: float = 0.0
    cheese_note_count: float = 0.0

    approach_rate: float = 0.0
    overall_difficulty: float = 0.0
    max_combo: int = 0
    length_s: float = 0.0

    object_count: int = 0
    circle_count: int = 0
    extended_count: int = 0
    spinner_count: int = 0

    @classmethod
    def zero(cls, **kwargs: Any) -> "DifficultyFingerprint":
        """Fingerprint of a chart too small to rate (every difficulty 0)."""
        return cls(**kwargs)


class PerformanceResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    aim: float = 0.0
    tap: float = 0.0
    accuracy: float = 0.0
    total: float = 0.0
    breakdown: Dict[str, float] = Field(default_factory=dict)
