"""Pipeline configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

REGIONS: Tuple[str, ...] = ("forehead", "leftUnderEye", "rightUnderEye", "noseBridge")


@dataclass(frozen=True)
class Band:
    low: float  # Hz
    high: float  # Hz


HEART_BAND = Band(0.75, 4.0)
BREATHING_BAND = Band(0.1, 0.5)


@dataclass
class ScoreWeights:
    """Coefficients of the per-algorithm composite score.

    Empirical tuning values; override them through ``PipelineConfig``.
    """

    snr: float = 0.3
    plausibility: float = 0.3
    variance: float = 0.2
    deviation: float = 0.2


@dataclass
class PipelineConfig:
    sample_rate: float = 30.0  # Hz, nominal tick cadence
    buffer_size: int = 300  # samples per region (~10 s)
    regions: Tuple[str, ...] = REGIONS
    primary_region: str = "forehead"
    heart_band: Band = HEART_BAND
    breathing_band: Band = BREATHING_BAND
    breathing_notch_bw: float = 0.1  # octaves, notch in the heart-band input
    heart_notch_bw: float = 0.2  # octaves, notch in the breathing-band input
    heart_notch_min_hz: float = 1.5  # refine breathing only above this
    smoothing_window: int = 5
    history_length: int = 300
    metric_history_length: int = 100
    tracker_interval_ticks: int = 150  # ~5 s at 30 Hz
    tracker_min_entries: int = 10
    tracker_recent_entries: int = 30
    weight_recent_metrics: int = 10
    plausible_bpm: Tuple[float, float] = (40.0, 180.0)
    score: ScoreWeights = field(default_factory=ScoreWeights)

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.buffer_size < 2:
            raise ValueError("buffer_size must be at least 2")
        if self.smoothing_window < 1:
            raise ValueError("smoothing_window must be at least 1")
        if self.tracker_interval_ticks < 1:
            raise ValueError("tracker_interval_ticks must be at least 1")
        if self.primary_region not in self.regions:
            raise ValueError(f"primary_region {self.primary_region!r} not in regions")
