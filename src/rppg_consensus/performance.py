"""Rolling performance metrics and adaptive weights.

Every tracker cycle scores each (region, algorithm) pair from its recent rate
history and each region from its raw buffered signal. The scores become two
weight tables (per algorithm, per region) that the consensus step multiplies
together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from .config import PipelineConfig, ScoreWeights
from .history import HistoryTable
from .quality import plausibility, snr_db, stability, variance

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]  # (region, algorithm)


@dataclass(frozen=True)
class PerformanceMetric:
    region: str
    algorithm: str
    variance: float
    consensus_deviation: float
    snr: float
    plausibility: float
    timestamp: float


@dataclass(frozen=True)
class RegionQuality:
    region: str
    snr: float
    stability: float
    timestamp: float


@dataclass
class WeightTable:
    algorithms: Dict[str, float] = field(default_factory=dict)
    regions: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def uniform(cls, algorithms: Iterable[str], regions: Iterable[str]) -> "WeightTable":
        return cls(_uniform(algorithms), _uniform(regions))

    def combined(self, region: str, algorithm: str) -> float:
        return self.algorithms.get(algorithm, 0.0) * self.regions.get(region, 0.0)


def _uniform(keys: Iterable[str]) -> Dict[str, float]:
    keys = list(keys)
    if not keys:
        return {}
    return {k: 1.0 / len(keys) for k in keys}


def normalize_scores(scores: Mapping[str, float], keys: Sequence[str]) -> Dict[str, float]:
    """Turn partial, possibly negative scores into weights summing to 1.

    Keys without a score take the mean of the scored ones. Negative scores
    count as 0. With no scores, or a zero total, weights are uniform.
    """
    if not keys:
        return {}
    if not scores:
        return _uniform(keys)
    prior = float(np.mean(list(scores.values())))
    filled = {k: max(0.0, float(scores.get(k, prior))) for k in keys}
    total = sum(filled.values())
    if total <= 0.0 or not np.isfinite(total):
        return _uniform(keys)
    return {k: v / total for k, v in filled.items()}


def composite_score(metrics: Sequence[PerformanceMetric], w: ScoreWeights) -> float:
    """Weighted blend of mean SNR, plausibility, variance and deviation."""
    if not metrics:
        return 0.0
    avg_snr = float(np.mean([m.snr for m in metrics]))
    avg_pl = float(np.mean([m.plausibility for m in metrics]))
    avg_var = float(np.mean([m.variance for m in metrics]))
    avg_dev = float(np.mean([m.consensus_deviation for m in metrics]))
    return (
        w.snr * avg_snr
        + w.plausibility * 100.0 * avg_pl
        + w.variance * 100.0 / (1.0 + avg_var)
        + w.deviation * 100.0 / (1.0 + avg_dev)
    )


def consensus_deviation(
    entries: Sequence[Tuple[float, float]],
    consensus: Sequence[Tuple[float, float]],
) -> float:
    """Mean absolute error against the consensus at matching timestamps.

    Falls back to the latest consensus value when no timestamps match, and to
    0.0 when there is no consensus yet.
    """
    if not entries or not consensus:
        return 0.0
    by_t = dict(consensus)
    matched = [abs(v - by_t[t]) for t, v in entries if t in by_t]
    if matched:
        return float(np.mean(matched))
    latest = consensus[-1][1]
    return float(np.mean([abs(v - latest) for _, v in entries]))


def evaluate_pair(
    key: PairKey,
    entries: Sequence[Tuple[float, float]],
    consensus: Sequence[Tuple[float, float]],
    t: float,
    bounds: Tuple[float, float] = (40.0, 180.0),
) -> PerformanceMetric:
    values = [v for _, v in entries]
    return PerformanceMetric(
        region=key[0],
        algorithm=key[1],
        variance=variance(values),
        consensus_deviation=consensus_deviation(entries, consensus),
        snr=snr_db(values),
        plausibility=plausibility(values, bounds),
        timestamp=float(t),
    )


class PerformanceTracker:
    """Owns metric history, region quality and the current weight tables."""

    def __init__(
        self,
        regions: Sequence[str],
        algorithms: Sequence[str],
        cfg: PipelineConfig | None = None,
    ) -> None:
        self.cfg = cfg or PipelineConfig()
        self.regions = tuple(regions)
        self.algorithms = tuple(algorithms)
        self.metrics: HistoryTable[PairKey, PerformanceMetric] = HistoryTable(
            self.cfg.metric_history_length
        )
        self.region_quality: Dict[str, RegionQuality] = {}
        self.weights = WeightTable.uniform(self.algorithms, self.regions)
        self.cycles = 0

    def reset(self) -> None:
        self.metrics.clear()
        self.region_quality.clear()
        self.weights = WeightTable.uniform(self.algorithms, self.regions)
        self.cycles = 0

    def update(
        self,
        t: float,
        algorithm_history: HistoryTable[PairKey, float],
        consensus_history: Sequence[Tuple[float, float]],
        region_signals: Mapping[str, np.ndarray],
    ) -> WeightTable:
        """Recompute metrics, region quality and weights. Returns the weights."""
        cfg = self.cfg
        n_pairs = 0
        for key in algorithm_history.keys():
            if algorithm_history.count(key) < cfg.tracker_min_entries:
                continue
            entries = algorithm_history.recent(key, cfg.tracker_recent_entries)
            self.metrics.append(
                key, t, evaluate_pair(key, entries, consensus_history, t, cfg.plausible_bpm)
            )
            n_pairs += 1
        for region, x in region_signals.items():
            x = np.asarray(x, dtype=np.float64)
            if x.size < 2:
                continue
            self.region_quality[region] = RegionQuality(region, snr_db(x), stability(x), float(t))
        self.weights = self.compute_weights()
        self.cycles += 1
        logger.debug(
            "tracker cycle %d at t=%.1fs: %d pairs scored, weights=%s",
            self.cycles,
            t,
            n_pairs,
            self.weights,
        )
        return self.weights

    def algorithm_scores(self) -> Dict[str, float]:
        n = self.cfg.weight_recent_metrics
        scores: Dict[str, float] = {}
        for algo in self.algorithms:
            recent: List[PerformanceMetric] = []
            for region in self.regions:
                recent.extend(self.metrics.values((region, algo))[-n:])
            if recent:
                scores[algo] = composite_score(recent, self.cfg.score)
        return scores

    def compute_weights(self) -> WeightTable:
        stab = {r: q.stability for r, q in self.region_quality.items() if r in self.regions}
        return WeightTable(
            algorithms=normalize_scores(self.algorithm_scores(), self.algorithms),
            regions=normalize_scores(stab, self.regions),
        )

    def best_pair(self) -> Tuple[PairKey, float] | None:
        """(region, algorithm) whose latest metric scores highest."""
        best: Tuple[PairKey, float] | None = None
        for key in self.metrics.keys():
            last = self.metrics.last(key)
            if last is None:
                continue
            score = composite_score([last[1]], self.cfg.score)
            if best is None or score > best[1]:
                best = (key, score)
        return best
