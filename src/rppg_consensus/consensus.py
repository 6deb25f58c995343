"""Weighted consensus of (region, algorithm) rate estimates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .performance import WeightTable


@dataclass(frozen=True)
class EstimationResult:
    region: str
    algorithm: str
    rate_bpm: float


@dataclass(frozen=True)
class ConsensusResult:
    heart_rate_bpm: int
    confidence_percent: int
    raw_bpm: float = 0.0  # unrounded weighted mean

    @property
    def valid(self) -> bool:
        return self.heart_rate_bpm > 0


INVALID = ConsensusResult(0, 0)


def confidence(rates: Sequence[float]) -> int:
    """100 minus the population std of the rates, clamped to [0, 100]."""
    r = np.asarray(rates, dtype=np.float64)
    if r.size == 0:
        return 0
    return int(round(float(np.clip(100.0 - float(np.std(r)), 0.0, 100.0))))


def combine_estimates(results: Sequence[EstimationResult], weights: WeightTable) -> ConsensusResult:
    """Weighted mean of all non-zero estimates.

    Each estimate is weighted by algorithm weight times region weight. When the
    weights sum to zero the median is used instead.
    """
    valid = [r for r in results if r.rate_bpm > 0]
    if not valid:
        return INVALID
    rates = np.array([r.rate_bpm for r in valid], dtype=np.float64)
    w = np.array([weights.combined(r.region, r.algorithm) for r in valid], dtype=np.float64)
    total = float(np.sum(w))
    if total > 0.0 and np.isfinite(total):
        hr = float(np.dot(w, rates) / total)
    else:
        hr = float(np.median(rates))
    return ConsensusResult(int(round(hr)), confidence(rates), hr)


def region_consensus(
    results: Sequence[EstimationResult], weights: WeightTable
) -> Dict[str, float]:
    """Per-region weighted mean, using algorithm weights only."""
    out: Dict[str, float] = {}
    by_region: Dict[str, List[EstimationResult]] = {}
    for r in results:
        if r.rate_bpm > 0:
            by_region.setdefault(r.region, []).append(r)
    for region, rs in by_region.items():
        rates = np.array([r.rate_bpm for r in rs], dtype=np.float64)
        w = np.array([weights.algorithms.get(r.algorithm, 0.0) for r in rs], dtype=np.float64)
        total = float(np.sum(w))
        out[region] = float(np.dot(w, rates) / total) if total > 0 else float(np.median(rates))
    return out


def algorithm_medians(
    results: Sequence[EstimationResult], consensus_bpm: float, tolerance: float = 5.0
) -> Dict[str, Tuple[float, int, bool]]:
    """Per algorithm: (median rate, number of regions, agrees with consensus)."""
    by_algo: Dict[str, List[float]] = {}
    for r in results:
        if r.rate_bpm > 0:
            by_algo.setdefault(r.algorithm, []).append(r.rate_bpm)
    out: Dict[str, Tuple[float, int, bool]] = {}
    for algo, rates in by_algo.items():
        med = float(np.median(rates))
        out[algo] = (med, len(rates), abs(med - consensus_bpm) < tolerance)
    return out


def rate_histogram(rates: Sequence[float], max_bins: int = 10) -> Tuple[np.ndarray, np.ndarray]:
    """(counts, bin_edges) of the rate distribution.

    At most ``max_bins`` bins; a zero value range is widened to 1 BPM.
    """
    r = np.asarray(rates, dtype=np.float64)
    if r.size == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64)
    lo = float(np.min(r))
    span = float(np.max(r)) - lo or 1.0
    bins = min(max_bins, r.size)
    return np.histogram(r, bins=bins, range=(lo, lo + span))
