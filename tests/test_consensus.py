from __future__ import annotations

import numpy as np

from rppg_consensus.config import REGIONS
from rppg_consensus.consensus import (
    EstimationResult,
    algorithm_medians,
    combine_estimates,
    confidence,
    rate_histogram,
    region_consensus,
)
from rppg_consensus.estimators import Algorithm
from rppg_consensus.performance import WeightTable

ALGOS = [a.value for a in Algorithm]


def test_no_results_is_invalid() -> None:
    out = combine_estimates([], WeightTable.uniform(ALGOS, REGIONS))
    assert out.heart_rate_bpm == 0
    assert out.confidence_percent == 0
    assert not out.valid


def test_weighted_mean_uses_algorithm_times_region() -> None:
    w = WeightTable(
        algorithms={"FFT": 0.75, "Wavelet": 0.25},
        regions={"forehead": 1.0},
    )
    res = [
        EstimationResult("forehead", "FFT", 60.0),
        EstimationResult("forehead", "Wavelet", 80.0),
    ]
    out = combine_estimates(res, w)
    assert out.raw_bpm == 65.0
    assert out.heart_rate_bpm == 65


def test_zero_total_weight_falls_back_to_median() -> None:
    w = WeightTable(algorithms={"FFT": 0.0}, regions={"forehead": 1.0})
    res = [
        EstimationResult("forehead", "FFT", 60.0),
        EstimationResult("forehead", "FFT", 70.0),
        EstimationResult("forehead", "FFT", 100.0),
    ]
    assert combine_estimates(res, w).heart_rate_bpm == 70


def test_confidence_decreases_with_spread() -> None:
    mean = 75.0
    prev = 101
    for spread in (0.0, 2.0, 5.0, 20.0, 60.0, 150.0):
        c = confidence([mean - spread, mean, mean + spread])
        assert 0 <= c <= 100
        assert c <= prev
        prev = c
    assert confidence([75.0, 75.0]) == 100
    assert confidence([0.0, 400.0]) == 0


def test_region_consensus_and_algorithm_medians() -> None:
    w = WeightTable.uniform(ALGOS, REGIONS)
    res = [
        EstimationResult("forehead", "FFT", 70.0),
        EstimationResult("forehead", "PeakDetection", 74.0),
        EstimationResult("noseBridge", "FFT", 90.0),
    ]
    rc = region_consensus(res, w)
    assert rc == {"forehead": 72.0, "noseBridge": 90.0}
    med = algorithm_medians(res, 72.0)
    assert med["FFT"] == (80.0, 2, False)
    assert med["PeakDetection"] == (74.0, 1, True)


def test_rate_histogram_zero_range() -> None:
    counts, edges = rate_histogram([72.0, 72.0, 72.0])
    assert counts.sum() == 3
    assert np.isclose(edges[-1] - edges[0], 1.0)
    counts, _ = rate_histogram([])
    assert counts.size == 0
