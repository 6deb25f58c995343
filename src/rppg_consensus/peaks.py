"""Time-domain peak-detection rate estimation."""

from __future__ import annotations

from typing import List

import numpy as np

from .quality import has_variation


def dynamic_threshold(x: np.ndarray, k: float = 0.5) -> float:
    """mean + k * std (population)."""
    x = np.asarray(x, dtype=np.float64)
    return float(np.mean(x) + k * np.std(x))


def find_peaks_greedy(x: np.ndarray, threshold: float, min_distance: int) -> List[int]:
    """Strict local maxima above ``threshold``, scanned left to right.

    A candidate closer than ``min_distance`` samples to the last accepted peak
    is skipped.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size < 3:
        return []
    mid = x[1:-1]
    cand = np.flatnonzero((mid > x[:-2]) & (mid > x[2:]) & (mid > threshold)) + 1
    peaks: List[int] = []
    for i in cand:
        if not peaks or i - peaks[-1] >= min_distance:
            peaks.append(int(i))
    return peaks


def estimate_rate_peaks(x: np.ndarray, fs: float, fmin: float, fmax: float) -> int:
    """Rate from the mean distance between detected peaks; 0 if out of range."""
    x = np.asarray(x, dtype=np.float64)
    if x.size < 3 or fs <= 0 or fmax <= 0 or not has_variation(x):
        return 0
    min_distance = int(np.floor(fs / fmax))
    peaks = find_peaks_greedy(x, dynamic_threshold(x), min_distance)
    if len(peaks) < 2:
        return 0
    mean_interval = (peaks[-1] - peaks[0]) / (len(peaks) - 1)
    rate = 60.0 * fs / mean_interval
    if 60.0 * fmin <= rate <= 60.0 * fmax:
        return int(round(rate))
    return 0
