"""Autocorrelation-based rate estimation.

The lag search is bounded by the band: lags between ``fs/fmax`` and
``fs/fmin`` samples. Sums are left unnormalized, so shorter lags (more
overlapping terms) are mildly favoured.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .quality import has_variation


@dataclass
class AcfResult:
    rate: int  # per minute, 0 when invalid
    lag: int | None  # samples
    corr: np.ndarray  # sums for each candidate lag


def autocorrelation(x: np.ndarray, lag_min: int, lag_max: int) -> np.ndarray:
    """Unnormalized autocorrelation sums for lags lag_min..lag_max inclusive.

    Lags at or beyond the signal length are dropped.
    """
    x = np.asarray(x, dtype=np.float64)
    lag_min = max(1, int(lag_min))
    lag_max = min(int(lag_max), x.size - 1)
    if lag_max < lag_min:
        return np.zeros(0, dtype=np.float64)
    return np.array(
        [float(np.dot(x[: x.size - lag], x[lag:])) for lag in range(lag_min, lag_max + 1)]
    )


def estimate_acf(x: np.ndarray, fs: float, fmin: float, fmax: float) -> AcfResult:
    """Pick the lag of maximum correlation inside the band."""
    x = np.asarray(x, dtype=np.float64)
    if x.size < 8 or fs <= 0 or fmin <= 0 or fmax <= 0 or not has_variation(x):
        return AcfResult(0, None, np.zeros(0, dtype=np.float64))
    lag_min = max(1, int(np.floor(fs / fmax)))
    lag_max = int(np.floor(fs / fmin))
    corr = autocorrelation(x, lag_min, lag_max)
    if corr.size == 0:
        return AcfResult(0, None, corr)
    lag = int(np.argmax(corr)) + lag_min
    rate = 60.0 * fs / lag
    if 60.0 * fmin <= rate <= 60.0 * fmax:
        return AcfResult(int(round(rate)), lag, corr)
    return AcfResult(0, lag, corr)


def estimate_rate_acf(x: np.ndarray, fs: float, fmin: float, fmax: float) -> int:
    return estimate_acf(x, fs, fmin, fmax).rate
