"""Quality metrics for rate series and raw region signals.

Includes a robust SNR (spectral peak against a MAD noise floor), variance,
plausibility and a stability score derived from variance.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

MAD_SCALE = 1.4826  # MAD -> std for Gaussian noise


def has_variation(x: np.ndarray, eps: float = 1e-12) -> bool:
    """False for empty, non-finite or (numerically) constant input."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0 or not np.all(np.isfinite(x)):
        return False
    return float(np.ptp(x)) > eps


def variance(values: Sequence[float]) -> float:
    """Population variance; 0.0 for empty input."""
    v = np.asarray(values, dtype=np.float64)
    if v.size == 0:
        return 0.0
    return float(np.var(v))


def mad_noise(values: Sequence[float]) -> float:
    """Noise level estimated as 1.4826 * median absolute deviation."""
    v = np.asarray(values, dtype=np.float64)
    if v.size == 0:
        return 0.0
    med = float(np.median(v))
    return MAD_SCALE * float(np.median(np.abs(v - med)))


def peak_magnitude(values: Sequence[float]) -> float:
    """Largest DFT magnitude excluding the DC bin."""
    v = np.asarray(values, dtype=np.float64)
    if v.size < 2:
        return 0.0
    mag = np.abs(np.fft.rfft(v))
    return float(np.max(mag[1:])) if mag.size > 1 else 0.0


def snr_db(values: Sequence[float]) -> float:
    """20*log10(signal/noise); 0.0 unless both are positive."""
    noise = mad_noise(values)
    signal = peak_magnitude(values)
    if noise <= 0.0 or signal <= 0.0:
        return 0.0
    return 20.0 * float(np.log10(signal / noise))


def plausibility(values: Sequence[float], bounds: Tuple[float, float] = (40.0, 180.0)) -> float:
    """Fraction of values within [lo, hi]; 0.0 for empty input."""
    v = np.asarray(values, dtype=np.float64)
    if v.size == 0:
        return 0.0
    lo, hi = bounds
    return float(np.mean((v >= lo) & (v <= hi)))


def stability(values: Sequence[float]) -> float:
    """1 / (1 + variance/100), in (0, 1]."""
    return 1.0 / (1.0 + variance(values) / 100.0)
