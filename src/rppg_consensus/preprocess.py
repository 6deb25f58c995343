"""Signal preprocessing: detrending, band limiting and notch filtering."""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.signal import detrend as _sp_detrend
from scipy.signal import lfilter


def detrend(x: np.ndarray) -> np.ndarray:
    """Subtract the least-squares line (sample index as abscissa)."""
    x = np.asarray(x, dtype=np.float64)
    if x.size < 2:
        return np.zeros_like(x)
    return _sp_detrend(x, type="linear")


def bandpass(
    x: np.ndarray,
    fs: float,
    low: float,
    high: float | None = None,
) -> np.ndarray:
    """Moving-average approximation of a band-pass filter.

    Each sample has the mean of its neighbourhood (``round(fs/low)`` samples on
    either side, clamped at the edges) subtracted, removing components slower
    than ``low``. ``high`` is accepted for symmetry with the band definition;
    the upper edge is left to the estimators' search range.

    Args:
        x: 1D array.
        fs: sampling rate [Hz].
        low: low cut [Hz].
        high: high cut [Hz], unused.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    if n == 0 or fs <= 0 or low <= 0:
        return x.copy()
    half = max(1, int(round(fs / low)))
    idx = np.arange(n)
    lo = np.maximum(idx - half, 0)
    hi = np.minimum(idx + half, n - 1)
    csum = np.concatenate(([0.0], np.cumsum(x)))
    mean = (csum[hi + 1] - csum[lo]) / (hi - lo + 1)
    return x - mean


def notch_coefficients(f0: float, bw: float, fs: float) -> Tuple[np.ndarray, np.ndarray]:
    """Biquad band-reject coefficients (b, a), normalized so a[0] == 1.

    Args:
        f0: centre frequency [Hz].
        bw: bandwidth in octaves.
        fs: sampling rate [Hz].
    """
    w = 2.0 * np.pi * f0 / fs
    sw = np.sin(w)
    alpha = sw * np.sinh(np.log(2.0) / 2.0 * bw * w / sw)
    cw = np.cos(w)
    b = np.array([1.0, -2.0 * cw, 1.0])
    a = np.array([1.0 + alpha, -2.0 * cw, 1.0 - alpha])
    return b / a[0], a / a[0]


def notch(x: np.ndarray, f0: float, bw: float, fs: float) -> np.ndarray:
    """Suppress a narrow band around ``f0``. No-op outside (0, fs/2)."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0 or fs <= 0 or not (0.0 < f0 < 0.5 * fs) or bw <= 0:
        return x.copy()
    b, a = notch_coefficients(f0, bw, fs)
    return lfilter(b, a, x)
