"""Closed set of rate estimators behind one call signature."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict

import numpy as np

from .acf_bpm import estimate_rate_acf
from .bpm import estimate_rate_fft
from .peaks import estimate_rate_peaks
from .wavelet import estimate_rate_wavelet

RateFn = Callable[[np.ndarray, float, float, float], int]


class Algorithm(str, Enum):
    FFT = "FFT"
    PEAK_DETECTION = "PeakDetection"
    AUTOCORRELATION = "Autocorrelation"
    WAVELET = "Wavelet"


_IMPLS: Dict[Algorithm, RateFn] = {
    Algorithm.FFT: estimate_rate_fft,
    Algorithm.PEAK_DETECTION: estimate_rate_peaks,
    Algorithm.AUTOCORRELATION: estimate_rate_acf,
    Algorithm.WAVELET: estimate_rate_wavelet,
}


def estimate_rate(
    algorithm: Algorithm,
    x: np.ndarray,
    fs: float,
    fmin: float,
    fmax: float,
) -> int:
    """Run ``algorithm`` on a filtered signal. Returns a per-minute rate or 0."""
    return int(_IMPLS[Algorithm(algorithm)](np.asarray(x, dtype=np.float64), fs, fmin, fmax))
