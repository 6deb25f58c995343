"""Spectral (windowed DFT) rate estimation."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .quality import has_variation

FFT_SIZE = 256
BREATHING_LIMITS = (6.0, 30.0)  # BrPM
HEART_LIMITS = (45.0, 180.0)  # BPM
_BREATHING_FMIN = 0.6  # bands starting below this are treated as breathing


def power_spectrum(x: np.ndarray, n_fft: int = FFT_SIZE) -> np.ndarray:
    """Hamming-windowed power spectrum of the most recent ``n_fft`` samples.

    Shorter inputs are zero-padded at the end; the window always spans
    ``n_fft`` points so bin spacing stays ``fs / n_fft``. Returns ``n_fft // 2``
    bins (DC up to, excluding, Nyquist).
    """
    x = np.asarray(x, dtype=np.float64)
    seg = x[-n_fft:]
    buf = np.zeros(n_fft, dtype=np.float64)
    buf[: seg.size] = seg - seg.mean()
    X = np.fft.rfft(buf * np.hamming(n_fft))
    return (np.abs(X) ** 2)[: n_fft // 2]


def spectral_peak(
    x: np.ndarray,
    fs: float,
    fmin: float,
    fmax: float,
    n_fft: int = FFT_SIZE,
) -> Tuple[float, float]:
    """Return (peak_freq_hz, peak_power) within [fmin, fmax).

    (0.0, 0.0) when the band is empty or holds no power.
    """
    p = power_spectrum(x, n_fft)
    lo = int(np.floor(fmin * n_fft / fs))
    hi = min(int(np.floor(fmax * n_fft / fs)), p.size)
    if lo < 0 or hi <= lo:
        return 0.0, 0.0
    k = int(np.argmax(p[lo:hi])) + lo
    if p[k] <= 0.0:
        return 0.0, 0.0
    return float(k * fs / n_fft), float(p[k])


def estimate_rate_fft(x: np.ndarray, fs: float, fmin: float, fmax: float) -> int:
    """Estimate a rate (per minute) from the peak of the power spectrum.

    Breathing bands (``fmin < 0.6`` Hz) must land in 6..30 BrPM, heart bands in
    45..180 BPM; anything else returns 0.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size < 8 or fs <= 0 or not has_variation(x):
        return 0
    f_peak, _ = spectral_peak(x, fs, fmin, fmax)
    rate = 60.0 * f_peak
    lo, hi = BREATHING_LIMITS if fmin < _BREATHING_FMIN else HEART_LIMITS
    if lo <= rate <= hi:
        return int(round(rate))
    return 0
