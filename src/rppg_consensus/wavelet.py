"""Morlet wavelet rate estimation.

Frequencies are scanned in 0.1 Hz steps. Each step is analysed with a real
Morlet kernel (Gaussian-windowed cosine, omega0 = 6) at every sample position
and the summed squared coefficients give the power of that scale.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.signal import fftconvolve

from .quality import has_variation

OMEGA0 = 6.0
FREQ_STEP = 0.1  # Hz


def scale_for(freq: float, fs: float) -> float:
    """Half-period of ``freq`` in samples."""
    return fs / (2.0 * freq)


def morlet_kernel(scale: float, n: int, omega0: float = OMEGA0) -> np.ndarray:
    """Real Morlet kernel sampled at offsets -(n-1)..(n-1).

    ``scale`` is a half-period in samples; the kernel's dilation is chosen so
    its carrier completes one cycle every ``2 * scale`` samples. Amplitude is
    normalized by the dilation so that scales compare on equal footing.
    """
    a = scale * omega0 / np.pi
    t = np.arange(-(n - 1), n, dtype=np.float64) / a
    return np.exp(-0.5 * t * t) * np.cos(omega0 * t) / a


def morlet_transform(x: np.ndarray, scale: float, omega0: float = OMEGA0) -> np.ndarray:
    """One coefficient per sample position for the given scale."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return np.zeros(0, dtype=np.float64)
    k = morlet_kernel(scale, x.size, omega0)
    return fftconvolve(x, k, mode="same")


def scalogram_power(
    x: np.ndarray,
    fs: float,
    fmin: float,
    fmax: float,
    step: float = FREQ_STEP,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return (freqs, power) over fmin, fmin+step, ... <= fmax."""
    freqs = np.arange(fmin, fmax + 1e-9, step)
    power = np.array(
        [float(np.sum(morlet_transform(x, scale_for(f, fs)) ** 2)) for f in freqs]
    )
    return freqs, power


def _refine_peak(freqs: np.ndarray, power: np.ndarray, i: int) -> float:
    """Quadratic interpolation of the peak frequency around index i."""
    if i <= 0 or i >= power.size - 1:
        return float(freqs[i])
    y0, y1, y2 = float(power[i - 1]), float(power[i]), float(power[i + 1])
    denom = y0 - 2.0 * y1 + y2
    if denom >= 0.0:
        return float(freqs[i])
    offset = 0.5 * (y0 - y2) / denom
    return float(freqs[i] + offset * (freqs[i + 1] - freqs[i]))


def estimate_rate_wavelet(x: np.ndarray, fs: float, fmin: float, fmax: float) -> int:
    x = np.asarray(x, dtype=np.float64)
    if x.size < 8 or fs <= 0 or fmin <= 0 or fmax < fmin or not has_variation(x):
        return 0
    freqs, power = scalogram_power(x, fs, fmin, fmax)
    if power.size == 0 or not np.any(power > 0):
        return 0
    i = int(np.argmax(power))
    rate = 60.0 * _refine_peak(freqs, power, i)
    if 60.0 * fmin <= rate <= 60.0 * fmax:
        return int(round(rate))
    return 0
