"""Breathing rate estimation with cross-notch refinement.

Heart and breathing components leak into each other's bands through their
harmonics. The breathing estimate is refined by notching out the heart
frequency, and the heart-band input is cleaned by notching out the last
breathing frequency.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .bpm import estimate_rate_fft
from .config import BREATHING_BAND, Band
from .preprocess import bandpass, notch


@dataclass
class RrResult:
    initial_brpm: int  # before refinement, 0 when invalid
    brpm: int  # published estimate, 0 when invalid
    refined: bool


def estimate_breathing(detrended: np.ndarray, fs: float, band: Band = BREATHING_BAND) -> int:
    """Spectral breathing estimate from a detrended signal."""
    x = bandpass(detrended, fs, band.low, band.high)
    return estimate_rate_fft(x, fs, band.low, band.high)


def heart_band_input(
    detrended: np.ndarray,
    fs: float,
    band: Band,
    breathing_brpm: float = 0.0,
    notch_bw: float = 0.1,
) -> np.ndarray:
    """Heart-band signal, first notching out the breathing frequency if known."""
    x = np.asarray(detrended, dtype=np.float64)
    if breathing_brpm > 0:
        x = notch(x, breathing_brpm / 60.0, notch_bw, fs)
    return bandpass(x, fs, band.low, band.high)


def should_refine(heart_bpm: float, min_hz: float = 1.5) -> bool:
    """Refine only when the heart frequency is strictly above ``min_hz``."""
    return heart_bpm > 0 and heart_bpm / 60.0 > min_hz


def refine_breathing(
    detrended: np.ndarray,
    fs: float,
    heart_bpm: float,
    band: Band = BREATHING_BAND,
    notch_bw: float = 0.2,
    min_hz: float = 1.5,
) -> RrResult:
    """Two-pass breathing estimate.

    The initial estimate is kept unless the heart frequency exceeds
    ``min_hz``; above it the heart frequency is notched out and the breathing
    rate re-estimated from the cleaned signal.
    """
    initial = estimate_breathing(detrended, fs, band)
    if not should_refine(heart_bpm, min_hz):
        return RrResult(initial, initial, False)
    cleaned = notch(detrended, heart_bpm / 60.0, notch_bw, fs)
    return RrResult(initial, estimate_breathing(cleaned, fs, band), True)
