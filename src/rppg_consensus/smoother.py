"""Bounded moving average of published heart and breathing rates."""

from __future__ import annotations

from collections import deque
from typing import Deque


class Smoother:
    """Two FIFO windows; zero (invalid) values are never pushed."""

    def __init__(self, window: int = 5) -> None:
        if window < 1:
            raise ValueError("window must be at least 1")
        self.window = int(window)
        self._hr: Deque[float] = deque(maxlen=self.window)
        self._br: Deque[float] = deque(maxlen=self.window)

    def push(self, heart_bpm: float, breathing_brpm: float) -> None:
        self.push_heart(heart_bpm)
        self.push_breathing(breathing_brpm)

    def push_heart(self, bpm: float) -> None:
        if bpm > 0:
            self._hr.append(float(bpm))

    def push_breathing(self, brpm: float) -> None:
        if brpm > 0:
            self._br.append(float(brpm))

    @staticmethod
    def _mean(q: Deque[float]) -> int:
        return int(round(sum(q) / len(q))) if q else 0

    @property
    def heart_bpm(self) -> int:
        return self._mean(self._hr)

    @property
    def breathing_brpm(self) -> int:
        return self._mean(self._br)

    def reset(self) -> None:
        self._hr.clear()
        self._br.clear()
