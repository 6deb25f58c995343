"""Per-region ring buffers of timestamped samples."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Tuple

import numpy as np


@dataclass(frozen=True)
class Sample:
    value: float  # chrominance scalar
    timestamp: float  # seconds, monotonic


class RegionBuffers:
    """Fixed-capacity FIFO buffer per named region.

    Regions are independent: one region being empty never affects the
    readiness of another.
    """

    def __init__(self, regions: Iterable[str], capacity: int = 300) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = int(capacity)
        self._bufs: Dict[str, Deque[Sample]] = {
            name: deque(maxlen=self.capacity) for name in regions
        }

    @property
    def regions(self) -> Tuple[str, ...]:
        return tuple(self._bufs)

    def push(self, region: str, sample: Sample) -> None:
        # deque(maxlen) drops the oldest sample once full
        self._bufs[region].append(sample)

    def snapshot(self, region: str) -> Tuple[Sample, ...]:
        return tuple(self._bufs[region])

    def values(self, region: str) -> np.ndarray:
        return np.fromiter((s.value for s in self._bufs[region]), dtype=np.float64)

    def __len__(self) -> int:
        return sum(len(b) for b in self._bufs.values())

    def length(self, region: str) -> int:
        return len(self._bufs[region])

    def is_ready(self, region: str) -> bool:
        return len(self._bufs[region]) >= self.capacity / 2

    def ready_regions(self) -> List[str]:
        return [name for name in self._bufs if self.is_ready(name)]

    def clear(self) -> None:
        for b in self._bufs.values():
            b.clear()
