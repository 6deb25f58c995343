"""Tick-driven heart and breathing rate pipeline.

One ``VitalsPipeline`` holds all state of a monitoring session. An external
driver calls ``tick()`` at the sampling cadence (~30 Hz) with one chrominance
value per region; each call runs synchronously:

    buffers -> detrend -> heart band (breathing notch) -> 4 estimators x regions
    -> [tracker cycle every N ticks] -> weighted consensus
    -> breathing estimate (heart notch) -> smoothing -> ConsensusOutput
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional, Set, Tuple

import numpy as np

from .buffer import RegionBuffers, Sample
from .consensus import (
    INVALID,
    ConsensusResult,
    EstimationResult,
    algorithm_medians,
    combine_estimates,
    rate_histogram,
    region_consensus,
)
from .config import PipelineConfig
from .estimators import Algorithm, estimate_rate
from .history import HistoryTable
from .performance import PairKey, PerformanceTracker, WeightTable
from .preprocess import detrend
from .respiration import RrResult, heart_band_input, refine_breathing
from .smoother import Smoother

logger = logging.getLogger(__name__)

CONSENSUS_KEY = ("consensus",)


@dataclass(frozen=True)
class ConsensusOutput:
    heart_rate_bpm: int
    breathing_rate_bpm: int
    confidence_percent: int


class ExportRecord(NamedTuple):
    seconds_from_start: int
    heart_rate_bpm: int
    breathing_rate_bpm: int
    iso_timestamp: str


@dataclass
class TickReport:
    """Diagnostics of the most recent processed tick."""

    t: float
    results: List[EstimationResult] = field(default_factory=list)
    consensus: ConsensusResult = INVALID
    breathing: Optional[RrResult] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VitalsPipeline:
    def __init__(
        self,
        cfg: PipelineConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.cfg = cfg or PipelineConfig()
        self._clock = clock
        self._wall_clock = wall_clock
        self.algorithms = tuple(a.value for a in Algorithm)
        self.buffers = RegionBuffers(self.cfg.regions, self.cfg.buffer_size)
        self.algorithm_history: HistoryTable[PairKey, float] = HistoryTable(
            self.cfg.history_length
        )
        self.region_history: HistoryTable[Tuple[str], float] = HistoryTable(
            self.cfg.history_length
        )
        self.consensus_history: HistoryTable[Tuple[str], float] = HistoryTable(
            self.cfg.history_length
        )
        self.tracker = PerformanceTracker(self.cfg.regions, self.algorithms, self.cfg)
        self.smoother = Smoother(self.cfg.smoothing_window)
        self._running = True
        self._session()

    def _session(self) -> None:
        self._t0: Optional[float] = None
        self._caller_time: Optional[bool] = None
        self._wall0: Optional[datetime] = None
        self._ticks = 0
        self._tracker_due = False
        self._current: Optional[ConsensusOutput] = None
        self._full_history: List[Tuple[float, int, int]] = []
        self.last_report: Optional[TickReport] = None

    # -- lifecycle -------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def reset(self) -> None:
        """Discard buffers, histories, metrics, weights and smoothed rates."""
        self.buffers.clear()
        self.algorithm_history.clear()
        self.region_history.clear()
        self.consensus_history.clear()
        self.tracker.reset()
        self.smoother.reset()
        self._session()
        logger.info("pipeline reset")

    def start(self) -> None:
        self.reset()
        self._running = True
        logger.info("monitoring started")

    def stop(self) -> None:
        self._running = False
        self.reset()
        logger.info("monitoring stopped")

    # -- processing ------------------------------------------------------

    def tick(
        self,
        samples: Mapping[str, Optional[float]],
        now: Optional[float] = None,
    ) -> Optional[ConsensusOutput]:
        """Ingest one sample per region and publish an output when available.

        ``None`` (or a missing region) means no sample this tick; that region's
        buffer does not grow and it takes no part in this tick's estimation.
        Returns None until the primary region's buffer is half full, on ticks
        where the primary region got no sample (``current`` keeps the last
        output), and on ticks where no estimator finds a rate.

        A session uses one time base: either every call passes ``now`` or
        none does. Mixing them raises ValueError.
        """
        if not self._running:
            return None
        cfg = self.cfg
        caller_time = now is not None
        if self._caller_time is None:
            self._caller_time = caller_time
        elif caller_time != self._caller_time:
            raise ValueError("tick() must either always or never receive 'now' within a session")
        t_now = float(now) if caller_time else self._clock()
        if self._t0 is None:
            self._t0 = t_now
            self._wall0 = self._wall_clock()
        t = t_now - self._t0
        sampled = self._ingest(samples, t_now)
        self._ticks += 1
        if self._ticks % cfg.tracker_interval_ticks == 0:
            # runs on the next processed tick if this one is skipped
            self._tracker_due = True

        if cfg.primary_region not in sampled or not self.buffers.is_ready(cfg.primary_region):
            return None

        fs = cfg.sample_rate
        band = cfg.heart_band
        ready = [r for r in self.buffers.ready_regions() if r in sampled]
        detrended = {r: detrend(self.buffers.values(r)) for r in ready}
        prev_br = self.smoother.breathing_brpm

        results: List[EstimationResult] = []
        for region in ready:
            x = heart_band_input(detrended[region], fs, band, prev_br, cfg.breathing_notch_bw)
            for algo in Algorithm:
                rate = estimate_rate(algo, x, fs, band.low, band.high)
                if rate > 0:
                    results.append(EstimationResult(region, algo.value, float(rate)))
                    self.algorithm_history.append((region, algo.value), t, float(rate))

        if self._tracker_due:
            self._tracker_due = False
            self.tracker.update(
                t,
                self.algorithm_history,
                self.consensus_history.series(CONSENSUS_KEY),
                {r: self.buffers.values(r) for r in ready},
            )

        weights = self.tracker.weights
        consensus = combine_estimates(results, weights)
        report = TickReport(t, results, consensus)
        self.last_report = report
        if not consensus.valid:
            return None

        self.consensus_history.append(CONSENSUS_KEY, t, consensus.raw_bpm)
        for region, value in region_consensus(results, weights).items():
            self.region_history.append((region,), t, value)

        self.smoother.push_heart(consensus.heart_rate_bpm)
        rr = refine_breathing(
            detrended[cfg.primary_region],
            fs,
            self.smoother.heart_bpm,
            cfg.breathing_band,
            cfg.heart_notch_bw,
            cfg.heart_notch_min_hz,
        )
        report.breathing = rr
        self.smoother.push_breathing(rr.brpm)

        out = ConsensusOutput(
            self.smoother.heart_bpm,
            self.smoother.breathing_brpm,
            consensus.confidence_percent,
        )
        if self._current is None:
            logger.info("first estimate at t=%.1fs: %s", t, out)
        self._current = out
        self._full_history.append((t, out.heart_rate_bpm, out.breathing_rate_bpm))
        return out

    def _ingest(self, samples: Mapping[str, Optional[float]], t_now: float) -> Set[str]:
        """Push valid samples; returns the regions that received one."""
        sampled: Set[str] = set()
        for region, value in samples.items():
            if value is None:
                continue
            if region not in self.cfg.regions:
                logger.warning("ignoring sample for unknown region %r", region)
                continue
            v = float(value)
            if not np.isfinite(v):
                continue
            self.buffers.push(region, Sample(v, t_now))
            sampled.add(region)
        return sampled

    # -- outputs ---------------------------------------------------------

    @property
    def current(self) -> Optional[ConsensusOutput]:
        """Latest published output; unchanged on ticks that publish nothing."""
        return self._current

    @property
    def weights(self) -> WeightTable:
        return self.tracker.weights

    @property
    def metrics(self):
        return self.tracker.metrics

    def export_records(self) -> List[ExportRecord]:
        if self._wall0 is None:
            return []
        out: List[ExportRecord] = []
        for t, hr, br in self._full_history:
            sec = int(np.floor(t))
            ts = self._wall0 + timedelta(seconds=sec)
            out.append(ExportRecord(sec, hr, br, ts.isoformat()))
        return out

    def algorithm_report(self) -> Dict[str, Tuple[float, int, bool]]:
        """Per-algorithm median of the latest tick and agreement flag."""
        rep = self.last_report
        if rep is None or not rep.consensus.valid:
            return {}
        return algorithm_medians(rep.results, rep.consensus.heart_rate_bpm)

    def rate_distribution(self) -> Tuple[np.ndarray, np.ndarray]:
        rep = self.last_report
        rates = [r.rate_bpm for r in rep.results] if rep is not None else []
        return rate_histogram(rates)

    def summary(self) -> dict:
        best = self.tracker.best_pair()
        return {
            "best": (
                {"region": best[0][0], "algorithm": best[0][1], "score": best[1]}
                if best is not None
                else None
            ),
            "regions": {
                r: {"snr": q.snr, "stability": q.stability}
                for r, q in self.tracker.region_quality.items()
            },
            "weights": {
                "algorithms": dict(self.weights.algorithms),
                "regions": dict(self.weights.regions),
            },
            "cycles": self.tracker.cycles,
        }

    def format_summary(self) -> str:
        s = self.summary()
        lines = []
        if s["best"] is None:
            lines.append("Best: n/a (collecting data)")
        else:
            b = s["best"]
            lines.append(f"Best: {b['region']} x {b['algorithm']} (score {b['score']:.1f})")
        lines.append("Signal quality:")
        for r, q in s["regions"].items():
            lines.append(f"  {r}: SNR {q['snr']:.1f} dB, stability {q['stability'] * 100:.0f}%")
        lines.append("Algorithm weights:")
        for a, w in s["weights"]["algorithms"].items():
            lines.append(f"  {a}: {w * 100:.1f}%")
        lines.append("Region weights:")
        for r, w in s["weights"]["regions"].items():
            lines.append(f"  {r}: {w * 100:.1f}%")
        return "\n".join(lines)
