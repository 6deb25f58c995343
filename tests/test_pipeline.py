from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

import numpy as np
import pytest

from rppg_consensus.config import PipelineConfig
from rppg_consensus.estimators import Algorithm
from rppg_consensus.performance import WeightTable
from rppg_consensus.pipeline import ConsensusOutput, VitalsPipeline

FS = 30.0
T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _pipe(**kw) -> VitalsPipeline:
    return VitalsPipeline(PipelineConfig(**kw), wall_clock=lambda: T0)


def _feed(
    pipe: VitalsPipeline,
    x: Sequence[float],
    regions: Sequence[str] = ("forehead",),
    start: int = 0,
) -> Optional[ConsensusOutput]:
    out = None
    for i, v in enumerate(x, start=start):
        out = pipe.tick({r: float(v) for r in regions}, now=i / FS)
    return out


def _signal(f_hr: float, f_rr: float = 0.0, n: int = 300, rr_amp: float = 0.5) -> np.ndarray:
    t = np.arange(n) / FS
    x = 50.0 + np.sin(2 * np.pi * f_hr * t) + 0.02 * t  # offset and slow drift
    if f_rr > 0:
        x = x + rr_amp * np.sin(2 * np.pi * f_rr * t)
    return x


def test_no_output_until_primary_buffer_half_full() -> None:
    pipe = _pipe()
    x = _signal(1.2)
    assert _feed(pipe, x[:149]) is None
    assert pipe.current is None
    assert pipe.tick({"forehead": float(x[149])}, now=149 / FS) is not None


def test_heart_rate_end_to_end_72_bpm() -> None:
    pipe = _pipe()
    out = _feed(pipe, _signal(1.2))
    rep = pipe.last_report
    assert rep is not None
    by_algo = {r.algorithm: r.rate_bpm for r in rep.results}
    assert set(by_algo) == {a.value for a in Algorithm}
    for algo, bpm in by_algo.items():
        assert abs(bpm - 72) <= 3, algo
    assert abs(rep.consensus.heart_rate_bpm - 72) <= 3
    assert rep.consensus.confidence_percent > 80
    assert out is not None
    assert abs(out.heart_rate_bpm - 72) <= 1
    assert out == pipe.current


def test_heart_and_breathing_end_to_end() -> None:
    pipe = _pipe()
    out = _feed(pipe, _signal(1.2, f_rr=0.25))
    assert out is not None
    assert abs(out.breathing_rate_bpm - 15) <= 2
    assert abs(out.heart_rate_bpm - 72) <= 3
    rr = pipe.last_report.breathing
    assert rr is not None and not rr.refined  # 72 BPM is below the 1.5 Hz gate


def test_multiple_regions_and_weights() -> None:
    pipe = _pipe()
    regions = ("forehead", "leftUnderEye", "rightUnderEye", "noseBridge")
    out = _feed(pipe, _signal(1.2), regions=regions)
    assert out is not None and abs(out.heart_rate_bpm - 72) <= 2
    # tracker ran at ticks 150 and 300
    assert pipe.tracker.cycles == 2
    w = pipe.weights
    assert sum(w.algorithms.values()) == pytest.approx(1.0, abs=1e-6)
    assert sum(w.regions.values()) == pytest.approx(1.0, abs=1e-6)
    assert len(pipe.metrics.keys()) == 16
    assert pipe.region_history.count(("noseBridge",)) == 151


def test_constant_signal_never_publishes() -> None:
    pipe = _pipe()
    assert _feed(pipe, np.full(300, 40.0)) is None
    assert pipe.current is None
    assert pipe.last_report is not None
    assert pipe.last_report.consensus.heart_rate_bpm == 0


def test_missing_samples_do_not_grow_buffer() -> None:
    pipe = _pipe()
    pipe.tick({"forehead": 1.0, "noseBridge": None}, now=0.0)
    pipe.tick({"forehead": None}, now=1 / FS)
    pipe.tick({"elbow": 3.0, "forehead": float("nan")}, now=2 / FS)
    assert pipe.buffers.length("forehead") == 1
    assert pipe.buffers.length("noseBridge") == 0


def test_stop_discards_state_and_start_is_fresh() -> None:
    pipe = _pipe()
    _feed(pipe, _signal(1.2))
    assert pipe.current is not None
    pipe.stop()
    assert not pipe.running
    assert pipe.tick({"forehead": 1.0}, now=11.0) is None
    assert len(pipe.buffers) == 0
    assert pipe.current is None
    assert pipe.export_records() == []
    pipe.start()
    assert pipe.running
    assert pipe.tracker.cycles == 0
    assert _feed(pipe, _signal(1.2)[:149]) is None


def test_export_records() -> None:
    pipe = _pipe()
    _feed(pipe, _signal(1.2))
    recs = pipe.export_records()
    assert len(recs) == 151
    first = recs[0]
    assert first.seconds_from_start == 4  # tick 150 at t = 149/30 s
    assert first.iso_timestamp == "2024-05-01T12:00:04+00:00"
    assert recs[-1].seconds_from_start == 9
    assert all(r.heart_rate_bpm > 0 for r in recs)


def test_summary_and_reports() -> None:
    pipe = _pipe()
    _feed(pipe, _signal(1.2))
    s = pipe.summary()
    assert s["best"] is not None
    assert s["best"]["region"] == "forehead"
    assert "forehead" in s["regions"]
    text = pipe.format_summary()
    assert "Algorithm weights:" in text
    assert "forehead" in text
    rep = pipe.algorithm_report()
    assert set(rep) == {a.value for a in Algorithm}
    counts, _ = pipe.rate_distribution()
    assert counts.sum() == 4


def test_invalid_config() -> None:
    with pytest.raises(ValueError):
        PipelineConfig(buffer_size=0)
    with pytest.raises(ValueError):
        PipelineConfig(primary_region="chin")


def test_primary_dropout_freezes_output() -> None:
    pipe = _pipe()
    out = _feed(pipe, _signal(1.2))
    assert out is not None
    n_export = len(pipe.export_records())
    n_hist = pipe.algorithm_history.count(("forehead", "FFT"))
    n_cons = pipe.consensus_history.count(("consensus",))
    for i in range(300, 420):
        assert pipe.tick({"forehead": None}, now=i / FS) is None
    assert pipe.current == out
    assert len(pipe.export_records()) == n_export
    assert pipe.algorithm_history.count(("forehead", "FFT")) == n_hist
    assert pipe.consensus_history.count(("consensus",)) == n_cons
    # publishing resumes with the next sample
    assert pipe.tick({"forehead": 50.0}, now=420 / FS) is not None


def test_unsampled_secondary_region_is_skipped() -> None:
    pipe = _pipe()
    _feed(pipe, _signal(1.2), regions=("forehead", "noseBridge"))
    before = pipe.algorithm_history.count(("noseBridge", "FFT"))
    pipe.tick({"forehead": 50.0, "noseBridge": None}, now=300 / FS)
    assert {r.region for r in pipe.last_report.results} == {"forehead"}
    assert pipe.algorithm_history.count(("noseBridge", "FFT")) == before


def test_tracker_cycle_survives_skipped_tick() -> None:
    pipe = _pipe(tracker_interval_ticks=160)
    x = _signal(1.2)
    _feed(pipe, x[:159])
    assert pipe.tick({"forehead": None}, now=159 / FS) is None  # tick 160
    assert pipe.tracker.cycles == 0
    pipe.tick({"forehead": float(x[160])}, now=160 / FS)
    assert pipe.tracker.cycles == 1


def test_recomputed_weights_apply_to_same_tick() -> None:
    pipe = _pipe(tracker_interval_ticks=160)
    t = np.arange(160) / FS
    fore = 50.0 + np.sin(2 * np.pi * 1.2 * t)
    nose = 50.0 + 20.0 * np.sin(2 * np.pi * 1.5 * t)
    for i in range(160):
        pipe.tick({"forehead": float(fore[i]), "noseBridge": float(nose[i])}, now=i / FS)
    assert pipe.tracker.cycles == 1
    w = pipe.weights
    assert w != WeightTable.uniform(pipe.algorithms, pipe.cfg.regions)
    rep = pipe.last_report
    rates = np.array([r.rate_bpm for r in rep.results])
    ws = np.array([w.combined(r.region, r.algorithm) for r in rep.results])
    assert rep.consensus.raw_bpm == pytest.approx(float(np.dot(ws, rates) / ws.sum()))
    # the noisier region is down-weighted, so this is not the plain mean
    assert rep.consensus.raw_bpm != pytest.approx(float(rates.mean()))


def test_mixed_time_bases_rejected() -> None:
    pipe = VitalsPipeline(clock=lambda: 1000.0, wall_clock=lambda: T0)
    pipe.tick({"forehead": 1.0})
    with pytest.raises(ValueError):
        pipe.tick({"forehead": 1.0}, now=0.5)
    pipe.reset()
    pipe.tick({"forehead": 1.0}, now=0.5)
    with pytest.raises(ValueError):
        pipe.tick({"forehead": 1.0})
