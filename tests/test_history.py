from __future__ import annotations

from rppg_consensus.history import HistoryTable


def test_bounded_fifo_per_key() -> None:
    h: HistoryTable = HistoryTable(maxlen=5)
    for i in range(8):
        h.append(("forehead", "FFT"), float(i), 60.0 + i)
    h.append(("noseBridge", "FFT"), 0.0, 70.0)
    assert h.count(("forehead", "FFT")) == 5
    assert h.values(("forehead", "FFT")) == [63.0, 64.0, 65.0, 66.0, 67.0]
    assert h.recent(("forehead", "FFT"), 2) == [(6.0, 66.0), (7.0, 67.0)]
    assert h.last(("noseBridge", "FFT")) == (0.0, 70.0)
    assert len(h) == 2


def test_missing_key_and_clear() -> None:
    h: HistoryTable = HistoryTable(maxlen=3)
    assert h.series(("x",)) == []
    assert h.last(("x",)) is None
    h.append(("x",), 0.0, 1.0)
    h.clear()
    assert ("x",) not in h
