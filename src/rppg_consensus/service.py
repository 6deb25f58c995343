"""FastAPI service driving the vitals pipeline from posted samples.

The browser (or any capture process) computes one chrominance value per
region per frame and POSTs batches of ticks to `/ingest`; each tick is fed to
`VitalsPipeline.tick` in order. The latest output, performance summary and
export records are served as JSON and pushed to WebSocket clients.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, model_validator

from .config import PipelineConfig
from .pipeline import VitalsPipeline

logger = logging.getLogger(__name__)


class TickModel(BaseModel):
    t: Optional[float] = Field(None, ge=0.0)
    samples: Dict[str, Optional[float]]


class IngestModel(BaseModel):
    ticks: list[TickModel] = Field(..., max_length=3000)

    @model_validator(mode="after")
    def _one_time_base(self) -> "IngestModel":
        timed = {tk.t is not None for tk in self.ticks}
        if len(timed) > 1:
            raise ValueError("either every tick carries 't' or none does")
        return self


def _output_dict(pipe: VitalsPipeline) -> dict:
    cur = pipe.current
    if cur is None:
        return {"status": "collecting"}
    return {
        "status": "ok",
        "heart_rate_bpm": cur.heart_rate_bpm,
        "breathing_rate_bpm": cur.breathing_rate_bpm,
        "confidence_percent": cur.confidence_percent,
    }


def make_app(cfg: Optional[PipelineConfig] = None) -> FastAPI:
    app = FastAPI(title="rPPG Consensus Service", version="0.1.0")

    pipe = VitalsPipeline(cfg)
    lock = asyncio.Lock()
    ws_clients: set[WebSocket] = set()

    async def broadcast() -> None:
        if not ws_clients:
            return
        msg = json.dumps(_output_dict(pipe))
        dead: list[WebSocket] = []
        for w in ws_clients:
            try:
                await w.send_text(msg)
            except Exception:
                dead.append(w)
        for w in dead:
            ws_clients.discard(w)

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.post("/ingest")
    async def post_ingest(payload: IngestModel) -> dict:
        if not payload.ticks:
            return {"status": "empty"}
        published = 0
        async with lock:
            try:
                for tk in payload.ticks:
                    if pipe.tick(tk.samples, now=tk.t) is not None:
                        published += 1
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e)) from e
        await broadcast()
        return {"status": "ok", "count": len(payload.ticks), "published": published}

    @app.get("/metrics")
    async def get_metrics() -> dict:
        async with lock:
            return _output_dict(pipe)

    @app.get("/summary")
    async def get_summary() -> dict:
        async with lock:
            s = pipe.summary()
            s["text"] = pipe.format_summary()
            return s

    @app.get("/export")
    async def get_export() -> dict:
        async with lock:
            return {"records": [r._asdict() for r in pipe.export_records()]}

    @app.post("/reset")
    async def post_reset() -> dict:
        async with lock:
            pipe.start()
        return {"status": "ok"}

    @app.websocket("/ws")
    async def ws_metrics(ws: WebSocket) -> None:  # pragma: no cover - integration
        await ws.accept()
        ws_clients.add(ws)
        try:
            while True:
                # keep alive; updates are pushed after each ingest
                await asyncio.sleep(30)
        except WebSocketDisconnect:
            ws_clients.discard(ws)
        except Exception:
            logger.exception("websocket client failed")
            ws_clients.discard(ws)

    return app


app = make_app()


def main() -> None:  # pragma: no cover - manual run helper
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":  # pragma: no cover
    main()
