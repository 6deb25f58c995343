"""Multi-region, multi-algorithm rPPG heart and breathing rate estimation.

Entry point is `pipeline.VitalsPipeline`; `service` wraps it in a FastAPI app.
"""

__all__ = [
    "config",
    "buffer",
    "preprocess",
    "bpm",
    "peaks",
    "acf_bpm",
    "wavelet",
    "estimators",
    "quality",
    "history",
    "performance",
    "consensus",
    "respiration",
    "smoother",
    "roi",
    "pipeline",
    "service",
]

__version__ = "0.1.0"
