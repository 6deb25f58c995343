"""Local runner for the rPPG consensus service with src/ layout.

Usage: uv run python run_service.py
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path


def main() -> None:
    # Ensure src/ is on sys.path so `import rppg_consensus` resolves
    root = Path(__file__).resolve().parent
    src = root / "src"
    if src.exists():
        sys.path.insert(0, str(src))

    logs_dir = root / "logs"
    logs_dir.mkdir(exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[
            logging.FileHandler(logs_dir / "service.log", encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )

    from rppg_consensus.service import main as service_main  # type: ignore

    service_main()


if __name__ == "__main__":
    main()
