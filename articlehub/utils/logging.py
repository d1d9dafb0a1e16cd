from __future__ import annotations

import logging
from pathlib import Path


def setup_logging(log_dir: Path, level: int | str = logging.INFO) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "app.log"

    handlers: list[logging.Handler] = [logging.StreamHandler(), logging.FileHandler(log_file, encoding="utf-8")]
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )
    # httpx logs one INFO line per vendor request.
    logging.getLogger("httpx").setLevel(logging.WARNING)
