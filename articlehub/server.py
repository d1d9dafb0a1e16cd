"""Process entry point: ``uvicorn articlehub.server:app`` or ``articlehub-server``."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from .api.app import create_app
from .config import load_settings
from .utils.logging import setup_logging


settings = load_settings()
setup_logging(Path(settings.logging.log_dir), settings.logging.level)
logger = logging.getLogger("articlehub.server")

app = create_app(settings)


def main() -> None:
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    logger.info("Starting ArticleHub on %s:%d (%s)", host, port, settings.server.environment)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
