#!/usr/bin/env python3
"""
Main entrypoint: bootstrap the database, generate upcoming recurring tasks once, then serve the API.
Run with: python run.py
Or run the API only: python -m web_app
Or use the command line: python cli.py --help
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure app loggers (taskbook.api, task_service, generation) emit to the same stream as uvicorn
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,
)

# Project root
ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from config import load as load_config
from generation import generate_all
from task_service import ensure_db

logger = logging.getLogger("taskbook")


def main() -> None:
    ensure_db()
    config = load_config()
    report = generate_all(config.horizon_days)
    if report["templatesFailed"]:
        logger.warning("Generation failed for templates %s", report["templatesFailed"])

    # Run web app (blocking)
    import uvicorn
    uvicorn.run(
        "web_app:app",
        host="0.0.0.0",
        port=config.web_ui_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
