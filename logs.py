import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# SDK and HTTP client loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "docling")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the CLI and the server."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
