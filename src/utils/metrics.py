"""Logging configuration and request timing utilities."""

import logging
import time
from contextlib import contextmanager
from typing import Iterator

LOG_FORMATS = {
    "json": "%(message)s",
    "text": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Per-request chatter from the HTTP and S3 clients and the image decoder.
NOISY_LOGGERS = ("botocore", "aiobotocore", "httpx", "httpcore", "PIL")


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format type ('json' or 'text')
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMATS.get(log_format, LOG_FORMATS["text"]),
        handlers=[logging.StreamHandler()],
        force=True,
    )

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={log_level}, format={log_format}")


class ServerTiming:
    """Collects phase durations for the Server-Timing response header."""

    def __init__(self) -> None:
        self.phases: list[tuple[str, int]] = []

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Time a block; the phase is recorded only if the block succeeds."""
        start_time = time.perf_counter()
        yield
        self.record(name, (time.perf_counter() - start_time) * 1000)

    def record(self, name: str, duration_ms: float) -> None:
        self.phases.append((name, int(duration_ms)))

    def header(self) -> str:
        """Render as ``img-download;dur=12,img-transform;dur=30``."""
        return ",".join(f"{name};dur={duration}" for name, duration in self.phases)
