import logging

from workorder_engine.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Install a single stream handler on the package logger."""
    root = logging.getLogger("workorder_engine")
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if not any(getattr(h, "_workorder_engine", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._workorder_engine = True  # type: ignore[attr-defined]
        root.addHandler(handler)
