import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("PERF_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(
    name: str, log_file: str | None = None, level: int | str | None = None
) -> logging.Logger:
    """Configures the root logger once and returns the logger called name.

    The level defaults to PERF_LOG_LEVEL (INFO when unset).
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Handlers go on the root logger so every ppb.* module logger reaches them.
    root = logging.getLogger()
    if not root.handlers:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

        if log_file is not None:
            file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    root.setLevel(_resolve_level(level))

    return logging.getLogger(name)
