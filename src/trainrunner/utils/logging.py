from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

PLAIN_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"
RUN_BANNER = "----------------------------- new run ------------------------------"


class JsonFormatter(logging.Formatter):
    """Render log records as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - keep stdlib name
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def _build_formatter(*, json_output: bool) -> logging.Formatter:
    if json_output:
        return JsonFormatter()
    return logging.Formatter(PLAIN_FORMAT)


def _drop_file_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()


def configure_logging(
    *,
    level: int = logging.INFO,
    name: str = "trainrunner",
    json_output: bool = True,
    log_to_file: bool = False,
    file_name: str | Path = "training.log",
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure stream (and optional file) logging for trainrunner.

    The file handler appends, so every run in the same working directory
    adds to one log, separated by a banner line.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    formatter = _build_formatter(json_output=json_output)
    target_stream = sys.stdout if stream is None else stream

    stream_handler = next(
        (
            handler
            for handler in logger.handlers
            if isinstance(handler, logging.StreamHandler)
            and not isinstance(handler, logging.FileHandler)
            and getattr(handler, "stream", None) is target_stream
        ),
        None,
    )
    if stream_handler is None:
        stream_handler = logging.StreamHandler(target_stream)
        logger.addHandler(stream_handler)
    stream_handler.setFormatter(formatter)

    if log_to_file:
        file_path = Path(file_name)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = next(
            (
                handler
                for handler in logger.handlers
                if isinstance(handler, logging.FileHandler)
                and Path(handler.baseFilename) == Path(os.path.abspath(file_path))
            ),
            None,
        )
        if file_handler is None:
            _drop_file_handlers(logger)
            file_handler = logging.FileHandler(file_path, mode="a", encoding="utf-8")
            logger.addHandler(file_handler)
        file_handler.setFormatter(formatter)
        logger.info(RUN_BANNER)
        logger.info("Logging to: %s", file_path)
    else:
        _drop_file_handlers(logger)

    logger.propagate = False
    return logger
