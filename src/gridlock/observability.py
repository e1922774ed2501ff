"""Structured logging and observability helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

LOGGER_NAME = "gridlock"
LOG_LEVEL_ENV = "GRIDLOCK_LOG_LEVEL"
_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str | None = None) -> None:
    """Configure console logging through rich.

    Level resolution: the ``level`` argument, then ``GRIDLOCK_LOG_LEVEL``,
    then ``WARNING``. Safe to call more than once.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "WARNING")
    level = str(level).upper().strip()
    if level not in _LEVELS:
        level = "WARNING"

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(show_path=False, show_time=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        package: str | None,
        phase: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "package": package,
            "phase": phase,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        logger.log(
            logging.getLevelName(level.upper()),
            "%s%s: %s",
            operation,
            f"[{package}]" if package else "",
            message,
        )

    def records_for_package(self, package: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("package") == package]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
