"""FicArchive logging utilities.

One package logger (``FicArchive``) with a compact ``mm-dd HH:MM:SS [LVL]``
prefix, configured once per command.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Final


_LEVEL_TAGS: Final[dict[int, str]] = {
    logging.DEBUG: "DEBG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERRO",
    logging.CRITICAL: "CRIT",
}


class _LevelTagFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 - stdlib method name
        record.leveltag = _LEVEL_TAGS.get(record.levelno, record.levelname[:4])
        return super().format(record)


log = logging.getLogger("FicArchive")


def configure_logging(
    *,
    level: str = "INFO",
    command: str | None = None,
    log_to_file: bool = False,
    log_dir: str = "log",
) -> None:
    """Configure the FicArchive logger.

    Console output is always attached at INFO. When ``log_to_file`` is set and
    a command name is known, a DEBUG-level file ``<log_dir>/<command>/<command>_<mmddHHMMSS>.log``
    is attached as well.

    Args:
        level: Logger level name (e.g. INFO, DEBUG).
        command: CLI command name, used for the log file path.
        log_to_file: Whether to mirror logs to a file.
        log_dir: Base directory for log files.
    """
    resolved = getattr(logging, (level or "INFO").upper(), logging.INFO)
    formatter = _LevelTagFormatter(
        fmt="%(asctime)s [%(leveltag)s] %(message)s",
        datefmt="%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setLevel(max(logging.INFO, resolved))
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if log_to_file and command:
        target_dir = Path(log_dir or "log") / command
        target_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%m%d%H%M%S")
        file_handler = logging.FileHandler(target_dir / f"{command}_{stamp}.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    log.handlers.clear()
    for handler in handlers:
        log.addHandler(handler)
    log.setLevel(min(logging.DEBUG, resolved))
    log.propagate = False
