"""Log formatters for job output with colouring and secret masking."""

from __future__ import annotations

import itertools
import json
import logging
import os
import sys
import threading
from datetime import datetime
from typing import Callable, Iterable, Mapping, Optional, TextIO

RED = 31
GREEN = 32
YELLOW = 33
BLUE = 34
MAGENTA = 35
CYAN = 36
GRAY = 37

_COLORS = (BLUE, YELLOW, GREEN, MAGENTA, RED, GRAY, CYAN)
_color_lock = threading.Lock()
_color_counter = itertools.count()

Masker = Callable[[str], str]

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}
_JSON_FIELDS = ("job", "dryrun", "step", "raw_output")


def next_color() -> int:
    """Return the next job colour, cycling through a fixed palette."""
    with _color_lock:
        return _COLORS[next(_color_counter) % len(_COLORS)]


def value_masker(insecure_secrets: bool, secrets: Mapping[str, str],
                 masks: Optional[Iterable[str]] = None) -> Masker:
    """Build a function that replaces secret values and masks with ``***``.

    ``masks`` is read on every call, so values added to it later are masked too.
    """
    def mask(message: str) -> str:
        if insecure_secrets:
            return message
        for value in secrets.values():
            if value:
                message = message.replace(value, "***")
        for value in masks or ():
            if value:
                message = message.replace(value, "***")
        return message

    return mask


def is_colored(stream: TextIO) -> bool:
    """Decide whether output written to ``stream`` should carry colour codes."""
    try:
        colored = bool(stream.isatty())
    except (AttributeError, ValueError):
        colored = False

    force = os.environ.get("CLICOLOR_FORCE")
    if force is not None:
        return force != "0"
    if os.environ.get("CLICOLOR") == "0":
        return False
    return colored


class JobLogFormatter(logging.Formatter):
    """Prefixes each message with its job name, in colour on terminals."""

    def __init__(self, color: int, masker: Masker, stream: Optional[TextIO] = None) -> None:
        super().__init__()
        self.color = color
        self.masker = masker
        self.stream = stream if stream is not None else sys.stdout

    def format(self, record: logging.LogRecord) -> str:
        message = self.masker(record.getMessage()).removesuffix("\n")
        job = getattr(record, "job", "")
        raw = getattr(record, "raw_output", False) is True
        dryrun = getattr(record, "dryrun", False) is True

        if is_colored(self.stream):
            if raw:
                return f"\x1b[{self.color}m|\x1b[0m {message}"
            if dryrun:
                return (f"\x1b[1m\x1b[{GRAY}m\x1b[7m*DRYRUN*\x1b[0m "
                        f"\x1b[{self.color}m[{job}] \x1b[0m{message}")
            return f"\x1b[{self.color}m[{job}] \x1b[0m{message}"

        if raw:
            return f"[{job}]   | {message}"
        if dryrun:
            return f"*DRYRUN* [{job}] {message}"
        return f"[{job}] {message}"


class JsonJobLogFormatter(logging.Formatter):
    """Writes each record as one JSON object with masked message text."""

    def __init__(self, masker: Masker) -> None:
        super().__init__()
        self.masker = masker

    def format(self, record: logging.LogRecord) -> str:
        data = {
            name: getattr(record, name)
            for name in _JSON_FIELDS
            if hasattr(record, name)
        }
        data["level"] = _LEVEL_NAMES.get(record.levelno, record.levelname.lower())
        data["msg"] = self.masker(record.getMessage())
        data["time"] = datetime.fromtimestamp(record.created).astimezone().isoformat(
            timespec="seconds")
        return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)