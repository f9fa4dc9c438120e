"""Logging configuration for the relying party fixture.

WHO READS THESE LOGS
---------------------
The relying party runs inside an end-to-end test suite.  Most of the time
nobody reads its output: test code subscribes to the outcome events and
asserts on them directly.  The logs matter in the other cases:

  - A test forgot to subscribe to ``gotError`` / ``invalidToken``.  The
    fallback diagnostic lands here, so a broken broker is never silent.
  - Someone is clicking through the flow by hand in a browser.
  - CI collected the output of a failing run and a human is reading it
    after the fact.

TWO FORMATTERS
---------------
  _ContainerFormatter: one human-readable line per record.  WARNING and
    above get ``[file:line]`` appended so the fallback diagnostics point
    straight at the branch of the verify handler that produced them.

  _JsonFormatter: one JSON object per line, for CI log collectors.
    Request context (request_id, path, outcome ...) becomes top-level keys
    that can be filtered without regex.

Set LOG_JSON=true to switch to JSON output.
"""

from __future__ import annotations

import json
import logging
import sys

from relying_party.middleware.request_context import _RequestContextFilter


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for terminal and CI output.

    - Always: ISO-8601 timestamp with milliseconds, level, logger, message
    - WARNING+: appends [filename:lineno]
    - Tracebacks are included when the caller passes exc_info
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Splice .NNN in ahead of the +HHMM offset.
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Context fields are attached to records by the RequestContextMiddleware
    (request_id, method, path, status_code, duration_ms) and by the verify
    handler (outcome).  Only fields that are present are emitted.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "outcome",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger.

    Args:
        level_name: debug/info/warning/error; unknown names fall back to info.
        json_format: emit JSON lines instead of the single-line text format.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    # Replaces every root handler, including any that create_app() already
    # gave the request ID filter.
    handler.addFilter(_RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # uvicorn runs on a background thread next to the test suite; keep its
    # per-connection chatter and httpx's request lines out of the way.
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
