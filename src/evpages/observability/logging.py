"""Structured logging with an async-safe run ID.

Every line emitted during an orchestrator run carries the run's ID, so one
batch can be pulled out of aggregated logs even when several runs overlap.
Locality-level context travels through ``extra={...}``.
"""

import contextlib
import json
import logging
import uuid
from collections.abc import Iterator
from contextvars import ContextVar
from datetime import datetime, timezone

# Propagates through await chains and into gathered tasks
run_id: ContextVar[str] = ContextVar("run_id", default="")

LOCALITY_FIELDS = ("locality", "region", "step", "duration_ms")
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s%(run_tag)s: %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "mlflow", "prefect")


def get_run_id() -> str:
    """Return the current run ID, or empty string outside a run."""
    return run_id.get()


@contextlib.contextmanager
def run_context(rid: str | None = None) -> Iterator[str]:
    """Bind a run ID for the duration of the block; a fresh one if none is given."""
    rid = rid or uuid.uuid4().hex[:12]
    token = run_id.set(rid)
    try:
        yield rid
    finally:
        run_id.reset(token)


class RunIdFilter(logging.Filter):
    """Stamp ``run_id`` (and a ``run_tag`` for text output) on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        rid = run_id.get()
        record.run_id = rid
        record.run_tag = f" [{rid}]" if rid else ""
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with run and locality context when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        rid = getattr(record, "run_id", None) or run_id.get()
        if rid:
            entry["run_id"] = rid
        entry.update(
            {key: getattr(record, key) for key in LOCALITY_FIELDS if getattr(record, key, None) is not None}
        )
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Replace the root handlers with a single stream handler.

    Args:
        json_format: JSON lines for log shipping, or plain text for a terminal.
        level: Root level name; unknown names fall back to INFO.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RunIdFilter())
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
