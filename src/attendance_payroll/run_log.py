"""Structured payroll event logging.

Calculators and services report progress as named events with structured
fields (``record_calculated{employee_id, earned_salary, deduction}``) instead
of free text. Each event goes to the standard ``logging`` hierarchy and to
any registered run-log sinks:

    sink = JsonLinesRunLogSink("/var/log/payroll-runs")
    events = PayrollEventLogger(sinks=[sink])
    events.info("run_created", run_id=run.id, total_employees=12)

Sinks are isolated: a sink that raises is logged and skipped, it never
breaks the calculation that emitted the event.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable
from uuid import UUID

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class PayrollEvent:
    """One structured event emitted during payroll processing."""

    name: str
    level: int
    timestamp: datetime
    run_id: UUID | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.name,
            "level": logging.getLevelName(self.level),
            "timestamp": self.timestamp.isoformat(),
            "run_id": str(self.run_id) if self.run_id else None,
            "fields": self.fields,
        }


@runtime_checkable
class RunLogSink(Protocol):
    """Protocol for run-log persistence."""

    def write(self, event: PayrollEvent) -> None:
        """Persist one event."""
        ...


class MemoryRunLogSink:
    """Keeps events in memory, mostly for tests and API previews."""

    def __init__(self) -> None:
        self.events: list[PayrollEvent] = []

    def write(self, event: PayrollEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def for_run(self, run_id: UUID) -> list[PayrollEvent]:
        return [e for e in self.events if e.run_id == run_id]


class JsonLinesRunLogSink:
    """Appends events as JSON lines, one file per payroll run."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, run_id: UUID | None) -> Path:
        if run_id is None:
            return self.directory / "payroll_events.jsonl"
        return self.directory / f"payroll_run_{run_id}.jsonl"

    def write(self, event: PayrollEvent) -> None:
        line = json.dumps(event.to_dict(), default=str, sort_keys=True)
        with self.path_for(event.run_id).open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")


class PayrollEventLogger:
    """Leveled, structured logging facade handed to each component."""

    def __init__(
        self,
        sinks: list[RunLogSink] | None = None,
        log: logging.Logger | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._sinks: list[RunLogSink] = list(sinks or [])
        self._log = log or logging.getLogger("attendance_payroll.events")
        self._clock = clock

    def add_sink(self, sink: RunLogSink) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: RunLogSink) -> None:
        self._sinks = [s for s in self._sinks if s is not sink]

    def emit(
        self,
        event: str,
        /,
        *,
        level: int = logging.INFO,
        run_id: UUID | None = None,
        **fields: Any,
    ) -> PayrollEvent:
        """Emit a named event to the logger and every sink."""
        record = PayrollEvent(
            name=event,
            level=level,
            timestamp=self._clock(),
            run_id=run_id,
            fields=fields,
        )
        if self._log.isEnabledFor(level):
            self._log.log(
                level,
                "%s %s",
                event,
                json.dumps(fields, default=str, sort_keys=True),
                extra={"event": event, "fields": fields, "run_id": run_id},
            )

        for sink in self._sinks:
            try:
                sink.write(record)
            except Exception:
                logger.exception("Run log sink %s failed for event %s", sink, event)

        return record

    def debug(self, event: str, /, **fields: Any) -> PayrollEvent:
        return self.emit(event, level=logging.DEBUG, **fields)

    def info(self, event: str, /, **fields: Any) -> PayrollEvent:
        return self.emit(event, level=logging.INFO, **fields)

    def warning(self, event: str, /, **fields: Any) -> PayrollEvent:
        return self.emit(event, level=logging.WARNING, **fields)

    def error(self, event: str, /, **fields: Any) -> PayrollEvent:
        return self.emit(event, level=logging.ERROR, **fields)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line and server entry points."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def build_event_logger(run_log_dir: str | None = None) -> PayrollEventLogger:
    """Event logger with a JSON-lines sink when a run log directory is configured."""
    sinks: list[RunLogSink] = []
    if run_log_dir:
        sinks.append(JsonLinesRunLogSink(run_log_dir))
    return PayrollEventLogger(sinks=sinks)
