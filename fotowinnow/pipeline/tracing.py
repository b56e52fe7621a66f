"""One structured trace span per pipeline invocation.

Steps append events (name, duration, outcome); closing the span emits a
single log record whose ``span`` attribute holds the whole trace, for a
log shipper or handler to forward.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


class PipelineSpan:
    """Collects step timings for a single ``process`` call."""

    def __init__(self, name: str = "image.process", **attributes: Any):
        self.name = name
        self.span_id = uuid4().hex[:16]
        self.attributes: dict[str, Any] = dict(attributes)
        self.events: list[dict[str, Any]] = []
        self.outcome = "ok"
        self._started = time.perf_counter()
        self.duration_ms: Optional[float] = None

    def set(self, **attributes: Any) -> None:
        self.attributes.update(attributes)

    def event(self, step: str, duration_ms: float, outcome: str = "ok", **details: Any) -> None:
        self.events.append({
            "step": step,
            "duration_ms": round(duration_ms, 2),
            "outcome": outcome,
            **details,
        })

    @contextmanager
    def step(self, name: str, **details: Any) -> Iterator[None]:
        """Time the enclosed block and record it as an event.

        Exceptions are recorded with outcome ``error`` and re-raised.
        """
        started = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.event(name, (time.perf_counter() - started) * 1000, "error",
                       error=type(e).__name__, **details)
            raise
        self.event(name, (time.perf_counter() - started) * 1000, **details)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "span_id": self.span_id,
            "outcome": self.outcome,
            "duration_ms": self.duration_ms,
            "attributes": self.attributes,
            "events": self.events,
        }

    def close(self, outcome: Optional[str] = None) -> dict[str, Any]:
        """Finish the span and log it once."""
        if outcome:
            self.outcome = outcome
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        record = self.to_dict()
        level = logging.INFO if self.outcome == "ok" else logging.WARNING
        logger.log(
            level,
            "%s %s in %.1fms (%s)",
            self.name, self.outcome, self.duration_ms,
            ", ".join(f"{e['step']}={e['outcome']}" for e in self.events),
            extra={"span": record},
        )
        return record


@contextmanager
def pipeline_span(name: str = "image.process", **attributes: Any) -> Iterator[PipelineSpan]:
    """Open a span; it is closed (and logged) when the block exits."""
    span = PipelineSpan(name, **attributes)
    try:
        yield span
    except Exception as e:
        span.set(error=type(e).__name__)
        span.close("error")
        raise
    span.close()
