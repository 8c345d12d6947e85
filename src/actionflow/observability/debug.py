"""Per-dispatch debug collector.

One ``DebugCollector`` lives exactly as long as one dispatch attempt. Policies,
hooks and actions append entries through ``ctx.debug``; the flow controller
closes the collector at the end of the attempt and logs its summary.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DebugEntry:
    category: str
    message: str
    elapsed_ms: float
    data: dict[str, Any] = field(default_factory=dict)


class DebugCollector:
    """Collects timestamped debug entries for a single dispatch attempt."""

    __slots__ = ("_closed", "_entries", "_finished_at", "_started_at", "request_id")

    def __init__(self, request_id: str | None = None) -> None:
        self.request_id = request_id or uuid.uuid4().hex
        self._started_at = time.perf_counter()
        self._finished_at: float | None = None
        self._entries: list[DebugEntry] = []
        self._closed = False

    def note(self, category: str, message: str, **data: Any) -> None:
        if self._closed:
            raise RuntimeError("debug collector already closed")
        self._entries.append(
            DebugEntry(category=category, message=message, elapsed_ms=self._elapsed_ms(), data=data)
        )

    @property
    def entries(self) -> tuple[DebugEntry, ...]:
        return tuple(self._entries)

    @property
    def closed(self) -> bool:
        return self._closed

    def categories(self) -> list[str]:
        return [entry.category for entry in self._entries]

    def close(self, outcome: str) -> dict[str, Any]:
        """Freeze the collector and log a summary; closing twice is a no-op."""

        if not self._closed:
            self._finished_at = time.perf_counter()
            self._closed = True
            logger.debug(
                "dispatch attempt closed",
                extra={"outcome": outcome, "entries": len(self._entries)},
            )
        return self.summary(outcome)

    def summary(self, outcome: str) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "outcome": outcome,
            "duration_ms": round(self._elapsed_ms(), 3),
            "entries": [
                {"category": e.category, "message": e.message, "elapsed_ms": round(e.elapsed_ms, 3)}
                for e in self._entries
            ],
        }

    def _elapsed_ms(self) -> float:
        end = self._finished_at if self._finished_at is not None else time.perf_counter()
        return (end - self._started_at) * 1000.0


__all__ = ["DebugCollector", "DebugEntry"]
