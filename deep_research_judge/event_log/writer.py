"""Evaluation event log — one JSONL file of stage events per research session.

Layout: <log_dir>/<log_id>/evaluation-events.jsonl

The confidence pipeline writes start / progress / complete events per stage;
the gateway writes an error event whenever an evaluation is skipped.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from deep_research_judge.contracts import RunEvent

EVENTS_FILENAME = "evaluation-events.jsonl"


class EventLog:
    def __init__(self, log_dir: str | Path, log_id: str) -> None:
        self.log_id = log_id
        self.path = Path(log_dir) / log_id / EVENTS_FILENAME

    @staticmethod
    def make_event(
        *,
        node: str,
        status: str,
        elapsed_s: float = 0.0,
        details: dict[str, Any] | None = None,
    ) -> RunEvent:
        return RunEvent(
            node=node,
            status=status,
            ts=datetime.now(timezone.utc).isoformat(),
            elapsed_s=round(elapsed_s, 3),
            details=dict(details or {}),
        )

    def emit(self, event: RunEvent) -> None:
        """Append one event. The session directory is created on first write."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")

    def record(
        self, node: str, status: str, *, elapsed_s: float = 0.0, **details: Any
    ) -> RunEvent:
        """Build and append an event in one step."""
        event = self.make_event(node=node, status=status, elapsed_s=elapsed_s, details=details)
        self.emit(event)
        return event

    def _iter_events(self) -> Iterator[RunEvent]:
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError:
            return
        for line in lines:
            if not line.strip():
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(event, dict):
                yield event

    def read_all(self) -> list[RunEvent]:
        """Every readable event in write order; [] when the session has none."""
        return list(self._iter_events())

    def for_node(self, node: str) -> list[RunEvent]:
        return [e for e in self._iter_events() if e.get("node") == node]

    def errors(self) -> list[RunEvent]:
        return [e for e in self._iter_events() if e.get("status") == "error"]
