"""File-based store for completed evaluation records, with dashboard views.

The paginated and stats views keep their camelCase keys: they are the
payloads the dashboard already reads.
"""

from __future__ import annotations

import json
import math
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from deep_research_judge.contracts import EvaluationRecord

PHASES = (
    ("plan", "plan_evaluation"),
    ("retrieval", "retrieval_evaluation"),
    ("answer", "answer_evaluation"),
)

SCORE_BUCKETS = ("0-20", "21-40", "41-60", "61-80", "81-100")

MAX_PAGE_SIZE = 100


def _bucket(score: float) -> str:
    percent = score * 100
    for upper, label in zip((20, 40, 60, 80), SCORE_BUCKETS):
        if percent <= upper:
            return label
    return SCORE_BUCKETS[-1]


def _pass_rate(passed: int, total: int) -> float:
    return round(passed / total * 100, 2) if total else 0.0


def _phase_scores(record: EvaluationRecord) -> list[dict[str, float]]:
    maps = []
    plan = record.get("plan_evaluation")
    if plan:
        maps.append(plan.get("final_scores", {}))
    retrieval = record.get("retrieval_evaluation")
    if retrieval:
        maps.append(retrieval.get("scores", {}))
    answer = record.get("answer_evaluation")
    if answer:
        maps.append(answer.get("final_scores", {}))
    return maps


class RecordStore:
    """JSON-backed store for evaluation records.

    Single JSON file, human-readable, graceful degradation on
    missing/corrupt data.
    """

    _FILENAME = "evaluation-records.json"

    def __init__(self, records_dir: str | Path) -> None:
        self._dir = Path(records_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def _path(self) -> Path:
        return self._dir / self._FILENAME

    def _load(self) -> list[EvaluationRecord]:
        """Load all records. Returns [] on any error."""
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if isinstance(data, list):
                return data
            return []
        except (json.JSONDecodeError, OSError):
            return []

    def _save(self, records: list[EvaluationRecord]) -> None:
        """Write records to disk."""
        self._path.write_text(
            json.dumps(records, indent=2, ensure_ascii=False, default=str),
            encoding="utf-8",
        )

    def save(self, record: EvaluationRecord) -> EvaluationRecord:
        """Insert or replace a record by id. Assigns id and timestamp when missing."""
        record = dict(record)  # type: ignore[assignment]
        record.setdefault("id", f"ev-{uuid.uuid4().hex[:12]}")
        record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        records = [r for r in self._load() if r.get("id") != record["id"]]
        records.append(record)
        self._save(records)
        return record

    def find(self, record_id: str) -> EvaluationRecord | None:
        for record in self._load():
            if record.get("id") == record_id:
                return record
        return None

    def list_all(self) -> list[EvaluationRecord]:
        return self._load()

    def find_page(
        self, page: int = 1, limit: int = 10, passed: bool | None = None
    ) -> dict[str, Any]:
        """Newest-first page of records, optionally filtered by outcome."""
        page = max(1, page)
        limit = max(1, min(MAX_PAGE_SIZE, limit))
        records = self._load()
        if passed is not None:
            records = [r for r in records if bool(r.get("passed")) == passed]
        records.sort(key=lambda r: r.get("timestamp", ""), reverse=True)

        total = len(records)
        start = (page - 1) * limit
        return {
            "records": records[start : start + limit],
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit) if total else 0,
        }

    def stats(self) -> dict[str, Any]:
        return self.summarize(self._load())

    @staticmethod
    def summarize(records: list[EvaluationRecord]) -> dict[str, Any]:
        """Dashboard stats over a set of records."""
        total = len(records)
        passed = sum(1 for r in records if r.get("passed"))

        sums: dict[str, float] = {}
        counts: dict[str, int] = {}
        for record in records:
            for scores in _phase_scores(record):
                for dimension, value in scores.items():
                    sums[dimension] = sums.get(dimension, 0.0) + value
                    counts[dimension] = counts.get(dimension, 0) + 1
        average_scores = {d: round(sums[d] / counts[d], 4) for d in sums}

        phase_breakdown = []
        for phase, key in PHASES:
            phase_records = [r[key] for r in records if r.get(key)]
            phase_passed = sum(1 for p in phase_records if p.get("passed"))
            phase_breakdown.append(
                {
                    "phase": phase,
                    "total": len(phase_records),
                    "passed": phase_passed,
                    "failed": len(phase_records) - phase_passed,
                    "passRate": _pass_rate(phase_passed, len(phase_records)),
                }
            )

        distribution = {label: 0 for label in SCORE_BUCKETS}
        for record in records:
            score = record.get("overall_score")
            if score is not None:
                distribution[_bucket(score)] += 1

        return {
            "totalRecords": total,
            "passedCount": passed,
            "failedCount": total - passed,
            "passRate": _pass_rate(passed, total),
            "averageScores": average_scores,
            "phaseBreakdown": phase_breakdown,
            "scoreDistribution": [
                {"range": label, "count": count} for label, count in distribution.items()
            ],
        }
