"""Tests for store.records — persistence, pagination, dashboard stats."""

from __future__ import annotations

from deep_research_judge.store.records import RecordStore


def _record(
    log_id: str,
    *,
    passed: bool = True,
    overall: float | None = 0.8,
    timestamp: str | None = None,
    with_plan: bool = True,
) -> dict:
    record = {
        "log_id": log_id,
        "query_id": log_id,
        "user_query": "Jazz concerts in New York",
        "plan_evaluation": {
            "attempts": [],
            "final_scores": {"intentAlignment": 0.9 if passed else 0.3},
            "explanations": {},
            "passed": passed,
            "total_iterations": 1,
            "escalated_to_large_model": False,
        }
        if with_plan
        else None,
        "retrieval_evaluation": None,
        "answer_evaluation": {
            "final_scores": {"faithfulness": 0.7},
            "explanations": {},
            "passed": True,
            "regenerated": False,
        },
        "overall_score": overall,
        "passed": passed,
        "evaluation_skipped": False,
    }
    if timestamp:
        record["timestamp"] = timestamp
    return record


class TestSaveFind:
    def test_assigns_id_and_timestamp(self, tmp_path):
        store = RecordStore(tmp_path)
        saved = store.save(_record("log-1"))
        assert saved["id"].startswith("ev-")
        assert saved["timestamp"]
        assert store.find(saved["id"]) == saved

    def test_replace_by_id(self, tmp_path):
        store = RecordStore(tmp_path)
        saved = store.save(_record("log-1"))
        saved["passed"] = False
        store.save(saved)
        assert len(store.list_all()) == 1
        assert store.find(saved["id"])["passed"] is False

    def test_find_missing(self, tmp_path):
        assert RecordStore(tmp_path).find("ev-nope") is None

    def test_corrupt_file_reads_empty(self, tmp_path):
        store = RecordStore(tmp_path)
        (tmp_path / "evaluation-records.json").write_text("{broken", encoding="utf-8")
        assert store.list_all() == []


class TestFindPage:
    def test_newest_first_and_paged(self, tmp_path):
        store = RecordStore(tmp_path)
        for day in range(1, 6):
            store.save(_record(f"log-{day}", timestamp=f"2026-02-0{day}T00:00:00+00:00"))

        page = store.find_page(page=1, limit=2)
        assert [r["log_id"] for r in page["records"]] == ["log-5", "log-4"]
        assert page["total"] == 5
        assert page["totalPages"] == 3

        last = store.find_page(page=3, limit=2)
        assert [r["log_id"] for r in last["records"]] == ["log-1"]

    def test_filter_by_outcome(self, tmp_path):
        store = RecordStore(tmp_path)
        store.save(_record("ok"))
        store.save(_record("bad", passed=False))
        page = store.find_page(passed=False)
        assert [r["log_id"] for r in page["records"]] == ["bad"]

    def test_limit_clamped(self, tmp_path):
        store = RecordStore(tmp_path)
        assert store.find_page(limit=500)["limit"] == 100
        assert store.find_page(limit=0)["limit"] == 1

    def test_empty(self, tmp_path):
        page = RecordStore(tmp_path).find_page()
        assert page["records"] == []
        assert page["totalPages"] == 0


class TestStats:
    def test_summary(self, tmp_path):
        store = RecordStore(tmp_path)
        store.save(_record("a", overall=0.95))
        store.save(_record("b", overall=0.55))
        store.save(_record("c", passed=False, overall=0.15))
        store.save(_record("d", overall=None, with_plan=False))

        stats = store.stats()

        assert stats["totalRecords"] == 4
        assert stats["passedCount"] == 3
        assert stats["failedCount"] == 1
        assert stats["passRate"] == 75.0
        assert stats["averageScores"]["faithfulness"] == 0.7
        assert stats["averageScores"]["intentAlignment"] == round((0.9 + 0.9 + 0.3) / 3, 4)

        plan = next(p for p in stats["phaseBreakdown"] if p["phase"] == "plan")
        assert plan == {"phase": "plan", "total": 3, "passed": 2, "failed": 1, "passRate": 66.67}
        retrieval = next(p for p in stats["phaseBreakdown"] if p["phase"] == "retrieval")
        assert retrieval["total"] == 0
        assert retrieval["passRate"] == 0.0

        buckets = {b["range"]: b["count"] for b in stats["scoreDistribution"]}
        assert buckets == {"0-20": 1, "21-40": 0, "41-60": 1, "61-80": 0, "81-100": 1}

    def test_summarize_empty(self):
        stats = RecordStore.summarize([])
        assert stats["totalRecords"] == 0
        assert stats["passRate"] == 0.0
        assert stats["averageScores"] == {}
        assert len(stats["scoreDistribution"]) == 5
