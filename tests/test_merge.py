"""Tests for report submission: catalog validation and duplicate merging."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.errors import ValidationError
from app.models.report import IssueType, ReportStatus
from app.services.lifecycle_engine import canonical_issue_name, dedup_key, normalize_issue_type
from tests.conftest import ADMIN, DONE_URL, IMAGE_URL, SUPERVISOR, advance_to_worker, submit


class TestIssueCatalog:
    @pytest.mark.parametrize("raw", ["Pothole", "POTHOLE", "pothole", " pothole "])
    def test_case_insensitive(self, raw: str) -> None:
        assert normalize_issue_type(raw) == IssueType.POTHOLE

    @pytest.mark.parametrize("raw", ["BROKEN_STREET_LIGHT", "broken-street light", "Broken Street Light"])
    def test_separators_ignored(self, raw: str) -> None:
        assert normalize_issue_type(raw) == IssueType.BROKEN_STREET_LIGHT

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc:
            normalize_issue_type("Alien Landing")
        assert exc.value.status_code == 400

    def test_canonical_name(self) -> None:
        assert canonical_issue_name("Garbage_Overflow") == "garbage overflow"

    def test_dedup_key_ignores_block_case(self) -> None:
        assert dedup_key(IssueType.POTHOLE, "B1") == dedup_key(IssueType.POTHOLE, " b1 ")
        assert dedup_key(IssueType.POTHOLE, "B1") != dedup_key(IssueType.POTHOLE, "B2")
        assert dedup_key(IssueType.POTHOLE, "B1") != dedup_key(IssueType.ROAD_DAMAGE, "B1")


class TestSubmit:
    def test_first_submission_creates_pending_report(self, engine, store) -> None:
        result = submit(engine)
        assert result.merged is False

        report = store.get_report(result.id)
        assert report["status"] == ReportStatus.PENDING.value
        assert report["priority"] == 0
        assert report["issue_type"] == "Pothole"
        assert report["title"] == "Pothole"
        assert report["status_history"][0]["to"] == ReportStatus.PENDING.value

        images = store.list_images(result.id)
        assert len(images) == 1
        assert images[0]["tag"] == "REPORTED"
        assert images[0]["image_url"] == IMAGE_URL

    def test_duplicates_merge_into_open_report(self, engine, store) -> None:
        first = submit(engine, user_id="resident-1")
        second = submit(engine, "pothole", user_id="resident-2")
        third = submit(engine, "POTHOLE", user_id="resident-3")

        assert (second.merged, third.merged) == (True, True)
        assert second.id == third.id == first.id

        report = store.get_report(first.id)
        assert report["priority"] == 2
        assert report["user_id"] == "resident-1"
        assert len(store.list_images(first.id)) == 3
        assert len(store.list_reports()) == 1

    def test_other_block_is_a_new_report(self, engine, store) -> None:
        first = submit(engine, block_id="B1")
        second = submit(engine, block_id="B2")
        assert second.merged is False
        assert second.id != first.id

    def test_merge_into_in_progress_report(self, engine, store) -> None:
        first = submit(engine)
        engine.start_triage(ADMIN, first.id, "2 days")

        second = submit(engine)
        assert second.merged is True
        assert second.id == first.id
        assert store.get_report(first.id)["priority"] == 1

    def test_resolved_report_is_not_merge_target(self, engine, store, classifier) -> None:
        report_id = advance_to_worker(engine)
        classifier.predict("pothole", 0.95)
        engine.complete_work(SUPERVISOR, report_id, DONE_URL)
        assert store.get_report(report_id)["status"] == ReportStatus.RESOLVED.value

        again = submit(engine)
        assert again.merged is False
        assert again.id != report_id
        assert store.get_report(again.id)["priority"] == 0

    def test_invalid_image_url(self, engine) -> None:
        with pytest.raises(ValidationError):
            engine.submit_report("Pothole", "B1", "not-a-url", "resident-1")

    def test_blank_block_rejected(self, engine) -> None:
        with pytest.raises(ValidationError):
            engine.submit_report("Pothole", "  ", IMAGE_URL, "resident-1")

    def test_concurrent_submissions_yield_one_report(self, engine, store) -> None:
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda i: submit(engine, user_id=f"resident-{i}"), range(20)))

        ids = {r.id for r in results}
        assert len(ids) == 1
        assert sum(1 for r in results if not r.merged) == 1

        report = store.get_report(ids.pop())
        assert report["priority"] == 19
        assert len(store.list_images(report["id"])) == 20
