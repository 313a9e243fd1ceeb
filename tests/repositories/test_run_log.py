"""Tests for RunLogRepository."""

from datetime import UTC, datetime, timedelta

import pytest

from autocommit.core.errors import FailureCode
from autocommit.models import AttemptStatus
from autocommit.repositories import AttemptCreate, AttemptOutcome
from autocommit.repositories.run_log import OUTCOME_UNKNOWN_MESSAGE
from tests._support import REFERENCE_NOW, WEDNESDAY


@pytest.fixture
def attempt_id(run_log, make_rule):
    rule = make_rule()
    return run_log.open(
        AttemptCreate(
            rule_id=rule.id,
            owner_id=rule.owner_id,
            repo_name=rule.full_repo_name,
            file_name=rule.target_file,
            scheduled_at=REFERENCE_NOW,
            timezone=rule.timezone,
            day_of_week=WEDNESDAY,
        )
    )


class TestOpen:
    def test_record_starts_pending(self, run_log, attempt_id):
        record = run_log.get(attempt_id)
        assert record.status is AttemptStatus.PENDING
        assert record.scheduled_at == REFERENCE_NOW
        assert record.day_of_week == WEDNESDAY
        assert record.repo_name == "octo/hello"
        assert record.executed_at is None
        assert record.commit_sha is None


class TestFinalize:
    def test_success(self, run_log, attempt_id):
        outcome = AttemptOutcome(executed_at=REFERENCE_NOW, commit_message="Update notes", commit_sha="abc")
        assert run_log.finalize(attempt_id, AttemptStatus.SUCCESS, outcome) is True

        record = run_log.get(attempt_id)
        assert record.status is AttemptStatus.SUCCESS
        assert record.commit_sha == "abc"
        assert record.commit_message == "Update notes"
        assert record.executed_at == REFERENCE_NOW

    def test_failure_keeps_code_and_message(self, run_log, attempt_id):
        outcome = AttemptOutcome(
            executed_at=REFERENCE_NOW,
            error_message="sha does not match",
            error_code=FailureCode.CONFLICT,
        )
        run_log.finalize(attempt_id, "failed", outcome)

        record = run_log.get(attempt_id)
        assert record.status is AttemptStatus.FAILED
        assert record.error_code == "Conflict"
        assert record.error_message == "sha does not match"

    def test_success_never_carries_error_code(self, run_log, attempt_id):
        outcome = AttemptOutcome(executed_at=REFERENCE_NOW, commit_sha="abc", error_code=FailureCode.UNKNOWN)
        run_log.finalize(attempt_id, AttemptStatus.SUCCESS, outcome)
        assert run_log.get(attempt_id).error_code is None

    def test_finalized_only_once(self, run_log, attempt_id):
        run_log.finalize(attempt_id, AttemptStatus.SUCCESS, AttemptOutcome(REFERENCE_NOW, commit_sha="abc"))

        second = AttemptOutcome(REFERENCE_NOW, error_message="late", error_code=FailureCode.TIMEOUT)
        assert run_log.finalize(attempt_id, AttemptStatus.FAILED, second) is False

        record = run_log.get(attempt_id)
        assert record.status is AttemptStatus.SUCCESS
        assert record.error_message is None

    def test_pending_is_not_a_final_status(self, run_log, attempt_id):
        with pytest.raises(ValueError):
            run_log.finalize(attempt_id, AttemptStatus.PENDING, AttemptOutcome(REFERENCE_NOW))


class TestQueries:
    def test_list_and_count(self, run_log, make_rule):
        rule = make_rule()
        ids = []
        for _ in range(3):
            ids.append(
                run_log.open(
                    AttemptCreate(rule.id, rule.owner_id, rule.full_repo_name, "README.md", REFERENCE_NOW, "UTC", 3)
                )
            )
        run_log.finalize(ids[0], AttemptStatus.SUCCESS, AttemptOutcome(REFERENCE_NOW, commit_sha="a"))
        run_log.finalize(ids[1], AttemptStatus.FAILED, AttemptOutcome(REFERENCE_NOW, error_message="x"))

        assert len(run_log.list_for_rule(rule.id)) == 3
        assert len(run_log.list_for_rule(rule.id, limit=2)) == 2
        assert run_log.count_by_status(rule.id) == {"success": 1, "failed": 1, "pending": 1}
        assert run_log.list_for_rule("other") == []


class TestExpireStalePending:
    def test_old_pending_records_closed_as_outcome_unknown(self, run_log, attempt_id):
        cutoff = datetime.now(UTC) + timedelta(minutes=1)
        assert run_log.expire_stale_pending(cutoff) == 1

        record = run_log.get(attempt_id)
        assert record.status is AttemptStatus.FAILED
        assert record.error_message == OUTCOME_UNKNOWN_MESSAGE
        assert record.error_code == FailureCode.UNKNOWN.value

    def test_recent_pending_records_untouched(self, run_log, attempt_id):
        assert run_log.expire_stale_pending(datetime.now(UTC) - timedelta(hours=1)) == 0
        assert run_log.get(attempt_id).status is AttemptStatus.PENDING

    def test_final_records_untouched(self, run_log, attempt_id):
        run_log.finalize(attempt_id, AttemptStatus.SUCCESS, AttemptOutcome(REFERENCE_NOW, commit_sha="a"))
        assert run_log.expire_stale_pending(datetime.now(UTC) + timedelta(minutes=1)) == 0
