"""Tests for LockManager."""

from autocommit.scheduling.lock_manager import LockManager


class TestAcquire:
    def test_acquire(self, lock_manager):
        assert lock_manager.acquire_rule_lock("rule-1") is True

    def test_same_instance_cannot_reacquire(self, lock_manager):
        lock_manager.acquire_rule_lock("rule-2")
        assert lock_manager.acquire_rule_lock("rule-2") is False

    def test_other_instance_refused(self, conn):
        first = LockManager(conn, instance_id="instance-1")
        second = LockManager(conn, instance_id="instance-2")

        assert first.acquire_rule_lock("rule-3") is True
        assert second.acquire_rule_lock("rule-3") is False
        assert second.get_lock_holder("rule-3") == "instance-1"

    def test_locks_are_per_rule(self, lock_manager):
        assert lock_manager.acquire_rule_lock("rule-a") is True
        assert lock_manager.acquire_rule_lock("rule-b") is True

    def test_expired_lock_can_be_taken_over(self, conn):
        crashed = LockManager(conn, instance_id="crashed")
        survivor = LockManager(conn, instance_id="survivor")

        crashed.acquire_rule_lock("rule-4", ttl_seconds=-1)

        assert survivor.is_locked("rule-4") is False
        assert survivor.acquire_rule_lock("rule-4") is True
        assert survivor.get_lock_holder("rule-4") == "survivor"


class TestRelease:
    def test_release_then_reacquire(self, lock_manager):
        lock_manager.acquire_rule_lock("rule-5")
        assert lock_manager.release_rule_lock("rule-5") is True
        assert lock_manager.acquire_rule_lock("rule-5") is True

    def test_release_not_held(self, lock_manager):
        assert lock_manager.release_rule_lock("not-held") is False

    def test_release_held_by_other(self, conn):
        first = LockManager(conn, instance_id="instance-a")
        second = LockManager(conn, instance_id="instance-b")

        first.acquire_rule_lock("rule-6")

        assert second.release_rule_lock("rule-6") is False
        assert first.is_locked("rule-6") is True


class TestInspection:
    def test_is_locked_and_holder(self, lock_manager):
        assert lock_manager.is_locked("rule-7") is False
        assert lock_manager.get_lock_holder("rule-7") is None

        lock_manager.acquire_rule_lock("rule-7")
        assert lock_manager.is_locked("rule-7") is True
        assert lock_manager.get_lock_holder("rule-7") == "test-instance"

    def test_auto_generated_instance_id(self, conn):
        assert LockManager(conn).instance_id != LockManager(conn).instance_id

    def test_cleanup_expired_locks(self, lock_manager):
        lock_manager.acquire_rule_lock("stale-1", ttl_seconds=-1)
        lock_manager.acquire_rule_lock("stale-2", ttl_seconds=-1)
        lock_manager.acquire_rule_lock("live", ttl_seconds=300)

        assert lock_manager.cleanup_expired_locks() == 2
        assert lock_manager.is_locked("live") is True

    def test_list_active_locks(self, lock_manager):
        lock_manager.acquire_rule_lock("live")
        lock_manager.acquire_rule_lock("stale", ttl_seconds=-1)

        locks = lock_manager.list_active_locks()

        assert [lock["rule_id"] for lock in locks] == ["live"]
        assert locks[0]["locked_by"] == "test-instance"
        assert set(locks[0]) == {"rule_id", "locked_by", "locked_at", "expires_at"}
