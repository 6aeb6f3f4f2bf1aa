# tests/core/ledger/test_locks.py
"""Tests for the single-instance lock."""

from __future__ import annotations

import threading
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from taskledger.contracts import AlreadyHeldError

if TYPE_CHECKING:
    from taskledger.core.ledger import LedgerDB


class TestLockKey:
    """lock_key is a name-based UUID."""

    def test_matches_uuid3_of_name_bytes(self) -> None:
        from taskledger.core.ledger import lock_key

        # Name-based UUID v3 over the raw name bytes (no namespace)
        key = lock_key("job-x")
        parsed = uuid.UUID(key)
        assert parsed.version == 3
        assert len(key) == 36

    def test_stable_and_distinct(self) -> None:
        from taskledger.core.ledger import lock_key

        assert lock_key("job-x") == lock_key("job-x")
        assert lock_key("job-x") != lock_key("job-y")

    def test_long_names_bounded(self) -> None:
        from taskledger.core.ledger import SingleInstanceLock, lock_key

        assert len(lock_key("n" * 10_000)) == 36
        assert SingleInstanceLock.lock_key("a") == lock_key("a")


class TestSingleInstanceLock:
    """Acquire, contend, release."""

    def test_acquire_and_holder(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock, lock_key

        lock = SingleInstanceLock(ledger_db, client_id="client-1")
        assert lock.try_acquire("job-x") is True

        held = lock.holder("job-x")
        assert held is not None
        assert held.lock_key == lock_key("job-x")
        assert held.region == "DEFAULT"
        assert held.client_id == "client-1"
        assert held.created_at is not None

    def test_second_acquire_raises(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        first = SingleInstanceLock(ledger_db)
        second = SingleInstanceLock(ledger_db)
        first.try_acquire("job-x")

        with pytest.raises(AlreadyHeldError, match='Task with name "job-x" is already running.') as exc_info:
            second.try_acquire("job-x")
        assert exc_info.value.task_name == "job-x"
        assert exc_info.value.lock_key == SingleInstanceLock.lock_key("job-x")

    def test_not_reentrant(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        lock = SingleInstanceLock(ledger_db)
        lock.try_acquire("job-x")
        with pytest.raises(AlreadyHeldError):
            lock.try_acquire("job-x")

    def test_release_then_reacquire(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        lock = SingleInstanceLock(ledger_db)
        lock.try_acquire("job-x")

        assert lock.release("job-x") is True
        assert lock.holder("job-x") is None
        assert SingleInstanceLock(ledger_db).try_acquire("job-x") is True

    def test_release_unheld_is_noop(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        assert SingleInstanceLock(ledger_db).release("never-locked") is False

    def test_different_names_independent(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        lock = SingleInstanceLock(ledger_db)
        assert lock.try_acquire("a")
        assert lock.try_acquire("b")

    def test_regions_independent(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        assert SingleInstanceLock(ledger_db, region="east").try_acquire("job-x")
        assert SingleInstanceLock(ledger_db, region="west").try_acquire("job-x")
        assert SingleInstanceLock(ledger_db, region="east").holder("job-x") is not None
        assert SingleInstanceLock(ledger_db).holder("job-x") is None

    def test_explicit_client_id_overrides_default(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        lock = SingleInstanceLock(ledger_db)
        lock.try_acquire("job-x", client_id="override")
        held = lock.holder("job-x")
        assert held is not None
        assert held.client_id == "override"

    def test_default_client_id_is_uuid(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        lock = SingleInstanceLock(ledger_db)
        assert len(lock.client_id) == 36
        assert lock.client_id != SingleInstanceLock(ledger_db).client_id

    def test_empty_name_rejected(self, ledger_db: LedgerDB) -> None:
        from taskledger.core.ledger import SingleInstanceLock

        with pytest.raises(ValueError):
            SingleInstanceLock(ledger_db).try_acquire("")

    def test_no_lease_lock_survives_holder(self, tmp_path: Path) -> None:
        """A holder that never releases keeps the lock for later processes."""
        from taskledger.core.ledger import LedgerDB, SingleInstanceLock

        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        with LedgerDB.from_url(url) as db:
            SingleInstanceLock(db).try_acquire("job-x")

        with LedgerDB.from_url(url) as db:
            with pytest.raises(AlreadyHeldError):
                SingleInstanceLock(db).try_acquire("job-x")
            assert SingleInstanceLock(db).release("job-x")
            assert SingleInstanceLock(db).try_acquire("job-x")


@pytest.mark.slow
class TestLockContention:
    """Concurrent acquisition against a shared file-backed database."""

    @pytest.mark.parametrize("contenders", [2, 8])
    def test_exactly_one_winner(self, tmp_path: Path, contenders: int) -> None:
        from taskledger.core.ledger import LedgerDB, SingleInstanceLock

        url = f"sqlite:///{tmp_path / 'ledger.db'}"
        LedgerDB.from_url(url).close()

        barrier = threading.Barrier(contenders)
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def contend() -> None:
            # Each contender has its own engine, like an independent process
            with LedgerDB.from_url(url) as db:
                lock = SingleInstanceLock(db)
                barrier.wait()
                try:
                    lock.try_acquire("job-x")
                    result = "acquired"
                except AlreadyHeldError:
                    result = "held"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=contend) for _ in range(contenders)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["acquired"] + ["held"] * (contenders - 1)
