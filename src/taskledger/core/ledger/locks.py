# src/taskledger/core/ledger/locks.py
"""Single-instance lock backed by the ledger's lock table.

Acquisition is one INSERT; the (lock_key, region) primary key is the only
synchronisation point, so the lock holds across processes sharing one
database. There is no lease and no expiry: a holder that dies without
calling release() keeps the lock until an operator releases it
(``taskledger lock release NAME``).

Not re-entrant. A second try_acquire() for a held name fails even from
the same client id.
"""

from __future__ import annotations

import hashlib
import uuid
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from taskledger.contracts import AlreadyHeldError, NamedLock
from taskledger.core.config import DEFAULT_LOCK_REGION
from taskledger.core.ledger._database_ops import DatabaseOps
from taskledger.core.ledger._helpers import generate_client_id, now
from taskledger.core.ledger.repositories import NamedLockRepository

if TYPE_CHECKING:
    from taskledger.core.ledger.database import LedgerDB

logger = structlog.get_logger(__name__)


def lock_key(task_name: str) -> str:
    """Name-based (MD5, version 3) UUID of the UTF-8 task name.

    Always 36 characters whatever the name length, and identical in every
    process that computes it.
    """
    digest = hashlib.md5(task_name.encode("utf-8"), usedforsecurity=False).digest()
    return str(uuid.UUID(bytes=digest, version=3))


class SingleInstanceLock:
    """At-most-one running instance per task name within a region."""

    def __init__(
        self,
        db: LedgerDB,
        *,
        region: str = DEFAULT_LOCK_REGION,
        client_id: str | None = None,
    ) -> None:
        self._db = db
        self._ops = DatabaseOps(db)
        self._lock_repo = NamedLockRepository()
        self.region = region
        self.client_id = client_id or generate_client_id()

    lock_key = staticmethod(lock_key)

    def try_acquire(self, task_name: str, client_id: str | None = None) -> bool:
        """Take the lock for task_name.

        Returns True when the lock is now held by this caller. Never polls
        or retries.

        Raises:
            AlreadyHeldError: If any client already holds the lock.
        """
        if not task_name:
            raise ValueError("task_name is required to acquire a lock")
        key = lock_key(task_name)
        owner = client_id or self.client_id
        try:
            self._ops.execute_insert(
                self._db.tables.locks.insert().values(
                    lock_key=key,
                    region=self.region,
                    client_id=owner,
                    created_date=now(),
                )
            )
        except IntegrityError:
            logger.info("lock_contended", task_name=task_name, lock_key=key, region=self.region)
            raise AlreadyHeldError(task_name, key) from None
        logger.info("lock_acquired", task_name=task_name, lock_key=key, region=self.region, client_id=owner)
        return True

    def release(self, task_name: str) -> bool:
        """Delete the lock row for task_name, whoever holds it.

        Releasing a lock that is not held is a no-op. Returns whether a row
        was removed.
        """
        key = lock_key(task_name)
        locks = self._db.tables.locks
        deleted = self._ops.execute_delete(locks.delete().where(locks.c.lock_key == key, locks.c.region == self.region))
        if deleted:
            logger.info("lock_released", task_name=task_name, lock_key=key, region=self.region)
        else:
            logger.debug("lock_release_noop", task_name=task_name, lock_key=key, region=self.region)
        return deleted > 0

    def holder(self, task_name: str) -> NamedLock | None:
        """Current lock row for task_name, or None if free."""
        locks = self._db.tables.locks
        row = self._ops.execute_fetchone(
            select(locks).where(locks.c.lock_key == lock_key(task_name), locks.c.region == self.region)
        )
        return None if row is None else self._lock_repo.load(row)
