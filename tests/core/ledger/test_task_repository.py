# tests/core/ledger/test_task_repository.py
"""Tests for the TaskRepository write path."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from taskledger.contracts import ExecutionNotFoundError, InvalidExecutionStateError

if TYPE_CHECKING:
    from taskledger.core.ledger import TaskExplorer, TaskRepository

T0 = datetime(2024, 3, 1, 8, 30, 0, 123456, tzinfo=UTC)
T1 = T0 + timedelta(minutes=5)


class TestCreate:
    """Pending executions."""

    def test_create_without_name(self, repository: TaskRepository) -> None:
        execution = repository.create()

        assert execution.execution_id > 0
        assert execution.task_name is None
        assert execution.start_time is None
        assert execution.end_time is None
        assert execution.exit_code is None
        assert execution.parameters == ()
        assert execution.last_updated is not None
        assert execution.is_running
        assert not execution.is_started

    def test_create_with_name_and_links(self, repository: TaskRepository) -> None:
        parent = repository.create("parent")
        child = repository.create("child", parent_execution_id=parent.execution_id, external_execution_id="k8s-pod-7")

        assert child.task_name == "child"
        assert child.parent_execution_id == parent.execution_id
        assert child.external_execution_id == "k8s-pod-7"

    def test_ids_are_unique_and_increasing(self, repository: TaskRepository) -> None:
        ids = [repository.create("t").execution_id for _ in range(5)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5


class TestStart:
    """Launch-time fields."""

    def test_start_sets_fields(self, repository: TaskRepository) -> None:
        execution = repository.create()
        started = repository.start(
            execution.execution_id,
            "nightly-export",
            T0,
            ["--full", "--region=eu", ""],
            external_execution_id="ext-1",
        )

        assert started.execution_id == execution.execution_id
        assert started.task_name == "nightly-export"
        assert started.start_time == T0
        assert started.parameters == ("--full", "--region=eu", "")
        assert started.external_execution_id == "ext-1"
        assert started.is_started
        assert started.is_running

    def test_start_keeps_create_time_links_when_not_given(self, repository: TaskRepository) -> None:
        execution = repository.create("job", external_execution_id="ext-9", parent_execution_id=42)
        started = repository.start(execution.execution_id, "job", T0)

        assert started.external_execution_id == "ext-9"
        assert started.parent_execution_id == 42

    def test_start_unknown_id(self, repository: TaskRepository) -> None:
        with pytest.raises(ExecutionNotFoundError, match="ID 999 not found") as exc_info:
            repository.start(999, "job", T0)
        assert exc_info.value.execution_id == 999

    def test_start_twice_rejected(self, repository: TaskRepository) -> None:
        execution = repository.create()
        repository.start(execution.execution_id, "job", T0, ["a"])

        with pytest.raises(InvalidExecutionStateError, match="already started"):
            repository.start(execution.execution_id, "job", T1, ["b"])

    def test_start_after_complete_rejected(self, repository: TaskRepository, explorer: TaskExplorer) -> None:
        """A closed execution (e.g. a blocked launch) stays closed."""
        execution = repository.create("job")
        repository.complete(execution.execution_id, 1, T0, "blocked")

        with pytest.raises(InvalidExecutionStateError, match="already completed"):
            repository.start(execution.execution_id, "job", T1)

        fetched = explorer.get(execution.execution_id)
        assert fetched is not None
        assert fetched.start_time is None
        assert fetched.end_time == T0
        assert fetched.parameters == ()

    def test_start_requires_name(self, repository: TaskRepository) -> None:
        execution = repository.create()
        with pytest.raises(ValueError, match="task_name"):
            repository.start(execution.execution_id, "", T0)

    def test_start_time_normalized_to_utc(self, repository: TaskRepository) -> None:
        plus_two = timezone(timedelta(hours=2))
        execution = repository.create()
        started = repository.start(execution.execution_id, "job", T0.astimezone(plus_two))

        assert started.start_time == T0
        assert started.start_time is not None
        assert started.start_time.tzinfo == UTC


class TestComplete:
    """Completion fields."""

    def test_complete_sets_fields(self, repository: TaskRepository) -> None:
        execution = repository.create()
        repository.start(execution.execution_id, "job", T0)
        completed = repository.complete(execution.execution_id, 0, T1, "done")

        assert completed.exit_code == 0
        assert completed.end_time == T1
        assert completed.exit_message == "done"
        assert completed.error_message is None
        assert not completed.is_running

    def test_complete_with_error_message(self, repository: TaskRepository) -> None:
        execution = repository.create()
        repository.start(execution.execution_id, "job", T0)
        completed = repository.complete(execution.execution_id, 1, T1, "failed", error_message="Traceback ...")

        assert completed.exit_code == 1
        assert completed.error_message == "Traceback ..."

    def test_complete_twice_last_write_wins(self, repository: TaskRepository, explorer: TaskExplorer) -> None:
        execution = repository.create()
        repository.start(execution.execution_id, "job", T0)
        repository.complete(execution.execution_id, 1, T1, "first")
        second = repository.complete(execution.execution_id, 0, T1 + timedelta(seconds=1), "second")

        assert second.exit_code == 0
        assert second.exit_message == "second"
        assert explorer.count() == 1

    def test_complete_unknown_id(self, repository: TaskRepository) -> None:
        with pytest.raises(ExecutionNotFoundError):
            repository.complete(12345, 0, T1)

    def test_end_before_start_rejected(self, repository: TaskRepository) -> None:
        execution = repository.create()
        repository.start(execution.execution_id, "job", T1)

        with pytest.raises(InvalidExecutionStateError, match="before its start"):
            repository.complete(execution.execution_id, 0, T0)

    def test_complete_never_started(self, repository: TaskRepository) -> None:
        execution = repository.create("job")
        completed = repository.complete(execution.execution_id, 1, T0, "abandoned")

        assert completed.start_time is None
        assert completed.end_time == T0

    def test_exit_code_required(self, repository: TaskRepository) -> None:
        execution = repository.create()
        with pytest.raises(ValueError, match="exit_code"):
            repository.complete(execution.execution_id, None, T1)  # type: ignore[arg-type]

    def test_last_updated_advances(self, repository: TaskRepository) -> None:
        execution = repository.create()
        started = repository.start(execution.execution_id, "job", T0)
        completed = repository.complete(execution.execution_id, 0, T1)

        assert execution.last_updated is not None
        assert started.last_updated is not None
        assert completed.last_updated is not None
        assert execution.last_updated <= started.last_updated <= completed.last_updated


class TestUpdateExternalExecutionId:
    """External id can be attached after launch."""

    def test_update(self, repository: TaskRepository, explorer: TaskExplorer) -> None:
        execution = repository.create("job")
        repository.update_external_execution_id(execution.execution_id, "batch-77")

        fetched = explorer.get(execution.execution_id)
        assert fetched is not None
        assert fetched.external_execution_id == "batch-77"

    def test_update_unknown_id(self, repository: TaskRepository) -> None:
        with pytest.raises(ExecutionNotFoundError):
            repository.update_external_execution_id(777, "x")
