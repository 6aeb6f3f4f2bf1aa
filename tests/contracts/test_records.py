# tests/contracts/test_records.py
"""Tests for ledger record contracts and the error taxonomy."""

from datetime import UTC, datetime

import pytest

from taskledger.contracts import (
    AlreadyHeldError,
    ConfigurationError,
    ExecutionNotFoundError,
    LedgerError,
    Page,
    TaskExecution,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


class TestTaskExecution:
    """Construction invariants and derived state."""

    def test_defaults_are_pending(self) -> None:
        execution = TaskExecution(execution_id=1)

        assert execution.is_running
        assert not execution.is_started
        assert execution.parameters == ()

    def test_completed_is_not_running(self) -> None:
        execution = TaskExecution(execution_id=1, start_time=T0, end_time=T0, exit_code=0)

        assert execution.is_started
        assert not execution.is_running

    def test_end_time_requires_exit_code(self) -> None:
        with pytest.raises(ValueError, match="no exit_code"):
            TaskExecution(execution_id=1, start_time=T0, end_time=T0)

    def test_parameters_must_be_tuple(self) -> None:
        with pytest.raises(TypeError, match="parameters must be tuple"):
            TaskExecution(execution_id=1, parameters=["a"])  # type: ignore[arg-type]

    def test_frozen(self) -> None:
        execution = TaskExecution(execution_id=1)
        with pytest.raises(AttributeError):
            execution.task_name = "other"  # type: ignore[misc]

    def test_hashable_by_value(self) -> None:
        a = TaskExecution(execution_id=3, task_name="job", parameters=("x",))
        b = TaskExecution(execution_id=3, task_name="job", parameters=("x",))
        assert {a, b} == {a}


class TestPage:
    """Derived paging arithmetic."""

    @pytest.mark.parametrize(
        ("total", "page_size", "expected"),
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (7, 3, 3)],
    )
    def test_total_pages(self, total: int, page_size: int, expected: int) -> None:
        page: Page[int] = Page(items=[], total=total, page_index=0, page_size=page_size)
        assert page.total_pages == expected

    def test_has_next(self) -> None:
        assert Page(items=[1, 2], total=5, page_index=0, page_size=2).has_next
        assert Page(items=[3, 4], total=5, page_index=1, page_size=2).has_next
        assert not Page(items=[5], total=5, page_index=2, page_size=2).has_next

    def test_len_counts_items(self) -> None:
        assert len(Page(items=["a", "b"], total=9, page_index=0, page_size=2)) == 2


class TestErrors:
    """Messages and hierarchy callers rely on."""

    def test_not_found_message(self) -> None:
        error = ExecutionNotFoundError(42)

        assert str(error) == "Invalid TaskExecution, ID 42 not found."
        assert error.execution_id == 42
        assert isinstance(error, LedgerError)
        assert isinstance(error, LookupError)

    def test_already_held_message(self) -> None:
        error = AlreadyHeldError("nightly", "key-1")

        assert str(error) == 'Task with name "nightly" is already running.'
        assert error.task_name == "nightly"
        assert error.lock_key == "key-1"

    def test_configuration_error_is_value_error(self) -> None:
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(ConfigurationError, LedgerError)
