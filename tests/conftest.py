# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

if TYPE_CHECKING:
    from taskledger.core.ledger import LedgerDB, TaskExplorer, TaskRepository


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Ledger fixtures
# =============================================================================

@pytest.fixture
def ledger_db() -> Iterator[LedgerDB]:
    """Fresh in-memory ledger per test."""
    from taskledger.core.ledger import LedgerDB

    db = LedgerDB.in_memory()
    yield db
    db.close()


@pytest.fixture
def repository(ledger_db: LedgerDB) -> TaskRepository:
    from taskledger.core.ledger import TaskRepository

    return TaskRepository(ledger_db)


@pytest.fixture
def explorer(ledger_db: LedgerDB) -> TaskExplorer:
    from taskledger.core.ledger import TaskExplorer

    return TaskExplorer(ledger_db)
