"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from gridlock.config import Context, Settings
from gridlock.vcs import InMemoryVcs


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 12, 30, 45, tzinfo=UTC)


@pytest.fixture
def fake_vcs() -> InMemoryVcs:
    return InMemoryVcs()


@pytest.fixture
def ctx(tmp_path: Path, fake_vcs: InMemoryVcs, fixed_now: datetime) -> Context:
    """Context wired to an in-memory VCS, a fixed clock and a lockfile under tmp_path."""
    return Context(
        settings=Settings(lockfile=tmp_path / "gridlock.json", jobs=2),
        vcs=fake_vcs,
        clock=lambda: fixed_now,
    )
