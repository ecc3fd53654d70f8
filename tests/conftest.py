"""Pytest fixtures for nickleak-api tests.

Provides fixtures for:
- A temporary data directory seeded with JSON datasets
- A fake clock for cache expiry
- A stub resolver that records how often it is called
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from helpers.cache import ResultCache
from helpers.crafty import ResolveOutcome
from helpers.datasets import DatasetStore
from helpers.search import SearchService


# ============================================================================
# Test doubles
# ============================================================================


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubResolver:
    """Returns canned aliases per nick and counts calls."""

    def __init__(self, aliases: Dict[str, List[str]] | None = None, degraded: str | None = None) -> None:
        self.aliases = aliases or {}
        self.degraded = degraded
        self.calls: List[str] = []

    async def resolve(self, alias: str) -> ResolveOutcome:
        self.calls.append(alias)
        if self.degraded:
            return ResolveOutcome.failed(self.degraded)
        found: Tuple[str, ...] = tuple(self.aliases.get(alias, ()))
        if not found:
            return ResolveOutcome.failed("no_usernames")
        return ResolveOutcome(aliases=found)


def write_dataset(directory: Path, name: str, entries: object) -> Path:
    path = directory / name
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    d = tmp_path / "wycieki"
    d.mkdir()
    write_dataset(d, "leakA", {"Alice": "10.0.0.1", "bob": "10.0.0.2"})
    write_dataset(d, "leakB", {"carol": "9.9.9.9", "ALICE": "10.0.0.3"})
    return d


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver() -> StubResolver:
    return StubResolver({"eve": ["carol", "dave"]})


@pytest.fixture
async def store(data_dir: Path) -> DatasetStore:
    return await DatasetStore.load(data_dir)


@pytest.fixture
def service(store: DatasetStore, resolver: StubResolver, fake_clock: FakeClock) -> SearchService:
    return SearchService(store, ResultCache(ttl=3600, clock=fake_clock), resolver)
