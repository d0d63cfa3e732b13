"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from tests.helpers import FakeStorage, Harness


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage(
        {
            "/docs/a.md": b"# Alpha\n",
            "/docs/b.md": b"# Beta\n",
        },
        directories=["/docs", "/docs/images"],
    )


@pytest.fixture
def harness(storage: FakeStorage) -> Harness:
    return Harness(storage=storage)
