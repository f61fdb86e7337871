"""Pytest fixtures for DollarSign tests.

Common fixtures for engine, context and formatting tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator

import pytest

from dollarsign import DollarSignEngine, DollarSignOptions, reset_options


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "feature(name): mark test as belonging to a feature area. "
        "Usage: @pytest.mark.feature('formatting')"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (timeouts, concurrency)"
    )


@dataclass
class Address:
    City: str
    Country: str = "US"


@dataclass
class User:
    Name: str
    Age: int
    Address: Address | None = None
    Tags: list[str] = field(default_factory=list)


@pytest.fixture(autouse=True)
def _isolated_options() -> Iterator[None]:
    """Each test starts from default process options."""
    reset_options()
    yield
    reset_options()


@pytest.fixture
def engine() -> Iterator[DollarSignEngine]:
    """Engine with default options, disposed after the test."""
    eng = DollarSignEngine(DollarSignOptions())
    yield eng
    eng.dispose()


@pytest.fixture
def users() -> list[User]:
    return [
        User("Alice", 30, Address("Paris", "FR")),
        User("Bob", 20),
        User("Charlie", 35, Address("Berlin", "DE")),
    ]


@pytest.fixture
def sample_variables(users: list[User]) -> dict[str, Any]:
    """A mix of scalars, collections and records."""
    return {
        "name": "World",
        "age": 25,
        "score": 85,
        "value": 3.14159,
        "price": 123.456,
        "date": datetime(2024, 1, 15, 14, 30, 0),
        "numbers": [1, 2, 3, 4, 5],
        "users": users,
        "user": users[0],
        "settings": {"theme": "dark", "Max Items": 10},
    }
