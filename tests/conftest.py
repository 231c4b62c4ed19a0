"""Pytest configuration."""

import pytest

from fakes import FakeExchanger, ListenerFactory, MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def exchanger():
    return FakeExchanger()


@pytest.fixture
def listener_factory():
    return ListenerFactory()
