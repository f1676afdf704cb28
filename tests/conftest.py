import pytest

from tests.factories import FakeNotifier, FakeStore


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()
