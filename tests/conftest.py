import pytest

from app import security
from tests.fakes import FakeTaskSystem


@pytest.fixture
def tasks():
    return FakeTaskSystem()


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    security.reset_rate_limits()
    yield
    security.reset_rate_limits()
