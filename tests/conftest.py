import pytest

from tests.factories import LogCapture, Services


@pytest.fixture
def services():
    return Services()


@pytest.fixture
def log():
    return LogCapture()
