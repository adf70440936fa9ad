import logging

import pytest

from fakes import FakeChannel, FakeSession, ManualClock


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def clock():
    """Manually advanced sleep for duration timers"""
    return ManualClock()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def http_session():
    """Factory for a fake aiohttp session serving the given responses in order"""
    return FakeSession
