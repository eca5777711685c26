"""Configure pytest fixtures and environment for MarketScout tests."""

import pytest
from dotenv import load_dotenv

from marketscout.core.config import GatewayConfig, reset_settings
from marketscout.intelligence.performance import PerformanceTracker
from marketscout.intelligence.scoring import ScoringEngine
from sample_data import VALID_API_KEY


def pytest_sessionstart(session):
    """Load environment variables from a local .env file, if any."""
    load_dotenv()


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so each test sees its own environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def gateway_config():
    return GatewayConfig(
        api_key=VALID_API_KEY,
        api_base="https://llm.test",
        max_retries=3,
        initial_retry_delay_ms=1000,
        backoff_factor=2,
    )


@pytest.fixture
def scoring():
    return ScoringEngine()


@pytest.fixture
def tracker():
    return PerformanceTracker()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays instead of waiting."""
    delays = []
    return delays.append, delays
