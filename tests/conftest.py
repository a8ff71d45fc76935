"""Shared test fixtures."""

import pytest

from kvkstats.config import Settings

BACKEND_URL = "https://script.google.test/macros/s/test/exec"


class FakeClock:
    """Manually advanced monotonic clock for session expiry tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    """Test settings with a backend URL and no channel restrictions."""
    return Settings(
        _env_file=None,
        kvkstats_env="development",
        discord_bot_token="test-token-not-real",
        apps_script_web_app_url=BACKEND_URL,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
