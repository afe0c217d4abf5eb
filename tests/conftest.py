"""Shared pytest fixtures for wayback-autosave tests.

Fixture summary
---------------
clock     — Controllable epoch-seconds clock (``FakeClock``).
store     — Fresh in-memory key-value store.
settings  — Settings for a fictional ``example.com`` site with short timings
            and a fake archive endpoint at ``archive.test``.
notifier  — ``RecordingNotifier`` collecting every notification.
archiver  — Fully wired ``Archiver`` over the fixtures above.

All tests run without Redis or network access; outbound save requests are
mocked with respx.
"""

from __future__ import annotations

from urllib.parse import unquote

import httpx
import pytest

from wayback_autosave.archiver.app import Archiver
from wayback_autosave.archiver.notifications import RecordingNotifier
from wayback_autosave.config.settings import Settings, get_settings
from wayback_autosave.storage.memory import MemoryStore

get_settings.cache_clear()

ARCHIVE_HOST = "archive.test"
ARCHIVE_ENDPOINT = f"https://{ARCHIVE_HOST}/save/"


class FakeClock:
    """Callable clock returning a settable epoch-seconds value."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def target_of(request: httpx.Request) -> str:
    """Return the decoded target URL of a save request sent to the fake endpoint."""
    raw_path = request.url.raw_path.decode("ascii")
    return unquote(raw_path.split("/save/", 1)[1])


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "canonical_base": "https://old.example.com",
        "short_link_hosts": ["s.example"],
        "self_hosts": ["example.com", "s.example"],
        "archive_endpoint": ARCHIVE_ENDPOINT,
        "request_timeout": 5.0,
        "debounce_seconds": 0.01,
        "container_wait_seconds": 0.05,
        "reveal_settle_seconds": 0.0,
        "drain_interval_seconds": 3600.0,
        "cooldown_hours": 24.0,
        "enabled_default": True,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def archiver(
    store: MemoryStore,
    settings: Settings,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> Archiver:
    return Archiver(store, settings, notifier=notifier, clock=clock)
