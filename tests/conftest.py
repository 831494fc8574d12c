"""
Shared fixtures for sage plugin tests.

Provides an in-memory sink and host, a hand-driven clock so the correlation
window moves only when a test says so, and a fully wired SagePlugin.
"""

from __future__ import annotations

import json

import pytest
import pytest_asyncio

from sage_plugin.core.config import HostConfig, PluginConfig, SageConfig
from sage_plugin.core.metrics import metrics
from sage_plugin.host.client import RecordingHost
from sage_plugin.plugin import SagePlugin
from sage_plugin.sink.memory import RecordingSink


class FakeClock:
    """Callable clock (seconds) that only moves when advanced."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_config(**sage_overrides) -> PluginConfig:
    sage = {"debounce_ms": 5, "dry_run": False, "feedback_enabled": True}
    sage.update(sage_overrides)
    return PluginConfig(
        sage=SageConfig(**sage),
        host=HostConfig(directory="/tmp/project"),
    )


def suggestion_json(*results: dict) -> str:
    return json.dumps({"results": list(results)})


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def config() -> PluginConfig:
    return make_config()


@pytest_asyncio.fixture
async def plugin(sink, host, config, clock):
    p = SagePlugin(sink, host, config=config, clock=clock)
    yield p
    await p.aclose()
