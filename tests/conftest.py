"""Shared pytest fixtures for hanimeta-scraper tests.

Fixture summary
---------------
clock           : Manually advanced monotonic clock for TTL and rate tests.
make_metadata   : Factory for ``ContentMetadata`` records.
fake_provider   : Unregistered in-memory ``MediaProvider`` with call logs.

No test touches the network or launches a browser: HTTP traffic is mocked
with respx, Playwright objects with ``unittest.mock.AsyncMock``.  The fakes
themselves live in ``tests/fakes.py``.
"""

from __future__ import annotations

import pytest

from hanimeta_scraper.config.settings import get_settings
from tests.fakes import FakeClock, FakeProvider, build_metadata

# Settings are read from the environment once per process; start clean.
get_settings.cache_clear()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_metadata():
    return build_metadata


@pytest.fixture()
def fake_provider() -> FakeProvider:
    return FakeProvider()
