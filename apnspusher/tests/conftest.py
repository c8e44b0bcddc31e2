from __future__ import annotations

import pytest

from apnspusher.core.config import get_settings
from apnspusher.services.telemetry import reset_telemetry


@pytest.fixture(autouse=True)
def isolate_settings_and_telemetry(monkeypatch):
    # Keep env-driven settings and in-process counters from leaking between tests.
    monkeypatch.delenv("IDENTITY_KEY_DIR", raising=False)
    get_settings.cache_clear()
    reset_telemetry()
    yield
    get_settings.cache_clear()
