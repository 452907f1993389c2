import logging

import pytest
from common_tracing._testing import mark_testing
from common_tracing.tracing import get_guard
from common_tracing.tracing._config import LEVEL_ENV_VAR, OTLP_PORT_ENV_VAR, SENTRY_DSN_ENV_VAR


@pytest.fixture(scope="session", autouse=True)
def setup_before_tests():
    mark_testing()


@pytest.fixture(autouse=True)
def release_global_tracing(monkeypatch: pytest.MonkeyPatch):
    """Each test starts without env overrides and leaves no global tracing behind."""
    monkeypatch.delenv(LEVEL_ENV_VAR, raising=False)
    monkeypatch.delenv(OTLP_PORT_ENV_VAR, raising=False)
    monkeypatch.delenv(SENTRY_DSN_ENV_VAR, raising=False)
    root_level = logging.getLogger().level

    yield

    guard = get_guard()
    if guard is not None:
        guard.close()
    logging.getLogger().setLevel(root_level)
