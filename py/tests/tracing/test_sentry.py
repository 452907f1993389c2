import logging
import pathlib
import typing as tp

import pytest
import sentry_sdk
from common_tracing.tracing import ConfigError, init_logging, resolve_config
from common_tracing.tracing._config import SENTRY_DSN_ENV_VAR
from sentry_sdk.envelope import Envelope
from sentry_sdk.transport import Transport

from .trace_generics import SERVICE, FileChecker

DSN = "https://public@sentry.example.com/1"


class CollectingTransport(Transport):
    """Keeps what would have been sent to sentry."""

    def __init__(self):
        super().__init__()
        self.envelopes: list[Envelope] = []

    def capture_envelope(self, envelope: Envelope) -> None:
        self.envelopes.append(envelope)

    def events(self) -> list[dict[str, tp.Any]]:
        return [event for event in (env.get_event() for env in self.envelopes) if event is not None]


def test_sentry_warnings_are_events(tmp_path: pathlib.Path):
    transport = CollectingTransport()
    guard = init_logging(
        SERVICE,
        {"dir": tmp_path, "level": "debug", "sentry": {"dsn": DSN, "transport": transport}},
    )
    logger = logging.getLogger("app.sentry")
    logger.info("CRUMB_INFO")
    logger.debug("CRUMB_DEBUG")
    logger.warning("EVENT_WARN")
    logger.error("EVENT_ERROR")
    guard.close()

    events = transport.events()
    assert [event["logentry"]["message"] for event in events] == ["EVENT_WARN", "EVENT_ERROR"]
    assert [event["level"] for event in events] == ["warning", "error"]

    # Lower levels aren't sent alone, they come along with the next event:
    crumbs = [crumb["message"] for crumb in events[0]["breadcrumbs"]["values"]]
    assert "CRUMB_INFO" in crumbs
    assert "CRUMB_DEBUG" in crumbs

    # Still written to the file as usual:
    assert [log["level"] for log in FileChecker(tmp_path / f"{SERVICE}.log").logs()] == [
        "INFO",
        "DEBUG",
        "WARN",
        "ERROR",
    ]


def test_sentry_stops_on_close(tmp_path: pathlib.Path):
    transport = CollectingTransport()
    guard = init_logging(SERVICE, {"dir": tmp_path, "sentry": {"dsn": DSN, "transport": transport}})
    assert sentry_sdk.get_client().is_active()
    guard.close()

    assert not sentry_sdk.get_client().is_active()
    logging.getLogger("app.sentry").error("AFTER_CLOSE")
    assert transport.events() == []


def test_sentry_not_configured(tmp_path: pathlib.Path):
    with init_logging(SERVICE, {"dir": tmp_path}):
        assert not sentry_sdk.get_client().is_active()


def test_sentry_resolve(monkeypatch: pytest.MonkeyPatch):
    assert resolve_config("svc")["sentry"] is None

    monkeypatch.setenv(SENTRY_DSN_ENV_VAR, f" {DSN} ")
    assert resolve_config("svc")["sentry"] == {"dsn": DSN, "transport": None}

    # Configured takes priority over the env:
    transport = CollectingTransport()
    other = "https://other@sentry.example.com/2"
    resolved = resolve_config("svc", {"sentry": {"dsn": other, "transport": transport}})
    assert resolved["sentry"] == {"dsn": other, "transport": transport}


@pytest.mark.parametrize("dsn", ["", "   ", None])
def test_sentry_invalid_dsn(dsn: tp.Any):
    with pytest.raises(ConfigError):
        resolve_config("svc", {"sentry": {"dsn": dsn}})
