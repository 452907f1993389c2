"""Small helpers shared by the tracing setup and the test suite."""

__all__ = ["copy_sig", "is_tcp_port_listening", "StdCapture"]

import socket
import typing as tp

from ._std_capture import StdCapture

_T = tp.TypeVar("_T")


def copy_sig(f: _T) -> tp.Callable[[tp.Any], _T]:
    """Give a thin wrapper the signature of the function it forwards to.

    From: https://github.com/python/typing/issues/769#issuecomment-903760354
    """
    return lambda x: x


def is_tcp_port_listening(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check whether something accepts tcp connections on host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False
