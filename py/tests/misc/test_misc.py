import socket

from common_tracing.misc import is_tcp_port_listening


def test_is_tcp_port_listening():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("localhost", 0))
        server.listen(1)
        port = server.getsockname()[1]
        assert is_tcp_port_listening("localhost", port)

    # Closed now, nothing listening:
    assert not is_tcp_port_listening("localhost", port, timeout=0.2)
