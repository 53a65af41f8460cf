import socket

import pytest

from apptoolkit.network import PORT_RANGE_MAX, PortError, get_open_port, get_open_port_in_range


def test_negative_port_range():
    with pytest.raises(PortError) as info:
        get_open_port_in_range(-1, 0)
    assert str(info.value) == "port discovery error: port cannot be less than 0"


def test_exceed_maximum_port():
    with pytest.raises(PortError) as info:
        get_open_port_in_range(PORT_RANGE_MAX + 1, PORT_RANGE_MAX + 10)
    assert str(info.value) == "port discovery error: port cannot be greater than 65535"


def test_exceed_specified_upper_bound():
    with pytest.raises(PortError) as info:
        get_open_port_in_range(20, 10)
    assert str(info.value) == "port discovery error: no open port found 0"


def test_listening_port_is_skipped():
    with socket.socket() as server:
        server.bind(("127.0.0.1", 0))
        server.listen()
        port = server.getsockname()[1]
        with pytest.raises(PortError):
            get_open_port_in_range(port, port)


def test_free_port_is_returned():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    assert get_open_port_in_range(port, port) == port


def test_get_open_port_in_valid_range():
    assert 0 <= get_open_port() <= PORT_RANGE_MAX