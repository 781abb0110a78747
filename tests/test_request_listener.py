import socket

from cluster_agent.core import EXIT_FAILURE, ListenerState, Role
from cluster_agent.protocol import DispatchLayout, FrameKind, encode, encode_header

from conftest import dispatch, request_bytes, wait_for


def test_executes_request_and_replies(listener_factory, shutdown_signal):
    listener = listener_factory()

    reply = dispatch(listener.address, request_bytes("hello", "cat"))

    assert reply.kind is FrameKind.OUTPUT
    assert reply.text() == "hello"
    assert not shutdown_signal.is_set()


def test_serves_connections_one_after_another(listener_factory, shutdown_signal):
    listener = listener_factory()

    first = dispatch(listener.address, request_bytes("", "echo one"))
    second = dispatch(listener.address, request_bytes("", "echo two"))

    assert first.text() == "one\n"
    assert second.text() == "two\n"
    assert wait_for(lambda: listener.requests_served == 2)


def test_empty_output_reply(listener_factory, restore_cwd):
    listener = listener_factory()

    reply = dispatch(listener.address, request_bytes("", "cd /tmp"))

    assert reply.payload == b""


def test_peer_closing_without_request_is_ignored(listener_factory, shutdown_signal):
    listener = listener_factory()

    socket.create_connection(listener.address).close()
    reply = dispatch(listener.address, request_bytes("", "echo still here"))

    assert reply.text() == "still here\n"
    assert not shutdown_signal.is_set()


def test_command_frame_first_is_fatal(listener_factory, shutdown_signal):
    listener = listener_factory()

    reply = dispatch(listener.address, encode(FrameKind.COMMAND, "ls") + encode(FrameKind.INPUT, ""))

    assert reply is None
    assert shutdown_signal.wait(timeout=5)
    assert shutdown_signal.exit_code == EXIT_FAILURE
    assert shutdown_signal.role is Role.LISTENER
    assert "UnexpectedFrameKind" in shutdown_signal.reason
    listener.join(timeout=5)
    assert not listener.is_alive()


def test_truncated_header_is_fatal(listener_factory, shutdown_signal):
    listener = listener_factory()

    with socket.create_connection(listener.address) as sock:
        sock.sendall(b"i00")

    assert shutdown_signal.wait(timeout=5)
    assert shutdown_signal.exit_code == EXIT_FAILURE
    assert "TruncatedTransmission" in shutdown_signal.reason


def test_oversized_output_is_fatal(listener_factory, shutdown_signal):
    listener = listener_factory()

    reply = dispatch(listener.address, request_bytes("", "head -c 100000 /dev/zero | tr '\\0' a"))

    assert reply is None
    assert shutdown_signal.wait(timeout=10)
    assert "PayloadTooLarge" in shutdown_signal.reason


def test_headers_first_layout(listener_factory, shutdown_signal):
    listener = listener_factory(dispatch_layout=DispatchLayout.HEADERS_FIRST)
    command, input_text = b"tr a-z A-Z", b"shout"
    data = (encode_header(FrameKind.COMMAND, len(command))
            + encode_header(FrameKind.INPUT, len(input_text))
            + input_text + command)

    reply = dispatch(listener.address, data)

    assert reply.text() == "SHOUT"
    assert not shutdown_signal.is_set()


def test_output_bytes_are_relayed_unchanged(listener_factory):
    listener = listener_factory()

    reply = dispatch(listener.address, request_bytes("", "printf 'a\\r\\nb\\rc\\351t\\351'"))

    assert reply.payload == b"a\r\nb\rc\xe9t\xe9"


def test_input_bytes_reach_the_command_unchanged(listener_factory):
    listener = listener_factory()
    data = encode_header(FrameKind.INPUT, 3) + b"\xff\r\n" + encode(FrameKind.COMMAND, "cat")

    reply = dispatch(listener.address, data)

    assert reply.payload == b"\xff\r\n"


def test_stop_while_reading_a_request(listener_factory, shutdown_signal):
    listener = listener_factory()

    with socket.create_connection(listener.address) as sock:
        sock.sendall(b"i00010abc")
        assert wait_for(lambda: listener.state is ListenerState.READING_INPUT_PAYLOAD)

        listener.stop()
        listener.join(timeout=5)

    assert not listener.is_alive()
    assert not shutdown_signal.is_set()


def test_stop_ends_the_accept_loop(listener_factory, shutdown_signal):
    listener = listener_factory()
    address = listener.address
    assert wait_for(lambda: listener.state is ListenerState.LISTENING)

    listener.stop()
    listener.join(timeout=5)

    assert not listener.is_alive()
    assert not shutdown_signal.is_set()
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        assert probe.connect_ex(address) != 0
