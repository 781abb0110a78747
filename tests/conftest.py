"""
Shared pytest fixtures for cluster agent tests.

This module provides:
- ScriptedConsole: operator console fed from a list of lines
- FakeCoordinator: loopback server answering Command frames with Output frames
- helpers to dispatch execution requests to a running RequestListener
"""
import os
import socket
import threading
import time
from typing import Callable, List, Optional, Tuple

import pytest

from cluster_agent.core import CommandExecutor, RequestListener, ShutdownSignal
from cluster_agent.protocol import Frame, FrameKind, encode, read_frame


# =============================================================================
# Operator console
# =============================================================================

class ScriptedConsole:
    """
    Stand-in for OperatorConsole. Returns the scripted lines in order, then
    behaves like an idle operator until the session is stopped. Set
    ``eof_when_done`` to simulate Ctrl+D after the last line.
    """

    def __init__(self, lines: List[str], eof_when_done: bool = False):
        self._lines = list(lines)
        self.eof_when_done = eof_when_done
        self.prompts = 0

    def read_command(self, stop_event: threading.Event) -> Optional[str]:
        self.prompts += 1
        if self._lines:
            return self._lines.pop(0)
        if self.eof_when_done:
            raise EOFError("script finished")
        stop_event.wait()
        return None


# =============================================================================
# Coordinator side
# =============================================================================

class FakeCoordinator:
    """
    Accepts one session connection and answers every Command frame with an
    Output frame produced by ``responder``.
    """

    def __init__(self, responder: Optional[Callable[[str], bytes]] = None):
        self.responder = responder or (lambda command: encode(FrameKind.OUTPUT, f"ran: {command}"))
        self.commands: List[str] = []
        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server.bind(("127.0.0.1", 0))
        self._server.listen(1)
        self.port = self._server.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self.disconnected = threading.Event()

    def start(self) -> 'FakeCoordinator':
        self._thread.start()
        return self

    def _serve(self):
        try:
            conn, _ = self._server.accept()
        except OSError:
            return
        with conn:
            while True:
                try:
                    frame = read_frame(conn, allow_eof=True)
                except Exception:
                    break
                if frame is None:
                    break
                command = frame.text()
                self.commands.append(command)
                try:
                    conn.sendall(self.responder(command))
                except OSError:
                    break
        self.disconnected.set()

    def close(self):
        self._server.close()
        self._thread.join(timeout=1)


@pytest.fixture
def coordinator():
    fake = FakeCoordinator().start()
    yield fake
    fake.close()


@pytest.fixture
def socket_pair():
    """A connected (agent side, coordinator side) pair of sockets."""
    left, right = socket.socketpair()
    yield left, right
    for sock in (left, right):
        try:
            sock.close()
        except OSError:
            pass


def free_port() -> int:
    """Returns a loopback port nobody is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def dispatch(address: Tuple[str, int], data: bytes, timeout: float = 10.0) -> Optional[Frame]:
    """
    Sends raw request bytes to a listener and reads its Output frame.
    Returns None if the listener closed the connection without replying.
    """
    with socket.create_connection(address, timeout=timeout) as sock:
        sock.sendall(data)
        try:
            return read_frame(sock, expected=(FrameKind.OUTPUT,), allow_eof=True)
        except Exception:
            return None


def request_bytes(input_text: str, command: str) -> bytes:
    return encode(FrameKind.INPUT, input_text) + encode(FrameKind.COMMAND, command)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


# =============================================================================
# Agent components
# =============================================================================

@pytest.fixture
def restore_cwd():
    """Restores the working directory changed by ``cd`` commands."""
    original = os.getcwd()
    yield original
    os.chdir(original)


@pytest.fixture
def executor():
    return CommandExecutor()


@pytest.fixture
def shutdown_signal():
    return ShutdownSignal()


@pytest.fixture
def listener_factory(executor, shutdown_signal):
    """Builds, binds and starts RequestListeners on ephemeral loopback ports."""
    started: List[RequestListener] = []

    def factory(**kwargs) -> RequestListener:
        listener = RequestListener(kwargs.pop('executor', executor), shutdown_signal,
                                   host="127.0.0.1", port=0, **kwargs)
        listener.bind()
        listener.start()
        started.append(listener)
        return listener

    yield factory

    for listener in started:
        if listener.is_alive():
            listener.stop()
            listener.join(timeout=5)
