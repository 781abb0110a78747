"""
Frame-level wrapper around a connected TCP socket.
"""
import socket
from typing import Iterable, Optional, Tuple, Union

from cluster_agent.protocol.framing import (
    ALL_KINDS,
    Frame,
    FrameKind,
    read_exact,
    read_frame,
    read_header,
    write_frame,
)
from cluster_agent.utils import get_logger

logger = get_logger(__name__)


class Connection:
    """
    A bidirectional byte stream to the coordinator, used strictly
    request-then-reply by exactly one role.
    """

    def __init__(self, sock: socket.socket, peer: Optional[Tuple[str, int]] = None,
                 read_timeout: Optional[float] = None):
        """
        :param sock: A connected stream socket
        :type sock: socket.socket
        :param peer: Remote address, used in log messages
        :type peer: Optional[Tuple[str, int]]
        :param read_timeout: Seconds a blocking read may wait; None blocks indefinitely
        :type read_timeout: Optional[float]
        """
        self.sock = sock
        self.peer = peer
        self.sock.settimeout(read_timeout)
        self._closed = False

    @classmethod
    def open(cls, host: str, port: int, read_timeout: Optional[float] = None) -> 'Connection':
        """
        Connects to ``host:port``. OSError from the connect call propagates.
        """
        sock = socket.create_connection((host, port))
        logger.info(f"Connected to coordinator at {host}:{port}")
        return cls(sock, (host, port), read_timeout)

    def send_frame(self, kind: FrameKind, payload: Union[bytes, str]) -> int:
        sent = write_frame(self.sock, kind, payload)
        logger.debug(f"Sent {kind.name} frame ({sent} bytes) to {self.peer}")
        return sent

    def recv_frame(self, expected: Iterable[FrameKind] = ALL_KINDS,
                   allow_eof: bool = False) -> Optional[Frame]:
        frame = read_frame(self.sock, expected, allow_eof=allow_eof)
        if frame is not None:
            logger.debug(f"Received {frame.kind.name} frame ({frame.length} bytes) from {self.peer}")
        return frame

    def recv_header(self, expected: Iterable[FrameKind] = ALL_KINDS,
                    allow_eof: bool = False) -> Optional[Tuple[FrameKind, int]]:
        return read_header(self.sock, expected, allow_eof=allow_eof)

    def recv_exact(self, size: int) -> bytes:
        return read_exact(self.sock, size)

    def shutdown(self):
        """
        Shuts both directions down so a read blocked in another thread returns.
        """
        if self._closed:
            return
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Socket shutdown for {self.peer} failed: {e}")

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self.sock.close()
            logger.debug(f"Closed connection to {self.peer}")
        except OSError as e:
            logger.warning(f"Error closing connection to {self.peer}: {e}")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> 'Connection':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
