"""
Request listener: the passive role that receives execution requests
dispatched by the coordinator, runs them locally and replies with the output.
"""
import socket
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from cluster_agent.core.agent_state import ListenerState, Role
from cluster_agent.core.command_executor import CommandExecutor
from cluster_agent.core.shutdown_signal import EXIT_FAILURE, ShutdownSignal
from cluster_agent.errors import AgentError
from cluster_agent.protocol import Connection, DispatchLayout, FrameKind
from cluster_agent.protocol.framing import PAYLOAD_ENCODING, PAYLOAD_ERRORS
from cluster_agent.ui import display_error
from cluster_agent.utils import get_logger

logger = get_logger(__name__)

DEFAULT_BACKLOG = 30
WAKE_CONNECT_TIMEOUT_SEC = 1.0


@dataclass(frozen=True)
class ExecutionRequest:
    input: str
    command: str


class RequestListener(threading.Thread):
    """
    Serves coordinator connections one at a time: read one request, execute
    it, reply, close, accept the next one.

    Every failure is fatal to the whole agent; nothing is retried.
    """

    def __init__(self, executor: CommandExecutor, shutdown: ShutdownSignal,
                 host: str = "0.0.0.0", port: int = 12345, backlog: int = DEFAULT_BACKLOG,
                 dispatch_layout: DispatchLayout = DispatchLayout.INPUT_FIRST,
                 read_timeout: Optional[float] = None):
        """
        :param executor: Runs the received commands
        :type executor: CommandExecutor
        :param shutdown: Signal shared with the session client
        :type shutdown: ShutdownSignal
        :param host: Interface to bind
        :type host: str
        :param port: Port the coordinator dispatches to (0 picks a free port)
        :type port: int
        :param backlog: Listen queue length
        :type backlog: int
        :param dispatch_layout: Byte layout of incoming requests
        :type dispatch_layout: DispatchLayout
        :param read_timeout: Per-read timeout for accepted connections; None blocks indefinitely
        :type read_timeout: Optional[float]
        """
        super().__init__(name="RequestListener")
        self.daemon = True

        self.executor = executor
        self.shutdown_signal = shutdown
        self.host = host
        self.port = port
        self.backlog = backlog
        self.dispatch_layout = dispatch_layout
        self.read_timeout = read_timeout

        self._server_socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None
        self._current: Optional[Connection] = None
        self._stop_event = threading.Event()
        self._state = ListenerState.LISTENING
        self.requests_served = 0

    @property
    def state(self) -> ListenerState:
        return self._state

    def _set_state(self, new_state: ListenerState):
        if self._state != new_state:
            logger.debug(f"Listener state: {self._state.name} -> {new_state.name}")
            self._state = new_state

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """The bound address, available after :meth:`bind`."""
        return self._bound_address

    def bind(self):
        """
        Creates the listening socket. Called before the thread starts so that
        a port already in use fails agent startup.

        :raises OSError: If the socket cannot be bound
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(self.backlog)
        except OSError:
            sock.close()
            raise
        self._server_socket = sock
        self._bound_address = sock.getsockname()[:2]
        logger.info(f"Request listener bound to {self.address[0]}:{self.address[1]}")

    def run(self):
        if self._server_socket is None:
            try:
                self.bind()
            except OSError as e:
                display_error(f"Couldn't bind request listener: {e}. Exiting application.")
                self.shutdown_signal.trigger(Role.LISTENER, EXIT_FAILURE, f"bind failed: {e}")
                return

        logger.info("Request listener thread started.")
        try:
            self._accept_loop()
        except AgentError as e:
            if self._stop_event.is_set():
                logger.debug(f"Request listener stopped while serving: {e}")
            else:
                display_error(f"{e}. Exiting application.")
                self.shutdown_signal.trigger(Role.LISTENER, EXIT_FAILURE, f"{type(e).__name__}: {e}")
        except Exception as e:
            if self._stop_event.is_set():
                logger.debug(f"Request listener stopped: {e}")
            else:
                logger.critical(f"Unexpected error in request listener: {e}", exc_info=True)
                display_error(f"Unexpected error: {e}. Exiting application.")
                self.shutdown_signal.trigger(Role.LISTENER, EXIT_FAILURE, f"Unexpected error: {e}")
        finally:
            self._close_server_socket()
            logger.info("Request listener thread finished.")

    def _accept_loop(self):
        while not self._stop_event.is_set():
            self._set_state(ListenerState.LISTENING)
            client_sock, peer = self._server_socket.accept()

            if self._stop_event.is_set():
                client_sock.close()
                break

            self._set_state(ListenerState.ACCEPTED)
            logger.info(f"Accepted dispatch connection from {peer[0]}:{peer[1]}")
            connection = Connection(client_sock, peer, self.read_timeout)
            self._current = connection
            try:
                self.handle_connection(connection)
            finally:
                self._current = None
                connection.close()

    def handle_connection(self, connection: Connection) -> bool:
        """
        Serves one request on an accepted connection.

        :param connection: The accepted connection; closed by the caller
        :type connection: Connection
        :return: False if the peer closed without sending a request
        :rtype: bool
        :raises AgentError: On protocol, transmission or execution failure
        """
        try:
            request = self.read_request(connection)
            if request is None:
                logger.info(f"Peer {connection.peer} closed the connection without sending a request.")
                return False

            self._set_state(ListenerState.EXECUTING)
            output = self.executor.execute(request.input, request.command)
            connection.send_frame(FrameKind.OUTPUT, output)
            self.requests_served += 1
            logger.info(f"Replied to {connection.peer} with {len(output)} chars of output.")
            return True
        finally:
            self._set_state(ListenerState.REPLIED_OR_FAILED)

    def read_request(self, connection: Connection) -> Optional[ExecutionRequest]:
        """
        Reads one execution request in the configured layout.

        :return: The request, or None on a clean end of stream before any byte
        :rtype: Optional[ExecutionRequest]
        """
        if self.dispatch_layout == DispatchLayout.HEADERS_FIRST:
            return self._read_headers_first(connection)

        self._set_state(ListenerState.READING_INPUT_HEADER)
        header = connection.recv_header(expected=(FrameKind.INPUT,), allow_eof=True)
        if header is None:
            return None
        self._set_state(ListenerState.READING_INPUT_PAYLOAD)
        input_bytes = connection.recv_exact(header[1])

        self._set_state(ListenerState.READING_COMMAND_HEADER)
        _, command_length = connection.recv_header(expected=(FrameKind.COMMAND,))
        self._set_state(ListenerState.READING_COMMAND_PAYLOAD)
        command_bytes = connection.recv_exact(command_length)

        return self._build_request(input_bytes, command_bytes)

    def _read_headers_first(self, connection: Connection) -> Optional[ExecutionRequest]:
        self._set_state(ListenerState.READING_COMMAND_HEADER)
        header = connection.recv_header(expected=(FrameKind.COMMAND,), allow_eof=True)
        if header is None:
            return None
        command_length = header[1]

        self._set_state(ListenerState.READING_INPUT_HEADER)
        _, input_length = connection.recv_header(expected=(FrameKind.INPUT,))
        self._set_state(ListenerState.READING_INPUT_PAYLOAD)
        input_bytes = connection.recv_exact(input_length)
        self._set_state(ListenerState.READING_COMMAND_PAYLOAD)
        command_bytes = connection.recv_exact(command_length)

        return self._build_request(input_bytes, command_bytes)

    @staticmethod
    def _build_request(input_bytes: bytes, command_bytes: bytes) -> ExecutionRequest:
        return ExecutionRequest(
            input=input_bytes.decode(PAYLOAD_ENCODING, errors=PAYLOAD_ERRORS),
            command=command_bytes.decode(PAYLOAD_ENCODING, errors=PAYLOAD_ERRORS),
        )

    def _close_server_socket(self):
        sock, self._server_socket = self._server_socket, None
        if sock is not None:
            try:
                sock.close()
                logger.debug("Closed listening socket.")
            except OSError as e:
                logger.warning(f"Error closing listening socket: {e}")

    def stop(self):
        """
        Signals the listener to stop accepting, then unblocks whatever it is
        waiting on: the accept call, a read on the current connection, or a
        running command.
        """
        logger.info("Stopping request listener...")
        self._stop_event.set()

        current = self._current
        if current is not None:
            current.shutdown()
        self.executor.terminate_running()

        address = self.address
        if address is not None:
            wake_host = "127.0.0.1" if address[0] in ("0.0.0.0", "") else address[0]
            try:
                with socket.create_connection((wake_host, address[1]), timeout=WAKE_CONNECT_TIMEOUT_SEC):
                    logger.debug("Wake-up connection to listener made.")
            except OSError as e:
                logger.debug(f"Wake-up connection to listener failed: {e}")
