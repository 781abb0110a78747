"""
Session client: the interactive role that forwards operator commands to the
coordinator and prints the results it sends back.
"""
import threading
from typing import Callable, Optional, TYPE_CHECKING

from cluster_agent.core.agent_state import Role, SessionState
from cluster_agent.core.shutdown_signal import EXIT_FAILURE, EXIT_OK, ShutdownSignal
from cluster_agent.errors import AgentError
from cluster_agent.protocol import FrameKind
from cluster_agent.ui import display_error, display_info, display_output, display_success
from cluster_agent.utils import get_logger

if TYPE_CHECKING:
    from cluster_agent.protocol import Connection
    from cluster_agent.ui import OperatorConsole

logger = get_logger(__name__)

EXIT_COMMAND = "exit"


class SessionClient(threading.Thread):
    """
    Runs the operator's command loop in its own thread.

    At most one command is in flight: the client waits for the full Output
    frame before prompting again.
    """

    def __init__(self, connection: 'Connection', console: 'OperatorConsole',
                 shutdown: ShutdownSignal,
                 output_func: Callable[[str], None] = display_output):
        """
        :param connection: Outbound connection to the coordinator, owned by this role
        :type connection: Connection
        :param console: Source of operator command lines
        :type console: OperatorConsole
        :param shutdown: Signal shared with the request listener
        :type shutdown: ShutdownSignal
        :param output_func: Called with each result received from the coordinator
        :type output_func: Callable[[str], None]
        """
        super().__init__(name="SessionClient")
        self.daemon = True

        self.connection = connection
        self.console = console
        self.shutdown_signal = shutdown
        self.output_func = output_func
        self._stop_event = threading.Event()
        self._state = SessionState.WAITING_FOR_INPUT

    @property
    def state(self) -> SessionState:
        return self._state

    def _set_state(self, new_state: SessionState):
        if self._state != new_state:
            logger.debug(f"Session state: {self._state.name} -> {new_state.name}")
            self._state = new_state

    def run(self):
        try:
            self._command_loop()
        except AgentError as e:
            if self._stop_event.is_set():
                logger.debug(f"Session client stopped while blocked: {e}")
            else:
                display_error(f"{e}. Exiting application.")
                self.shutdown_signal.trigger(Role.SESSION, EXIT_FAILURE, f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.critical(f"Unexpected error in session client: {e}", exc_info=True)
            display_error(f"Unexpected error: {e}. Exiting application.")
            self.shutdown_signal.trigger(Role.SESSION, EXIT_FAILURE, f"Unexpected error: {e}")
        finally:
            self._set_state(SessionState.EXITED)
            self.connection.close()

    def _command_loop(self):
        while not self._stop_event.is_set():
            self._set_state(SessionState.WAITING_FOR_INPUT)
            try:
                command = self.console.read_command(self._stop_event)
            except EOFError:
                logger.info("Operator input closed; exiting session.")
                self._exit("operator input closed")
                return

            if command is None:
                return
            if command == "":
                continue
            if command == EXIT_COMMAND:
                self._exit("operator typed exit")
                return

            result = self.submit(command)
            self._set_state(SessionState.PRINTING)
            self.output_func(result)

    def submit(self, command: str) -> str:
        """
        Sends one command and blocks until its Output frame arrives.

        :param command: Command line typed by the operator
        :type command: str
        :return: Output aggregated by the coordinator
        :rtype: str
        :raises AgentError: On any protocol or transmission failure
        """
        self._set_state(SessionState.SENDING)
        self.connection.send_frame(FrameKind.COMMAND, command)
        display_info(f"Command sent to server: {command}. Waiting for response....")

        self._set_state(SessionState.WAITING_FOR_REPLY)
        frame = self.connection.recv_frame(expected=(FrameKind.OUTPUT,))
        return frame.text()

    def _exit(self, reason: str):
        display_success("\nEXITING SHELL...\n")
        self._set_state(SessionState.EXITED)
        self.shutdown_signal.trigger(Role.SESSION, EXIT_OK, reason)

    def stop(self):
        """
        Asks the command loop to end and unblocks a pending socket read.
        """
        logger.debug("Stopping session client...")
        self._stop_event.set()
        self.connection.shutdown()
