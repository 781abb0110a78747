"""
Core Agent module: the lifecycle coordinator that owns both roles.
"""
import threading
from typing import Callable, Optional, TYPE_CHECKING

from cluster_agent.core.agent_state import AgentState
from cluster_agent.core.command_executor import CommandExecutor
from cluster_agent.core.request_listener import RequestListener
from cluster_agent.core.session_client import SessionClient
from cluster_agent.core.shutdown_signal import EXIT_FAILURE, ShutdownSignal
from cluster_agent.protocol import Connection, DispatchLayout
from cluster_agent.system import change_to_home_directory
from cluster_agent.ui import OperatorConsole, display_error, display_output
from cluster_agent.utils import get_logger

if TYPE_CHECKING:
    from cluster_agent.config import ConfigManager

logger = get_logger(__name__)


class Agent:
    """
    Brings up the outbound coordinator connection and the listening socket,
    runs the session client and the request listener as two threads, and
    tears both down as soon as either one ends.

    The two roles share nothing but the :class:`ShutdownSignal`: the first
    role to finish (operator ``exit`` or a fatal error) fixes the exit status,
    and the agent then interrupts the other role.
    """

    def __init__(self,
                 config_manager: 'ConfigManager',
                 executor: Optional[CommandExecutor] = None,
                 console: Optional[OperatorConsole] = None,
                 output_func: Callable[[str], None] = display_output):
        """
        :param config_manager: Configuration manager instance
        :type config_manager: ConfigManager
        :param executor: Command executor for the listener; built from config when None
        :type executor: Optional[CommandExecutor]
        :param console: Operator input source; stdin when None
        :type console: Optional[OperatorConsole]
        :param output_func: Prints results received by the session client
        :type output_func: Callable[[str], None]
        """
        self.config = config_manager
        self.executor = executor or CommandExecutor(config_manager)
        self.console = console or OperatorConsole()
        self.output_func = output_func

        self.shutdown_signal = ShutdownSignal()
        self.session: Optional[SessionClient] = None
        self.listener: Optional[RequestListener] = None

        self._state = AgentState.STARTING
        self._state_lock = threading.Lock()
        self.join_timeout = float(self.config.get('agent.shutdown_join_timeout_sec', 5.0))

    def run(self) -> int:
        """
        Runs the agent until one role ends.

        :return: Process exit status: 0 after operator ``exit``, 1 otherwise
        :rtype: int
        """
        self._set_state(AgentState.STARTING)
        logger.info("================ Starting Agent ================")

        if self.config.get('agent.start_in_home', True):
            change_to_home_directory()

        read_timeout = self.config.get('connection.read_timeout_sec')
        server_host = self.config.get('server.host')
        server_port = self.config.get('server.port')
        try:
            connection = Connection.open(server_host, server_port, read_timeout)
        except OSError as e:
            logger.critical(f"Couldn't connect to coordinator at {server_host}:{server_port}: {e}")
            display_error(f"Couldn't connect to server at {server_host}:{server_port}: {e}. Exiting application.")
            self._set_state(AgentState.STOPPED)
            return EXIT_FAILURE

        self.listener = RequestListener(
            self.executor,
            self.shutdown_signal,
            host=self.config.get('listener.host'),
            port=self.config.get('listener.port'),
            backlog=self.config.get('listener.backlog'),
            dispatch_layout=DispatchLayout(self.config.get('listener.dispatch_layout')),
            read_timeout=read_timeout,
        )
        try:
            self.listener.bind()
        except OSError as e:
            logger.critical(f"Couldn't bind request listener: {e}")
            display_error(f"Couldn't bind request listener: {e}. Exiting application.")
            connection.close()
            self._set_state(AgentState.STOPPED)
            return EXIT_FAILURE

        self.session = SessionClient(connection, self.console, self.shutdown_signal, self.output_func)

        try:
            self.listener.start()
            self.session.start()
            self._set_state(AgentState.RUNNING)
            logger.info("Agent started. Serving operator commands and coordinator requests.")

            # A timed wait keeps the main thread responsive to Ctrl+C
            while not self.shutdown_signal.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received (Ctrl+C). Stopping agent...")
            self.shutdown_signal.trigger(None, EXIT_FAILURE, "interrupted by operator")
        finally:
            self.graceful_shutdown()

        return self.exit_code

    @property
    def exit_code(self) -> int:
        code = self.shutdown_signal.exit_code
        return EXIT_FAILURE if code is None else code

    def graceful_shutdown(self):
        """
        Stops both roles and waits for their threads to finish.
        """
        with self._state_lock:
            if self._state in (AgentState.SHUTTING_DOWN, AgentState.STOPPED):
                logger.debug("Graceful shutdown called but agent already stopping/stopped.")
                return
        self._set_state(AgentState.SHUTTING_DOWN)
        logger.info("================ Initiating Graceful Shutdown ================")
        if self.shutdown_signal.reason:
            logger.info(f"Shutdown reason: {self.shutdown_signal.reason}")

        if self.session is not None:
            self.session.stop()
        if self.listener is not None:
            self.listener.stop()

        for thread in (self.session, self.listener):
            if thread is None or not thread.is_alive():
                continue
            thread.join(timeout=self.join_timeout)
            if thread.is_alive():
                logger.warning(f"{thread.name} thread did not stop within {self.join_timeout}s.")
            else:
                logger.debug(f"{thread.name} thread joined.")

        self._set_state(AgentState.STOPPED)
        logger.info("================ Agent Shutdown Complete ================")

    def get_state(self) -> AgentState:
        """
        Gets the current agent state thread-safely.
        """
        with self._state_lock:
            return self._state

    def _set_state(self, new_state: AgentState):
        with self._state_lock:
            if self._state != new_state:
                logger.info(f"State transition: {self._state.name} -> {new_state.name}")
                self._state = new_state
