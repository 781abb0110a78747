"""
Cross-role cancellation signal used by the lifecycle coordinator.
"""
import threading
from typing import Optional

from cluster_agent.core.agent_state import Role
from cluster_agent.utils import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class ShutdownSignal:
    """
    One-shot signal shared by the session client and the request listener.

    The first :meth:`trigger` wins and fixes the process exit status; later
    triggers (typically the other role noticing its socket was shut down) are
    recorded in the log only.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self.role: Optional[Role] = None
        self.exit_code: Optional[int] = None
        self.reason: Optional[str] = None

    def trigger(self, role: Optional[Role], exit_code: int, reason: str) -> bool:
        """
        :param role: The role that ended, or None for the coordinator itself
        :type role: Optional[Role]
        :param exit_code: Process exit status this shutdown should produce
        :type exit_code: int
        :param reason: Human readable cause, for logs
        :type reason: str
        :return: True if this call set the signal, False if it was already set
        :rtype: bool
        """
        with self._lock:
            if self._event.is_set():
                logger.debug(f"Shutdown already requested by {self.role}; ignoring {role} ({reason}).")
                return False
            self.role = role
            self.exit_code = exit_code
            self.reason = reason
            self._event.set()

        source = role.value if role else "agent"
        if exit_code == EXIT_OK:
            logger.info(f"Shutdown requested by {source}: {reason}")
        else:
            logger.error(f"Fatal condition in {source}: {reason}")
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)
