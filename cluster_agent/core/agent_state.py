"""
Defines the operational states of the agent and of its two roles.
"""
from enum import Enum, auto


class AgentState(Enum):
    """
    Lifecycle of the agent process as a whole.

    States:
        STARTING: Connecting to the coordinator and binding the listener
        RUNNING: Both roles are active
        SHUTTING_DOWN: A role ended; the other one is being stopped
        STOPPED: Both roles stopped and resources released
    """
    STARTING = auto()
    RUNNING = auto()
    SHUTTING_DOWN = auto()
    STOPPED = auto()


class Role(Enum):
    """The two concurrently running units of the agent."""
    SESSION = "session"
    LISTENER = "listener"


class SessionState(Enum):
    """
    Interactive role: one command in flight at a time.

    WAITING_FOR_INPUT -> SENDING -> WAITING_FOR_REPLY -> PRINTING -> WAITING_FOR_INPUT,
    with EXITED as the terminal state.
    """
    WAITING_FOR_INPUT = auto()
    SENDING = auto()
    WAITING_FOR_REPLY = auto()
    PRINTING = auto()
    EXITED = auto()


class ListenerState(Enum):
    """
    Passive role, per accepted connection.
    """
    LISTENING = auto()
    ACCEPTED = auto()
    READING_INPUT_HEADER = auto()
    READING_INPUT_PAYLOAD = auto()
    READING_COMMAND_HEADER = auto()
    READING_COMMAND_PAYLOAD = auto()
    EXECUTING = auto()
    REPLIED_OR_FAILED = auto()
