"""
Core functionality for the cluster agent.
"""
from cluster_agent.core.agent_state import AgentState, ListenerState, Role, SessionState
from cluster_agent.core.shutdown_signal import EXIT_FAILURE, EXIT_OK, ShutdownSignal
from cluster_agent.core.command_executor import CommandExecutor
from cluster_agent.core.request_listener import ExecutionRequest, RequestListener
from cluster_agent.core.session_client import SessionClient
from cluster_agent.core.agent import Agent

__all__ = [
    'AgentState',
    'ListenerState',
    'Role',
    'SessionState',
    'EXIT_FAILURE',
    'EXIT_OK',
    'ShutdownSignal',
    'CommandExecutor',
    'ExecutionRequest',
    'RequestListener',
    'SessionClient',
    'Agent'
]
