"""
Cluster Agent - node-side agent of a distributed command-execution service.

The agent runs on every machine of a cluster. It forwards the local
operator's commands to a coordinating server and executes the requests the
coordinator dispatches back to this node.

Main components:
- Agent: Lifecycle coordinator owning both roles
- SessionClient: Interactive role submitting operator commands
- RequestListener: Passive role serving execution requests
- CommandExecutor: Runs a shell command with a given standard input
- ConfigManager: Layered configuration (defaults, file, environment, CLI)
"""
from .version import __version__, __app_name__

from .core import Agent
from .core import AgentState
from .core import CommandExecutor
from .core import RequestListener
from .core import SessionClient
from .core import ShutdownSignal

from .config import ConfigManager

__all__ = [
    '__version__',
    '__app_name__',

    'Agent',
    'AgentState',
    'CommandExecutor',
    'RequestListener',
    'SessionClient',
    'ShutdownSignal',

    'ConfigManager'
]
