"""
User interface utilities for the cluster agent.
"""
from cluster_agent.ui.ui_console import (
    OperatorConsole,
    colored_text,
    display_error,
    display_info,
    display_output,
    display_success
)

__all__ = [
    'OperatorConsole',
    'colored_text',
    'display_error',
    'display_info',
    'display_output',
    'display_success'
]
