"""
Utility functions for the cluster agent.
"""
from cluster_agent.utils.logger import get_logger, setup_logger

__all__ = [
    'get_logger',
    'setup_logger'
]
