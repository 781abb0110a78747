"""
System utilities for the cluster agent.
"""
from cluster_agent.system.directory_utils import (
    change_to_home_directory,
    determine_home_directory,
    get_login_name
)

__all__ = [
    'change_to_home_directory',
    'determine_home_directory',
    'get_login_name'
]
