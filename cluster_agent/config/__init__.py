"""
Configuration management for the cluster agent.
"""
from .config_manager import ConfigManager, DEFAULT_CONFIG

__all__ = [
    'ConfigManager',
    'DEFAULT_CONFIG'
]
