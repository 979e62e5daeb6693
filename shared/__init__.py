"""
POSEFIT Shared Module

Common utilities used across the engine.
"""

from .utils import setup_logger, level_from_name, configured_level, log_execution_time

__all__ = [
    'setup_logger',
    'level_from_name',
    'configured_level',
    'log_execution_time',
]
