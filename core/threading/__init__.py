"""
POSEFIT Threading Module
"""

from .worker_pool import (
    WorkerPool,
    Task,
    TaskStatus,
    get_analysis_pool,
)

__all__ = [
    'WorkerPool',
    'Task',
    'TaskStatus',
    'get_analysis_pool',
]
