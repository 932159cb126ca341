"""
Job queue infrastructure.
"""

from .job_queue import JobQueue, InMemoryJobQueue, RedisJobQueue, create_job_queue

__all__ = [
    "JobQueue",
    "InMemoryJobQueue",
    "RedisJobQueue",
    "create_job_queue",
]
