"""Bounded-concurrency task scheduler."""

from blogbatch.parallel.models import TaskResult, WorkItem
from blogbatch.parallel.processor import ParallelProcessor

__all__ = ["ParallelProcessor", "TaskResult", "WorkItem"]
