"""Asynchronous task primitives."""

from .progress import ProgressReporter, TaskState, TaskWithProgress

__all__ = [
    "TaskWithProgress",
    "ProgressReporter",
    "TaskState",
]
