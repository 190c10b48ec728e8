"""
Worker module.
Contains the dispatcher loop, the shell executor, the reaper and the worker process.
"""

from queuectl.worker.dispatcher import Dispatcher, DispatcherHandle
from queuectl.worker.executor import ShellExecutor
from queuectl.worker.reaper import Reaper

__all__ = ["Dispatcher", "DispatcherHandle", "ShellExecutor", "Reaper"]
