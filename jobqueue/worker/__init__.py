"""
Worker module.
Contains the worker scheduler and the job processor registry.
"""

from jobqueue.worker.main import Worker, run
from jobqueue.worker.processors import ProcessorRegistry, default_registry, register_processor

__all__ = ["Worker", "run", "ProcessorRegistry", "default_registry", "register_processor"]
