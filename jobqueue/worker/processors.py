"""
Job processor registry and implementations.

A processor receives the full JobRecord and returns a JSON-serializable
result, or raises to fail the job. The exception message becomes the job's
error. Unregistered job types fall back to the "default" processor.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from jobqueue.constants import DEFAULT_PROCESSOR
from jobqueue.errors import ProcessorError
from jobqueue.types.job import JobRecord

logger = logging.getLogger(__name__)

# Type alias for job processor functions
Processor = Callable[[JobRecord], Awaitable[Any]]


class ProcessorRegistry:
    """
    Mapping from job type to processor.

    A Worker refuses a registry without a "default" entry.
    """

    def __init__(self, processors: dict[str, Processor] | None = None):
        self._processors: dict[str, Processor] = dict(processors or {})

    def register(self, job_type: str) -> Callable[[Processor], Processor]:
        """
        Decorator to register a processor.

        Example:
            @registry.register("send_email")
            async def process_send_email(job: JobRecord) -> dict:
                ...
        """

        def decorator(processor: Processor) -> Processor:
            self._processors[job_type] = processor
            logger.debug(f"Registered processor for job type: {job_type}")
            return processor

        return decorator

    def add(self, job_type: str, processor: Processor) -> None:
        self._processors[job_type] = processor

    def get(self, job_type: str) -> Processor:
        """
        Get the processor for a job type, falling back to "default".

        Raises:
            LookupError: If neither the type nor "default" is registered.
        """
        processor = self._processors.get(job_type) or self._processors.get(DEFAULT_PROCESSOR)
        if processor is None:
            raise LookupError(
                f"No processor for job type {job_type!r} and no {DEFAULT_PROCESSOR!r} fallback"
            )
        return processor

    def job_types(self) -> list[str]:
        """List all registered job types."""
        return list(self._processors)

    def __contains__(self, job_type: str) -> bool:
        return job_type in self._processors


# Processors shipped with the worker process
default_registry = ProcessorRegistry()
register_processor = default_registry.register


# ============================================================================
# Built-in processors
# ============================================================================


@register_processor("email")
async def process_email(job: JobRecord) -> dict[str, Any]:
    """Simulated email send; fails roughly one time in ten."""
    await asyncio.sleep(1 + random.random() * 2)
    if random.random() < 0.1:
        raise ProcessorError("SMTP Connection timed out")

    payload = job.payload if isinstance(job.payload, dict) else {}
    return {"sent": True, "recipient": payload.get("email", "unknown")}


@register_processor("image")
async def process_image(job: JobRecord) -> dict[str, Any]:
    """Simulated image resize; fails roughly one time in twenty."""
    await asyncio.sleep(3 + random.random() * 2)
    if random.random() < 0.05:
        raise ProcessorError("Invalid image format")
    return {"width": 1024, "height": 768, "format": "webp"}


@register_processor("report")
async def process_report(job: JobRecord) -> dict[str, Any]:
    """Simulated heavy report generation."""
    await asyncio.sleep(5)
    return {"generated": True, "size": "2.4MB"}


@register_processor(DEFAULT_PROCESSOR)
async def process_default(job: JobRecord) -> dict[str, Any]:
    await asyncio.sleep(0.5)
    return {"processed": True}
