"""
FastAPI dependencies resolving the components held on application state.
"""

from typing import Annotated

from fastapi import Depends, Request

from jobqueue.liveness import LivenessRegistry
from jobqueue.queue.manager import QueueManager


def get_manager(request: Request) -> QueueManager:
    return request.app.state.manager


def get_liveness(request: Request) -> LivenessRegistry:
    return request.app.state.liveness


def get_queue_names(request: Request) -> list[str]:
    """Queues listed by the summary and system metrics endpoints."""
    return request.app.state.queues


Manager = Annotated[QueueManager, Depends(get_manager)]
Liveness = Annotated[LivenessRegistry, Depends(get_liveness)]
QueueNames = Annotated[list[str], Depends(get_queue_names)]
