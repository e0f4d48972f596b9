"""
Queue module.
Contains the Priority Queue Engine and the Queue Manager.
"""

from jobqueue.queue.manager import QueueManager
from jobqueue.queue.priority import PriorityQueue

__all__ = ["QueueManager", "PriorityQueue"]
