"""
Store key names for the persisted queue layout.
"""

from jobqueue.constants import HEARTBEAT_KEY_PREFIX, JOB_KEY_PREFIX, QUEUE_KEY_PREFIX


def job_key(job_id: str) -> str:
    return f"{JOB_KEY_PREFIX}{job_id}"


def priority_key(queue: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{queue}:priority"


def sequence_key(queue: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{queue}:seq"


def active_key(queue: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{queue}:active"


def completed_key(queue: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{queue}:completed"


def failed_key(queue: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{queue}:failed"


def paused_key(queue: str) -> str:
    return f"{QUEUE_KEY_PREFIX}{queue}:paused"


def heartbeat_key(worker_id: str) -> str:
    return f"{HEARTBEAT_KEY_PREFIX}{worker_id}"
