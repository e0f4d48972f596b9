"""
Exception hierarchy for the job queue.

JobQueueError
├── JobNotFoundError         : job id absent from the collection an operation expects
├── RecordInconsistencyError : id held by an ordering structure but its record is gone
├── ProcessorError           : business failure raised by a job processor
└── StoreUnavailableError    : shared store unreachable (wraps the original exception)
"""


class JobQueueError(Exception):
    """Base class for all job queue exceptions."""


class JobNotFoundError(JobQueueError):
    """Raised when a retry/requeue/dead-letter target is not where it should be."""

    def __init__(self, job_id: str, collection: str | None = None) -> None:
        self.job_id = job_id
        self.collection = collection
        where = f" in {collection}" if collection else ""
        super().__init__(f"Job {job_id!r} not found{where}")


class RecordInconsistencyError(JobQueueError):
    """Raised when a claimed job id has no record in the record map."""

    def __init__(self, job_id: str, queue: str) -> None:
        self.job_id = job_id
        self.queue = queue
        super().__init__(f"Job {job_id} record missing (queue {queue!r})")


class ProcessorError(JobQueueError):
    """
    Business-logic failure raised by a job processor.

    Processors may raise any exception; this class exists so they can signal
    an expected failure explicitly. The message becomes the job's error.
    """


class StoreUnavailableError(JobQueueError):
    """
    Wraps a connectivity failure from the shared store.

    Attributes:
        cause: The original exception raised by the store client.
    """

    def __init__(self, message: str, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"{message}: {cause}")
