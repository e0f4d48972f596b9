"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from jobqueue.constants import (
    METRIC_API_REQUESTS,
    METRIC_JOB_DURATION,
    METRIC_JOBS_DEQUEUED,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_FINISHED,
    METRIC_JOBS_IN_FLIGHT,
    METRIC_QUEUE_DEPTH,
    METRIC_QUEUE_LATENCY,
    METRIC_QUEUE_OUTCOME_RATE,
    METRIC_RECORD_INCONSISTENCIES,
    METRIC_WORKER_HEARTBEATS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Enqueue and dequeue throughput
    - Job outcomes and execution duration
    - Worker in-flight jobs and heartbeats
    - Queue depth per state
    - Queue latency (avg, p95) and success/failure rates
    - Record inconsistencies found during dispatch
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_dequeued = Counter(
            METRIC_JOBS_DEQUEUED,
            "Total number of jobs claimed by workers",
            ["queue", "worker_id"],
            registry=self._registry,
        )

        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Total number of jobs that left the active state",
            ["queue", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["queue", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.jobs_in_flight = Gauge(
            METRIC_JOBS_IN_FLIGHT,
            "Jobs currently executing on a worker",
            ["worker_id"],
            registry=self._registry,
        )

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of jobs per queue and state",
            ["queue", "state"],
            registry=self._registry,
        )

        self.queue_latency = Gauge(
            METRIC_QUEUE_LATENCY,
            "Completion latency of a queue in milliseconds (avg, p95)",
            ["queue", "stat"],
            registry=self._registry,
        )

        self.queue_outcome_rate = Gauge(
            METRIC_QUEUE_OUTCOME_RATE,
            "Percentage of observed jobs per outcome",
            ["queue", "outcome"],
            registry=self._registry,
        )

        self.record_inconsistencies = Counter(
            METRIC_RECORD_INCONSISTENCIES,
            "Claimed job ids whose record was missing",
            ["queue"],
            registry=self._registry,
        )

        self.worker_heartbeats = Counter(
            METRIC_WORKER_HEARTBEATS,
            "Total number of heartbeats emitted",
            ["worker_id"],
            registry=self._registry,
        )

        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

    def record_job_enqueued(self, queue: str) -> None:
        self.jobs_enqueued.labels(queue=queue).inc()

    def record_job_dequeued(self, queue: str, worker_id: str) -> None:
        self.jobs_dequeued.labels(queue=queue, worker_id=worker_id).inc()

    def record_job_finished(
        self,
        queue: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job leaving the active state."""
        self.jobs_finished.labels(queue=queue, status=status).inc()
        self.job_duration.labels(queue=queue, status=status).observe(duration_seconds)

    def set_in_flight(self, worker_id: str, count: int) -> None:
        self.jobs_in_flight.labels(worker_id=worker_id).set(count)

    def update_queue_depth(self, queue: str, state: str, depth: int) -> None:
        self.queue_depth.labels(queue=queue, state=state).set(depth)

    def update_queue_statistics(
        self,
        queue: str,
        avg_latency_ms: float,
        p95_latency_ms: float,
        success_rate: float,
        failure_rate: float,
    ) -> None:
        """Publish the latency and outcome statistics computed for a queue."""
        self.queue_latency.labels(queue=queue, stat="avg").set(avg_latency_ms)
        self.queue_latency.labels(queue=queue, stat="p95").set(p95_latency_ms)
        self.queue_outcome_rate.labels(queue=queue, outcome="success").set(success_rate)
        self.queue_outcome_rate.labels(queue=queue, outcome="failure").set(failure_rate)

    def record_inconsistency(self, queue: str) -> None:
        self.record_inconsistencies.labels(queue=queue).inc()

    def record_heartbeat(self, worker_id: str) -> None:
        self.worker_heartbeats.labels(worker_id=worker_id).inc()

    def record_api_request(self, method: str, endpoint: str, status: int) -> None:
        self.api_requests.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
