"""
Priority Job Queue

Named priority queues backed by a shared store, a bounded pool of polling
workers, failure capture with operator retry, dead-letter escalation and
heartbeat-based worker liveness.
"""

__version__ = "1.0.0"
