"""
Job lifecycle engine.

This package provides the asynchronous job system:
- Durable job records with status-guarded conditional updates
- A pure state machine deciding which status transitions are legal
- Queue-mediated hand-off between ingestion and the worker consumers
- Cooperative cancellation and bounded retry of failed jobs
"""
