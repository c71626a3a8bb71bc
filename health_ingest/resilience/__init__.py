"""Resilience for the telemetry pipeline.

Contains:
- RetryConfig / RetryExecutor: bounded retry with exponential backoff
- DeadLetterQueue: sink for dropped messages
"""

from .dead_letter import DeadLetterQueue
from .retry import RetryConfig, RetryExecutor

__all__ = [
    "DeadLetterQueue",
    "RetryConfig",
    "RetryExecutor",
]
