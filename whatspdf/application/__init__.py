"""Application services."""

from .jobs import JobService
from .listener import ProgressStreamListener
from .tracker import CompletionResolver, GateState, JobStateMachine, PaymentGate, StepTracker

__all__ = [
    "CompletionResolver",
    "GateState",
    "JobService",
    "JobStateMachine",
    "PaymentGate",
    "ProgressStreamListener",
    "StepTracker",
]
