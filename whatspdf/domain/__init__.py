"""Domain layer definitions."""

from .session import Artifact, JobSession, PaymentState, SessionOutcome
from .steps import (
    DEFAULT_STEPS,
    PAYMENT_REQUIRED,
    PAYMENT_STEP_NAME,
    ProcessingStep,
    Step,
    StepRegistry,
)

__all__ = [
    "Artifact",
    "DEFAULT_STEPS",
    "JobSession",
    "PAYMENT_REQUIRED",
    "PAYMENT_STEP_NAME",
    "PaymentState",
    "ProcessingStep",
    "SessionOutcome",
    "Step",
    "StepRegistry",
]
