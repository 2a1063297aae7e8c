"""Aggregate state of one processing session."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from whatspdf.core.errors import JobError
from whatspdf.domain.steps import StepRegistry


class SessionOutcome(str, Enum):
    SUCCESS = "success"
    SUSPENDED_AWAITING_PAYMENT = "suspended_awaiting_payment"
    FAILED = "failed"


@dataclass(slots=True)
class PaymentState:
    """Billing metadata captured when the pipeline hits the payment gate."""

    requires_payment: bool = True
    message_count: int | None = None
    media_size_bytes: int | None = None
    bundle_id: str | None = None
    checkout_url: str | None = None


@dataclass(slots=True)
class Artifact:
    pdf_url: str | None
    chat_data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class JobSession:
    """Everything the caller needs to render one job.

    Mutated only by :class:`whatspdf.application.tracker.JobStateMachine`.
    """

    client_id: str
    steps: StepRegistry = field(default_factory=StepRegistry)
    progress: int = 0
    is_processing: bool = True
    is_file_processed: bool = False
    payment: PaymentState | None = None
    artifact: Artifact | None = None
    outcome: SessionOutcome | None = None
    error: JobError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": self.client_id,
            "steps": self.steps.snapshot(),
            "progress": self.progress,
            "is_processing": self.is_processing,
            "is_file_processed": self.is_file_processed,
            "payment": None
            if self.payment is None
            else {
                "requires_payment": self.payment.requires_payment,
                "message_count": self.payment.message_count,
                "media_size_bytes": self.payment.media_size_bytes,
                "bundle_id": self.payment.bundle_id,
                "checkout_url": self.payment.checkout_url,
            },
            "artifact": None
            if self.artifact is None
            else {"pdf_url": self.artifact.pdf_url, "chat_data": self.artifact.chat_data},
            "outcome": self.outcome.value if self.outcome else None,
            "error": self.error.message if self.error else None,
        }
