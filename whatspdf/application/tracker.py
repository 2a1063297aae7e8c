"""Step tracking, payment gate and completion resolution for one session.

All mutation of a :class:`JobSession` goes through :class:`JobStateMachine`.
Its two entry points are ``apply`` (one decoded progress event) and
``close`` (the stream ended without a ``done`` event). Each call reads the
session held by the machine at that moment.
"""
from __future__ import annotations

import logging
from enum import Enum

from whatspdf.core.errors import ConnectionLost, JobError, ProcessingFailed
from whatspdf.core.schema import ProgressEvent
from whatspdf.domain import (
    PAYMENT_REQUIRED,
    PAYMENT_STEP_NAME,
    Artifact,
    JobSession,
    PaymentState,
    SessionOutcome,
)

logger = logging.getLogger(__name__)

_BILLING_FIELDS = ("message_count", "media_size_bytes", "bundle_id", "checkout_url")


class StepTracker:
    """Applies the advancement policy to the session's step registry."""

    def advance(self, session: JobSession, step_index: int) -> None:
        active = session.steps.apply_advancement(step_index)
        if active is None:
            logger.debug("step index %s is past the last step", step_index)
        else:
            logger.debug("active step is %s", session.steps[active].name)

    def mark_payment_step(self, session: JobSession) -> None:
        step = session.steps.find(PAYMENT_STEP_NAME)
        if step is not None:
            session.steps.mark_done(step.order)

    def complete(self, session: JobSession) -> None:
        session.steps.mark_all_done()


class GateState(str, Enum):
    OPEN = "open"
    SUSPENDED = "suspended"


class PaymentGate:
    """Open until the first payment notification, then suspended for good."""

    def __init__(self, tracker: StepTracker) -> None:
        self._tracker = tracker

    @staticmethod
    def state(session: JobSession) -> GateState:
        return GateState.OPEN if session.payment is None else GateState.SUSPENDED

    def notify(self, session: JobSession, event: ProgressEvent) -> None:
        if session.payment is None:
            session.payment = PaymentState(requires_payment=True)
            logger.info("payment gate reached, job suspended pending payment")
        payment = session.payment
        for name in _BILLING_FIELDS:
            value = getattr(event, name)
            if value is not None and getattr(payment, name) is None:
                setattr(payment, name, value)
        self._tracker.mark_payment_step(session)


class CompletionResolver:
    """Maps stream termination onto exactly one terminal outcome."""

    def __init__(self, tracker: StepTracker) -> None:
        self._tracker = tracker

    def resolve_done(self, session: JobSession, event: ProgressEvent) -> SessionOutcome:
        if PaymentGate.state(session) is GateState.SUSPENDED and not event.pdf_url:
            return self._suspend(session)
        self._tracker.complete(session)
        session.artifact = Artifact(pdf_url=event.pdf_url, chat_data=event.chat_data or {})
        session.is_file_processed = True
        return self._finish(session, SessionOutcome.SUCCESS)

    def resolve_closure(self, session: JobSession, cause: BaseException | None = None) -> SessionOutcome:
        # The closure itself carries nothing; only the gate step tells an
        # expected payment hang-up apart from a lost connection.
        if session.steps.is_done(PAYMENT_STEP_NAME):
            return self._suspend(session)
        if cause is not None:
            logger.warning("progress stream failed: %s", cause)
        return self.fail(session, ConnectionLost("Connection to the processing server was lost"))

    def fail(self, session: JobSession, error: JobError) -> SessionOutcome:
        session.error = error
        logger.warning("job failed: %s", error.message)
        return self._finish(session, SessionOutcome.FAILED)

    def _suspend(self, session: JobSession) -> SessionOutcome:
        if session.payment is None:
            session.payment = PaymentState(requires_payment=True)
        return self._finish(session, SessionOutcome.SUSPENDED_AWAITING_PAYMENT)

    @staticmethod
    def _finish(session: JobSession, outcome: SessionOutcome) -> SessionOutcome:
        session.is_processing = False
        session.outcome = outcome
        logger.info("job resolved", extra={"outcome": outcome.value, "progress": session.progress})
        return outcome


class JobStateMachine:
    def __init__(
        self,
        session: JobSession,
        *,
        tracker: StepTracker | None = None,
        gate: PaymentGate | None = None,
        resolver: CompletionResolver | None = None,
    ) -> None:
        self.session = session
        self.tracker = tracker or StepTracker()
        self.gate = gate or PaymentGate(self.tracker)
        self.resolver = resolver or CompletionResolver(self.tracker)

    @property
    def is_terminal(self) -> bool:
        return self.session.is_terminal

    def apply(self, event: ProgressEvent) -> bool:
        """Apply one progress event. Returns ``True`` once the session is terminal."""
        session = self.session
        if session.is_terminal:
            logger.debug("ignoring event after terminal state %s", session.outcome)
            return True

        self._update_progress(session, event.progress)

        if event.error:
            self.resolver.fail(session, ProcessingFailed(event.error))
            return True

        if event.step_index is not None:
            self.tracker.advance(session, event.step_index)
            if event.step_index == PAYMENT_REQUIRED:
                self.gate.notify(session, event)

        if event.requires_payment:
            self.gate.notify(session, event)

        if event.done:
            self.resolver.resolve_done(session, event)
            return True
        return False

    def close(self, cause: BaseException | None = None) -> bool:
        """Stream ended without ``done``; ``cause`` is the transport error, if any."""
        session = self.session
        if session.is_terminal:
            return True
        self.resolver.resolve_closure(session, cause)
        return True

    def fail(self, error: JobError) -> None:
        session = self.session
        if session.is_terminal:
            return
        self.resolver.fail(session, error)

    @staticmethod
    def _update_progress(session: JobSession, value: int) -> None:
        bounded = max(0, min(100, value))
        if bounded < session.progress:
            logger.debug("progress %s below recorded %s, keeping maximum", bounded, session.progress)
            return
        session.progress = bounded
