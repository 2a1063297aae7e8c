"""Caller-facing orchestration: submit, listen, resolve."""
from __future__ import annotations

import logging
from typing import Iterable

from whatspdf.application.listener import ProgressStreamListener, SessionCallback
from whatspdf.application.tracker import JobStateMachine
from whatspdf.core.config import Settings
from whatspdf.core.errors import JobError, JobInProgressError
from whatspdf.core.schema import ProcessingOptions
from whatspdf.domain import DEFAULT_STEPS, JobSession, StepRegistry
from whatspdf.infrastructure import JobSubmitter, ProgressChannel, SSEProgressChannel
from whatspdf.infrastructure.submitter import Payload

logger = logging.getLogger(__name__)


class JobService:
    """Runs one job at a time for a single caller."""

    def __init__(
        self,
        submitter: JobSubmitter,
        channel: ProgressChannel,
        *,
        step_definitions: Iterable[tuple[str, str]] = DEFAULT_STEPS,
        on_update: SessionCallback | None = None,
    ) -> None:
        self._submitter = submitter
        self._channel = channel
        self._step_definitions = list(step_definitions)
        self._on_update = on_update
        self._session: JobSession | None = None
        self._listener: ProgressStreamListener | None = None
        self._submitting = False
        self._generation = 0

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "JobService":
        submitter = JobSubmitter(settings.base_url, timeout=settings.submit_timeout)
        channel = SSEProgressChannel(settings.base_url, read_timeout=settings.stream_read_timeout)
        return cls(submitter, channel, **kwargs)

    @property
    def session(self) -> JobSession | None:
        return self._session

    @property
    def is_processing(self) -> bool:
        if self._submitting:
            return True
        return self._session is not None and self._session.is_processing

    async def start(
        self,
        file: Payload,
        options: ProcessingOptions | None = None,
        *,
        filename: str | None = None,
    ) -> JobSession | None:
        """Submit a file and start listening.

        Returns ``None`` when :meth:`reset` ran while the submission was in
        flight; its result is then discarded.
        """
        if self.is_processing:
            raise JobInProgressError("A file is already being processed")

        self.reset()
        generation = self._generation
        self._submitting = True
        try:
            client_id = await self._submitter.submit(file, options, filename=filename)
        finally:
            if generation == self._generation:
                self._submitting = False

        if generation != self._generation:
            logger.info("discarding submission that returned after reset", extra={"client_id": client_id})
            return None

        session = JobSession(client_id=client_id, steps=StepRegistry(self._step_definitions))
        self._session = session
        self._listener = ProgressStreamListener(
            self._channel,
            JobStateMachine(session),
            on_update=self._on_update,
        )
        self._listener.start()
        return session

    async def wait(self) -> JobSession:
        if self._listener is None:
            raise JobError("No job has been started")
        return await self._listener.wait()

    async def process(
        self,
        file: Payload,
        options: ProcessingOptions | None = None,
        *,
        filename: str | None = None,
    ) -> JobSession:
        session = await self.start(file, options, filename=filename)
        if session is None:
            raise JobError("Job was reset before it started")
        return await self.wait()

    def reset(self) -> None:
        """Abandon the current session and close its channel."""
        if self._listener is not None:
            self._listener.close()
        self._listener = None
        self._session = None
        self._submitting = False
        self._generation += 1

    async def aclose(self) -> None:
        self.reset()
        await self._submitter.aclose()
        closer = getattr(self._channel, "aclose", None)
        if closer is not None:
            await closer()
