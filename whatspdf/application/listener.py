"""Bridges a progress channel to the session state machine."""
from __future__ import annotations

import logging
from typing import Callable

from pydantic import ValidationError

from whatspdf.application.tracker import JobStateMachine
from whatspdf.core.context import bound_client_id
from whatspdf.core.errors import StreamDecodeError
from whatspdf.core.schema import ProgressEvent
from whatspdf.domain import JobSession
from whatspdf.infrastructure import ProgressChannel, Subscription

logger = logging.getLogger(__name__)

SessionCallback = Callable[[JobSession], None]


class ProgressStreamListener:
    """Owns the single channel of one session.

    Undecodable payloads fail the session and close the channel.
    """

    def __init__(
        self,
        channel: ProgressChannel,
        machine: JobStateMachine,
        *,
        on_update: SessionCallback | None = None,
    ) -> None:
        self._channel = channel
        self._machine = machine
        self._on_update = on_update
        self._subscription: Subscription | None = None

    @property
    def session(self) -> JobSession:
        return self._machine.session

    def start(self) -> Subscription:
        if self._subscription is not None:
            return self._subscription
        self._subscription = self._channel.subscribe(
            self.session.client_id,
            self._handle_event,
            self._handle_close,
        )
        logger.debug("listening for progress", extra={"client_id": self.session.client_id})
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    async def wait(self) -> JobSession:
        if self._subscription is not None:
            await self._subscription.wait()
        return self.session

    def _handle_event(self, payload: str) -> None:
        with bound_client_id(self.session.client_id):
            try:
                event = ProgressEvent.model_validate_json(payload)
            except ValidationError as exc:
                logger.warning("undecodable progress payload: %s", payload[:200])
                self._machine.fail(
                    StreamDecodeError(
                        f"Malformed progress event: {exc.error_count()} error(s)",
                        payload=payload,
                    )
                )
                self.close()
                self._notify()
                return

            terminal = self._machine.apply(event)
            self._notify()
            if terminal:
                self.close()

    def _handle_close(self, cause: BaseException | None) -> None:
        with bound_client_id(self.session.client_id):
            self._machine.close(cause)
            self._notify()

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self.session)
