from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProcessingOptions(CamelModel):
    include_voice_messages: bool = True
    include_timestamps: bool = True
    highlight_senders: bool = True
    include_images: bool = False
    include_attachments: bool = False
    language: str | None = None
    date_from: date | None = None
    date_to: date | None = None


class Message(CamelModel):
    timestamp: str
    sender: str
    content: str
    type: Literal["text", "voice", "image", "attachment"] = "text"
    media_url: str | None = None
    media_size: int | None = None


class ChatExport(CamelModel):
    original_filename: str
    file_hash: str
    participants: list[str] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    media_size_bytes: int = 0
    generated_at: str | None = None
    pdf_url: str | None = None
    processing_options: ProcessingOptions = Field(default_factory=ProcessingOptions)


class ProgressEvent(CamelModel):
    """One message on the progress stream.

    Every field except ``progress`` is optional; an absent field carries no
    new information. The step index is accepted as ``stepIndex`` or as the
    shorter ``step`` the backend emits.
    """

    progress: int
    step_index: int | None = Field(
        default=None,
        validation_alias=AliasChoices("stepIndex", "step", "step_index"),
        serialization_alias="step",
    )
    done: bool | None = None
    requires_payment: bool | None = None
    message_count: int | None = None
    media_size_bytes: int | None = None
    bundle_id: str | None = None
    checkout_url: str | None = None
    pdf_url: str | None = None
    chat_data: dict[str, Any] | None = None
    error: str | None = None


class SubmitResponse(CamelModel):
    client_id: str


class ErrorResponse(BaseModel):
    message: str
