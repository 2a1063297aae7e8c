"""Document rendering hook for the processing worker.

The repository does not ship a PDF engine. :class:`TranscriptRenderer`
writes a plain text transcript so the pipeline produces a real artifact;
a PDF integration provides a compatible renderer and installs it with
``configure_document_renderer`` during start-up.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from whatspdf.core.schema import ChatExport


class DocumentRenderer(Protocol):
    """Contract for document generators."""

    suffix: str

    def render(self, chat: ChatExport, target_dir: Path) -> Path:
        """Write the document for ``chat`` into ``target_dir`` and return its path."""


class TranscriptRenderer:
    suffix = ".txt"

    def render(self, chat: ChatExport, target_dir: Path) -> Path:
        target_dir.mkdir(parents=True, exist_ok=True)
        generated_at = chat.generated_at or datetime.now(timezone.utc).isoformat()
        options = chat.processing_options

        lines = [
            "WHATSAPP CHAT TRANSCRIPT",
            f"Source file: {chat.original_filename}",
            f"SHA-256: {chat.file_hash}",
            f"Participants: {', '.join(chat.participants) or 'Unknown'}",
            f"Messages: {len(chat.messages)}",
            f"Generated: {generated_at}",
            "",
        ]
        for message in chat.messages:
            sender = message.sender.upper() if options.highlight_senders else message.sender
            prefix = f"[{message.timestamp.replace('T', ' ')}] " if options.include_timestamps else ""
            if message.type == "text":
                body = message.content
            else:
                body = f"<{message.type}: {message.media_url}>"
            lines.append(f"{prefix}{sender}: {body}")

        target = target_dir / f"chat-{uuid.uuid4().hex}{self.suffix}"
        target.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return target


_renderer: DocumentRenderer = TranscriptRenderer()


def configure_document_renderer(renderer: DocumentRenderer) -> None:
    """Install the renderer used by the processing worker."""

    global _renderer
    _renderer = renderer


def get_document_renderer() -> DocumentRenderer:
    """Return the currently configured renderer."""

    return _renderer
