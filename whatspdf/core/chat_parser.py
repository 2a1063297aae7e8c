"""Parse WhatsApp chat exports (ZIP with a text transcript and media)."""
from __future__ import annotations

import hashlib
import re
import zipfile
from datetime import date
from pathlib import Path, PurePosixPath

from whatspdf.core.schema import ChatExport, Message, ProcessingOptions


class ChatParseError(ValueError):
    """Raised when an upload is not a readable chat export."""


MESSAGE_PATTERNS = [
    # iOS: [31.12.23, 21:04:59] Alice: text
    re.compile(
        r"^\s*\[(?P<date>\d{1,2}[./]\d{1,2}[./]\d{2,4}),\s*(?P<time>\d{1,2}:\d{2}(?::\d{2})?)\]\s*"
        r"(?P<sender>[^:]+):\s*(?P<content>.*)$"
    ),
    # Android: 31/12/2023, 21:04 - Alice: text
    re.compile(
        r"^\s*(?P<date>\d{1,2}[./]\d{1,2}[./]\d{2,4}),\s*(?P<time>\d{1,2}:\d{2}(?::\d{2})?)\s*-\s*"
        r"(?P<sender>[^:]+):\s*(?P<content>.*)$"
    ),
]

# Timestamped lines without a "sender:" part are group notices.
TIMESTAMP_PREFIX = re.compile(
    r"^\s*\[?\d{1,2}[./]\d{1,2}[./]\d{2,4},\s*\d{1,2}:\d{2}(?::\d{2})?\]?\s*-?\s*\S"
)

ATTACHMENT_PATTERNS = [
    re.compile(r"<attached:\s*(?P<name>[^>]+)>", re.IGNORECASE),
    re.compile(r"^(?P<name>\S+\.\w{2,5})\s+\(file attached\)", re.IGNORECASE),
]

SYSTEM_MESSAGE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"Messages and calls are end-to-end encrypted",
        r"You changed this group's",
        r".*created group.*\.",
        r".*was added\.",
        r".*left\.",
        r".*removed\.",
        r".*changed their phone number\.",
        r".*changed the subject",
        r".*changed the group description\.",
        r".*changed the group icon\.",
        r".*security code changed\.",
        r".*joined using this group's invite link\.",
    )
]

VOICE_SUFFIXES = {".opus", ".m4a", ".mp3", ".ogg", ".oga"}
IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

_INVISIBLE = re.compile("[\u200e\u200f]")


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fp:
        for chunk in iter(lambda: fp.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _match_message(line: str) -> re.Match[str] | None:
    for pattern in MESSAGE_PATTERNS:
        match = pattern.match(line)
        if match:
            return match
    return None


def _parse_date(raw: str) -> date | None:
    parts = re.split(r"[./]", raw)
    if len(parts) != 3:
        return None
    day, month, year = (int(part) for part in parts)
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _normalise_time(raw: str) -> str:
    pieces = raw.split(":")
    while len(pieces) < 3:
        pieces.append("00")
    return ":".join(piece.zfill(2) for piece in pieces)


def _find_transcript(archive: zipfile.ZipFile) -> str | None:
    for info in archive.infolist():
        if info.is_dir() or not info.filename.lower().endswith(".txt"):
            continue
        head = archive.read(info)[:2000].decode("utf-8", errors="replace")
        head = _INVISIBLE.sub("", head.lstrip("\ufeff"))
        if any(_match_message(line) for line in head.splitlines()):
            return info.filename
    return None


def _classify(name: str, options: ProcessingOptions) -> str | None:
    suffix = PurePosixPath(name).suffix.lower()
    if suffix in VOICE_SUFFIXES:
        return "voice" if options.include_voice_messages else None
    if suffix in IMAGE_SUFFIXES:
        return "image" if options.include_images else None
    return "attachment" if options.include_attachments else None


def parse_export(
    path: Path,
    options: ProcessingOptions | None = None,
    *,
    original_filename: str | None = None,
) -> ChatExport:
    """Read the transcript inside ``path`` and return the structured chat."""

    options = options or ProcessingOptions()
    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ChatParseError("Upload is not a valid ZIP archive") from exc

    with archive:
        transcript = _find_transcript(archive)
        if transcript is None:
            raise ChatParseError("No chat data found in the ZIP file")

        media_sizes = {
            PurePosixPath(info.filename).name: info.file_size
            for info in archive.infolist()
            if not info.is_dir()
        }
        raw = archive.read(transcript).decode("utf-8", errors="replace")

    messages: list[Message] = []
    participants: list[str] = []
    last: Message | None = None
    media_total = 0

    for line in raw.splitlines():
        line = _INVISIBLE.sub("", line.lstrip("\ufeff")).rstrip()
        match = _match_message(line)
        if match is None:
            if TIMESTAMP_PREFIX.match(line):
                last = None
                continue
            if last is not None and line.strip():
                last.content += "\n" + line.strip()
            continue

        content = match.group("content")
        if any(pattern.search(content) for pattern in SYSTEM_MESSAGE_PATTERNS):
            last = None
            continue

        day = _parse_date(match.group("date"))
        if day is None:
            last = None
            continue
        if (options.date_from and day < options.date_from) or (options.date_to and day > options.date_to):
            last = None
            continue

        sender = match.group("sender").strip()
        if sender not in participants:
            participants.append(sender)

        message = Message(
            timestamp=f"{day.isoformat()}T{_normalise_time(match.group('time'))}",
            sender=sender,
            content=content,
        )
        for pattern in ATTACHMENT_PATTERNS:
            attached = pattern.search(content)
            if not attached:
                continue
            name = attached.group("name").strip()
            kind = _classify(name, options)
            if kind is not None and name in media_sizes:
                message.type = kind  # type: ignore[assignment]
                message.media_url = f"/media/{name}"
                message.media_size = media_sizes[name]
                message.content = message.media_url
                media_total += media_sizes[name]
            break

        messages.append(message)
        last = message

    return ChatExport(
        original_filename=original_filename or path.name,
        file_hash=sha256_file(path),
        participants=participants,
        messages=messages,
        media_size_bytes=media_total,
        processing_options=options,
    )


__all__ = ["ChatParseError", "parse_export", "sha256_file"]
