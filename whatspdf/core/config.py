from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BASE_URL = "http://localhost:5000"


def _float_env(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    return value if value > 0 else None


def _storage_root() -> Path:
    env_root = os.getenv("WHATSPDF_STORAGE_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "storage"


@dataclass(slots=True)
class Settings:
    """Runtime options shared by the client and the reference backend.

    Deadlines default to ``None``: a backend that never answers keeps the
    session processing until the caller resets it.
    """

    base_url: str = DEFAULT_BASE_URL
    submit_timeout: float | None = None
    stream_read_timeout: float | None = None
    storage_root: Path = field(default_factory=_storage_root)
    checkout_base_url: str | None = None
    cors_origins: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
        if not origins:
            origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
        return cls(
            base_url=(os.getenv("WHATSPDF_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            submit_timeout=_float_env("WHATSPDF_SUBMIT_TIMEOUT"),
            stream_read_timeout=_float_env("WHATSPDF_STREAM_READ_TIMEOUT"),
            storage_root=_storage_root(),
            checkout_base_url=os.getenv("WHATSPDF_CHECKOUT_BASE_URL") or None,
            cors_origins=origins,
        )
