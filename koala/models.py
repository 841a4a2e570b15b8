"""Dataclasses describing the objects that flow through koala."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional


class ProcessingMode(str, Enum):
    AI = "AI"
    SIMULATION = "SIMULATION"


class Priority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


@dataclass(slots=True)
class UsageState:
    """Mutable daily counters owned by a :class:`~koala.usage.UsageTracker`."""

    last_reset_date: date
    speech_minutes_used: float = 0.0
    translate_chars_used: int = 0


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    """Point-in-time report of today's quota consumption."""

    date: date
    speech_minutes_used: float
    speech_minutes_limit: float
    translate_chars_used: int
    translate_chars_limit: int

    @property
    def speech_minutes_remaining(self) -> float:
        return max(0.0, self.speech_minutes_limit - self.speech_minutes_used)

    @property
    def translate_chars_remaining(self) -> int:
        return max(0, self.translate_chars_limit - self.translate_chars_used)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "speech": {
                "used": round(self.speech_minutes_used, 4),
                "limit": self.speech_minutes_limit,
                "remaining": round(self.speech_minutes_remaining, 4),
                "unit": "minutes",
            },
            "translate": {
                "used": self.translate_chars_used,
                "limit": self.translate_chars_limit,
                "remaining": self.translate_chars_remaining,
                "unit": "characters",
            },
        }


@dataclass(frozen=True, slots=True)
class AudioInput:
    """An uploaded recording together with the language it was spoken in."""

    content: bytes
    mime_type: str
    language: str


@dataclass(frozen=True, slots=True)
class TranscriptResult:
    original_text: str
    translated_text: str
    mode: ProcessingMode


@dataclass(frozen=True, slots=True)
class CounselingRecord:
    """Represents a stored counseling submission."""

    student: str
    mood: str
    language: str
    original_text: str
    translated_text: str
    created_at: datetime
    priority: Priority
    id: Optional[int] = None


@dataclass(slots=True)
class Config:
    """User configuration stored on disk."""

    google_credentials: Optional[str] = None
    target_language: str = "ko"
    speech_encoding: str = "LINEAR16"
    ai_timeout: float = 5.0
    db_path: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3001
    server_url: Optional[str] = None
    api_timeout: float = 60.0
