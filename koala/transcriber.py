"""Speech recognition backends and the quota-aware transcription service."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from .errors import AIUnavailable, TranscriptionError
from .models import AudioInput
from .usage import UsageTracker

logger = logging.getLogger(__name__)

SAMPLE_RATE_HZ = 16000
CHANNELS = 1
BYTES_PER_SAMPLE = 2

LANGUAGE_LOCALES = {
    "korean": "ko-KR",
    "russian": "ru-RU",
    "vietnamese": "vi-VN",
    "chinese": "cmn-Hans-CN",
    "english": "en-US",
}
DEFAULT_LOCALE = LANGUAGE_LOCALES["korean"]


class SpeechBackend(Protocol):
    """Common interface for speech recognition providers."""

    def recognize(self, content: bytes, *, language_code: str) -> List[str]:
        """Return the best transcript of each recognised segment, in order."""


class GoogleSpeechBackend:
    """Cloud recognition using the ``google-cloud-speech`` package."""

    def __init__(self, credentials_path: Optional[str] = None, encoding: str = "LINEAR16") -> None:
        try:
            from google.cloud import speech
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("The `google-cloud-speech` package is required for this backend.") from exc
        self._speech = speech
        if credentials_path:
            self._client = speech.SpeechClient.from_service_account_file(credentials_path)
        else:
            self._client = speech.SpeechClient()
        self._encoding = speech.RecognitionConfig.AudioEncoding[encoding]

    def recognize(self, content: bytes, *, language_code: str) -> List[str]:  # pragma: no cover - network call
        config = self._speech.RecognitionConfig(
            encoding=self._encoding,
            sample_rate_hertz=SAMPLE_RATE_HZ,
            audio_channel_count=CHANNELS,
            language_code=language_code,
            enable_automatic_punctuation=True,
        )
        audio = self._speech.RecognitionAudio(content=content)
        response = self._client.recognize(config=config, audio=audio)
        return [result.alternatives[0].transcript for result in response.results if result.alternatives]


def locale_for(language: str) -> str:
    """Map a language tag from the intake form to a recognition locale.

    Unknown tags fall back to Korean, the language the counselors read.
    """

    locale = LANGUAGE_LOCALES.get(language)
    if locale is None:
        logger.warning("Unrecognised language %r, defaulting to %s", language, DEFAULT_LOCALE)
        return DEFAULT_LOCALE
    return locale


def estimate_minutes(byte_length: int) -> float:
    return byte_length / (SAMPLE_RATE_HZ * BYTES_PER_SAMPLE * 60)


class TranscriptionService:
    def __init__(self, backend: Optional[SpeechBackend], usage: UsageTracker) -> None:
        self.backend = backend
        self.usage = usage

    def transcribe(self, audio: AudioInput) -> str:
        """Recognise ``audio`` and return the text of all segments in order.

        Each segment is stripped and blank segments are dropped before the
        rest are joined with single spaces.
        """

        if self.backend is None:
            raise AIUnavailable("No speech recognition backend is configured.")

        language_code = locale_for(audio.language)
        try:
            segments = self.backend.recognize(audio.content, language_code=language_code)
        except Exception as exc:
            logger.warning("Speech recognition failed for %s audio: %s", language_code, exc)
            raise TranscriptionError(f"Speech recognition failed: {exc}") from exc

        text = " ".join(segment.strip() for segment in segments if segment.strip())
        minutes = estimate_minutes(len(audio.content))
        self.usage.consume_speech(minutes)
        logger.info("Transcribed %.3f min of %s audio (%d chars)", minutes, language_code, len(text))
        if not text:
            raise TranscriptionError("No speech was recognised in the recording.")
        return text
