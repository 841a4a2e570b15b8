"""Text translation backends and the budgeted translation service."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .errors import TranslateQuotaExceeded, TranslationError
from .usage import UsageTracker

logger = logging.getLogger(__name__)


class TranslationBackend(Protocol):
    """Common interface for translation providers."""

    def translate(self, text: str, *, target_language: str) -> str:
        """Return ``text`` rendered in ``target_language``."""


class GoogleTranslateBackend:
    """Cloud translation using the ``google-cloud-translate`` v2 client."""

    def __init__(self, credentials_path: Optional[str] = None) -> None:
        try:
            from google.cloud import translate_v2 as translate
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("The `google-cloud-translate` package is required for this backend.") from exc
        if credentials_path:
            self._client = translate.Client.from_service_account_json(credentials_path)
        else:
            self._client = translate.Client()

    def translate(self, text: str, *, target_language: str) -> str:  # pragma: no cover - network call
        result = self._client.translate(text, target_language=target_language, format_="text")
        return result["translatedText"]


class TranslationService:
    def __init__(self, backend: Optional[TranslationBackend], usage: UsageTracker) -> None:
        self.backend = backend
        self.usage = usage

    def translate(self, text: str, target_language: str = "ko") -> str:
        if not text or self.backend is None:
            return text

        self.usage.check_and_reset()
        if not self.usage.can_translate(len(text)):
            raise TranslateQuotaExceeded(
                "Daily translation character budget exceeded",
                usage=self.usage.remaining(),
            )

        try:
            translated = self.backend.translate(text, target_language=target_language)
        except Exception as exc:
            logger.warning("Translation to %s failed: %s", target_language, exc)
            raise TranslationError(f"Translation failed: {exc}") from exc

        self.usage.consume_translate(len(text))
        return translated
