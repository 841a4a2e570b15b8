"""Exception hierarchy shared by the pipeline and the HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .models import UsageSnapshot


class KoalaError(RuntimeError):
    """Base class for every error raised by koala itself."""

    status_code = 500

    def payload(self) -> Dict[str, Any]:
        return {"success": False, "error": str(self)}


class InvalidRequest(KoalaError):
    """The request is missing something the pipeline cannot work without."""

    status_code = 400


class UnsupportedUploadType(InvalidRequest):
    """The uploaded file is not audio or is too large."""


class QuotaExceeded(KoalaError):
    """Today's speech budget is used up."""

    status_code = 429

    def __init__(self, message: str, usage: Optional[UsageSnapshot] = None) -> None:
        super().__init__(message)
        self.usage = usage

    def payload(self) -> Dict[str, Any]:
        body = super().payload()
        if self.usage is not None:
            body["usage"] = self.usage.as_dict()
        return body


class TranslateQuotaExceeded(QuotaExceeded):
    """Translating the text would go over today's character budget."""


class AIUnavailable(KoalaError):
    """No credentials or client are configured for an AI provider."""


class TranscriptionError(KoalaError):
    """The speech recognition provider failed."""


class TranslationError(KoalaError):
    """The translation provider failed."""


class PersistenceError(KoalaError):
    """A counseling record could not be stored."""
