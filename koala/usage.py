"""Daily quota bookkeeping for the AI providers."""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Callable, Optional

from .errors import QuotaExceeded
from .models import UsageSnapshot, UsageState

logger = logging.getLogger(__name__)

SPEECH_DAILY_LIMIT = 2.0
# New transcriptions stop above this mark so the last call cannot overshoot
# the daily limit by much.
SPEECH_SAFETY_THRESHOLD = 1.8
TRANSLATE_DAILY_LIMIT = 15000


class UsageTracker:
    """Track speech minutes and translated characters consumed today.

    Counters are reset lazily: every check or report first compares the stored
    reset date with ``today()`` and zeroes the counters when the day changed.

    Each increment is atomic, but a request's check-then-consume sequence is
    not serialised. Concurrent requests can therefore both pass
    :meth:`can_transcribe` before either consumes, so the daily cap is a soft
    limit. Callers needing exact enforcement must serialise requests.
    """

    def __init__(self, today: Callable[[], date] = date.today, state: Optional[UsageState] = None) -> None:
        self._today = today
        self._state = state or UsageState(last_reset_date=today())
        self._lock = threading.Lock()

    @property
    def state(self) -> UsageState:
        return self._state

    def check_and_reset(self) -> None:
        current = self._today()
        with self._lock:
            if self._state.last_reset_date != current:
                logger.info(
                    "Resetting usage counters (last reset %s, today %s)",
                    self._state.last_reset_date,
                    current,
                )
                self._state.speech_minutes_used = 0.0
                self._state.translate_chars_used = 0
                self._state.last_reset_date = current

    def can_transcribe(self, estimated_minutes: float = 0.0) -> bool:
        allowed = self._state.speech_minutes_used <= SPEECH_SAFETY_THRESHOLD
        if not allowed:
            logger.debug(
                "Speech quota denied: %.3f min used, %.3f min requested",
                self._state.speech_minutes_used,
                estimated_minutes,
            )
        return allowed

    def require_speech_capacity(self, estimated_minutes: float = 0.0) -> None:
        self.check_and_reset()
        if not self.can_transcribe(estimated_minutes):
            raise QuotaExceeded("Daily speech recognition quota exceeded", usage=self.remaining())

    def can_translate(self, chars: int) -> bool:
        return self._state.translate_chars_used + chars <= TRANSLATE_DAILY_LIMIT

    def consume_speech(self, minutes: float) -> None:
        with self._lock:
            self._state.speech_minutes_used += minutes

    def consume_translate(self, chars: int) -> None:
        with self._lock:
            self._state.translate_chars_used += chars

    def remaining(self) -> UsageSnapshot:
        self.check_and_reset()
        return UsageSnapshot(
            date=self._state.last_reset_date,
            speech_minutes_used=self._state.speech_minutes_used,
            speech_minutes_limit=SPEECH_DAILY_LIMIT,
            translate_chars_used=self._state.translate_chars_used,
            translate_chars_limit=TRANSLATE_DAILY_LIMIT,
        )
