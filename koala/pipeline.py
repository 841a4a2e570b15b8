"""Quota-gated transcription pipeline with a simulation fallback.

A submission moves through these states::

    RECEIVED -> QUOTA_CHECKED -> [AI_ATTEMPT -> AI_SUCCESS | AI_FAILED]
             -> [SIMULATED] -> PRIORITIZED -> PERSISTED -> RESPONDED

A missing recording ends in ``FAILED`` and an exhausted speech quota in
``REJECTED``. Provider errors never reach the caller: they are captured as
:class:`Attempt` values and replaced by simulated text. Storage errors do
reach the caller as :class:`~koala.errors.PersistenceError`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Protocol, Tuple, TypeVar, Union

from fastapi.concurrency import run_in_threadpool

from .errors import AIUnavailable, InvalidRequest, PersistenceError, QuotaExceeded
from .models import (
    AudioInput,
    Config,
    CounselingRecord,
    Priority,
    ProcessingMode,
    TranscriptResult,
    UsageSnapshot,
)
from .simulation import ANGRY, ANXIOUS, FALLBACK_LANGUAGE, SAD, SimulationGenerator
from .transcriber import GoogleSpeechBackend, TranscriptionService, estimate_minutes
from .translator import GoogleTranslateBackend, TranslationService
from .usage import UsageTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

HIGH_PRIORITY_MOODS = frozenset({SAD, ANGRY, ANXIOUS})


class PipelineState(str, Enum):
    RECEIVED = "RECEIVED"
    QUOTA_CHECKED = "QUOTA_CHECKED"
    AI_ATTEMPT = "AI_ATTEMPT"
    AI_SUCCESS = "AI_SUCCESS"
    AI_FAILED = "AI_FAILED"
    SIMULATED = "SIMULATED"
    PRIORITIZED = "PRIORITIZED"
    PERSISTED = "PERSISTED"
    RESPONDED = "RESPONDED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


class RecordStore(Protocol):
    def add_record(self, record: CounselingRecord) -> CounselingRecord: ...


@dataclass(frozen=True)
class Configured:
    """Both AI providers have clients and may be called."""

    transcription: TranscriptionService
    translation: TranslationService


@dataclass(frozen=True)
class Unconfigured:
    reason: str


AIBackend = Union[Configured, Unconfigured]


def build_ai_backend(config: Config, usage: UsageTracker) -> AIBackend:
    """Create the Google-backed services, or explain why they are unavailable."""

    if not config.google_credentials:
        return Unconfigured("no Google credentials configured")
    try:
        speech = GoogleSpeechBackend(config.google_credentials, encoding=config.speech_encoding)
        translate = GoogleTranslateBackend(config.google_credentials)
    except Exception as exc:
        logger.warning("Google clients could not be initialised, running in simulation mode: %s", exc)
        return Unconfigured(f"client initialisation failed: {exc}")
    return Configured(
        transcription=TranscriptionService(speech, usage),
        translation=TranslationService(translate, usage),
    )


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """Outcome of a provider call: either a value or the error it raised."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def map(self, func: Callable[[T], U]) -> "Attempt[U]":
        if not self.ok:
            return Attempt(error=self.error)
        return Attempt(value=func(self.value))

    def or_else(self, fallback: Callable[[], T]) -> T:
        if self.ok:
            return self.value
        return fallback()


async def attempt(func: Callable[..., T], *args: Any, timeout: float) -> Attempt[T]:
    """Run a blocking provider call in the thread pool, bounded by ``timeout``."""

    try:
        # The worker thread is abandoned, not stopped, when the timeout fires. If it
        # finishes later the service still records its usage against today's quota,
        # although the request was already answered with simulated text.
        value = await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError:
        return Attempt(error=TimeoutError(f"{getattr(func, '__qualname__', func)} timed out after {timeout}s"))
    except Exception as exc:
        return Attempt(error=exc)
    return Attempt(value=value)


def derive_priority(mood: str) -> Priority:
    return Priority.HIGH if mood in HIGH_PRIORITY_MOODS else Priority.NORMAL


@dataclass(frozen=True)
class PipelineRequest:
    student: str
    mood: str
    language: str
    audio: Optional[AudioInput]


@dataclass(frozen=True)
class PipelineResult:
    transcript: TranscriptResult
    priority: Priority
    usage: UsageSnapshot
    record: CounselingRecord
    trail: Tuple[PipelineState, ...]

    @property
    def mode(self) -> ProcessingMode:
        return self.transcript.mode


class PipelineOrchestrator:
    def __init__(
        self,
        usage: UsageTracker,
        storage: RecordStore,
        backend: AIBackend,
        *,
        simulator: Optional[SimulationGenerator] = None,
        ai_timeout: float = 5.0,
        target_language: str = "ko",
    ) -> None:
        self.usage = usage
        self.storage = storage
        self.backend = backend
        self.simulator = simulator or SimulationGenerator()
        self.ai_timeout = ai_timeout
        self.target_language = target_language

    @property
    def mode(self) -> str:
        return "AI_READY" if isinstance(self.backend, Configured) else "SIMULATION"

    async def process(self, request: PipelineRequest) -> PipelineResult:
        trail: List[PipelineState] = [PipelineState.RECEIVED]
        audio = request.audio
        if audio is None or not audio.content:
            logger.warning("Rejecting submission from %r without audio", request.student)
            self._log_trail(request, trail, PipelineState.FAILED)
            raise InvalidRequest("An audio file is required.")

        try:
            self.usage.require_speech_capacity(estimate_minutes(len(audio.content)))
        except QuotaExceeded as exc:
            logger.warning("Speech quota exhausted, rejecting submission from %r: %s", request.student, exc)
            self._log_trail(request, trail, PipelineState.REJECTED)
            raise
        trail.append(PipelineState.QUOTA_CHECKED)

        transcript = await self._transcript(request, audio, trail)

        priority = derive_priority(request.mood)
        trail.append(PipelineState.PRIORITIZED)

        record = CounselingRecord(
            student=request.student,
            mood=request.mood,
            language=request.language,
            original_text=transcript.original_text,
            translated_text=transcript.translated_text,
            created_at=datetime.now(timezone.utc),
            priority=priority,
        )
        try:
            stored = await run_in_threadpool(self.storage.add_record, record)
        except Exception as exc:
            logger.exception("Failed to store counseling record for %r", request.student)
            self._log_trail(request, trail, PipelineState.FAILED)
            if isinstance(exc, PersistenceError):
                raise
            raise PersistenceError(f"Failed to store counseling record: {exc}") from exc
        trail.append(PipelineState.PERSISTED)
        self._log_trail(request, trail, PipelineState.RESPONDED)

        return PipelineResult(
            transcript=transcript,
            priority=priority,
            usage=self.usage.remaining(),
            record=stored,
            trail=tuple(trail),
        )

    @staticmethod
    def _log_trail(request: PipelineRequest, trail: List[PipelineState], terminal: PipelineState) -> None:
        trail.append(terminal)
        logger.debug("Pipeline trail for %r: %s", request.student, " -> ".join(s.value for s in trail))

    async def _transcript(
        self, request: PipelineRequest, audio: AudioInput, trail: List[PipelineState]
    ) -> TranscriptResult:
        backend = self.backend
        if isinstance(backend, Configured):
            trail.append(PipelineState.AI_ATTEMPT)
            outcome = await self._ai_transcript(backend, audio)
            trail.append(PipelineState.AI_SUCCESS if outcome.ok else PipelineState.AI_FAILED)
        else:
            outcome = Attempt(error=AIUnavailable(backend.reason))

        if not outcome.ok:
            logger.warning("Using simulated transcript for %r: %s", request.student, outcome.error)
            trail.append(PipelineState.SIMULATED)
        return outcome.or_else(lambda: self._simulate(request))

    async def _ai_transcript(self, backend: Configured, audio: AudioInput) -> Attempt[TranscriptResult]:
        transcribed = await attempt(backend.transcription.transcribe, audio, timeout=self.ai_timeout)
        if not transcribed.ok:
            return Attempt(error=transcribed.error)
        original = transcribed.value
        if audio.language == FALLBACK_LANGUAGE:
            return Attempt(value=TranscriptResult(original, original, ProcessingMode.AI))

        translated = await attempt(
            backend.translation.translate, original, self.target_language, timeout=self.ai_timeout
        )
        return translated.map(lambda text: TranscriptResult(original, text, ProcessingMode.AI))

    def _simulate(self, request: PipelineRequest) -> TranscriptResult:
        simulated = self.simulator.generate(request.student, request.mood, request.language)
        return TranscriptResult(simulated.original, simulated.translated, ProcessingMode.SIMULATION)
