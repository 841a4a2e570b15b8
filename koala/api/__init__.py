"""FastAPI application for the koala counseling intake service."""

from __future__ import annotations

import datetime as dt
import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import database_path, resolve_config
from ..errors import KoalaError, UnsupportedUploadType
from ..models import AudioInput, Config, CounselingRecord, ProcessingMode, UsageSnapshot
from ..pipeline import AIBackend, PipelineOrchestrator, PipelineRequest, build_ai_backend
from ..storage import PAGE_SIZE, Storage
from ..usage import UsageTracker

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
AVAILABLE_ROUTES = [
    "GET /",
    "GET /api/health",
    "GET /api/usage",
    "GET /api/records",
    "POST /api/test-audio",
    "POST /api/process-audio",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SpeechCounter(BaseModel):
    used: float
    limit: float
    remaining: float
    unit: str


class TranslateCounter(BaseModel):
    used: int
    limit: int
    remaining: int
    unit: str


class UsagePayload(BaseModel):
    date: dt.date
    speech: SpeechCounter
    translate: TranslateCounter


class ProcessedAudio(CamelModel):
    original_text: str
    translated_text: str
    priority: str
    usage: UsagePayload
    mode: str
    language: str
    timestamp: dt.datetime


class ProcessAudioResponse(BaseModel):
    success: bool = True
    message: str
    data: ProcessedAudio


class RecordPayload(CamelModel):
    id: Optional[int]
    student: str
    mood: str
    language: str
    original_text: str
    translated_text: str
    date: dt.datetime
    priority: str


class Pagination(CamelModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class RecordsResponse(BaseModel):
    success: bool = True
    data: List[RecordPayload] = Field(default_factory=list)
    pagination: Pagination


class UsageResponse(BaseModel):
    success: bool = True
    data: UsagePayload


class HealthResponse(BaseModel):
    status: str = "OK"
    mode: str
    usage: UsagePayload
    uptime: float
    timestamp: dt.datetime


class ServiceInfo(BaseModel):
    message: str
    version: str = VERSION
    status: str = "running"
    mode: str
    timestamp: dt.datetime


@dataclass
class Services:
    usage: UsageTracker
    storage: Storage
    orchestrator: PipelineOrchestrator
    started_at: float


router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _usage_payload(snapshot: UsageSnapshot) -> UsagePayload:
    return UsagePayload.model_validate(snapshot.as_dict())


def _record_to_payload(record: CounselingRecord) -> RecordPayload:
    return RecordPayload(
        id=record.id,
        student=record.student,
        mood=record.mood,
        language=record.language,
        original_text=record.original_text,
        translated_text=record.translated_text,
        date=record.created_at,
        priority=record.priority.value,
    )


async def _read_upload(audio: Optional[UploadFile], language: str) -> Optional[AudioInput]:
    if audio is None:
        return None
    content_type = audio.content_type or ""
    if not content_type.startswith("audio/"):
        raise UnsupportedUploadType(f"Only audio uploads are accepted (got {content_type or 'unknown type'}).")
    content = await audio.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise UnsupportedUploadType("Audio file exceeds the 10MB upload limit.")
    return AudioInput(content=content, mime_type=content_type, language=language)


@router.get("/", response_model=ServiceInfo)
async def welcome(services: Services = Depends(get_services)) -> ServiceInfo:
    return ServiceInfo(
        message="🐨 안녕하세요! 코알라 다문화 상담 서버입니다!",
        mode=services.orchestrator.mode,
        timestamp=_now(),
    )


@router.get("/api/health", response_model=HealthResponse)
async def healthcheck(services: Services = Depends(get_services)) -> HealthResponse:
    return HealthResponse(
        mode=services.orchestrator.mode,
        usage=_usage_payload(services.usage.remaining()),
        uptime=round(time.monotonic() - services.started_at, 3),
        timestamp=_now(),
    )


@router.get("/api/usage", response_model=UsageResponse)
async def usage_report(services: Services = Depends(get_services)) -> UsageResponse:
    return UsageResponse(data=_usage_payload(services.usage.remaining()))


@router.get("/api/records", response_model=RecordsResponse)
async def list_records(
    page: int = Query(1, ge=1),
    services: Services = Depends(get_services),
) -> RecordsResponse:
    records = await run_in_threadpool(services.storage.list_records, page, PAGE_SIZE)
    total = await run_in_threadpool(services.storage.count_records)
    return RecordsResponse(
        data=[_record_to_payload(record) for record in records],
        pagination=Pagination(
            page=page,
            per_page=PAGE_SIZE,
            total=total,
            total_pages=math.ceil(total / PAGE_SIZE),
        ),
    )


@router.post("/api/test-audio")
async def test_audio() -> dict:
    logger.info("Connectivity test request received")
    return {
        "success": True,
        "message": "CORS test succeeded",
        "data": {
            "originalText": "테스트 음성입니다",
            "translatedText": "테스트 음성입니다",
            "language": "korean",
            "timestamp": _now().isoformat(),
        },
    }


@router.post("/api/process-audio", response_model=ProcessAudioResponse)
async def process_audio(
    student: str = Form("익명"),
    mood: str = Form(""),
    language: str = Form("korean"),
    audio: Optional[UploadFile] = File(None),
    services: Services = Depends(get_services),
) -> ProcessAudioResponse:
    logger.info("Audio submission received from %r (%s, %s)", student, language, mood)
    audio_input = await _read_upload(audio, language)
    result = await services.orchestrator.process(
        PipelineRequest(student=student, mood=mood, language=language, audio=audio_input)
    )
    mode_label = "AI" if result.mode is ProcessingMode.AI else "시뮬레이션"
    return ProcessAudioResponse(
        message=f"음성 처리 완료 ({mode_label})",
        data=ProcessedAudio(
            original_text=result.transcript.original_text,
            translated_text=result.transcript.translated_text,
            priority=result.priority.value,
            usage=_usage_payload(result.usage),
            mode=result.mode.value,
            language=result.record.language,
            timestamp=result.record.created_at,
        ),
    )


async def _koala_error_handler(request: Request, exc: KoalaError) -> JSONResponse:
    logger.warning("%s %s failed with %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


async def _not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "success": False,
            "error": f"No route for {request.method} {request.url.path}",
            "availableRoutes": AVAILABLE_ROUTES,
        },
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error", "message": str(exc)},
    )


def create_app(
    config: Optional[Config] = None,
    *,
    storage: Optional[Storage] = None,
    usage: Optional[UsageTracker] = None,
    backend: Optional[AIBackend] = None,
) -> FastAPI:
    """Build the API with its collaborators; anything not passed is created from ``config``."""

    config = config or resolve_config()
    usage = usage or UsageTracker()
    storage = storage or Storage(database_path(config))
    if backend is None:
        backend = build_ai_backend(config, usage)
    orchestrator = PipelineOrchestrator(
        usage,
        storage,
        backend,
        ai_timeout=config.ai_timeout,
        target_language=config.target_language,
    )

    app = FastAPI(
        title="koala API",
        description="Counseling voice intake: transcription, translation and triage.",
        version=VERSION,
    )
    app.state.services = Services(
        usage=usage,
        storage=storage,
        orchestrator=orchestrator,
        started_at=time.monotonic(),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
        allow_credentials=False,
    )
    app.add_exception_handler(KoalaError, _koala_error_handler)
    app.add_exception_handler(status.HTTP_404_NOT_FOUND, _not_found_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
    app.include_router(router)

    logger.info("koala API ready in %s mode", orchestrator.mode)
    return app
