import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

from config import AnalysisConfig, LLMSettings
from errors import EmptyInputError
from history import HistoryStore, export_entry
from kafka_stream import start_kafka_consumer
from llm_client import LLMClient
from models import (
    MAX_LOG_CONTENT,
    AnalysisStats,
    AnalyzeRequest,
    BulkDeleteRequest,
    BulkDeleteResult,
    HistoryEntry,
    HistoryUpdate,
    LogSubmission,
    Page,
)
from pipeline import LogAnalysisPipeline, TextGenerator

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Prometheus metrics
ANALYSIS_COUNTER = Counter("logsleuth_analyses_total", "Completed analyses", labelnames=["mode"])
AI_ATTEMPT_COUNTER = Counter("logsleuth_ai_attempts_total", "AI attempts made by completed analyses")
INGEST_COUNTER = Counter("logsleuth_ingest_total", "Submissions accepted for background analysis")
ERROR_COUNTER = Counter("logsleuth_errors_total", "Background processing errors")
LATENCY_HIST = Histogram("logsleuth_analysis_latency_seconds", "Analysis latency per request")
QUEUE_GAUGE = Gauge("logsleuth_queue_depth", "In-memory ingest queue depth")

ALLOWED_UPLOAD_TYPES = {"text/plain", "text/log", "text/x-log", "application/octet-stream"}

router = APIRouter()


def require_user(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return x_user_id


def optional_user(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


def get_store(request: Request) -> HistoryStore:
    return request.app.state.store


async def analyze_and_store(app: FastAPI, owner_id: str, log_content: str, title: Optional[str] = None,
                            tags: Optional[list[str]] = None, is_public: bool = False) -> HistoryEntry:
    start = time.perf_counter()
    try:
        report = await app.state.pipeline.run(log_content)
    finally:
        LATENCY_HIST.observe(time.perf_counter() - start)
    ANALYSIS_COUNTER.labels(mode=report.metadata.mode).inc()
    AI_ATTEMPT_COUNTER.inc(report.metadata.attempts)
    entry = app.state.store.add(owner_id, log_content, report, title=title, tags=tags, is_public=is_public)
    logger.info("Stored analysis %s for %s (mode=%s, risk=%s)", entry.id, owner_id,
                report.metadata.mode, entry.analysis.overall_risk_level.value)
    return entry


# Background task: consumer loop
async def worker_loop(app: FastAPI):
    queue: asyncio.Queue[LogSubmission] = app.state.submission_queue
    while True:
        submission: LogSubmission = await queue.get()
        try:
            await analyze_and_store(app, submission.owner_id, submission.log_content,
                                    title=submission.title, tags=submission.tags,
                                    is_public=submission.is_public)
        except EmptyInputError:
            logger.warning("Skipping empty submission from %s", submission.owner_id)
        except Exception:
            ERROR_COUNTER.inc()
            logger.exception("Background analysis failed for %s", submission.owner_id)
        finally:
            QUEUE_GAUGE.set(queue.qsize())
            queue.task_done()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.submission_queue = asyncio.Queue(maxsize=app.state.config.queue_size)
    worker_task = asyncio.create_task(worker_loop(app))
    try:
        # optional: launch Kafka consumer if configured
        kafka_task = await start_kafka_consumer(app.state.submission_queue)
    except Exception:
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)
        raise
    tasks = [t for t in (kafka_task, worker_task) if t is not None]
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        # let the consumer run its finally block and stop cleanly
        await asyncio.gather(*tasks, return_exceptions=True)


def _readable_entry(store: HistoryStore, entry_id: str, user: Optional[str]) -> HistoryEntry:
    entry = store.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    if entry.owner_id != user and not entry.is_public:
        raise HTTPException(status_code=403, detail="Access denied")
    return entry


def _owned_entry(store: HistoryStore, entry_id: str, user: str) -> HistoryEntry:
    entry = store.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    if entry.owner_id != user:
        raise HTTPException(status_code=403, detail="Access denied")
    return entry


@router.post("/analyze", response_model=HistoryEntry, status_code=201)
async def analyze(body: AnalyzeRequest, request: Request, user: str = Depends(require_user)):
    try:
        return await analyze_and_store(request.app, user, body.log_content, title=body.title,
                                       tags=body.tags, is_public=body.is_public)
    except EmptyInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/analyze/upload", response_model=HistoryEntry, status_code=201)
async def analyze_upload(request: Request, log_file: UploadFile = File(..., alias="logFile"),
                         title: Optional[str] = Form(None), user: str = Depends(require_user)):
    filename = (log_file.filename or "").lower()
    if log_file.content_type not in ALLOWED_UPLOAD_TYPES and not filename.endswith((".log", ".txt")):
        raise HTTPException(status_code=400, detail="Only log and text files are allowed")

    data = await log_file.read()
    if len(data) > MAX_LOG_CONTENT:
        raise HTTPException(status_code=400, detail="Log content cannot exceed 1MB")
    try:
        return await analyze_and_store(request.app, user, data.decode("utf-8", errors="replace"),
                                       title=title or log_file.filename)
    except EmptyInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/ingest", status_code=202)
async def ingest(body: AnalyzeRequest, request: Request, user: str = Depends(require_user)):
    # the owner is always the caller; only the Kafka path trusts ownerId in the message
    submission = LogSubmission(owner_id=user, **body.model_dump())
    queue: asyncio.Queue[LogSubmission] = request.app.state.submission_queue
    try:
        queue.put_nowait(submission)
        INGEST_COUNTER.inc()
        QUEUE_GAUGE.set(queue.qsize())
        return {"status": "queued"}
    except asyncio.QueueFull:
        raise HTTPException(status_code=503, detail="Ingestion queue full")


@router.get("/history", response_model=Page[HistoryEntry])
async def get_history(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                      user: str = Depends(require_user), store: HistoryStore = Depends(get_store)):
    return store.list_for_owner(user, page=page, limit=limit)


@router.delete("/history", response_model=BulkDeleteResult)
async def clear_history(user: str = Depends(require_user), store: HistoryStore = Depends(get_store)):
    return BulkDeleteResult(deleted_count=store.clear(user))


@router.get("/history/public", response_model=Page[HistoryEntry])
async def get_public_history(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                             store: HistoryStore = Depends(get_store)):
    return store.list_public(page=page, limit=limit)


@router.get("/history/search", response_model=Page[HistoryEntry])
async def search_history(q: Optional[str] = None, tags: list[str] = Query([]),
                         risk: list[str] = Query([], alias="riskLevel"),
                         date_from: Optional[datetime] = Query(None, alias="dateFrom"),
                         date_to: Optional[datetime] = Query(None, alias="dateTo"),
                         sort_by: str = Query("createdAt", alias="sortBy"),
                         sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
                         page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                         user: str = Depends(require_user), store: HistoryStore = Depends(get_store)):
    try:
        return store.search(owner_id=user, q=q, tags=tags, risk_levels=risk, date_from=date_from,
                            date_to=date_to, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/history/stats", response_model=AnalysisStats)
async def history_stats(date_from: Optional[datetime] = Query(None, alias="dateFrom"),
                        date_to: Optional[datetime] = Query(None, alias="dateTo"),
                        user: str = Depends(require_user), store: HistoryStore = Depends(get_store)):
    return store.stats(owner_id=user, date_from=date_from, date_to=date_to)


@router.post("/history/bulk-delete", response_model=BulkDeleteResult)
async def bulk_delete(body: BulkDeleteRequest, user: str = Depends(require_user),
                      store: HistoryStore = Depends(get_store)):
    return BulkDeleteResult(deleted_count=store.bulk_delete(user, body.ids))


@router.get("/history/{entry_id}", response_model=HistoryEntry)
async def get_entry(entry_id: str, user: Optional[str] = Depends(optional_user),
                    store: HistoryStore = Depends(get_store)):
    return _readable_entry(store, entry_id, user)


@router.put("/history/{entry_id}", response_model=HistoryEntry)
async def update_entry(entry_id: str, body: HistoryUpdate, user: str = Depends(require_user),
                       store: HistoryStore = Depends(get_store)):
    _owned_entry(store, entry_id, user)
    return store.update(entry_id, title=body.title, tags=body.tags, is_public=body.is_public)


@router.delete("/history/{entry_id}", status_code=204)
async def delete_entry(entry_id: str, user: str = Depends(require_user), store: HistoryStore = Depends(get_store)):
    _owned_entry(store, entry_id, user)
    store.delete(entry_id)
    return Response(status_code=204)


@router.get("/history/{entry_id}/export")
async def export_history_entry(entry_id: str, format: str = "json", user: str = Depends(require_user),
                               store: HistoryStore = Depends(get_store)):
    entry = _readable_entry(store, entry_id, user)
    try:
        content = export_entry(entry, format)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    fmt = format.lower()
    media_type = "application/json" if fmt == "json" else "text/csv"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="analysis-{entry_id}.{fmt}"'},
    )


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz():
    return "ok"


@router.get("/metrics")
def metrics():
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def create_app(config: Optional[AnalysisConfig] = None, generator: Optional[TextGenerator] = None,
               store: Optional[HistoryStore] = None) -> FastAPI:
    """Build the service. Without a generator, one is made from OPENAI_* env vars when a key is set."""
    config = config or AnalysisConfig.from_env()
    if generator is None:
        settings = LLMSettings.from_env()
        if settings.enabled:
            generator = LLMClient(settings, timeout=config.timeout)

    app = FastAPI(title="Log Sleuth", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.pipeline = LogAnalysisPipeline(config, generator=generator)
    app.state.store = store if store is not None else HistoryStore()
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
