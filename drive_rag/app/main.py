from __future__ import annotations

"""FastAPI application entrypoint for the Drive-backed RAG service."""

import json
import logging
import uuid
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from drive_rag.app.dependencies import (
    get_embedding_config_report,
    get_index,
    get_ingestion_log,
    get_ingestion_pipeline,
    get_query_pipeline,
)
from drive_rag.app.metrics import (
    metrics_middleware,
    metrics_response,
    record_ingestion,
    record_query,
)
from drive_rag.app.schemas import (
    AskRequest,
    AskResponse,
    EmbeddingHealthResponse,
    SourceModel,
    StatsHealthResponse,
    StatsResponse,
    WebhookResponse,
)
from drive_rag.app.security import verify_channel_token
from drive_rag.app.settings import settings
from drive_rag.ingestion.identity import ChangeNotification
from drive_rag.ingestion.pipeline import IngestionPipeline, IngestionReport
from drive_rag.metadata.store import IngestionLog
from drive_rag.rag.errors import ClientInputError, CollaboratorError
from drive_rag.rag.pipeline import QueryPipeline
from drive_rag.vectorstore.base import ChunkIndex

logger = logging.getLogger(__name__)

app = FastAPI(title="Drive RAG", version="0.1.0")


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.cors_allow_origin,
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _parse_body(raw: bytes) -> Any:
    """Decode a JSON notification body; anything else carries no identity."""
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _report_payload(report: IngestionReport) -> WebhookResponse:
    return WebhookResponse(
        document_id=report.document_id,
        kind=report.kind.value,
        status=report.status,
        stage=report.stage.value,
        failed_stage=report.failed_stage.value if report.failed_stage else None,
        content_available=report.content_available,
        chunk_count=report.chunk_count,
        indexed_count=report.indexed_count,
        removed_count=report.removed_count,
        errors=[asdict(error) for error in report.errors],
        detail=report.detail,
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/stats", response_model=StatsResponse)
async def stats(index: ChunkIndex = Depends(get_index)) -> StatsResponse:
    """Return chunk index stats."""
    return StatsResponse(**index.stats())


@app.get("/stats/health", response_model=StatsHealthResponse)
async def stats_health(index: ChunkIndex = Depends(get_index)) -> StatsHealthResponse:
    return StatsHealthResponse(**index.health())


@app.get("/stats/embedding", response_model=EmbeddingHealthResponse)
async def embedding_health() -> EmbeddingHealthResponse:
    """Return embedding configuration health checks."""
    report = get_embedding_config_report()
    return EmbeddingHealthResponse(**report.__dict__)


@app.options("/ask")
async def ask_preflight() -> Response:
    return Response(status_code=200, headers=_cors_headers())


@app.post("/ask")
async def ask(
    http_request: Request,
    payload: AskRequest | None = None,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
) -> JSONResponse:
    """Answer a question from indexed Drive content."""
    request_id = _request_id(http_request)
    question = payload.question if payload else None
    try:
        result = await pipeline.answer(question)
    except ClientInputError as exc:
        logger.info("ask_rejected", extra={"request_id": request_id, "detail": str(exc)})
        return JSONResponse(
            status_code=400,
            content={"answer": str(exc), "sources": []},
            headers=_cors_headers(),
        )
    except CollaboratorError as exc:
        logger.error(
            "ask_failed",
            extra={
                "request_id": request_id,
                "question": question,
                "stage": exc.stage,
                "detail": str(exc),
            },
        )
        return JSONResponse(
            status_code=500,
            content={"error": str(exc)},
            headers=_cors_headers(),
        )
    record_query(result.provenance)
    body = AskResponse(
        answer=result.answer,
        sources=[SourceModel(**asdict(source)) for source in result.sources],
        provenance=result.provenance,
    )
    return JSONResponse(content=body.model_dump(), headers=_cors_headers())


@app.post(
    "/webhooks/drive",
    response_model=WebhookResponse,
    dependencies=[Depends(verify_channel_token)],
)
async def drive_webhook(
    http_request: Request,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
    ingestion_log: IngestionLog | None = Depends(get_ingestion_log),
):
    """Bring the index in line with one Drive change notification."""
    request_id = _request_id(http_request)
    notification = ChangeNotification.from_http(
        http_request.headers, _parse_body(await http_request.body())
    )
    record_id = ingestion_log.record_start(request_id) if ingestion_log else None
    try:
        report = pipeline.handle(notification)
    except ClientInputError as exc:
        logger.warning("webhook_rejected", extra={"request_id": request_id, "detail": str(exc)})
        if ingestion_log and record_id:
            ingestion_log.record_rejected(record_id, str(exc))
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CollaboratorError as exc:
        logger.error(
            "webhook_failed",
            extra={"request_id": request_id, "stage": exc.stage, "detail": str(exc)},
        )
        if ingestion_log and record_id:
            ingestion_log.record_failure(record_id, str(exc))
        record_ingestion("unknown", "failed")
        return JSONResponse(status_code=502, content={"error": str(exc)})
    if ingestion_log and record_id:
        ingestion_log.record_report(record_id, report)
    record_ingestion(report.kind.value, report.status)
    payload = _report_payload(report)
    if report.status == "failed":
        return JSONResponse(status_code=502, content=payload.model_dump())
    return payload
