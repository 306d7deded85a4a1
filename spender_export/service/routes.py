"""FastAPI routes for the reference job service."""

from __future__ import annotations

import math
import time
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from .models import BatchRequest, ExportSession
from .ranking import render_csv

router = APIRouter()


def get_store(request: Request):
    return request.app.state.job_store


def get_source(request: Request):
    return request.app.state.customer_source


def get_settings(request: Request):
    return request.app.state.settings


def get_logger(request: Request):
    return request.app.state.logger


def success(data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"success": True, "data": data or {}}


def failure(message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": {"message": message}},
    )


def denied(request: Request, token: Optional[str]) -> Optional[JSONResponse]:
    if get_store(request).is_valid(token):
        return None
    get_logger(request).warning("job_service_permission_denied", path=request.url.path)
    return failure("Permission denied.", status_code=403)


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": get_settings(request).service_name,
        "timestamp": time.time(),
    }


@router.post("/export/session")
async def create_session(request: Request) -> Dict[str, Any]:
    """Hand out an authorization token together with the pacing interval."""
    settings = get_settings(request)
    token = get_store(request).issue_token()
    return success(
        {
            "token": token,
            "rate_limit_ms": settings.rate_limit_ms,
            "batch_size": settings.batch_size,
        }
    )


@router.post("/export/start")
async def start_export(request: Request, x_export_token: Optional[str] = Header(default=None)):
    """Phase 1: count customers and set up the batch session."""
    response = denied(request, x_export_token)
    if response is not None:
        return response

    store = get_store(request)
    settings = get_settings(request)
    logger = get_logger(request)

    store.clear(x_export_token)
    try:
        total_customers = await run_in_threadpool(get_source(request).count)
    except Exception as exc:
        logger.error("job_service_count_failed", error=str(exc))
        return failure(str(exc))

    if total_customers == 0:
        return failure("No registered users found.")

    total_batches = math.ceil(total_customers / settings.batch_size)
    store.start(
        x_export_token,
        ExportSession(total_customers=total_customers, total_batches=total_batches),
    )
    logger.info(
        "job_service_export_prepared",
        total_customers=total_customers,
        total_batches=total_batches,
    )
    return success(
        {
            "total_batches": total_batches,
            "total_customers": total_customers,
            "rate_limit_ms": settings.rate_limit_ms,
        }
    )


@router.post("/export/batch")
async def process_batch(
    batch_request: BatchRequest,
    request: Request,
    x_export_token: Optional[str] = Header(default=None),
):
    """Phase 2: collect one page of the ranked customer list."""
    response = denied(request, x_export_token)
    if response is not None:
        return response

    store = get_store(request)
    settings = get_settings(request)
    logger = get_logger(request)

    session = store.get_session(x_export_token)
    if session is None:
        return failure("Export session expired. Please start a new export.")

    batch = batch_request.batch
    if batch < 0 or batch >= session.total_batches:
        return failure("Invalid batch number.")

    try:
        rows = await run_in_threadpool(
            get_source(request).fetch_ranked, batch * settings.batch_size, settings.batch_size
        )
    except Exception as exc:
        logger.error("job_service_batch_query_failed", batch=batch, error=str(exc))
        return failure(str(exc))

    try:
        processed = store.store_batch(x_export_token, batch, rows)
    except KeyError:
        return failure("Export session expired. Please start a new export.")

    logger.info("job_service_batch_stored", batch=batch, rows=len(rows), processed=processed)
    return success({"batch": batch, "processed": processed, "total": session.total_customers})


@router.post("/export/cancel")
async def cancel_export(request: Request, x_export_token: Optional[str] = Header(default=None)):
    """Drop any cached export data for the caller."""
    response = denied(request, x_export_token)
    if response is not None:
        return response
    get_store(request).clear(x_export_token)
    get_logger(request).info("job_service_export_cancelled")
    return success()


@router.post("/export/download")
async def download_export(request: Request, x_export_token: Optional[str] = Header(default=None)):
    """Stream the collected rows as a CSV attachment, then forget them."""
    response = denied(request, x_export_token)
    if response is not None:
        return response

    store = get_store(request)
    rows = store.rows(x_export_token)
    if not rows:
        raise HTTPException(
            status_code=404, detail="No export data found. Please start a new export."
        )

    filename = f"top-spenders-{datetime.now():%Y-%m-%d-%H%M%S}.csv"
    content = render_csv(rows)
    store.clear(x_export_token)
    get_logger(request).info("job_service_export_downloaded", rows=len(rows), filename=filename)
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Cache-Control": "no-store",
        },
    )


@router.get("/export/statistics")
async def statistics(request: Request, x_export_token: Optional[str] = Header(default=None)):
    """Store-wide totals shown next to the export controls."""
    response = denied(request, x_export_token)
    if response is not None:
        return response
    try:
        stats = await run_in_threadpool(get_source(request).statistics)
    except Exception as exc:
        return failure(str(exc))
    return success(stats.model_dump(mode="json"))


__all__ = ["router"]
