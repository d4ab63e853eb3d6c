"""Operational endpoints for scheduler jobs."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from dayplanner.api.schemas.jobs import JobRunRequest, JobRunResponse
from dayplanner.core.config import settings
from dayplanner.db.deps import get_db
from dayplanner.observability.metrics import log_metric
from dayplanner.observability.tracing import trace
from dayplanner.services.job_runner import next_schedule_date, run_daily_schedule_for_all_users

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "daily_time": f"{settings.daily_job_hour:02d}:{settings.daily_job_minute:02d}",
                "target": "next_day",
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
) -> JobRunResponse:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    day = payload.date or next_schedule_date()
    metadata = {"job": payload.job, "date": day, "request_id": request_id}
    start = perf_counter()
    with trace("jobs.run_now", metadata=metadata, request_id=request_id):
        result = run_daily_schedule_for_all_users(
            db,
            day=day,
            user_ids=[payload.user_id] if payload.user_id else None,
        )

    latency_ms = (perf_counter() - start) * 1000
    log_metric("jobs.run_now.success", 1, metadata={"job": payload.job})
    log_metric("jobs.run_now.latency_ms", latency_ms, metadata={"job": payload.job})

    return JobRunResponse(
        job=payload.job,
        date=day,
        users_processed=result.users_processed,
        schedules_written=result.schedules_written,
        fallback_used=result.fallback_used,
        failed_user_ids=result.failed_user_ids,
        request_id=request_id or "",
    )
