import logging
from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_messaging
from app.consumers.outbox_processor import BatchResult
from app.core.container import Messaging
from app.jobs.scheduler import JobAlreadyRunning, OUTBOX_PUBLISH_JOB
from app.schemas.messages import BatchResultResponse, CleanupRequest, JobResponse
from app.schemas.response import ListData, SuccessResponse

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.get("/", response_model=SuccessResponse)
async def list_jobs(messaging: Messaging = Depends(get_messaging)):
    """Lists the messaging jobs with their cadence and last run."""
    jobs = [JobResponse(**job).model_dump(mode="json") for job in messaging.scheduler.describe()]
    return SuccessResponse(data=ListData(count=len(jobs), items=jobs).model_dump())


@router.post("/outbox/publish", response_model=SuccessResponse)
async def run_outbox_publish(
    max_batch: Optional[int] = Query(None, ge=1, le=10000),
    messaging: Messaging = Depends(get_messaging),
):
    """Runs one outbox publish batch now."""
    try:
        result = await messaging.scheduler.run_outbox_publish(max_batch)
    except JobAlreadyRunning as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        log.error(f"Manual outbox publish failed: {e}")
        raise HTTPException(status_code=500, detail="Outbox publish run failed.")
    return SuccessResponse(data=BatchResultResponse(**asdict(result)).model_dump())


@router.post("/cleanup", response_model=SuccessResponse)
async def run_cleanup(payload: Optional[CleanupRequest] = None, messaging: Messaging = Depends(get_messaging)):
    """Runs both retention sweeps now. A sweep that was already running reports null."""
    retention_days = payload.retention_days if payload else None
    deleted = await messaging.scheduler.run_cleanup(retention_days)
    return SuccessResponse(data={"deleted": deleted})


@router.post("/{job_id}/trigger", response_model=SuccessResponse)
async def trigger_job(job_id: str, messaging: Messaging = Depends(get_messaging)):
    """Triggers a registered job by id with its default arguments."""
    try:
        result = await messaging.scheduler.trigger(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found.")
    except JobAlreadyRunning as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        log.error(f"Job {job_id} failed: {e}")
        raise HTTPException(status_code=500, detail=f"Job '{job_id}' failed.")

    if job_id == OUTBOX_PUBLISH_JOB and isinstance(result, BatchResult):
        result = asdict(result)
    return SuccessResponse(data={"job_id": job_id, "result": result})
