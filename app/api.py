"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from app.schemas import IngestResponse, Reading, UserProfile
from datastore.repository import VitalsRepository, build_default_repository
from services.pipeline import IngestPipeline, build_default_pipeline

router = APIRouter()


def get_pipeline() -> IngestPipeline:
    return build_default_pipeline()


def get_repository() -> VitalsRepository:
    return build_default_repository()


@router.post(
    "/api/readings",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=IngestResponse,
    summary="Submit a device reading for storage and emergency evaluation.",
)
async def submit_reading(
    payload: Dict[str, Any] = Body(..., description="Reading posted by a wearable device."),
    pipeline: IngestPipeline = Depends(get_pipeline),
) -> IngestResponse:
    # ReadingValidationError and PersistenceError are mapped by the app's exception handlers.
    result = await pipeline.submit(payload)
    return IngestResponse(
        accepted=result.accepted,
        emergency=result.emergency,
        reading_id=result.reading.reading_id,
    )


@router.get(
    "/api/readings/{device_id}/latest",
    response_model=Reading,
    summary="Fetch the most recent reading for a device.",
)
async def latest_reading(
    device_id: str,
    repository: VitalsRepository = Depends(get_repository),
) -> Reading:
    reading = await run_in_threadpool(repository.latest_reading, device_id)
    if reading is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No readings found for this device",
        )
    return reading


@router.get(
    "/api/readings/{device_id}/history",
    response_model=List[Reading],
    summary="List a device's readings from the last ``hours`` hours, newest first.",
)
async def reading_history(
    device_id: str,
    hours: float = Query(24, gt=0, le=24 * 365),
    repository: VitalsRepository = Depends(get_repository),
) -> List[Reading]:
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    return await run_in_threadpool(repository.reading_history, device_id, since)


@router.put(
    "/api/users/{device_id}",
    response_model=UserProfile,
    summary="Create or replace the profile and emergency contacts for a device.",
)
async def upsert_profile(
    device_id: str,
    profile: UserProfile,
    repository: VitalsRepository = Depends(get_repository),
) -> UserProfile:
    if profile.device_id != device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="deviceId in body does not match the URL.",
        )
    return await run_in_threadpool(repository.save_profile, profile)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
