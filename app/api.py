"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    CropProfileOut,
    CurrentSnapshotResponse,
    DashboardStatusResponse,
    HistoryResponse,
    OptionOut,
    ThresholdConfig,
    ThresholdValidationError,
    ValidationErrorResponse,
)
from services.crop_profiles import CROP_PROFILES
from services.dashboard import DashboardService, build_default_dashboard
from services.selector import Selection

router = APIRouter()


def get_dashboard() -> DashboardService:
    return build_default_dashboard()


@router.get(
    "/dashboard/status",
    response_model=DashboardStatusResponse,
    summary="Load state of the reading history.",
)
async def dashboard_status(
    dashboard: DashboardService = Depends(get_dashboard),
) -> DashboardStatusResponse:
    return dashboard.status_report()


@router.post(
    "/dashboard/reload",
    response_model=DashboardStatusResponse,
    summary="Re-fetch and re-aggregate the full history (manual retry).",
)
async def reload_dashboard(
    dashboard: DashboardService = Depends(get_dashboard),
) -> DashboardStatusResponse:
    await dashboard.load()
    return dashboard.status_report()


@router.get(
    "/dashboard/current",
    response_model=CurrentSnapshotResponse,
    summary="Latest reading, weather and irrigation decision.",
)
async def current_snapshot(
    dashboard: DashboardService = Depends(get_dashboard),
) -> CurrentSnapshotResponse:
    snapshot = dashboard.current()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=dashboard.error or "No sensor readings available yet.",
        )
    return CurrentSnapshotResponse.model_validate(snapshot)


@router.get(
    "/history/months",
    response_model=List[OptionOut],
    summary="Months with readings, oldest first.",
)
async def history_months(
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[OptionOut]:
    return [OptionOut.model_validate(option) for option in dashboard.history.months]


@router.get(
    "/history",
    response_model=HistoryResponse,
    summary="Readings and averages for a month, week and day selection.",
)
async def history(
    month: Optional[str] = Query(None, description='Month key "{year}-{month}", month 0-based.'),
    week: Optional[str] = Query(None, description='Week key "{year}-{month}-Week{n}".'),
    day: Optional[str] = Query(None, description='Day "YYYY-MM-DD" or "current".'),
    dashboard: DashboardService = Depends(get_dashboard),
) -> HistoryResponse:
    view = dashboard.history_view(
        Selection(month_key=month or "", week_key=week or "", day_key=day or "")
    )
    return HistoryResponse.model_validate(view)


@router.get(
    "/settings",
    response_model=ThresholdConfig,
    summary="Current threshold configuration.",
)
async def read_settings(
    dashboard: DashboardService = Depends(get_dashboard),
) -> ThresholdConfig:
    return dashboard.get_config()


@router.put(
    "/settings",
    response_model=ThresholdConfig,
    responses={422: {"model": ValidationErrorResponse}},
    summary="Validate and save the threshold configuration.",
)
async def write_settings(
    config: ThresholdConfig,
    dashboard: DashboardService = Depends(get_dashboard),
) -> ThresholdConfig:
    try:
        return dashboard.update_config(config)
    except ThresholdValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors,
        ) from exc


@router.get(
    "/crop-profiles",
    response_model=List[CropProfileOut],
    summary="Predefined crop profiles.",
)
async def crop_profiles() -> List[CropProfileOut]:
    return [CropProfileOut.model_validate(profile) for profile in CROP_PROFILES]


@router.post(
    "/settings/crop-profile/{crop_id}",
    response_model=ThresholdConfig,
    summary="Replace the configuration with a crop profile.",
)
async def apply_crop_profile(
    crop_id: str,
    dashboard: DashboardService = Depends(get_dashboard),
) -> ThresholdConfig:
    try:
        return dashboard.apply_crop_profile(crop_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
