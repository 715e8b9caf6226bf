from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from goldboard.api.deps import get_app_settings, get_source
from goldboard.core.config import Settings
from goldboard.db.source import TradeSource
from goldboard.schemas.views import AnalysisView
from goldboard.services.filters import FilterValidationError
from goldboard.services.views import build_analysis_view, make_analysis_controller

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@router.get("", response_model=AnalysisView)
async def get_analysis(
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    bins: int | None = Query(default=None, ge=1),
    source: TradeSource = Depends(get_source),
    settings: Settings = Depends(get_app_settings),
) -> AnalysisView:
    try:
        controller = make_analysis_controller(source, settings, start, end, bins)
    except FilterValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await controller.load()
    return build_analysis_view(controller, settings)
