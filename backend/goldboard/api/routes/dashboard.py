from __future__ import annotations

from fastapi import APIRouter, Depends

from goldboard.api.deps import get_app_settings, get_source
from goldboard.core.config import Settings
from goldboard.db.source import TradeSource
from goldboard.schemas.views import DashboardView
from goldboard.services.views import build_dashboard_view, make_dashboard_controller

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardView)
async def get_dashboard(
    source: TradeSource = Depends(get_source),
    settings: Settings = Depends(get_app_settings),
) -> DashboardView:
    controller = make_dashboard_controller(source, settings)
    await controller.load()
    return build_dashboard_view(controller, settings)
