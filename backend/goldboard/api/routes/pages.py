from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from goldboard.api.deps import get_app_settings, get_source
from goldboard.core.config import Settings
from goldboard.db.source import TradeSource
from goldboard.services.filters import FilterValidationError
from goldboard.services.views import (
    build_analysis_view,
    build_dashboard_view,
    make_analysis_controller,
    make_dashboard_controller,
)

TEMPLATES = Jinja2Templates(directory=str(Path(__file__).resolve().parents[2] / "templates"))

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    source: TradeSource = Depends(get_source),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    controller = make_dashboard_controller(source, settings)
    await controller.load()
    return TEMPLATES.TemplateResponse(
        request,
        "dashboard.html",
        {"app_name": settings.app_name, "view": build_dashboard_view(controller, settings)},
    )


@router.get("/analysis", response_class=HTMLResponse)
async def analysis_page(
    request: Request,
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    bins: str | None = Query(default=None),
    source: TradeSource = Depends(get_source),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse:
    context = {
        "app_name": settings.app_name,
        "start": start or "",
        "end": end or "",
        "error": None,
        "view": None,
        "chart_data": None,
    }
    try:
        controller = make_analysis_controller(source, settings, start, end, bins)
    except FilterValidationError as exc:
        context["error"] = str(exc)
        context["bins"] = settings.default_bins
        context["bin_choices"] = settings.bin_choices
        return TEMPLATES.TemplateResponse(
            request, "analysis.html", context, status_code=status.HTTP_400_BAD_REQUEST
        )

    await controller.load()
    view = build_analysis_view(controller, settings)
    context.update(
        view=view,
        bins=view.filters.bins,
        bin_choices=view.filters.bin_choices,
        chart_data=view.model_dump(mode="json") if view.configured else None,
    )
    return TEMPLATES.TemplateResponse(request, "analysis.html", context)


@router.get("/healthz")
async def healthz(source: TradeSource = Depends(get_source)) -> dict:
    return {"status": "ok", "configured": source.configured}
