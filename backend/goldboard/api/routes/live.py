from __future__ import annotations

import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from goldboard.api.deps import get_app_settings, get_source
from goldboard.core.config import Settings
from goldboard.db.source import TradeSource
from goldboard.services.filters import FilterValidationError, parse_range, validate_bins
from goldboard.services.live_sync import LiveSyncController
from goldboard.services.views import (
    build_analysis_view,
    build_dashboard_view,
    make_analysis_controller,
    make_dashboard_controller,
)

router = APIRouter(prefix="/ws", tags=["live"])

logger = logging.getLogger(__name__)


def _view_sender(websocket: WebSocket, settings: Settings, build: Callable[[LiveSyncController, Settings], Any]):
    async def send(controller: LiveSyncController) -> None:
        view = build(controller, settings)
        await websocket.send_json({"type": "update", "data": view.model_dump(mode="json")})

    return send


async def _send_error(websocket: WebSocket, detail: str) -> None:
    await websocket.send_json({"type": "error", "detail": detail})


async def _receive_message(websocket: WebSocket) -> dict[str, Any] | None:
    text = await websocket.receive_text()
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        await _send_error(websocket, "Messages must be JSON objects")
        return None
    if not isinstance(message, dict):
        await _send_error(websocket, "Messages must be JSON objects")
        return None
    return message


@router.websocket("/dashboard")
async def dashboard_feed(
    websocket: WebSocket,
    source: TradeSource = Depends(get_source),
    settings: Settings = Depends(get_app_settings),
) -> None:
    await websocket.accept()
    controller = make_dashboard_controller(
        source, settings, on_update=_view_sender(websocket, settings, build_dashboard_view)
    )
    try:
        await controller.start()
        while True:
            message = await _receive_message(websocket)
            if message is None:
                continue
            if message.get("action") == "refresh":
                await controller.load()
            else:
                await _send_error(websocket, f"Unknown action {message.get('action')!r}")
    except WebSocketDisconnect:
        logger.debug("Dashboard client disconnected")
    finally:
        await controller.stop()


@router.websocket("/analysis")
async def analysis_feed(
    websocket: WebSocket,
    source: TradeSource = Depends(get_source),
    settings: Settings = Depends(get_app_settings),
) -> None:
    await websocket.accept()
    params = websocket.query_params
    try:
        controller = make_analysis_controller(
            source,
            settings,
            params.get("start"),
            params.get("end"),
            params.get("bins"),
            on_update=_view_sender(websocket, settings, build_analysis_view),
        )
    except FilterValidationError as exc:
        await _send_error(websocket, str(exc))
        await websocket.close(code=1008)
        return

    try:
        await controller.start()
        while True:
            message = await _receive_message(websocket)
            if message is None:
                continue
            action = message.get("action")
            try:
                if action == "refresh":
                    await controller.refresh()
                elif action == "set_bins":
                    await controller.set_bins(
                        validate_bins(message.get("bins"), settings.bin_choices, settings.default_bins)
                    )
                elif action == "set_range":
                    start, end = parse_range(message.get("start"), message.get("end"), settings.display_timezone)
                    await controller.set_range(start, end)
                else:
                    await _send_error(websocket, f"Unknown action {action!r}")
            except FilterValidationError as exc:
                await _send_error(websocket, str(exc))
    except WebSocketDisconnect:
        logger.debug("Analysis client disconnected")
    finally:
        await controller.stop()
