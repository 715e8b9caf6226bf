from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from goldboard.api.routes import api_router
from goldboard.core.config import get_settings
from goldboard.core.logger import configure_logging
from goldboard.db.source import create_trade_source

settings = get_settings()

app = FastAPI(title=settings.app_name, debug=settings.debug)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    if getattr(app.state, "trade_source", None) is None:
        app.state.trade_source = await create_trade_source(settings)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    source = getattr(app.state, "trade_source", None)
    if source is not None:
        await source.close()


app.include_router(api_router)
