from fastapi import APIRouter

from goldboard.api.routes import analysis, dashboard, live, pages

api_router = APIRouter()
api_router.include_router(pages.router)
api_router.include_router(dashboard.router)
api_router.include_router(analysis.router)
api_router.include_router(live.router)
