from fastapi import APIRouter

from src.api.routes.reports import router as reports_router
from src.api.routes.results import router as results_router
from src.api.routes.system import router as system_router

api_router = APIRouter()
api_router.include_router(reports_router, tags=["reports"])
api_router.include_router(results_router, tags=["results"])
api_router.include_router(system_router, tags=["system"])
