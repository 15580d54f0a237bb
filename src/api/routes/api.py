from fastapi import APIRouter

from .analysis import router as analysis_router
from .changes import router as changes_router
from .health import router as health_router
from .rewrite import router as rewrite_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(analysis_router)
api_router.include_router(rewrite_router)
api_router.include_router(changes_router)
