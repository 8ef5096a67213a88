from fastapi import APIRouter

from src.api.v1.endpoints.auth import router as auth_router
from src.api.v1.endpoints.jobs import router as jobs_router
from src.api.v1.endpoints.media import router as media_router
from src.api.v1.endpoints.sessions import router as sessions_router

router = APIRouter()

router.include_router(auth_router)
router.include_router(sessions_router)
router.include_router(jobs_router)
router.include_router(media_router)
