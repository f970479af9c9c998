from fastapi import APIRouter

from .sessions import router as sessions_router
from .users import router as users_router

api_router = APIRouter()
api_router.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
api_router.include_router(users_router, prefix="/users", tags=["users"])
