from fastapi import APIRouter

from disperse.api.v1.endpoints import analyze, auth, candidates, chat, data, health

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(data.router)
api_router.include_router(analyze.router)
api_router.include_router(candidates.router)
api_router.include_router(chat.router)
