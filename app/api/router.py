from fastapi import APIRouter

from app.api.endpoints import documents, health, memory, search

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
api_router.include_router(search.router, prefix="/search", tags=["search"])
api_router.include_router(memory.router, prefix="/memory", tags=["memory"])
