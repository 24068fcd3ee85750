from fastapi import APIRouter

from ideavault.api.routes import discovery, health

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(discovery.router, prefix="/discovery", tags=["discovery"])
