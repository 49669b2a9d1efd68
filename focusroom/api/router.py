from fastapi import APIRouter

from focusroom.api.digest import router as digest_router
from focusroom.api.engagement import router as engagement_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(engagement_router, prefix="/api", tags=["engagement"])
api_router.include_router(digest_router, prefix="/api", tags=["digest"])
