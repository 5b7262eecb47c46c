"""
Main API router that aggregates all endpoint modules
"""

from fastapi import APIRouter
from .sources import router as sources_router
from .files import router as files_router
from .tokens import router as tokens_router

api_router = APIRouter()

# Include all route modules
api_router.include_router(sources_router, tags=["Sources"])
api_router.include_router(files_router, tags=["Files"])
api_router.include_router(tokens_router, tags=["Tokens"])
