"""
API v1 router aggregating all endpoints.
"""
from fastapi import APIRouter

from seolens.api.v1.analyze import router as analyze_router
from seolens.api.v1.issues import router as issues_router

api_router = APIRouter()

api_router.include_router(analyze_router)
api_router.include_router(issues_router)
