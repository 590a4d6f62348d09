"""
FastAPI dependencies.
"""
from fastapi import Request

from seolens.services.seo_service import SEOAnalysisService


def get_seo_service(request: Request) -> SEOAnalysisService:
    """The analysis service built at application startup."""
    return request.app.state.seo_service
