"""
SQLAlchemy models for SEOLens.
"""
from seolens.models.base import Base, BaseModel
from seolens.models.website import Website
from seolens.models.report import SeoReport
from seolens.models.issue import FixMethod, IssueSeverity, IssueStatus, TrackedSeoIssue
from seolens.models.usage import AiUsage

__all__ = [
    "Base",
    "BaseModel",
    "Website",
    "SeoReport",
    "TrackedSeoIssue",
    "IssueStatus",
    "IssueSeverity",
    "FixMethod",
    "AiUsage",
]
