"""
AI usage accounting.
"""
from sqlalchemy import Column, Float, Integer, String, Uuid

from seolens.models.base import Base, BaseModel


class AiUsage(Base, BaseModel):
    """Tokens spent on one content-analysis call."""

    __tablename__ = "ai_usage"

    website_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    provider = Column(String(50), nullable=False)
    model = Column(String(100), nullable=True)
    operation = Column(String(50), nullable=False, default="seo_analysis")
    tokens_used = Column(Integer, nullable=False, default=0)
    cost_usd = Column(Float, nullable=False, default=0.0)
