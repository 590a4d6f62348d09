"""
SEO report model: one persisted analysis result.
"""
from sqlalchemy import Column, Integer, String

from seolens.models.base import Base, BaseModel, JSONType, website_fk


class SeoReport(Base, BaseModel):
    """Result of a single page analysis, owned by a website."""

    __tablename__ = "seo_reports"

    website_id = website_fk()
    url = Column(String(2048), nullable=False)
    score = Column(Integer, nullable=False)
    page_speed_score = Column(Integer, nullable=True)
    issues = Column(JSONType, default=list, nullable=False)
    recommendations = Column(JSONType, default=list, nullable=False)

    # technical_details, content_analysis, target_keywords, flags, timestamp
    details = Column(JSONType, default=dict, nullable=False)

    def __repr__(self) -> str:
        return f"<SeoReport {self.url} score={self.score}>"
