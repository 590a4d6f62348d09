"""
Website model.
"""
from sqlalchemy import Column, DateTime, Integer, String

from seolens.models.base import Base, BaseModel


class Website(Base, BaseModel):
    """A site owned by a user whose pages are audited."""

    __tablename__ = "websites"

    name = Column(String(255), nullable=False)
    url = Column(String(2048), nullable=False)
    seo_score = Column(Integer, nullable=True)
    last_analyzed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Website {self.url}>"
