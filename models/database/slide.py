"""
Slide model - Individual presentation slides
"""

from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from database import Base
from shared.enums import SlideType
from shared.utils import utcnow


class Slide(Base):
    """Individual slide content and metadata"""

    __tablename__ = "slides"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False, default="")
    bullet_points = Column(JSON, default=list)
    slide_type = Column(
        SQLEnum(SlideType, name="slidetype", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SlideType.CONTENT,
    )
    image_prompt = Column(Text, nullable=True)
    image_url = Column(String(1000), nullable=True)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    project = relationship("Project", back_populates="slides")
