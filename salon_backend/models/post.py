"""Post model definitions."""

import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, func
from salon_backend.database import Base


class Post(Base):
    """A news update published by staff."""
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    author = Column(String, nullable=False, default='Employee')
    date = Column(Date, nullable=False, default=datetime.date.today)
    media_url = Column(String, nullable=True)
    media_type = Column(String, nullable=True)  # image/video
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
