from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, String

from .base import Base


class ContentItemORM(Base):
    __tablename__ = "content_items"

    item_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    path = Column(String, nullable=False, unique=True)

    # Arbitrary field values rendered for the item
    fields = Column(JSON, default=dict, nullable=False)

    # Unpublished items are not usable as experiment datasources
    is_published = Column(Boolean, default=True, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
