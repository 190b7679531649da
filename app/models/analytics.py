"""
Append-only analytics event log
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func

from database import Base


class AnalyticsEventType(str, enum.Enum):
    """Event types written by the fulfillment pipeline"""
    VIEW = "view"
    PURCHASE = "purchase"
    DOWNLOAD = "download"


class AnalyticsEvent(Base):
    """Analytics event model"""
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    template_id = Column(Integer, nullable=True, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    event_data = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AnalyticsEvent(id={self.id}, type='{self.event_type}', template_id={self.template_id})>"
