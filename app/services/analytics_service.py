"""
Analytics event recording
"""

import logging
from typing import Dict, Any, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.models.analytics import AnalyticsEvent, AnalyticsEventType
from app.utils.request import get_client_ip

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Append-only analytics log"""

    @staticmethod
    def record_event(
        db: Session,
        event_type: AnalyticsEventType,
        user_id: str,
        template_id: Optional[int] = None,
        event_data: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None
    ) -> Optional[AnalyticsEvent]:
        """Persist an analytics event; failures are logged and never raised"""

        event = AnalyticsEvent(
            user_id=user_id,
            template_id=template_id,
            event_type=event_type.value,
            event_data=event_data or {},
        )

        if request is not None:
            event.ip_address = get_client_ip(request)
            event.user_agent = request.headers.get("user-agent")

        try:
            db.add(event)
            db.commit()
            db.refresh(event)
            return event
        except Exception as e:
            db.rollback()
            logger.error(
                f"Failed to record {event_type.value} event for template {template_id}: {e}"
            )
            return None
