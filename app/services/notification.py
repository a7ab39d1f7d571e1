from typing import Optional

from sqlalchemy.orm import Session
from app.models.notification import Notification


class NotificationService:
    @staticmethod
    def queue_notification(
        db: Session,
        user_id: Optional[int],
        event: str,
        title: str,
        message: str,
        type: str = "info",
        appraisal_id: Optional[int] = None
    ) -> Optional[Notification]:
        """
        Adds a notification to the caller's transaction without committing.
        Recipients that cannot be resolved are skipped.
        """
        if user_id is None:
            return None
        notification = Notification(
            user_id=user_id,
            appraisal_id=appraisal_id,
            event=event,
            title=title,
            message=message,
            type=type
        )
        db.add(notification)
        return notification
