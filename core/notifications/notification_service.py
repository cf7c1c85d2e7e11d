from typing import Any, Dict, List, Optional

from core.interfaces.repositories import NotificationRepository
from utils.logger import logger


MEETING_INVITATION = "meeting_invitation"
MEETING_CONFIRMED = "meeting_confirmed"
MEETING_CANCELLED = "meeting_cancelled"


class NotificationService:
    """Fire-and-forget notification queueing; failures are logged, never raised"""

    def __init__(self, notification_repo: Optional[NotificationRepository] = None):
        self.notification_repo = notification_repo

    async def notify(
        self,
        user_ids: List[str],
        notification_type: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Queue one notification per user

        Returns:
            Number of notifications queued successfully
        """
        if self.notification_repo is None:
            return 0

        queued = 0
        for user_id in user_ids:
            try:
                await self.notification_repo.queue_notification(user_id, notification_type, message, data)
                queued += 1
            except Exception as e:
                logger.warning(f"Failed to queue {notification_type} notification for {user_id}: {e}")
        return queued
