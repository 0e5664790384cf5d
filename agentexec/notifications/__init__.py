from .protocol import NotificationType, NotificationPriority, AgentNotification
from .service import NotificationService, NotificationSink

__all__ = [
    "NotificationType",
    "NotificationPriority",
    "AgentNotification",
    "NotificationService",
    "NotificationSink",
]
