"""Services module for Note to Self."""

from services.database import get_session_factory, init_db
from services.message_store import SqlMessageStore
from services.notification_sink import SqlNotificationSink

__all__ = [
    "get_session_factory",
    "init_db",
    "SqlMessageStore",
    "SqlNotificationSink",
]
