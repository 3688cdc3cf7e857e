"""
Notifications - Models.

============================================================
PURPOSE
============================================================
Data carried from the notification policy to the sink.

- Notification categories (one per throttle class)
- Embed colors
- The notification record itself

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict


# ============================================================
# COLORS
# ============================================================

class NotificationColor(IntEnum):
    """Integer RGB embed colors."""

    NEUTRAL = 3447003
    """Blue."""

    POSITIVE = 3066993
    """Green."""

    NEGATIVE = 15158332
    """Red."""

    WARNING = 16776960
    """Yellow."""


# ============================================================
# CATEGORIES
# ============================================================

class NotificationCategory(Enum):
    """What produced a notification. Each throttled category has its own cooldown."""

    ACCOUNT_STATE = "account_state"
    CONNECTION_STATUS = "connection_status"
    CONNECTION_FAILED = "connection_failed"
    HEALTH_PING = "health_ping"
    PROFILE_CHANGES = "profile_changes"
    STATUS_DIGEST = "status_digest"
    ANNOUNCEMENT = "announcement"
    LIFECYCLE = "lifecycle"


# ============================================================
# NOTIFICATION
# ============================================================

@dataclass
class Notification:
    """A single user-visible message."""

    title: str
    description: str
    color: int = NotificationColor.NEUTRAL
    category: NotificationCategory = NotificationCategory.ANNOUNCEMENT
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging."""
        return {
            "title": self.title,
            "description": self.description,
            "color": int(self.color),
            "category": self.category.value,
            "created_at": self.created_at.isoformat(),
        }


__all__ = [
    "NotificationColor",
    "NotificationCategory",
    "Notification",
]
