"""
Notifications Package.

============================================================
PURPOSE
============================================================
Turns upstream account and connection events into rate-limited
Discord notifications.

PRINCIPLES:
1. SETTLED - Only report a state that held for the settle delay
2. THROTTLED - At most one notification per cooldown window
3. BEST EFFORT - Delivery failures are logged, never retried

============================================================
COMPONENTS
============================================================
- state: Account state classification
- models: Notification record, colors, categories
- discord: Webhook sink
- policy: Debounce/coalesce/rate-limit state machine

============================================================
"""

from .state import (
    DetailedState,
    SimplifiedState,
    AccountState,
    detailed_state,
    simplified_state,
    describe_state,
)
from .models import (
    NotificationColor,
    NotificationCategory,
    Notification,
)
from .discord import (
    NotificationSink,
    DiscordFormatter,
    DiscordNotifier,
)
from .policy import (
    PolicyConfig,
    NotificationThrottle,
    PendingStateChange,
    NotificationPolicy,
)


__all__ = [
    # State
    "DetailedState",
    "SimplifiedState",
    "AccountState",
    "detailed_state",
    "simplified_state",
    "describe_state",
    # Models
    "NotificationColor",
    "NotificationCategory",
    "Notification",
    # Sink
    "NotificationSink",
    "DiscordFormatter",
    "DiscordNotifier",
    # Policy
    "PolicyConfig",
    "NotificationThrottle",
    "PendingStateChange",
    "NotificationPolicy",
]
