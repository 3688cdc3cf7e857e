"""
Notification Policy.

============================================================
PURPOSE
============================================================
Decides whether and when an upstream event becomes a
user-visible notification.

PRINCIPLES:
- Only a settled, meaningfully different Online/Offline state
  is worth a message
- At most one notification per cooldown window and class
- Re-check live state before emitting (handlers interleave at
  every await)

============================================================
STATE CHANGE ALGORITHM
============================================================
1. Classify the detailed state into Online/Offline
2. First state ever seen for an account is recorded silently
3. Same Online/Offline label: update detailed state, retarget
   any pending notification, stop
4. Label flip: cancel the pending notification for the account;
   the episode keeps its original baseline label, and a flip
   back to the baseline ends the episode silently
5. Account notified within min interval: drop silently
6. Otherwise schedule a deferred check after the settle delay;
   emit only if live state still matches

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Mapping, Optional, Tuple

from core.clock import ClockProtocol, SystemClock
from core.scheduling import ScheduledTask
from .discord import NotificationSink
from .models import Notification, NotificationCategory, NotificationColor
from .state import (
    AccountState,
    DetailedState,
    SimplifiedState,
    describe_state,
    simplified_state,
)


logger = logging.getLogger(__name__)


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class PolicyConfig:
    """Notification policy timings."""

    state_change_delay_seconds: float = 10.0
    """Settle time before a state change is reported."""

    min_notification_interval_seconds: float = 60.0
    """Per-account rate limit."""

    connection_status_cooldown_seconds: float = 120.0
    """Cooldown between connection-status notifications."""

    profile_notification_cooldown_seconds: float = 120.0
    """Cooldown between batched roster change notifications."""

    health_ping_interval_seconds: float = 7200.0
    """Minimum interval between health-ping notifications."""

    status_summary_interval_seconds: float = 7200.0
    """Minimum interval between roster digests."""


# ============================================================
# THROTTLE
# ============================================================

class NotificationThrottle:
    """
    Last-fired timestamps per throttle key.

    Keys are either a global NotificationCategory or an
    (ACCOUNT_STATE, account_id) tuple.
    """

    def __init__(self, clock: ClockProtocol):
        self._clock = clock
        self._last_fired: Dict[Hashable, float] = {}

    def last_fired(self, key: Hashable) -> Optional[float]:
        return self._last_fired.get(key)

    def is_ready(self, key: Hashable, cooldown_seconds: float) -> bool:
        """True if nothing fired for this key within the cooldown."""
        elapsed = self._clock.elapsed_since(self._last_fired.get(key))
        return elapsed is None or elapsed >= cooldown_seconds

    def mark(self, key: Hashable) -> None:
        self._last_fired[key] = self._clock.timestamp()

    @staticmethod
    def account_key(account_id: str) -> Tuple[NotificationCategory, str]:
        return (NotificationCategory.ACCOUNT_STATE, account_id)


# ============================================================
# PENDING STATE CHANGE
# ============================================================

@dataclass
class PendingStateChange:
    """A significant transition waiting for its settle delay."""

    account_id: str
    previous_simplified: SimplifiedState
    new_simplified: SimplifiedState
    new_detailed: DetailedState
    new_code: Any
    scheduled_fire_time: float
    handle: Optional[ScheduledTask] = field(default=None, repr=False)

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()


# ============================================================
# NOTIFICATION POLICY
# ============================================================

class NotificationPolicy:
    """
    Per-account debounce/coalesce/rate-limit state machine.

    Also governs the connection-status, health-ping, roster change
    and roster digest notifications.
    """

    STATE_CHANGE_TITLE = "🔄 Account State Change"

    def __init__(
        self,
        sink: NotificationSink,
        config: Optional[PolicyConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize notification policy.

        Args:
            sink: Where notifications are delivered
            config: Policy timings
            clock: Clock for cooldown decisions
        """
        self._sink = sink
        self._config = config or PolicyConfig()
        self._clock = clock or SystemClock()
        self._throttle = NotificationThrottle(self._clock)

        self._accounts: Dict[str, AccountState] = {}
        self._pending: Dict[str, PendingStateChange] = {}
        self._roster: Dict[str, SimplifiedState] = {}
        self._last_server_ping = None
        self._closed = False

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def config(self) -> PolicyConfig:
        return self._config

    @property
    def throttle(self) -> NotificationThrottle:
        return self._throttle

    @property
    def accounts(self) -> Dict[str, AccountState]:
        """Last observed state per account."""
        return dict(self._accounts)

    @property
    def roster(self) -> Dict[str, SimplifiedState]:
        """Simplified states from the last profile snapshot."""
        return dict(self._roster)

    @property
    def last_server_ping(self):
        return self._last_server_ping

    def pending_change(self, account_id: str) -> Optional[PendingStateChange]:
        return self._pending.get(account_id)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # --------------------------------------------------------
    # ACCOUNT STATE CHANGES
    # --------------------------------------------------------

    async def on_account_state(self, account_id: str, code: Any) -> None:
        """Handle one account state change event."""
        new_state = AccountState.from_code(account_id, code)
        previous = self._accounts.get(account_id)
        self._accounts[account_id] = new_state

        if previous is None:
            logger.info(
                f"First state for {account_id}: {describe_state(code)} "
                f"({new_state.simplified.value}), recorded silently"
            )
            return

        pending = self._pending.get(account_id)

        if new_state.simplified == previous.simplified:
            if pending is not None:
                pending.new_detailed = new_state.detailed
                pending.new_code = code
            logger.debug(f"{account_id}: {describe_state(code)} is not a significant change")
            return

        if pending is not None:
            pending.cancel()
            del self._pending[account_id]
            baseline = pending.previous_simplified
        else:
            baseline = previous.simplified

        if new_state.simplified == baseline:
            logger.info(
                f"{account_id} returned to {baseline.value} before settling, "
                f"no notification"
            )
            return

        account_key = self._throttle.account_key(account_id)
        if not self._throttle.is_ready(account_key, self._config.min_notification_interval_seconds):
            logger.info(f"Skipping notification for {account_id} - too soon since last notification")
            return

        if self._closed:
            return

        change = PendingStateChange(
            account_id=account_id,
            previous_simplified=baseline,
            new_simplified=new_state.simplified,
            new_detailed=new_state.detailed,
            new_code=code,
            scheduled_fire_time=self._clock.timestamp() + self._config.state_change_delay_seconds,
        )
        change.handle = ScheduledTask(
            self._config.state_change_delay_seconds,
            lambda: self._fire_state_change(change),
            name=f"state-change:{account_id}",
        )
        self._pending[account_id] = change

        logger.debug(
            f"Scheduled state change check for {account_id} "
            f"({baseline.value} → {new_state.simplified.value}) "
            f"in {self._config.state_change_delay_seconds}s"
        )

    async def _fire_state_change(self, change: PendingStateChange) -> None:
        """Deferred check: emit only if the transition has settled."""
        if self._pending.get(change.account_id) is change:
            del self._pending[change.account_id]

        current = self._accounts.get(change.account_id)
        if (
            current is None
            or current.detailed != change.new_detailed
            or current.simplified != change.new_simplified
        ):
            logger.debug(f"State for {change.account_id} moved on, notification suppressed")
            return

        account_key = self._throttle.account_key(change.account_id)
        if not self._throttle.is_ready(account_key, self._config.min_notification_interval_seconds):
            logger.info(f"Skipping notification for {change.account_id} - too soon since last notification")
            return

        self._throttle.mark(account_key)

        await self._emit(Notification(
            title=self.STATE_CHANGE_TITLE,
            description=(
                f"**{change.account_id}** state changed to: "
                f"**{describe_state(current.code)}**"
            ),
            color=self._transition_color(change.previous_simplified, change.new_simplified),
            category=NotificationCategory.ACCOUNT_STATE,
        ))

    @staticmethod
    def _transition_color(previous: SimplifiedState, new: SimplifiedState) -> int:
        if previous == SimplifiedState.OFFLINE and new == SimplifiedState.ONLINE:
            return NotificationColor.POSITIVE
        if previous == SimplifiedState.ONLINE and new == SimplifiedState.OFFLINE:
            return NotificationColor.NEGATIVE
        return NotificationColor.NEUTRAL

    # --------------------------------------------------------
    # PROFILE SNAPSHOTS
    # --------------------------------------------------------

    async def on_profile_snapshot(self, roster: Mapping[str, Any]) -> None:
        """
        Reconcile a full roster against the previous one.

        Args:
            roster: Ordered mapping of username to raw state code
        """
        current: Dict[str, SimplifiedState] = {
            username: simplified_state(code) for username, code in roster.items()
        }

        changes: List[Tuple[str, SimplifiedState, SimplifiedState]] = []
        for username, state in current.items():
            previous = self._roster.get(username)
            if previous is not None and previous != state:
                changes.append((username, previous, state))

        self._roster = current

        if changes:
            if self._throttle.is_ready(
                NotificationCategory.PROFILE_CHANGES,
                self._config.profile_notification_cooldown_seconds,
            ):
                self._throttle.mark(NotificationCategory.PROFILE_CHANGES)
                any_offline = any(new == SimplifiedState.OFFLINE for _, _, new in changes)
                await self._emit(Notification(
                    title="🔄 Account Status Changes",
                    description="\n".join(
                        f"**{username}**: {previous.value} → {new.value}"
                        for username, previous, new in changes
                    ),
                    color=NotificationColor.NEGATIVE if any_offline else NotificationColor.POSITIVE,
                    category=NotificationCategory.PROFILE_CHANGES,
                ))
            else:
                logger.info(f"Skipping roster change notification ({len(changes)} change(s)) - cooldown active")

        if self._throttle.is_ready(
            NotificationCategory.STATUS_DIGEST,
            self._config.status_summary_interval_seconds,
        ):
            self._throttle.mark(NotificationCategory.STATUS_DIGEST)
            await self._emit(Notification(
                title="📊 Account Status Summary",
                description="\n".join(
                    f"**{username}**: {state.value}" for username, state in current.items()
                ) or "No accounts",
                color=NotificationColor.NEUTRAL,
                category=NotificationCategory.STATUS_DIGEST,
            ))

    # --------------------------------------------------------
    # HEALTH PINGS
    # --------------------------------------------------------

    async def on_server_heartbeat(self, server_time) -> bool:
        """Record a server heartbeat; emit a health ping at most once per interval."""
        self._last_server_ping = server_time

        if not self._throttle.is_ready(
            NotificationCategory.HEALTH_PING,
            self._config.health_ping_interval_seconds,
        ):
            return False

        self._throttle.mark(NotificationCategory.HEALTH_PING)
        await self._emit(Notification(
            title="📡 Connection Health Check",
            description=(
                f"Last server ping: {self._clock.format_iso(server_time)}\n"
                f"Connection status: Active"
            ),
            color=NotificationColor.NEUTRAL,
            category=NotificationCategory.HEALTH_PING,
        ))
        return True

    # --------------------------------------------------------
    # CONNECTION STATUS
    # --------------------------------------------------------

    async def notify_connection_status(
        self,
        title: str,
        description: str,
        color: int,
    ) -> bool:
        """Emit a connection-status notification unless its cooldown is active."""
        if not self._throttle.is_ready(
            NotificationCategory.CONNECTION_STATUS,
            self._config.connection_status_cooldown_seconds,
        ):
            logger.info(f"Connection notification suppressed by cooldown: {title}")
            return False

        self._throttle.mark(NotificationCategory.CONNECTION_STATUS)
        await self._emit(Notification(
            title=title,
            description=description,
            color=color,
            category=NotificationCategory.CONNECTION_STATUS,
        ))
        return True

    async def notify_connection_failed(self, description: str) -> bool:
        """Terminal reconnect failure. Idempotency is owned by the caller."""
        await self._emit(Notification(
            title="🚨 Connection Failed",
            description=description,
            color=NotificationColor.NEGATIVE,
            category=NotificationCategory.CONNECTION_FAILED,
        ))
        return True

    # --------------------------------------------------------
    # UNTHROTTLED
    # --------------------------------------------------------

    async def announce(
        self,
        title: str,
        description: str,
        color: int = NotificationColor.NEUTRAL,
        category: NotificationCategory = NotificationCategory.ANNOUNCEMENT,
    ) -> bool:
        """Emit an informational notification with no throttle."""
        await self._emit(Notification(
            title=title,
            description=description,
            color=color,
            category=category,
        ))
        return True

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    def shutdown(self) -> None:
        """Cancel every pending notification and refuse new scheduling."""
        self._closed = True
        for change in self._pending.values():
            change.cancel()
        cancelled = len(self._pending)
        self._pending.clear()
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending state notification(s)")

    def status(self) -> Dict[str, Any]:
        """Snapshot for status reporting."""
        return {
            "accounts": {
                account_id: state.simplified.value
                for account_id, state in self._accounts.items()
            },
            "roster": {username: state.value for username, state in self._roster.items()},
            "pending_notifications": sorted(self._pending),
            "last_server_ping": (
                self._clock.format_iso(self._last_server_ping)
                if self._last_server_ping else None
            ),
        }

    async def _emit(self, notification: Notification) -> None:
        logger.info(f"Notification: {notification.title} - {notification.description}")
        await self._sink.send(notification)


__all__ = [
    "PolicyConfig",
    "NotificationThrottle",
    "PendingStateChange",
    "NotificationPolicy",
]
