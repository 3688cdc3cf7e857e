"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the account monitor.

- Provides clear exception hierarchy
- Separates fatal configuration errors from transient ones
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
MonitorException (base)
├── ConfigurationError
│   ├── MissingConfigError
│   └── InvalidConfigError
├── TransportError
│   └── HandshakeTimeoutError
├── FrameDecodeError
├── NotificationDeliveryError
├── ChatLogStorageError
└── StateTransitionError

Only ConfigurationError is fatal. Everything else degrades
gracefully and keeps the connection loop alive.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, process cannot continue."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from automatically."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class MonitorException(Exception):
    """
    Base exception for all monitor errors.

    All exceptions carry:
    - severity: for logging level decisions
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(MonitorException):
    """Error in configuration. Fatal at startup."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, key: str, source: str = "environment"):
        super().__init__(
            message=f"Missing required configuration: {key}",
            config_key=key,
            context={"source": source},
        )
        self.key = key


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )
        self.key = key


# ============================================================
# TRANSPORT ERRORS
# ============================================================

class TransportError(MonitorException):
    """Transport-level failure. Always drives a reconnect."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if url:
            context["url"] = url

        super().__init__(message, context=context, **kwargs)


class HandshakeTimeoutError(TransportError):
    """Connection was not established within the handshake timeout."""

    def __init__(self, timeout_ms: int, url: Optional[str] = None):
        super().__init__(
            message=f"Handshake did not complete within {timeout_ms}ms",
            url=url,
            context={"timeout_ms": timeout_ms},
        )


# ============================================================
# INBOUND FRAME ERRORS
# ============================================================

class FrameDecodeError(MonitorException):
    """Inbound frame could not be decoded. The frame is dropped."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        raw: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if raw is not None:
            context["raw"] = str(raw)[:200]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# OUTBOUND / STORAGE ERRORS
# ============================================================

class NotificationDeliveryError(MonitorException):
    """Notification could not be delivered. Never retried."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if status is not None:
            context["status"] = status

        super().__init__(message, context=context, **kwargs)


class ChatLogStorageError(MonitorException):
    """Chat log directory could not be prepared."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if path:
            context["path"] = path

        super().__init__(message, context=context, **kwargs)


class StateTransitionError(MonitorException):
    """Invalid connection state transition."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "MonitorException",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "TransportError",
    "HandshakeTimeoutError",
    "FrameDecodeError",
    "NotificationDeliveryError",
    "ChatLogStorageError",
    "StateTransitionError",
]
