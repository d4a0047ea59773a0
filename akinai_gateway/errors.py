"""Error taxonomy for the gateway and the webhook delivery engine"""

from enum import Enum
from typing import Any, Optional


class GatewayError(Exception):
    """Base class for gateway errors"""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthErrorKind(str, Enum):
    """Reasons a credential could not be resolved"""
    MISSING_HEADER = "missing_header"
    MALFORMED_HEADER = "malformed_header"
    INVALID_KEY = "invalid_key"


class AuthError(GatewayError):
    """Authentication failure, always answered with 401"""

    status_code = 401

    def __init__(self, kind: AuthErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class RateLimitError(GatewayError):
    """Quota exhausted for the current window"""

    status_code = 429

    def __init__(self, result: Any):
        super().__init__("API rate limit exceeded. Please try again later.")
        self.result = result


class ConfigurationError(GatewayError):
    """Server-side configuration is missing or invalid.

    This is a deployment defect, never a client error.
    """

    status_code = 500


class DeliveryError(GatewayError):
    """A single webhook delivery attempt failed"""

    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        self.http_status = http_status


class PersistenceError(GatewayError):
    """A recording backend failed to persist a record"""


class UnknownEventTypeError(ValueError):
    """Event type is not part of the registry"""


class InvalidEventPayloadError(ValueError):
    """Event payload does not match the model registered for its type"""


class SubscriptionNotFoundError(LookupError):
    """Webhook subscription does not exist"""
