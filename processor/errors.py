"""Error types raised by the batch components."""
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Closed set of failure surfaces."""
    AUTHENTICATION = 'authentication'
    REMOTE_RATE_LIMIT = 'remote_rate_limit'
    REQUEST_FAILED = 'request_failed'
    TRANSPORT = 'transport'
    STORE = 'store'
    NOTIFICATION = 'notification'
    CREDENTIAL = 'credential'


class BatchError(Exception):
    """Base class for all errors carrying an ErrorKind."""

    def __init__(self, message: str, kind: ErrorKind):
        super().__init__(message)
        self.message = message
        self.kind = kind


class CatalogError(BatchError):
    """Failure talking to the connpass API."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        status_code: Optional[int] = None
    ):
        super().__init__(message, kind)
        self.status_code = status_code


class StoreError(BatchError):
    """Failure reading or writing the event store."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.STORE)


class NotificationError(BatchError):
    """Failure delivering a notification."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.NOTIFICATION)


class CredentialError(BatchError):
    """Failure retrieving the API credential."""

    def __init__(self, message: str):
        super().__init__(message, ErrorKind.CREDENTIAL)
