from typing import Any, Mapping, Optional


class ServiceValidationError(Exception):
    """Raised when input data is invalid or a precondition for a service call is not met.

    Attributes:
        message: human-readable message
        details: optional mapping with extra context (field errors, validation info)
        code: optional machine-readable error code
        http_status: suggested HTTP status code for handlers (400)
    """

    http_status = 400

    def __init__(self, message: str = "Invalid input", details: Optional[Mapping[str, Any]] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"message": self.message}
        if self.code:
            payload["code"] = self.code
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return self.message


class InvalidSyncCodeError(ServiceValidationError):
    """Raised when a pairing code is unknown, expired or already redeemed."""

    def __init__(self, message: str = "Invalid or expired sync code", details: Optional[Mapping[str, Any]] = None):
        super().__init__(message, details=details, code="INVALID_SYNC_CODE")


class NotFoundError(Exception):
    """Raised when a requested resource was not found.

    Attributes are similar to ServiceValidationError. http_status is 404.
    """

    http_status = 404

    def __init__(self, message: str = "Not found", details: Optional[Mapping[str, Any]] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"message": self.message}
        if self.code:
            payload["code"] = self.code
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return self.message


class StoreError(Exception):
    """Raised on the client when the meal store cannot serve a request.

    Covers transport failures, non-success statuses and responses that are not
    the expected JSON. status_code is None when no response arrived.
    """

    def __init__(self, message: str = "Meal store unavailable", status_code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        return self.message


class SyncError(Exception):
    """Raised on the client when a sync operation fails. Nothing local is changed."""

    def __init__(self, message: str = "Sync failed"):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message
