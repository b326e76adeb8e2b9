"""
Application-wide exception hierarchy.

Services raise these types; the app factory registers one handler per type
so every blueprint gets the same HTTP status codes and JSON body shape.

Usage:
    from ase_fidel.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Ase", resource_id=42)
    raise ValidationError("end_time must be after start_time", details={"end_time": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Ase", "Employee").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class TransitionError(Exception):
    """Raised when a status change is not allowed from the current status.

    Maps to HTTP 409.
    """

    def __init__(self, action: str, current: str, reason: str | None = None) -> None:
        self.action = action
        self.current_status = current
        self.reason = reason
        msg = f"Cannot '{action}' ASE in status {current}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AuthenticationError(Exception):
    """Raised for sign-in failures and missing identities.

    The message is user-readable and is returned as-is.
    Maps to ``status_code`` (401 by default, 403 for blocked accounts).
    """

    def __init__(self, message: str, status_code: int = 401) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the caller's role does not grant a feature.

    Maps to HTTP 403.
    """

    def __init__(self, feature: str, role: str | None = None) -> None:
        self.feature = feature
        self.role = role
        super().__init__(f"Role {role!r} is not allowed to use '{feature}'")
