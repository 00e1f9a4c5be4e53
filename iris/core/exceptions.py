"""
Service-layer exception hierarchy.

Services raise these; blueprints register a single set of handlers against
them and get consistent HTTP status codes everywhere.

Usage:
    from iris.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Scientist", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "Scientist").
        resource_id: The PK that was looked up. Included in logs and message.
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
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint) — this
    exception signals that the data was well-formed but violated a business
    rule (e.g. end date before start date, non-positive renewal period).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class TransitionError(Exception):
    """Raised when a workflow action is not allowed from the current status.

    Maps to HTTP 409 with code ERR_CONFLICT_STATE.
    """

    def __init__(self, irb_number: str, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' application {irb_number} (workflow_status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.irb_number = irb_number
        self.action = action
        self.current_status = current
        self.reason = reason
