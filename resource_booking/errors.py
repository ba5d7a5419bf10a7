"""Exceptions raised by the booking engine.

All of them are validation failures: synchronous, local and never retried by
the service. The HTTP layer maps them to status codes in ``error_handlers``.
"""


class BookingEngineError(Exception):
    """Base class for booking engine failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidIntervalError(BookingEngineError):
    def __init__(self, message: str = "End time must be after start time") -> None:
        super().__init__(message)


class ConflictDetectedError(BookingEngineError):
    def __init__(self, message: str = "Conflict detected: this slot is already booked") -> None:
        super().__init__(message)


class NotFoundError(BookingEngineError):
    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.identifier = identifier


class LeadTimeError(BookingEngineError):
    def __init__(self, hours: int) -> None:
        super().__init__(f"Bookings for this resource must be made {hours}h in advance")
        self.hours = hours


class ResourceInactiveError(BookingEngineError):
    def __init__(self) -> None:
        super().__init__("Resource is not active")


class InvalidTransitionError(BookingEngineError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot change booking status from '{current}' to '{target}'")
        self.current = current
        self.target = target
