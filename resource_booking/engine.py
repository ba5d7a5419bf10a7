"""Booking engine: interval conflicts, booking lifecycle and utilization stats.

Bookings occupy the half-open interval ``[start, end)`` of one resource.
Two bookings of the same resource conflict when their intervals overlap and
neither is cancelled or rejected; touching intervals do not conflict.
"""
from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import (
    ConflictDetectedError,
    InvalidIntervalError,
    InvalidTransitionError,
    LeadTimeError,
    NotFoundError,
    ResourceInactiveError,
)
from .models import Booking, BookingStatus, Resource, RoleEnum, User, new_id, utcnow
from .schemas import ResourceCreate, ResourceStat, ResourceUpdate
from .store import BookingStore

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_CAPACITY_HOURS = 160

# Serializes every read-check-write sequence in the process.
_write_lock = threading.Lock()

# Statuses a booking may be in for process_booking to move it to the key.
PROCESS_TRANSITIONS: Dict[BookingStatus, Tuple[BookingStatus, ...]] = {
    BookingStatus.CONFIRMED: (BookingStatus.PENDING, BookingStatus.PROPOSED),
    BookingStatus.REJECTED: (
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.PROPOSED,
        BookingStatus.CHECKED_IN,
    ),
    BookingStatus.CHECKED_IN: (BookingStatus.CONFIRMED,),
    BookingStatus.COMPLETED: (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN),
    BookingStatus.CANCELLED: tuple(BookingStatus),
}


def to_utc_naive(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC; naive input is assumed to be UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BookingEngine:
    """Owns resource and booking records and enforces the booking rules.

    Every mutating operation runs under a process-wide lock and commits before
    releasing it, so the conflict check and the write that depends on it are
    atomic with respect to other request handlers.
    """

    def __init__(
        self,
        store: BookingStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        monthly_capacity_hours: int = DEFAULT_MONTHLY_CAPACITY_HOURS,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        if monthly_capacity_hours <= 0:
            raise ValueError("monthly_capacity_hours must be positive")
        self.store = store
        self.monthly_capacity_hours = monthly_capacity_hours
        self._clock = clock
        self._lock = lock if lock is not None else _write_lock

    # ----- Helpers -----
    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the write lock with every record reloaded from the database on next access."""
        with self._lock:
            self.store.expire_all()
            yield

    def _now(self) -> datetime:
        return to_utc_naive(self._clock())

    @staticmethod
    def _validate_interval(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
        start, end = to_utc_naive(start), to_utc_naive(end)
        if start >= end:
            raise InvalidIntervalError()
        return start, end

    def _require_resource(self, resource_id: str) -> Resource:
        resource = self.store.get_resource(resource_id)
        if resource is None:
            raise NotFoundError("Resource", resource_id)
        return resource

    def _require_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _ensure_free(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflict = self.store.find_overlapping(resource_id, start, end, exclude_id=exclude_id)
        if conflict is not None:
            logger.info(
                "Conflict on resource %s: [%s, %s) overlaps booking %s",
                resource_id,
                start.isoformat(),
                end.isoformat(),
                conflict.id,
            )
            raise ConflictDetectedError()

    def _save(self, instance: Any) -> None:
        self.store.commit()
        self.store.refresh(instance)

    # ----- Users -----
    def list_users(self) -> List[User]:
        return self.store.list_users()

    def get_user(self, user_id: str) -> User:
        return self._require_user(user_id)

    def get_or_create_user(self, email: str) -> User:
        with self._locked():
            user = self.store.get_user_by_email(email)
            if user is not None:
                return user
            user = User(id=new_id(), email=email, role=RoleEnum.USER, created_at=self._now())
            self.store.add_user(user)
            self._save(user)
            logger.info("Auto-created user %s", email)
            return user

    def update_user_role(self, user_id: str, role: RoleEnum) -> User:
        with self._locked():
            user = self._require_user(user_id)
            user.role = RoleEnum(role)
            self._save(user)
            logger.info("User %s is now %s", user.email, user.role.value)
            return user

    # ----- Resources -----
    def list_resources(self) -> List[Resource]:
        return self.store.list_resources()

    def get_resource(self, resource_id: str) -> Resource:
        return self._require_resource(resource_id)

    @staticmethod
    def _resource_fields(data: ResourceCreate) -> Dict[str, Any]:
        return {
            "name": data.name,
            "type": data.type,
            "description": data.description,
            "min_lead_time_hours": data.min_lead_time_hours,
            "icon": data.icon,
            "color": data.color,
            "specs": dict(data.specs),
            "form_fields": [field.model_dump(exclude_none=True) for field in data.form_fields],
        }

    def add_resource(self, data: ResourceCreate) -> Resource:
        with self._locked():
            resource = Resource(id=new_id(), is_active=True, created_at=self._now(), **self._resource_fields(data))
            self.store.add_resource(resource)
            self._save(resource)
            logger.info("Added resource %s (%s)", resource.id, resource.name)
            return resource

    def update_resource(self, resource_id: str, data: ResourceUpdate) -> Resource:
        with self._locked():
            resource = self._require_resource(resource_id)
            for field, value in self._resource_fields(data).items():
                setattr(resource, field, value)
            resource.is_active = data.is_active
            self._save(resource)
            return resource

    def delete_resource(self, resource_id: str) -> bool:
        """Delete a resource and cancel its open bookings.

        Deleting an unknown id is a no-op that still reports success.
        """
        with self._locked():
            resource = self.store.get_resource(resource_id)
            if resource is None:
                logger.debug("Delete of unknown resource %s ignored", resource_id)
                return True
            open_bookings = self.store.open_bookings_for(resource.id)
            for booking in open_bookings:
                booking.status = BookingStatus.CANCELLED
            self.store.delete_resource(resource)
            self.store.commit()
            logger.info("Deleted resource %s, cancelled %d open bookings", resource_id, len(open_bookings))
            return True

    # ----- Bookings -----
    def list_bookings(
        self,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        return self.store.list_bookings(resource_id=resource_id, user_id=user_id, status=status)

    def get_booking(self, booking_id: str) -> Booking:
        return self._require_booking(booking_id)

    def check_availability(self, resource_id: str, start: datetime, end: datetime) -> bool:
        start, end = self._validate_interval(start, end)
        self._require_resource(resource_id)
        return self.store.find_overlapping(resource_id, start, end) is None

    def create_booking(
        self,
        resource_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        details: Optional[Mapping[str, Any]] = None,
    ) -> Booking:
        start, end = self._validate_interval(start, end)
        with self._locked():
            resource = self._require_resource(resource_id)
            if not resource.is_active:
                raise ResourceInactiveError()
            user = self._require_user(user_id)
            is_admin = user.role == RoleEnum.ADMIN

            now = self._now()
            if not is_admin and start < now + timedelta(hours=resource.min_lead_time_hours):
                raise LeadTimeError(resource.min_lead_time_hours)

            self._ensure_free(resource.id, start, end)

            booking = Booking(
                id=new_id(),
                resource_id=resource.id,
                user_id=user.id,
                start_time=start,
                end_time=end,
                status=BookingStatus.CONFIRMED if is_admin else BookingStatus.PENDING,
                created_at=now,
                details=dict(details or {}),
            )
            self.store.add_booking(booking)
            self._save(booking)
            logger.info(
                "Created booking %s on resource %s for user %s (%s)",
                booking.id,
                resource.id,
                user.id,
                booking.status.value,
            )
            return booking

    def process_booking(
        self,
        booking_id: str,
        status: BookingStatus,
        reason: Optional[str] = None,
    ) -> Booking:
        """Move a booking to ``status`` (approve, reject, check in, complete, cancel).

        Confirming re-runs the conflict check so two overlapping pending
        bookings cannot both be approved.
        """
        target = BookingStatus(status)
        with self._locked():
            booking = self._require_booking(booking_id)
            if booking.status not in PROCESS_TRANSITIONS.get(target, ()):
                raise InvalidTransitionError(booking.status.value, target.value)
            if target == BookingStatus.CONFIRMED:
                self._ensure_free(booking.resource_id, booking.start_time, booking.end_time, exclude_id=booking.id)

            previous = booking.status
            booking.status = target
            if reason:
                booking.rejection_reason = reason
            self._save(booking)
            logger.info("Booking %s: %s -> %s", booking.id, previous.value, target.value)
            return booking

    def reschedule_booking(self, booking_id: str, start: datetime, end: datetime) -> Booking:
        """Propose a new interval; the booking waits in ``proposed`` for the owner to accept."""
        with self._locked():
            booking = self._require_booking(booking_id)
            start, end = self._validate_interval(start, end)
            self._ensure_free(booking.resource_id, start, end, exclude_id=booking.id)

            booking.start_time = start
            booking.end_time = end
            booking.status = BookingStatus.PROPOSED
            self._save(booking)
            logger.info("Booking %s rescheduled to [%s, %s)", booking.id, start.isoformat(), end.isoformat())
            return booking

    def cancel_booking(self, booking_id: str) -> Booking:
        with self._locked():
            booking = self._require_booking(booking_id)
            if booking.status != BookingStatus.CANCELLED:
                booking.status = BookingStatus.CANCELLED
                self._save(booking)
                logger.info("Booking %s cancelled", booking.id)
            return booking

    # ----- Stats -----
    def get_utilization_stats(self) -> List[ResourceStat]:
        """Confirmed hours per resource against the fixed monthly capacity."""
        confirmed = self.store.confirmed_bookings_by_resource()
        stats = []
        for resource in self.store.list_resources():
            bookings = confirmed.get(resource.id, [])
            seconds = sum((b.end_time - b.start_time).total_seconds() for b in bookings)
            total_hours = round_half_up(seconds / 3600)
            rate = min(100, round_half_up(total_hours / self.monthly_capacity_hours * 100))
            stats.append(
                ResourceStat(
                    resource_id=resource.id,
                    resource_name=resource.name,
                    resource_type=resource.type,
                    booking_count=len(bookings),
                    total_hours=total_hours,
                    utilization_rate=rate,
                )
            )
        return stats
