"""Record store for users, resources and bookings backed by a SQLAlchemy session."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import INACTIVE_STATUSES, TERMINAL_STATUSES, Booking, BookingStatus, Resource, User


class BookingStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ----- Users -----
    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at).all()

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def add_user(self, user: User) -> User:
        self.db.add(user)
        return user

    # ----- Resources -----
    def list_resources(self) -> List[Resource]:
        return self.db.query(Resource).order_by(Resource.created_at).all()

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        return self.db.get(Resource, resource_id)

    def add_resource(self, resource: Resource) -> Resource:
        self.db.add(resource)
        return resource

    def delete_resource(self, resource: Resource) -> None:
        self.db.delete(resource)

    # ----- Bookings -----
    def list_bookings(
        self,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        query = self.db.query(Booking)
        if resource_id is not None:
            query = query.filter(Booking.resource_id == resource_id)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at).all()

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.db.get(Booking, booking_id)

    def add_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        return booking

    def open_bookings_for(self, resource_id: str) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.resource_id == resource_id, Booking.status.notin_(TERMINAL_STATUSES))
            .all()
        )

    def find_overlapping(
        self,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> Optional[Booking]:
        """Return an active booking of the resource overlapping ``[start, end)``, if any."""
        query = self.db.query(Booking).filter(
            Booking.resource_id == resource_id,
            Booking.status.notin_(INACTIVE_STATUSES),
            Booking.start_time < end,
            Booking.end_time > start,
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        return query.order_by(Booking.start_time).first()

    def confirmed_bookings_by_resource(self) -> dict[str, List[Booking]]:
        grouped: dict[str, List[Booking]] = {}
        for booking in self.db.query(Booking).filter(Booking.status == BookingStatus.CONFIRMED):
            grouped.setdefault(booking.resource_id, []).append(booking)
        return grouped

    # ----- Unit of work -----
    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def expire_all(self) -> None:
        self.db.expire_all()

    def refresh(self, instance: object) -> None:
        self.db.refresh(instance)
