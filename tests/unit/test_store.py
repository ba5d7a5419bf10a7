"""Unit tests for the record store's unit-of-work handling."""
import pytest
from sqlalchemy.exc import IntegrityError

from resource_booking.models import User, new_id
from resource_booking.store import BookingStore


class TestCommit:
    def test_failed_commit_leaves_session_usable(self, db_session, member_user):
        store = BookingStore(db_session)
        store.add_user(User(id=new_id(), email=member_user.email))

        with pytest.raises(IntegrityError):
            store.commit()

        assert store.get_user_by_email(member_user.email).id == member_user.id
        assert len(store.list_users()) == 1
