"""Unit tests for schema validation."""
from datetime import datetime

import pytest
from pydantic import ValidationError

from resource_booking.models import BookingStatus
from resource_booking.schemas import (
    BookingCreate,
    BookingProcess,
    BookingRead,
    Envelope,
    FormField,
    ResourceCreate,
    ResourceStat,
    ResourceUpdate,
)


class TestResourceSchemas:
    """Test resource-related schemas."""

    def test_resource_create_from_camel_case(self):
        resource = ResourceCreate.model_validate(
            {
                "name": "Tesla Model 3",
                "type": "Vehicle",
                "minLeadTimeHours": 2,
                "specs": {"Range": "500km"},
                "formFields": [{"id": "destination", "label": "Destination", "required": True}],
            }
        )

        assert resource.min_lead_time_hours == 2
        assert resource.form_fields[0].type == "text"
        assert resource.description == ""

    def test_resource_negative_lead_time(self):
        with pytest.raises(ValidationError):
            ResourceCreate(name="Room", type="Room", min_lead_time_hours=-1)

    def test_resource_empty_name(self):
        with pytest.raises(ValidationError):
            ResourceCreate(name="", type="Room")

    def test_resource_update_defaults_to_active(self):
        assert ResourceUpdate(name="Room", type="Room").is_active is True

    def test_select_field_needs_options(self):
        with pytest.raises(ValidationError):
            FormField(id="purpose", label="Purpose", type="select")

        field = FormField(id="purpose", label="Purpose", type="select", options=["Client Visit"])
        assert field.options == ["Client Visit"]

    def test_unknown_field_type(self):
        with pytest.raises(ValidationError):
            FormField(id="when", label="When", type="date")


class TestBookingSchemas:
    """Test booking-related schemas."""

    def test_booking_create_wire_names(self):
        booking = BookingCreate.model_validate(
            {
                "resourceId": "r1",
                "start": "2030-01-08T09:00:00",
                "end": "2030-01-08T10:00:00",
                "details": {"title": "Sync"},
            }
        )

        assert booking.resource_id == "r1"
        assert booking.user_id is None
        assert booking.start_time == datetime(2030, 1, 8, 9, 0)
        assert booking.end_time == datetime(2030, 1, 8, 10, 0)

    def test_booking_create_missing_end(self):
        with pytest.raises(ValidationError):
            BookingCreate.model_validate({"resourceId": "r1", "start": "2030-01-08T09:00:00"})

    def test_booking_process_status(self):
        process = BookingProcess.model_validate({"status": "rejected", "rejectionReason": "Maintenance"})

        assert process.status == BookingStatus.REJECTED
        assert process.rejection_reason == "Maintenance"

        with pytest.raises(ValidationError):
            BookingProcess.model_validate({"status": "archived"})

    def test_booking_read_serializes_by_alias(self):
        booking = BookingRead(
            id="b1",
            resource_id="r1",
            user_id="u1",
            start_time=datetime(2030, 1, 8, 9, 0),
            end_time=datetime(2030, 1, 8, 10, 0),
            status=BookingStatus.PENDING,
            created_at=datetime(2030, 1, 7, 8, 0),
        )

        dumped = booking.model_dump(by_alias=True)
        assert dumped["resourceId"] == "r1"
        assert dumped["start"] == datetime(2030, 1, 8, 9, 0)
        assert dumped["rejectionReason"] is None


class TestEnvelope:
    def test_envelope_wraps_stats(self):
        stat = ResourceStat(
            resource_id="r1",
            resource_name="Grand Horizon",
            resource_type="Conference Hall",
            booking_count=2,
            total_hours=5,
            utilization_rate=3,
        )
        envelope = Envelope[list](data=[stat])

        assert envelope.success is True
        assert envelope.error is None
        assert stat.model_dump(by_alias=True)["utilizationRate"] == 3
