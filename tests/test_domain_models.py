"""Unit tests for domain models."""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from duty_notifier.domain.models import (
    DutyAssignment,
    DutyRecord,
    Hall,
    Person,
    PersonRole,
    RecipientBundle,
)


class TestDutyAssignment:
    """Tests for DutyAssignment model."""

    def test_valid_assignment(self):
        assignment = DutyAssignment(
            assignment_id="INV-1",
            duty_date="2025-10-01",
            start_time="2025-10-01T04:00:00Z",
            end_time="2025-10-01T05:30:00Z",
            person_keys=["Q1", "Q2"],
        )

        assert assignment.duty_date == date(2025, 10, 1)
        assert assignment.start_time.tzinfo == timezone.utc
        assert assignment.person_keys == ("Q1", "Q2")
        assert assignment.mail_sent is False
        assert assignment.force_resend is False

    def test_person_keys_are_deduplicated_in_order(self):
        assignment = DutyAssignment(
            assignment_id="INV-1",
            duty_date="2025-10-01",
            person_keys=[" Q2 ", "Q1", "Q2", "", "Q1"],
        )

        assert assignment.person_keys == ("Q2", "Q1")

    def test_none_person_keys(self):
        assignment = DutyAssignment(assignment_id="INV-1", duty_date="2025-10-01", person_keys=None)

        assert assignment.person_keys == ()

    def test_times_converted_to_utc(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        assignment = DutyAssignment(
            assignment_id="INV-1",
            duty_date="2025-10-01",
            start_time=datetime(2025, 10, 1, 9, 30, tzinfo=ist),
            mail_sent_at=datetime(2025, 9, 30, 12, 0),
        )

        assert assignment.start_time == datetime(2025, 10, 1, 4, 0, tzinfo=timezone.utc)
        assert assignment.mail_sent_at.tzinfo == timezone.utc

    def test_requires_identifier(self):
        with pytest.raises(ValidationError):
            DutyAssignment(assignment_id="", duty_date="2025-10-01")


class TestPerson:
    """Tests for Person model."""

    def test_defaults_to_qid_identifier(self):
        person = Person(person_key="Q1", name="Asha Rao", contact_address="q1@x.edu")

        assert person.id_label == "QID"
        assert person.id_value == "Q1"
        assert person.role is PersonRole.OTHER

    def test_blank_contact_is_missing(self):
        person = Person(person_key="Q1", contact_address="   ")

        assert person.contact_address is None
        assert person.has_contact is False

    def test_name_is_stripped(self):
        assert Person(person_key="Q1", name="  Asha  ").name == "Asha"
        assert Person(person_key="Q1", name=None).name == ""

    def test_is_frozen(self):
        person = Person(person_key="Q1", contact_address="q1@x.edu")

        with pytest.raises(ValidationError):
            person.contact_address = "other@x.edu"


class TestPersonRole:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Staff", PersonRole.STAFF),
            ("STUDENT", PersonRole.STUDENT),
            (" staff ", PersonRole.STAFF),
            ("Visitor", PersonRole.OTHER),
            (None, PersonRole.OTHER),
        ],
    )
    def test_from_raw(self, raw, expected):
        assert PersonRole.from_raw(raw) is expected


class TestHall:
    def test_numeric_floor_is_text(self):
        assert Hall(hall_id="H-1", floor=2).floor == "2"
        assert Hall(hall_id="H-1").floor is None


class TestRecipientBundle:
    def test_person_key_and_records(self):
        person = Person(person_key="Q1", contact_address="q1@x.edu")
        record = DutyRecord(date="2025-10-01", time_range="4:00:00 AM – 5:30:00 AM")
        bundle = RecipientBundle(person=person, records=[record])

        assert bundle.person_key == "Q1"
        assert bundle.records[0].venue == ""
        assert bundle.records[0].hall == ""
