"""Unit tests for notice context building."""

import pytest

from duty_notifier.domain.models import DutyRecord, Person
from duty_notifier.notifications.payloads import (
    INSTRUCTIONS,
    build_instructions,
    build_notice_context,
)
from tests.helpers import make_app_config


@pytest.fixture
def notice_config():
    return make_app_config().notice


@pytest.fixture
def person():
    return Person(person_key="Q2", name="Vikram Shah", contact_address="q2@x.edu", id_label="EID", id_value="E-1042")


def test_instruction_block_has_seven_items():
    assert len(INSTRUCTIONS) == 7


def test_build_instructions_fills_institution():
    instructions = build_instructions("Example University")

    assert len(instructions) == 7
    assert "examination centers at Example University with their" in instructions[3]
    assert all("{institution}" not in item for item in instructions)


def test_context_contains_salutation_and_signature(person, notice_config):
    context = build_notice_context(person, [], notice_config)

    assert context["name"] == "Vikram Shah"
    assert (context["id_label"], context["id_value"]) == ("EID", "E-1042")
    assert context["person_key"] == "Q2"
    assert context["exam_session"] == "Spring Semester Minor-1 2025-26"
    assert context["contact_email"] == "exams@x.edu"
    assert context["signatory_name"] == "Prof. A. Examiner"
    assert context["institution"] == "Example University, Hyderabad"


def test_subject_follows_mode(person, notice_config):
    bulk = build_notice_context(person, [], notice_config, mode="bulk")
    single = build_notice_context(person, [], notice_config, mode="single")

    assert bulk["subject"] == notice_config.bulk_subject
    assert single["subject"] == notice_config.single_subject
    assert (bulk["mode"], single["mode"]) == ("bulk", "single")


def test_rows_keep_order_and_are_copied(person, notice_config):
    records = [
        DutyRecord(date="2025-10-03", time_range="b"),
        DutyRecord(date="2025-10-01", time_range="a"),
    ]

    context = build_notice_context(person, records, notice_config)
    records.append(DutyRecord(date="2025-10-09", time_range="c"))

    assert [row.date for row in context["rows"]] == ["2025-10-03", "2025-10-01"]


def test_unknown_mode_raises(person, notice_config):
    with pytest.raises(ValueError, match="Unknown notice mode"):
        build_notice_context(person, [], notice_config, mode="digest")
