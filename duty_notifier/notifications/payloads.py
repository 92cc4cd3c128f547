"""Payload resolution for notification templates.

This module builds the template context for one duty notice from the
recipient, their duty rows and the notice settings.
"""

from typing import Dict, List, Sequence

from duty_notifier.config.models import NoticeConfig
from duty_notifier.domain.models import DutyRecord, Person

NOTICE_MODES = ("bulk", "single")

INSTRUCTIONS = (
    "All invigilators are expected to report to the allotted exam room at least 20 minutes "
    "before start of the exam for smooth operation of the QP collection/distribution.",
    "Request all faculty/Non-faculty colleagues to please observe the “NO CELL PHONE/LAPTOP” "
    "usage during the duty period.",
    "The question papers will be distributed exactly at 10:00 AM. Please ensure that all students "
    "are expected to be seated in their designated places by 9:50 AM – however, we estimate "
    "that few students will enter post this time – and hence NO students will be allowed to "
    "enter the exam room after 10:00 AM under any circumstances.",
    "The students are required to report to the examination centers at {institution} with their "
    "identity card (ID) at 9.30 AM onward. In the event of a lost ID card or if a student is not "
    "carrying their ID card, they will be liable for a penalty of Rs. 5000/-, which can only be "
    "paid through the QR code (using PhonePe, G Pay, Paytm, etc.) available at the check-in desk "
    "for obtaining a new or temporary ID card.",
    "Cell phones, smartwatches, notes, papers, and bags are strictly prohibited in the examination "
    "hall. Students need to bring their own pens, pencils, scientific (non-programmable) "
    "calculator, ruler, and erasers; borrowing from other students will not be allowed. If any "
    "student is found carrying any banned item during the examination, their exam paper will be "
    "immediately confiscated and awarded ‘ZERO MARK’. There will be random physical "
    "frisking in each exam room.",
    "Students will be permitted to leave the exam room only after completing the first one hour.",
    "No wash room break for Minors and supplementary exams!",
)


def build_instructions(institution: str) -> List[str]:
    """Return the fixed instruction block with the institution filled in."""
    return [instruction.format(institution=institution) for instruction in INSTRUCTIONS]


def build_notice_context(
    person: Person,
    records: Sequence[DutyRecord],
    notice_config: NoticeConfig,
    mode: str = "bulk",
) -> Dict:
    """Build the template context for one duty notice.

    Args:
        person: Resolved recipient; its id_label/id_value feed the salutation
        records: Duty rows in the order they should appear
        notice_config: Exam session, subjects, contact and signature settings
        mode: "bulk" for the batch run, "single" for an on-demand request

    Returns:
        Dictionary with all required template context keys:
        - subject: Subject line for the mode
        - mode: The notice mode
        - person_key, name, id_label, id_value: Salutation
        - exam_session: Session title shown in the intro sentence
        - rows: DutyRecord objects
        - instructions: The fixed seven-item instruction block
        - contact_email: Address for queries
        - signatory_name, signatory_title, institution: Signature block

    Raises:
        ValueError: If mode is not "bulk" or "single"
    """
    if mode not in NOTICE_MODES:
        raise ValueError(f"Unknown notice mode: '{mode}'")

    subject = notice_config.single_subject if mode == "single" else notice_config.bulk_subject

    return {
        "subject": subject,
        "mode": mode,
        "person_key": person.person_key,
        "name": person.name,
        "id_label": person.id_label,
        "id_value": person.id_value,
        "exam_session": notice_config.exam_session,
        "rows": list(records),
        "instructions": build_instructions(notice_config.institution),
        "contact_email": notice_config.contact_email,
        "signatory_name": notice_config.signatory_name,
        "signatory_title": notice_config.signatory_title,
        "institution": notice_config.institution,
    }
