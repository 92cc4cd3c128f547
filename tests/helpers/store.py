"""Fixture-based store seeding for tests.

Loads people, reference data and assignments from YAML fixtures (or plain
dicts) into whatever database init_database() was last pointed at. Used for
deterministic pipeline and integration tests.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from duty_notifier.domain.models import (
    DutyAssignment,
    Hall,
    Person,
    StaffIdentity,
    StudentIdentity,
    Venue,
)
from duty_notifier.persistence.database import get_session
from duty_notifier.persistence.repositories import (
    AssignmentRepository,
    DirectoryRepository,
    ReferenceRepository,
)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


def load_store_fixture(name_or_path: Any = "sample_store.yaml") -> Dict[str, Any]:
    """Load a store fixture from tests/fixtures (or an explicit path).

    Raises:
        FileNotFoundError: If fixture file doesn't exist
    """
    path = Path(name_or_path)
    if not path.is_absolute() and not path.exists():
        path = FIXTURES_DIR / path
    if not path.exists():
        raise FileNotFoundError(f"Fixture file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def seed_store(data: Dict[str, Any]) -> None:
    """Insert halls, venues, people (with EID/HTNO records) and assignments."""
    with get_session() as session:
        references = ReferenceRepository(session)
        directory = DirectoryRepository(session)
        assignments = AssignmentRepository(session)

        for hall in data.get("halls", []):
            references.upsert_hall(Hall(**hall))
        for venue in data.get("venues", []):
            references.upsert_venue(Venue(**venue))

        for raw in data.get("people", []):
            person = dict(raw)
            eid = person.pop("eid", None)
            htno = person.pop("htno", None)
            directory.upsert_person(Person(**person))
            if eid:
                directory.upsert_staff_identity(StaffIdentity(person_key=person["person_key"], eid=eid))
            if htno:
                directory.upsert_student_identity(
                    StudentIdentity(person_key=person["person_key"], htno=htno)
                )

        for assignment in data.get("assignments", []):
            assignments.upsert(DutyAssignment(**assignment))


def read_assignment(assignment_id: str) -> Optional[DutyAssignment]:
    """Read an assignment back in a fresh session."""
    with get_session() as session:
        return AssignmentRepository(session).get_by_id(assignment_id)
