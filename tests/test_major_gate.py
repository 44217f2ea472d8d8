from types import SimpleNamespace

import pytest

from app.models.student_progress import StudentProgress
from app.services.errors import MajorAlreadySelected, MajorNotFound, MajorSelectionBlocked
from app.services.major_gate import MAJOR_REQUIRED_REASON, can_access, can_access_semester, select_major
from app.services.unlock_resolver import UnlockResolver


def test_can_access_truth_table():
    gated = SimpleNamespace(requires_major_selection=True)
    open_ = SimpleNamespace(requires_major_selection=False)
    no_major = SimpleNamespace(selected_major_id=None)
    with_major = SimpleNamespace(selected_major_id=3)

    denied = can_access(no_major, gated)
    assert not denied.allowed
    assert denied.requires_major_selection
    assert denied.reason == MAJOR_REQUIRED_REASON

    assert can_access(with_major, gated).allowed
    assert can_access(no_major, open_).allowed
    assert can_access(with_major, open_).has_selected_major


def test_scenario_d_select_major_opens_semester(db, catalog, notifier, seed, reach_semester):
    reach_semester(catalog.student, catalog.s1)
    reach_semester(catalog.student, catalog.s2)
    assert not can_access_semester(db, catalog.student.id, catalog.s2.id).allowed

    resolver = UnlockResolver(db, notifier=notifier)
    student = select_major(db, catalog.student.id, catalog.major_b.id, resolver=resolver)

    assert student.selected_major_id == catalog.major_b.id
    assert student.major_selected_at is not None
    decision = can_access_semester(db, catalog.student.id, catalog.s2.id)
    assert decision.allowed and decision.has_selected_major

    c4 = (
        db.query(StudentProgress)
        .filter(StudentProgress.student_id == catalog.student.id, StudentProgress.course_id == catalog.c4.id)
        .one()
    )
    assert c4.status == "not_started"
    assert [e.target_id for e in notifier.of_type("unlock")] == [catalog.c4.id]


def test_selection_blocked_before_gated_semester(db, catalog, reach_semester):
    reach_semester(catalog.student, catalog.s1)
    with pytest.raises(MajorSelectionBlocked):
        select_major(db, catalog.student.id, catalog.major_a.id)
    db.refresh(catalog.student)
    assert catalog.student.selected_major_id is None


def test_major_is_chosen_once(db, catalog, reach_semester):
    reach_semester(catalog.student, catalog.s2)
    select_major(db, catalog.student.id, catalog.major_a.id)

    with pytest.raises(MajorAlreadySelected):
        select_major(db, catalog.student.id, catalog.major_b.id)

    db.refresh(catalog.student)
    assert catalog.student.selected_major_id == catalog.major_a.id


@pytest.mark.parametrize("which", ["retired", "missing"])
def test_unknown_or_inactive_major(db, catalog, reach_semester, which):
    reach_semester(catalog.student, catalog.s2)
    major_id = catalog.retired.id if which == "retired" else 9999
    with pytest.raises(MajorNotFound):
        select_major(db, catalog.student.id, major_id)


def test_entry_course_already_open_is_left_alone(db, catalog, seed, reach_semester):
    reach_semester(catalog.student, catalog.s2)
    seed(catalog.student, catalog.c3, "in_progress", sessions=2, projects=0)

    resolver = UnlockResolver(db)
    select_major(db, catalog.student.id, catalog.major_a.id, resolver=resolver)

    assert resolver.open_major_track(catalog.student.id, performed_by=catalog.student.id) == []
    row = (
        db.query(StudentProgress)
        .filter(StudentProgress.student_id == catalog.student.id, StudentProgress.course_id == catalog.c3.id)
        .one()
    )
    assert row.status == "in_progress"
