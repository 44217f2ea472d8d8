import pytest

from app.models.tracking_log import TrackingLog
from app.schemas.progress import ProgressPatch
from app.services.errors import (
    AlreadyApproved,
    ApproverRequired,
    CountDecreaseNotAllowed,
    DuplicateProjectLink,
    InvalidProjectUrl,
    InvalidStatusTransition,
    NotPendingApproval,
    ProgressNotFound,
    RejectionReasonRequired,
    SessionsExceedRequired,
)

LINK = "https://github.com/student/project"


def _actions(db, student_id, course_id):
    rows = (
        db.query(TrackingLog)
        .filter(TrackingLog.student_id == student_id, TrackingLog.course_id == course_id)
        .order_by(TrackingLog.id.asc())
        .all()
    )
    return [r.action for r in rows]


def _pending(ledger, cat, course=None):
    course = course or cat.c1
    ledger.enroll_student(cat.student.id)
    return ledger.update_progress(
        cat.student.id, course.id,
        ProgressPatch(completed_sessions=course.required_sessions, projects_submitted=course.required_projects,
                      project_links=[LINK]),
        performed_by=cat.admin.id,
    )


def test_enroll_unlocks_first_course_only(ledger, catalog):
    rows = ledger.enroll_student(catalog.student.id)
    by_course = {r.course_id: r.status for r in rows}
    assert by_course == {catalog.c1.id: "not_started", catalog.c2.id: "locked"}
    assert catalog.student.current_semester_id == catalog.s1.id


def test_enroll_twice_is_harmless(ledger, catalog):
    ledger.enroll_student(catalog.student.id)
    rows = ledger.enroll_student(catalog.student.id)
    assert len(rows) == 2


def test_lazy_progress_in_unreached_semester_is_locked(ledger, catalog):
    progress = ledger.get_or_create_progress(catalog.student.id, catalog.c3.id)
    assert progress.status == "locked"


def test_scenario_a_pending_then_approve_unlocks_next(ledger, catalog, notifier):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id

    p = ledger.update_progress(sid, cid, ProgressPatch(completed_sessions=5), performed_by=catalog.admin.id)
    assert p.status == "in_progress"

    p = ledger.update_progress(
        sid, cid, ProgressPatch(completed_sessions=10, projects_submitted=1), performed_by=catalog.admin.id
    )
    assert p.status == "pending_approval"

    result = ledger.approve(sid, cid, approved_by=catalog.admin.id)
    assert result.progress.status == "completed"
    assert result.progress.approved_by == catalog.admin.id
    assert result.progress.approved_at is not None
    assert result.progress.completed_at is not None
    assert result.unlock.unlocked_course_id == catalog.c2.id
    assert ledger.get_progress(sid, catalog.c2.id).status == "not_started"

    assert [e.target_id for e in notifier.of_type("approve")] == [cid]
    assert [e.target_id for e in notifier.of_type("unlock")] == [catalog.c2.id]


def test_scenario_b_reject_then_resubmit(ledger, catalog, db):
    _pending(ledger, catalog)
    sid, cid = catalog.student.id, catalog.c1.id

    p = ledger.reject(sid, cid, "incomplete portfolio", performed_by=catalog.admin.id)
    assert p.status == "rejected"
    assert p.rejection_reason == "incomplete portfolio"
    assert p.completed_sessions == 10
    assert p.projects_submitted == 1

    p = ledger.update_progress(
        sid, cid, ProgressPatch(project_links=[LINK, "https://demo.example.com"]), performed_by=sid
    )
    assert p.status == "pending_approval"
    assert p.rejection_reason is None
    assert _actions(db, sid, cid)[-2:] == ["reject", "add_project_link"]


def test_scenario_c_sessions_over_requirement_leaves_record_untouched(ledger, catalog, db):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id
    ledger.update_progress(sid, cid, ProgressPatch(completed_sessions=3), performed_by=sid)

    with pytest.raises(SessionsExceedRequired):
        ledger.update_progress(sid, cid, ProgressPatch(completed_sessions=11, project_links=[LINK]), performed_by=sid)

    p = ledger.get_progress(sid, cid)
    assert p.completed_sessions == 3
    assert p.project_links == []
    assert p.status == "in_progress"
    assert _actions(db, sid, cid) == ["update_sessions"]


def test_invalid_url_rejected_before_any_write(ledger, catalog, db):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id
    with pytest.raises(InvalidProjectUrl):
        ledger.update_progress(
            sid, cid, ProgressPatch(completed_sessions=2, project_links=["javascript:alert(1)"]), performed_by=sid
        )
    p = ledger.get_progress(sid, cid)
    assert p.completed_sessions == 0
    assert p.status == "not_started"
    assert _actions(db, sid, cid) == []


def test_one_log_entry_per_distinct_change(ledger, catalog, db):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id
    ledger.update_progress(
        sid, cid,
        ProgressPatch(completed_sessions=4, projects_submitted=1, project_links=[LINK, "https://b.example.com"]),
        performed_by=catalog.admin.id,
    )
    ledger.update_progress(sid, cid, ProgressPatch(project_links=["https://b.example.com"]), performed_by=sid)

    assert _actions(db, sid, cid) == [
        "update_sessions",
        "update_projects",
        "add_project_link",
        "add_project_link",
        "remove_project_link",
    ]
    removal = db.query(TrackingLog).filter(TrackingLog.action == "remove_project_link").one()
    assert removal.previous_value == LINK
    assert removal.performed_by == sid


def test_noop_update_writes_nothing(ledger, catalog, db):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id
    p = ledger.update_progress(sid, cid, ProgressPatch(completed_sessions=0), performed_by=sid)
    assert p.status == "not_started"
    assert _actions(db, sid, cid) == []


def test_locked_course_cannot_be_updated(ledger, catalog):
    ledger.enroll_student(catalog.student.id)
    with pytest.raises(InvalidStatusTransition):
        ledger.update_progress(
            catalog.student.id, catalog.c2.id, ProgressPatch(completed_sessions=1), performed_by=catalog.student.id
        )
    assert ledger.get_progress(catalog.student.id, catalog.c2.id).status == "locked"


def test_completed_course_cannot_be_edited(ledger, catalog):
    _pending(ledger, catalog)
    ledger.approve(catalog.student.id, catalog.c1.id, approved_by=catalog.admin.id)
    with pytest.raises(InvalidStatusTransition):
        ledger.update_progress(
            catalog.student.id, catalog.c1.id, ProgressPatch(completed_sessions=2),
            performed_by=catalog.admin.id, allow_decrease=True,
        )
    assert ledger.get_progress(catalog.student.id, catalog.c1.id).completed_sessions == 10


def test_student_cannot_lower_counts(ledger, catalog):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id
    ledger.update_progress(sid, cid, ProgressPatch(completed_sessions=6), performed_by=sid)
    with pytest.raises(CountDecreaseNotAllowed):
        ledger.update_progress(sid, cid, ProgressPatch(completed_sessions=5), performed_by=sid)


def test_admin_correction_moves_pending_back(ledger, catalog, db):
    _pending(ledger, catalog)
    sid, cid = catalog.student.id, catalog.c1.id
    p = ledger.update_progress(
        sid, cid, ProgressPatch(completed_sessions=8), performed_by=catalog.admin.id, allow_decrease=True
    )
    assert p.status == "in_progress"
    entry = db.query(TrackingLog).filter(TrackingLog.action == "update_sessions").order_by(TrackingLog.id.desc()).first()
    assert (entry.previous_value, entry.new_value) == (10, 8)


def test_approve_twice_reports_already_approved(ledger, catalog):
    _pending(ledger, catalog)
    sid, cid = catalog.student.id, catalog.c1.id
    first = ledger.approve(sid, cid, approved_by=catalog.admin.id).progress
    approved_at, version = first.approved_at, first.version

    with pytest.raises(AlreadyApproved):
        ledger.approve(sid, cid, approved_by=catalog.other.id)

    again = ledger.get_progress(sid, cid)
    assert again.approved_at == approved_at
    assert again.approved_by == catalog.admin.id
    assert again.version == version


def test_approve_requires_pending(ledger, catalog):
    ledger.enroll_student(catalog.student.id)
    with pytest.raises(NotPendingApproval):
        ledger.approve(catalog.student.id, catalog.c1.id, approved_by=catalog.admin.id)


def test_approve_requires_approver(ledger, catalog):
    _pending(ledger, catalog)
    with pytest.raises(ApproverRequired):
        ledger.approve(catalog.student.id, catalog.c1.id, approved_by=None)
    assert ledger.get_progress(catalog.student.id, catalog.c1.id).status == "pending_approval"


def test_approve_unknown_progress(ledger, catalog):
    with pytest.raises(ProgressNotFound):
        ledger.approve(catalog.student.id, catalog.c6.id, approved_by=catalog.admin.id)


def test_reject_needs_reason_and_pending_state(ledger, catalog):
    _pending(ledger, catalog)
    sid, cid = catalog.student.id, catalog.c1.id
    with pytest.raises(RejectionReasonRequired):
        ledger.reject(sid, cid, "   ", performed_by=catalog.admin.id)
    assert ledger.get_progress(sid, cid).status == "pending_approval"

    ledger.approve(sid, cid, approved_by=catalog.admin.id)
    with pytest.raises(NotPendingApproval):
        ledger.reject(sid, cid, "too late", performed_by=catalog.admin.id)


def test_reject_does_not_unlock(ledger, catalog, notifier):
    _pending(ledger, catalog)
    ledger.reject(catalog.student.id, catalog.c1.id, "missing demo", performed_by=catalog.admin.id)
    assert ledger.get_progress(catalog.student.id, catalog.c2.id).status == "locked"
    assert notifier.of_type("unlock") == []
    assert [e.message for e in notifier.of_type("reject")] == ["missing demo"]


def test_pending_queue(ledger, catalog):
    _pending(ledger, catalog)
    pending = ledger.list_pending_approval()
    assert [(p.student_id, p.course_id) for p in pending] == [(catalog.student.id, catalog.c1.id)]
    assert ledger.list_pending_approval(course_id=catalog.c2.id) == []


def test_repeated_link_is_refused_before_any_write(ledger, catalog, db):
    ledger.enroll_student(catalog.student.id)
    sid, cid = catalog.student.id, catalog.c1.id
    with pytest.raises(DuplicateProjectLink):
        ledger.update_progress(
            sid, cid, ProgressPatch(completed_sessions=2, project_links=[LINK, LINK]), performed_by=sid
        )
    p = ledger.get_progress(sid, cid)
    assert p.completed_sessions == 0
    assert p.project_links == []
    assert _actions(db, sid, cid) == []
