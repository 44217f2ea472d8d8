from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.utils.auth import require_admin, require_student

from app.schemas.progress import (
    ApprovalOut,
    BulkApproveIn,
    BulkApproveOut,
    ProgressOut,
    ProgressPatch,
    RejectIn,
    UnlockOutcomeOut,
)
from app.services.catalog import CatalogStore
from app.services.major_gate import can_access
from app.services.notifier import DbNotifier
from app.services.progress_ledger import ProgressLedger

import logging
logger = logging.getLogger("app.progress")

router = APIRouter(tags=["Progress"])


def get_ledger(db: Session = Depends(get_db)) -> ProgressLedger:
    return ProgressLedger(db, notifier=DbNotifier(db))


def _bulk_out(result) -> dict:
    return {
        "total": result.total,
        "succeeded": result.succeeded,
        "failed": result.failed,
        "code": result.code,
        "results": result.results,
        "failures": result.failures,
    }


# ---- student ----

@router.get("/students/me/progress", response_model=list[ProgressOut])
def my_progress(ledger: ProgressLedger = Depends(get_ledger), user=Depends(require_student)):
    return ledger.list_student_progress(user.id)


def _ensure_course_access(ledger: ProgressLedger, user, course_id: int) -> None:
    # 課程內容前先過 major gate（讀取與回報進度都要）
    course = CatalogStore(ledger.db).get_course(course_id)
    decision = can_access(user, course.semester)
    if not decision.allowed:
        raise HTTPException(
            status_code=403,
            detail={
                "code": "MajorSelectionRequired",
                "message": decision.reason,
                "semester_id": course.semester_id,
            },
        )


@router.get("/students/me/progress/{course_id}", response_model=ProgressOut)
def my_course_progress(
    course_id: int,
    ledger: ProgressLedger = Depends(get_ledger),
    user=Depends(require_student),
):
    _ensure_course_access(ledger, user, course_id)
    return ledger.get_or_create_progress(user.id, course_id)


@router.patch("/students/me/progress/{course_id}", response_model=ProgressOut)
def update_my_progress(
    course_id: int,
    body: ProgressPatch,
    ledger: ProgressLedger = Depends(get_ledger),
    user=Depends(require_student),
):
    _ensure_course_access(ledger, user, course_id)
    return ledger.update_progress(user.id, course_id, body, performed_by=user.id)


# ---- admin ----

@router.get("/admin/progress/pending", response_model=list[ProgressOut])
def pending_approval(
    course_id: Optional[int] = Query(None),
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    return ledger.list_pending_approval(course_id)


@router.patch("/admin/progress/{student_id}/{course_id}", response_model=ProgressOut)
def correct_progress(
    student_id: int,
    course_id: int,
    body: ProgressPatch,
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    return ledger.update_progress(student_id, course_id, body, performed_by=admin.id, allow_decrease=True)


@router.post("/admin/progress/bulk-approve", response_model=BulkApproveOut)
def bulk_approve(
    body: BulkApproveIn,
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    pairs = [(item.student_id, item.course_id) for item in body.items]
    result = ledger.bulk_approve(pairs, approved_by=admin.id)
    return _bulk_out(result)


@router.post("/admin/progress/{student_id}/{course_id}/approve", response_model=ApprovalOut)
def approve(
    student_id: int,
    course_id: int,
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    result = ledger.approve(student_id, course_id, approved_by=admin.id)
    return {"progress": result.progress, "unlock": result.unlock}


@router.post("/admin/progress/{student_id}/{course_id}/reject", response_model=ProgressOut)
def reject(
    student_id: int,
    course_id: int,
    body: RejectIn,
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    return ledger.reject(student_id, course_id, body.reason, performed_by=admin.id)


@router.post("/admin/progress/{student_id}/{course_id}/unlock", response_model=UnlockOutcomeOut)
def retry_unlock(
    student_id: int,
    course_id: int,
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    outcome = ledger.resolver.resolve(student_id, course_id, performed_by=admin.id)
    logger.info("[progress] unlock re-run student=%s course=%s codes=%s", student_id, course_id, outcome.codes)
    return outcome


@router.post("/admin/students/{student_id}/enroll", response_model=list[ProgressOut])
def enroll(
    student_id: int,
    ledger: ProgressLedger = Depends(get_ledger),
    admin=Depends(require_admin),
):
    return ledger.enroll_student(student_id)
