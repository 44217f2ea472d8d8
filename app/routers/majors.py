from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.utils.auth import require_student
from app.models.course import Course
from app.models.major import Major
from app.models.major_course import MajorCourse
from app.schemas.major import GateDecisionOut, MajorCourseOut, MajorOut, SelectMajorIn, SelectedMajorOut
from app.services import major_gate
from app.services.notifier import DbNotifier
from app.services.unlock_resolver import UnlockResolver

router = APIRouter(tags=["Majors"])


@router.get("/majors", response_model=list[MajorOut])
def list_majors(db: Session = Depends(get_db)):
    return (
        db.query(Major)
        .filter(Major.is_active.is_(True))
        .order_by(Major.name.asc())
        .all()
    )


@router.get("/majors/{major_id}/courses", response_model=list[MajorCourseOut])
def major_courses(major_id: int, db: Session = Depends(get_db)):
    if not db.query(Major.id).filter(Major.id == major_id).first():
        raise HTTPException(status_code=404, detail="Major not found")
    rows = (
        db.query(MajorCourse, Course)
        .join(Course, Course.id == MajorCourse.course_id)
        .filter(MajorCourse.major_id == major_id)
        .order_by(MajorCourse.order.asc())
        .all()
    )
    return [
        {
            "course_id": c.id,
            "title": c.title,
            "semester_id": c.semester_id,
            "order": mc.order,
            "is_required": mc.is_required,
        }
        for mc, c in rows
    ]


@router.put("/students/me/major", response_model=SelectedMajorOut)
def select_my_major(
    body: SelectMajorIn,
    db: Session = Depends(get_db),
    user=Depends(require_student),
):
    resolver = UnlockResolver(db, notifier=DbNotifier(db))
    student = major_gate.select_major(db, user.id, body.major_id, resolver=resolver)
    major = db.query(Major).filter(Major.id == student.selected_major_id).first()
    return {"student_id": student.id, "major": major}


@router.get("/students/me/semesters/{semester_id}/access", response_model=GateDecisionOut)
def semester_access(
    semester_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_student),
):
    return major_gate.can_access_semester(db, user.id, semester_id)
