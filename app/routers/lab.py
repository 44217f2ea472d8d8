from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.utils.auth import require_admin, require_student
from app.schemas.lab import LabProgressOut, LabRequirementOut
from app.services.lab_progress import LabProgressLedger

router = APIRouter(tags=["Lab"])


@router.get("/lab-requirements", response_model=list[LabRequirementOut])
def list_requirements(db: Session = Depends(get_db)):
    return LabProgressLedger(db).list_requirements()


@router.get("/students/me/lab-progress", response_model=list[LabProgressOut])
def my_lab_progress(db: Session = Depends(get_db), user=Depends(require_student)):
    return LabProgressLedger(db).list_student_progress(user.id)


@router.post("/students/me/lab-requirements/{requirement_id}/complete", response_model=LabProgressOut)
def complete_requirement(
    requirement_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_student),
):
    return LabProgressLedger(db).mark_complete(user.id, requirement_id, performed_by=user.id)


@router.delete("/admin/lab-requirements/{requirement_id}")
def delete_requirement(
    requirement_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    removed = LabProgressLedger(db).delete_requirement(requirement_id, performed_by=admin.id)
    return {"detail": "Deleted", "requirement_id": requirement_id, "removed_progress": removed}
