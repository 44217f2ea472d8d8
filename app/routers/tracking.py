from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.utils.auth import require_admin
from app.utils.excel_export import make_filename, tracking_logs_to_xlsx_bytes
from app.schemas.tracking import TrackingLogListOut
from app.services.tracking_log import TrackingLogStore, log_to_row

router = APIRouter(prefix="/admin/tracking-logs", tags=["Tracking"])


@router.get("", response_model=TrackingLogListOut)
def list_logs(
    student_id: Optional[int] = Query(None),
    course_id: Optional[int] = Query(None),
    performed_by: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    store = TrackingLogStore(db)
    filters = dict(student_id=student_id, course_id=course_id, performed_by=performed_by, action=action)
    items = store.query(**filters, limit=page_size, offset=(page - 1) * page_size)
    return {"items": items, "total": store.count(**filters), "page": page, "page_size": page_size}


@router.get("/export")
def export_logs(
    student_id: Optional[int] = Query(None),
    course_id: Optional[int] = Query(None),
    performed_by: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    logs = TrackingLogStore(db).query(
        student_id=student_id, course_id=course_id, performed_by=performed_by, action=action
    )
    content = tracking_logs_to_xlsx_bytes([log_to_row(e) for e in logs])
    filename = make_filename()
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
