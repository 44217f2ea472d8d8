from collections import Counter
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

# (row key, header label)
TRACKING_COLUMNS: Sequence[Tuple[str, str]] = (
    ("timestamp", "Time"),
    ("student_id", "Student"),
    ("course_id", "Course"),
    ("requirement_id", "Lab requirement"),
    ("action", "Action"),
    ("previous_value", "Previous"),
    ("new_value", "New"),
    ("performed_by", "Performed by"),
    ("id", "Log id"),
)

TIMESTAMP_FORMAT = "yyyy-mm-dd hh:mm:ss"


def tracking_logs_to_xlsx_bytes(rows: List[Dict[str, Any]], sheet_name: str = "TrackingLogs") -> bytes:
    """
    rows: output of ``log_to_row``, oldest first.
    Second sheet counts entries per action.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name[:31]

    _write_header(ws, [label for _key, label in TRACKING_COLUMNS])
    if not rows:
        ws.append(["No data"])
    for r in rows:
        ws.append([r.get(key) for key, _label in TRACKING_COLUMNS])
        ts_cell = ws.cell(row=ws.max_row, column=1)
        if isinstance(ts_cell.value, datetime):
            ts_cell.number_format = TIMESTAMP_FORMAT

    ws.freeze_panes = "A2"
    if rows:
        ws.auto_filter.ref = ws.dimensions
    _autosize(ws)

    summary = wb.create_sheet("Summary")
    _write_header(summary, ["Action", "Entries"])
    for action, n in sorted(Counter(r.get("action") for r in rows).items()):
        summary.append([action, n])
    _autosize(summary)

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _write_header(ws: Worksheet, labels: List[str]) -> None:
    ws.append(labels)
    header_font = Font(bold=True)
    for col_idx in range(1, len(labels) + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _autosize(ws: Worksheet) -> None:
    for col_idx in range(1, ws.max_column + 1):
        max_len = 0
        for row_idx in range(1, ws.max_row + 1):
            v = ws.cell(row=row_idx, column=col_idx).value
            if v is None:
                continue
            # datetimes render as TIMESTAMP_FORMAT
            width = 19 if isinstance(v, datetime) else len(str(v))
            max_len = max(max_len, width)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 2, 60)


def make_filename(prefix: str = "tracking_logs") -> str:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{ts}.xlsx"
