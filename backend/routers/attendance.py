from fastapi import APIRouter, Depends

from backend.security import HostSession, require_host
from database.db import get_host_attendance

router = APIRouter()


def _group_label(row: dict) -> str:
    return f"{row['course']} - {row['year_section']}"


@router.get("/attendance")
def attendance(group: str | None = None, session: HostSession = Depends(require_host)):
    rows = get_host_attendance(session.host_id)

    groups: list[str] = []
    for r in rows:
        label = _group_label(r)
        if label not in groups:
            groups.append(label)

    selected = (group or "").strip()
    if selected:
        rows = [r for r in rows if _group_label(r) == selected]

    return {
        "host_id": session.host_id,
        "groups": groups,
        "group": selected or None,
        "total": len(rows),
        "rows": rows,
    }
