import sqlite3

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from database.db import get_student, register_student
from qr_scanner.encoder import render_qr_png, student_payload

router = APIRouter()


class StudentCreate(BaseModel):
    lastname: str
    firstname: str
    course: str
    year_section: str


def _student_dict(row) -> dict:
    return {
        "id": row[0],
        "lastname": row[1],
        "firstname": row[2],
        "course": row[3],
        "year_section": row[4],
        "registered_on": row[5],
    }


@router.post("/students")
def create_student(payload: StudentCreate):
    lastname = payload.lastname.strip()
    firstname = payload.firstname.strip()
    course = payload.course.strip()
    year_section = payload.year_section.strip()

    if not lastname or not firstname or not course or not year_section:
        raise HTTPException(status_code=400, detail="Please complete all fields.")

    try:
        student_id, created = register_student(lastname, firstname, course, year_section)
    except sqlite3.Error:
        raise HTTPException(status_code=503, detail="Failed to save student info.")

    return {
        "id": student_id,
        "created": created,
        "lastname": lastname,
        "firstname": firstname,
        "course": course,
        "year_section": year_section,
        "qr_payload": student_payload(student_id),
    }


@router.get("/students/{student_id}")
def student_detail(student_id: str):
    row = get_student(student_id)
    if not row:
        raise HTTPException(status_code=404, detail="Student not found.")
    return _student_dict(row)


@router.get("/students/{student_id}/qr")
def student_qr(student_id: str):
    if not get_student(student_id):
        raise HTTPException(status_code=404, detail="Student not found.")
    png = render_qr_png(student_payload(student_id))
    return Response(content=png, media_type="image/png")
