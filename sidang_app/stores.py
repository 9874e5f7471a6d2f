import uuid

from flask import current_app
from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError

from . import db, cache
from .models import Assessment, Student
from .scoring.constants import ExamType
from .scoring.services import assessment_id_for


STUDENT_FIELDS = ("npm", "name", "prodi", "title", "pembimbing1", "pembimbing2", "penguji1", "penguji2")


def _invalidate_views():
    # Statistics pages are cached; any committed change makes them stale
    cache.clear()


class AssessmentStore:
    """Assessment persistence keyed by (exam type, role, student)."""

    def __init__(self, session=None):
        self.session = session or db.session

    def list_assessments(self, exam_type=None):
        q = select(Assessment)
        if exam_type is not None:
            q = q.filter(Assessment.exam_type == ExamType.from_value(exam_type).value)
        rows = self.session.execute(q.order_by(Assessment.timestamp)).scalars().all()
        return [r.to_record() for r in rows]

    def list_for_student(self, student_id, exam_type=None):
        return [a for a in self.list_assessments(exam_type) if a.student_id == student_id]

    def get(self, exam_type, role, student_id):
        row = self.session.get(Assessment, assessment_id_for(exam_type, role, student_id))
        return row.to_record() if row else None

    def upsert_assessment(self, record):
        """
        Inserts or overwrites the row for the record's deterministic id.
        Concurrent saves of the same key resolve last-write-wins.
        """
        aid = record.assessment_id
        row = self.session.get(Assessment, aid)
        created = row is None
        if created:
            row = Assessment(assessment_id=aid)
            self.session.add(row)
        row.apply_record(record)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.exception("Failed to save assessment %s", aid)
            raise
        _invalidate_views()
        current_app.logger.info("%s assessment %s (total %.2f)", "Created" if created else "Updated", aid, record.total_score)
        return created

    def ids_for_students(self, student_ids, exam_type):
        if not student_ids:
            return []
        q = select(Assessment.assessment_id).filter(
            Assessment.student_id_fk.in_(list(student_ids)),
            Assessment.exam_type == ExamType.from_value(exam_type).value,
        )
        return list(self.session.execute(q).scalars().all())

    def delete_assessments(self, ids):
        ids = [i for i in (ids or []) if i]
        if not ids:
            return 0
        try:
            deleted = self.session.query(Assessment).filter(Assessment.assessment_id.in_(ids)).delete(
                synchronize_session=False
            )
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.exception("Failed to delete %d assessments", len(ids))
            raise
        _invalidate_views()
        current_app.logger.info("Deleted %d assessments", deleted)
        return deleted


class StudentStore:
    def __init__(self, session=None):
        self.session = session or db.session

    @staticmethod
    def new_student_id():
        return f"mhs-{uuid.uuid4().hex[:12]}"

    def list_students(self, prodi=None, search=None):
        q = select(Student)
        if prodi:
            q = q.filter(Student.prodi == prodi)
        term = (search or "").strip().lower()
        if term:
            q = q.filter(or_(
                func.lower(Student.name).contains(term),
                func.lower(Student.npm).contains(term),
            ))
        return self.session.execute(q.order_by(Student.prodi, Student.name)).scalars().all()

    def get_student(self, student_id):
        return self.session.get(Student, student_id)

    def find_by_npm(self, npm):
        key = (npm or "").strip().lower()
        if not key:
            return None
        return self.session.execute(
            select(Student).filter(func.lower(Student.npm) == key)
        ).scalars().first()

    def _apply(self, student, data):
        for name in STUDENT_FIELDS:
            if name in data:
                val = data.get(name)
                setattr(student, name, (val or "").strip() if isinstance(val, str) or val is None else str(val))
        if not student.title:
            student.title = "-"
        if not student.prodi:
            student.prodi = current_app.config["PROGRAMS"][0]

    def upsert_student(self, data, student_id=None):
        """Creates or updates one student; `name` and `npm` are required."""
        if not (data.get("name") or "").strip() or not (data.get("npm") or "").strip():
            raise ValueError("Nama dan NPM wajib diisi.")
        student = self.get_student(student_id) if student_id else None
        if student is None:
            student = Student(student_id=student_id or self.new_student_id())
            self.session.add(student)
        self._apply(student, data)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.exception("Failed to save student %s", data.get("npm"))
            raise
        _invalidate_views()
        current_app.logger.info("Saved student %s (%s)", student.npm, student.student_id)
        return student

    def delete_student(self, student_id):
        return self.delete_students([student_id])

    def delete_students(self, ids):
        ids = [i for i in (ids or []) if i]
        if not ids:
            return 0
        try:
            # Assessments go with their student
            self.session.query(Assessment).filter(Assessment.student_id_fk.in_(ids)).delete(synchronize_session=False)
            deleted = self.session.query(Student).filter(Student.student_id.in_(ids)).delete(synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.exception("Failed to delete %d students", len(ids))
            raise
        _invalidate_views()
        current_app.logger.info("Deleted %d students", deleted)
        return deleted

    def bulk_upsert(self, rows, dry_run=False):
        """
        Upserts roster rows by npm (case-insensitive).
        Returns (created, updated); nothing is written on dry run.
        """
        created = 0
        updated = 0
        seen = {}
        for data in rows:
            key = (data.get("npm") or "").strip().lower()
            if not key:
                continue
            student = seen.get(key) or self.find_by_npm(key)
            if student is None:
                student = Student(student_id=self.new_student_id())
                if not dry_run:
                    self.session.add(student)
                created += 1
            elif key not in seen:
                updated += 1
            self._apply(student, data)
            seen[key] = student
        if dry_run:
            self.session.rollback()
            return created, updated
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.exception("Bulk roster upsert failed")
            raise
        _invalidate_views()
        current_app.logger.info("Roster import: %d created, %d updated", created, updated)
        return created, updated
