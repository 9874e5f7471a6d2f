import json
from datetime import datetime, timezone
from . import db

def utc_now():
    return datetime.now(timezone.utc)

from flask_login import UserMixin

from .scoring.constants import PROCEEDINGS_ROLE, EvaluatorRole, ExamType, RoleCategory
from .scoring.services import AssessmentRecord, ExaminerScoreSet, Proceedings, SupervisorScoreSet


class User(UserMixin, db.Model):
    __tablename__ = "users"
    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(128), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(32), default="admin")  # admin, staff
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    def get_id(self):
        return str(self.user_id)


class Student(db.Model):
    __tablename__ = "students"
    student_id = db.Column(db.String(64), primary_key=True)
    npm = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    prodi = db.Column(db.String(32), nullable=False)
    title = db.Column(db.Text, default="-")

    # Assigned evaluators, by name
    pembimbing1 = db.Column(db.String(128), default="")
    pembimbing2 = db.Column(db.String(128), default="")
    penguji1 = db.Column(db.String(128), default="")
    penguji2 = db.Column(db.String(128), default="")

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    assessments = db.relationship(
        "Assessment", backref="student", lazy=True, cascade="all, delete-orphan", passive_deletes=True
    )

    def evaluator_for(self, role):
        return getattr(self, EvaluatorRole.from_value(role).roster_field) or ""

    def to_dict(self):
        return {
            "id": self.student_id,
            "npm": self.npm,
            "name": self.name,
            "prodi": self.prodi,
            "title": self.title,
            "pembimbing1": self.pembimbing1,
            "pembimbing2": self.pembimbing2,
            "penguji1": self.penguji1,
            "penguji2": self.penguji2,
        }


class Assessment(db.Model):
    __tablename__ = "assessments"
    # "<exam type>-<role>-<student id>": re-saving the same key overwrites the row
    assessment_id = db.Column(db.String(200), primary_key=True)
    student_id_fk = db.Column(
        db.String(64), db.ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True
    )
    evaluator_role = db.Column(db.String(32), nullable=False)
    exam_type = db.Column(db.String(32), nullable=False, index=True)
    score_kind = db.Column(db.String(16), nullable=False)  # supervisor | examiner

    supervisor_scores_json = db.Column(db.Text)

    sistematika = db.Column(db.Float)
    isi = db.Column(db.Float)
    penyajian = db.Column(db.Float)
    tanya_jawab = db.Column(db.Float)

    # Record of proceedings (second supervisor only)
    proceedings_date = db.Column(db.String(16))
    proceedings_time = db.Column(db.String(8))
    proceedings_events = db.Column(db.Text)
    proceedings_notes = db.Column(db.Text)

    total_score = db.Column(db.Float, nullable=False, default=0.0)
    timestamp = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        db.UniqueConstraint("student_id_fk", "evaluator_role", "exam_type", name="uq_assessment_scope"),
    )

    def apply_record(self, record):
        """Copies a domain record onto this row, clearing the other score kind."""
        self.student_id_fk = record.student_id
        self.evaluator_role = record.role.value
        self.exam_type = record.exam_type.value
        self.score_kind = record.role.category.value
        self.total_score = record.total_score
        self.timestamp = record.timestamp or utc_now()

        if record.role.category == RoleCategory.SUPERVISOR:
            self.supervisor_scores_json = json.dumps(record.scores.to_json_dict())
            self.sistematika = self.isi = self.penyajian = self.tanya_jawab = None
        else:
            self.supervisor_scores_json = None
            self.sistematika = record.scores.sistematika
            self.isi = record.scores.isi
            self.penyajian = record.scores.penyajian
            self.tanya_jawab = record.scores.tanyaJawab

        p = record.proceedings
        self.proceedings_date = p.date if p else None
        self.proceedings_time = p.time if p else None
        self.proceedings_events = p.events if p else None
        self.proceedings_notes = p.notes if p else None

    def to_record(self):
        role = EvaluatorRole.from_value(self.evaluator_role)
        if role.category == RoleCategory.SUPERVISOR:
            try:
                raw = json.loads(self.supervisor_scores_json or "{}")
            except ValueError:
                raw = {}
            scores = SupervisorScoreSet.from_json_dict(raw if isinstance(raw, dict) else {})
        else:
            scores = ExaminerScoreSet(
                sistematika=self.sistematika or 0.0,
                isi=self.isi or 0.0,
                penyajian=self.penyajian or 0.0,
                tanyaJawab=self.tanya_jawab or 0.0,
            )
        proceedings = None
        if any([self.proceedings_date, self.proceedings_time, self.proceedings_events, self.proceedings_notes]):
            proceedings = Proceedings(
                date=self.proceedings_date or "",
                time=self.proceedings_time or "",
                events=self.proceedings_events or "",
                notes=self.proceedings_notes or "",
            )
        return AssessmentRecord(
            student_id=self.student_id_fk,
            role=role,
            exam_type=ExamType.from_value(self.exam_type),
            scores=scores,
            total_score=self.total_score if self.total_score is not None else 0.0,
            proceedings=proceedings if role == PROCEEDINGS_ROLE else None,
            timestamp=self.timestamp,
        )


class ImportLog(db.Model):
    __tablename__ = "import_logs"
    log_id = db.Column(db.Integer, primary_key=True)
    user_id_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    filename = db.Column(db.String(255))
    dry_run = db.Column(db.Boolean, default=False)
    created_count = db.Column(db.Integer, default=0)
    updated_count = db.Column(db.Integer, default=0)
    skipped_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utc_now)
