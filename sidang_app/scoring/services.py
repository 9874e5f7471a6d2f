from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .constants import (
    COMPLETE, COMPONENT_MAX, COMPONENT_MIN, EVALUATOR_PLACEHOLDER, EXAMINER_COMPONENTS,
    FAIL_LETTER, GRADE_BANDS, GRADE_LETTERS, NONE, PARTIAL, PASS_THRESHOLD,
    PROCEEDINGS_ROLE, RUBRIC_MAX, RUBRIC_MIN, SUPERVISOR_RUBRIC_ITEMS,
    EvaluatorRole, ExamType, RoleCategory,
)


def _as_float(value, default=0.0):
    if value is None or isinstance(value, bool):
        return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if f != f:  # NaN
        return default
    return f


# ------------------------------------------------------------------
# Score sets (one variant per role category)
# ------------------------------------------------------------------

@dataclass(frozen=True)
class SupervisorScoreSet:
    """Rubric item index (0-based) -> score 1..5."""
    items: Dict[int, int] = field(default_factory=dict)
    kind = RoleCategory.SUPERVISOR

    def total(self):
        return compute_supervisor_total(self.items)

    def to_json_dict(self):
        return {str(k): v for k, v in sorted(self.items.items())}

    @classmethod
    def from_json_dict(cls, data):
        items = {}
        for k, v in (data or {}).items():
            try:
                items[int(k)] = int(_as_float(v))
            except (TypeError, ValueError):
                continue
        return cls(items=items)


@dataclass(frozen=True)
class ExaminerScoreSet:
    sistematika: float = 0.0
    isi: float = 0.0
    penyajian: float = 0.0
    tanyaJawab: float = 0.0
    kind = RoleCategory.EXAMINER

    def total(self):
        return compute_examiner_total(self.as_dict())

    def as_dict(self):
        return {key: getattr(self, key) for key, _, _ in EXAMINER_COMPONENTS}


@dataclass(frozen=True)
class Proceedings:
    """Record of proceedings ("berita acara") filed with the second supervisor's scores."""
    date: str = ""
    time: str = ""
    events: str = ""
    notes: str = ""


@dataclass
class AssessmentRecord:
    student_id: str
    role: EvaluatorRole
    exam_type: ExamType
    scores: object
    total_score: Optional[float] = None
    proceedings: Optional[Proceedings] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        self.role = EvaluatorRole.from_value(self.role)
        self.exam_type = ExamType.from_value(self.exam_type)
        expected = SupervisorScoreSet if self.role.category == RoleCategory.SUPERVISOR else ExaminerScoreSet
        if not isinstance(self.scores, expected):
            raise ValueError(f"{self.role.value} memerlukan nilai {self.role.category.value}")
        if self.proceedings is not None and self.role != PROCEEDINGS_ROLE:
            raise ValueError(f"Berita acara hanya diisi oleh {PROCEEDINGS_ROLE.value}")
        if self.total_score is None:
            self.total_score = self.scores.total()

    @property
    def assessment_id(self):
        return assessment_id_for(self.exam_type, self.role, self.student_id)


def assessment_id_for(exam_type, role, student_id):
    exam_type = ExamType.from_value(exam_type)
    role = EvaluatorRole.from_value(role)
    return f"{exam_type.value}-{role.value}-{student_id}"


# ------------------------------------------------------------------
# Normalization
# ------------------------------------------------------------------

def compute_supervisor_total(scores):
    """Unweighted sum of the rubric item scores; non-numeric values count as 0."""
    return float(sum(_as_float(v) for v in (scores or {}).values()))


def clamp_component(value):
    return min(COMPONENT_MAX, max(COMPONENT_MIN, _as_float(value)))


def compute_examiner_total(scores):
    """Weighted sum of the four examiner components, each clamped to [0, 100]."""
    scores = scores or {}
    return sum(clamp_component(scores.get(key)) * weight for key, _, weight in EXAMINER_COMPONENTS)


def parse_supervisor_form(form):
    """
    Reads `item_<n>` fields for every rubric item.
    Raises ValueError on a missing item or a value outside 1..5.
    """
    items = {}
    for idx, label in enumerate(SUPERVISOR_RUBRIC_ITEMS):
        raw = (form.get(f"item_{idx}") or "").strip()
        if not raw:
            raise ValueError(f"Nilai untuk '{label}' belum dipilih.")
        try:
            val = int(raw)
        except ValueError:
            raise ValueError(f"Nilai untuk '{label}' tidak valid.")
        if val < RUBRIC_MIN or val > RUBRIC_MAX:
            raise ValueError(f"Nilai untuk '{label}' harus {RUBRIC_MIN}-{RUBRIC_MAX}.")
        items[idx] = val
    return SupervisorScoreSet(items=items)


def parse_examiner_form(form):
    values = {}
    for key, _, _ in EXAMINER_COMPONENTS:
        values[key] = clamp_component((form.get(key) or "").strip() or 0)
    return ExaminerScoreSet(**values)


def parse_proceedings_form(form):
    return Proceedings(
        date=(form.get("ba_date") or "").strip(),
        time=(form.get("ba_time") or "").strip(),
        events=(form.get("ba_events") or "").strip(),
        notes=(form.get("ba_notes") or "").strip(),
    )


# ------------------------------------------------------------------
# Grading
# ------------------------------------------------------------------

def letter_grade(score):
    score = _as_float(score)
    for lower, letter in GRADE_BANDS:
        if score >= lower:
            return letter
    return FAIL_LETTER


def is_passing(score):
    return _as_float(score) >= PASS_THRESHOLD


def weighted_final(role_totals):
    """Missing roles contribute 0; remaining weights are not renormalized."""
    return sum(_as_float(role_totals.get(role)) * role.weight for role in EvaluatorRole)


@dataclass
class StudentAggregate:
    student_id: str
    npm: str
    name: str
    prodi: str
    exam_type: ExamType
    p1: Optional[float]
    p2: Optional[float]
    e1: Optional[float]
    e2: Optional[float]
    completion_count: int
    completion: str
    is_complete: bool
    final_score: float
    letter: Optional[str]
    is_pass: Optional[bool]

    def role_score(self, role):
        return getattr(self, role.short_label)

    def to_dict(self):
        return {
            "student_id": self.student_id,
            "npm": self.npm,
            "name": self.name,
            "prodi": self.prodi,
            "exam_type": self.exam_type.value,
            "p1": self.p1,
            "p2": self.p2,
            "e1": self.e1,
            "e2": self.e2,
            "completion_count": self.completion_count,
            "completion": self.completion,
            "is_complete": self.is_complete,
            "final_score": self.final_score,
            "letter": self.letter,
            "is_pass": self.is_pass,
        }


def _student_attr(student, name, default=""):
    if isinstance(student, dict):
        val = student.get(name, default)
    else:
        val = getattr(student, name, default)
    return default if val is None else val


def _student_key(student):
    return str(_student_attr(student, "student_id") or _student_attr(student, "id"))


def _index_role_totals(assessments, exam_type):
    """
    (student_id, role) -> total for one exam type.
    Later timestamps win when the same key appears twice.
    """
    index = {}
    stamps = {}
    for a in assessments or []:
        if a is None or a.exam_type != exam_type:
            continue
        key = (str(a.student_id), a.role)
        ts = a.timestamp.timestamp() if a.timestamp else float("-inf")
        if key in index and stamps[key] > ts:
            continue
        index[key] = _as_float(a.total_score)
        stamps[key] = ts
    return index


def _aggregate_from_index(student, index, exam_type):
    sid = _student_key(student)
    totals = {role: index.get((sid, role)) for role in EvaluatorRole}
    present = [r for r, v in totals.items() if v is not None]
    count = len(present)
    if count == len(EvaluatorRole):
        completion = COMPLETE
    elif count > 0:
        completion = PARTIAL
    else:
        completion = NONE
    final = weighted_final(totals)
    complete = completion == COMPLETE
    return StudentAggregate(
        student_id=sid,
        npm=str(_student_attr(student, "npm")),
        name=str(_student_attr(student, "name")),
        prodi=str(_student_attr(student, "prodi")),
        exam_type=exam_type,
        p1=totals[EvaluatorRole.PEMBIMBING_1],
        p2=totals[EvaluatorRole.PEMBIMBING_2],
        e1=totals[EvaluatorRole.PENGUJI_1],
        e2=totals[EvaluatorRole.PENGUJI_2],
        completion_count=count,
        completion=completion,
        is_complete=complete,
        final_score=final,
        letter=letter_grade(final) if complete else None,
        is_pass=is_passing(final) if complete else None,
    )


def aggregate(student, assessments, exam_type):
    """
    Derives the per-role totals, completion, weighted final score, letter grade
    and pass status of one student for one exam type.
    Pure: nothing is cached between calls.
    """
    exam_type = ExamType.from_value(exam_type)
    return _aggregate_from_index(student, _index_role_totals(assessments, exam_type), exam_type)


def aggregate_all(students, assessments, exam_type):
    exam_type = ExamType.from_value(exam_type)
    index = _index_role_totals(assessments, exam_type)
    return [_aggregate_from_index(s, index, exam_type) for s in students or []]


# ------------------------------------------------------------------
# Pending evaluators and incomplete students
# ------------------------------------------------------------------

@dataclass(frozen=True)
class PendingItem:
    evaluator_name: str
    role: EvaluatorRole
    student_name: str
    program: str
    student_id: str = ""

    def to_dict(self):
        return {
            "evaluator_name": self.evaluator_name,
            "role": self.role.value,
            "student_name": self.student_name,
            "program": self.program,
            "student_id": self.student_id,
        }


def is_assigned(evaluator_name):
    name = (evaluator_name or "").strip() if isinstance(evaluator_name, str) else ""
    return bool(name) and name != EVALUATOR_PLACEHOLDER


def pending_evaluators(students, assessments, exam_type, prodi=None):
    """Assigned evaluators who have not yet submitted a score for their student."""
    exam_type = ExamType.from_value(exam_type)
    index = _index_role_totals(assessments, exam_type)
    pending = []
    for s in students or []:
        if prodi is not None and _student_attr(s, "prodi") != prodi:
            continue
        sid = _student_key(s)
        for role in EvaluatorRole:
            assigned = _student_attr(s, role.roster_field)
            if not is_assigned(assigned):
                continue
            if (sid, role) in index:
                continue
            pending.append(PendingItem(
                evaluator_name=assigned.strip(),
                role=role,
                student_name=str(_student_attr(s, "name")),
                program=str(_student_attr(s, "prodi")),
                student_id=sid,
            ))
    return pending


def incomplete_students(students, assessments, exam_type, prodi=None):
    aggregates = aggregate_all(students, assessments, exam_type)
    return [a for a in aggregates if not a.is_complete and (prodi is None or a.prodi == prodi)]


# ------------------------------------------------------------------
# Dashboard statistics
# ------------------------------------------------------------------

@dataclass
class Statistics:
    total_students: int
    complete_count: int
    pass_count: int
    pass_rate: float
    grade_histogram: Dict[str, int]
    role_averages: Dict[str, float]
    incomplete_by_program: Dict[str, int]

    def to_dict(self):
        return {
            "total_students": self.total_students,
            "complete_count": self.complete_count,
            "pass_count": self.pass_count,
            "pass_rate": self.pass_rate,
            "grade_histogram": dict(self.grade_histogram),
            "role_averages": dict(self.role_averages),
            "incomplete_by_program": dict(self.incomplete_by_program),
        }


def compute_statistics(aggregates: List[StudentAggregate], programs=None):
    """
    Reductions over aggregation output. Full precision is kept; rounding is left
    to the presentation layer.
    """
    aggregates = list(aggregates or [])
    complete = [a for a in aggregates if a.is_complete]
    passed = [a for a in complete if a.is_pass]
    pass_rate = (len(passed) / len(complete) * 100.0) if complete else 0.0

    histogram = {letter: 0 for letter in GRADE_LETTERS}
    for a in complete:
        histogram[a.letter] = histogram.get(a.letter, 0) + 1

    averages = {}
    for role in EvaluatorRole:
        vals = [a.role_score(role) for a in aggregates if a.role_score(role) is not None]
        averages[role.value] = (sum(vals) / len(vals)) if vals else 0.0

    incomplete = {p: 0 for p in (programs or [])}
    for a in aggregates:
        if not a.is_complete:
            incomplete[a.prodi] = incomplete.get(a.prodi, 0) + 1

    return Statistics(
        total_students=len(aggregates),
        complete_count=len(complete),
        pass_count=len(passed),
        pass_rate=pass_rate,
        grade_histogram=histogram,
        role_averages=averages,
        incomplete_by_program=incomplete,
    )
