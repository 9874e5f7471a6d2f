import pytest

from sidang_app.models import Assessment, Student
from sidang_app.scoring.constants import SUPERVISOR_RUBRIC_ITEMS, EvaluatorRole, ExamType
from sidang_app.scoring.services import AssessmentRecord, ExaminerScoreSet, Proceedings, SupervisorScoreSet
from sidang_app.stores import AssessmentStore, StudentStore


def examiner_record(sid, role=EvaluatorRole.PENGUJI_1, exam_type=ExamType.SIDANG_SKRIPSI, value=80.0):
    return AssessmentRecord(sid, role, exam_type, ExaminerScoreSet(value, value, value, value))


def test_upsert_overwrites_same_key(app, make_student):
    sid = make_student()
    with app.app_context():
        store = AssessmentStore()
        assert store.upsert_assessment(examiner_record(sid, value=60.0)) is True
        assert store.upsert_assessment(examiner_record(sid, value=90.0)) is False
        records = store.list_assessments(ExamType.SIDANG_SKRIPSI)
        assert len(records) == 1
        assert records[0].total_score == pytest.approx(90.0)
        assert Assessment.query.count() == 1


def test_same_role_different_exam_types_are_separate(app, make_student):
    sid = make_student()
    with app.app_context():
        store = AssessmentStore()
        store.upsert_assessment(examiner_record(sid, exam_type=ExamType.SIDANG_SKRIPSI))
        store.upsert_assessment(examiner_record(sid, exam_type=ExamType.SEMINAR_PROPOSAL))
        assert len(store.list_assessments()) == 2
        assert len(store.list_assessments(ExamType.SEMINAR_PROPOSAL)) == 1


def test_supervisor_record_round_trips_through_row(app, make_student):
    sid = make_student()
    items = {idx: 5 for idx in range(len(SUPERVISOR_RUBRIC_ITEMS))}
    record = AssessmentRecord(
        sid, EvaluatorRole.PEMBIMBING_2, ExamType.SIDANG_SKRIPSI, SupervisorScoreSet(items),
        proceedings=Proceedings(date="2026-06-01", time="10:00", events="Tidak ada kendala", notes="-"),
    )
    with app.app_context():
        store = AssessmentStore()
        store.upsert_assessment(record)
        loaded = store.get(ExamType.SIDANG_SKRIPSI, EvaluatorRole.PEMBIMBING_2, sid)
        assert loaded.total_score == 100.0
        assert loaded.scores.items == items
        assert loaded.proceedings.events == "Tidak ada kendala"
        assert loaded.timestamp is not None


def test_delete_assessments_for_students(app, make_student):
    a = make_student(npm="1")
    b = make_student(npm="2")
    with app.app_context():
        store = AssessmentStore()
        store.upsert_assessment(examiner_record(a))
        store.upsert_assessment(examiner_record(a, exam_type=ExamType.SEMINAR_PROPOSAL))
        store.upsert_assessment(examiner_record(b))
        ids = store.ids_for_students([a], ExamType.SIDANG_SKRIPSI)
        assert ids == [f"Sidang Skripsi-Penguji 1-{a}"]
        assert store.delete_assessments(ids) == 1
        assert len(store.list_assessments()) == 2
        assert store.delete_assessments([]) == 0


def test_student_upsert_requires_name_and_npm(app):
    with app.app_context():
        with pytest.raises(ValueError):
            StudentStore().upsert_student({"name": "", "npm": "123"})
        with pytest.raises(ValueError):
            StudentStore().upsert_student({"name": "Ani", "npm": "  "})


def test_student_upsert_defaults(app):
    with app.app_context():
        s = StudentStore().upsert_student({"name": "Ani", "npm": "123", "prodi": "", "title": ""})
        assert s.student_id.startswith("mhs-")
        assert s.prodi == "K3"
        assert s.title == "-"

        StudentStore().upsert_student({"name": "Ani Lestari", "npm": "123", "prodi": "Kesling"}, student_id=s.student_id)
        reloaded = StudentStore().get_student(s.student_id)
        assert reloaded.name == "Ani Lestari"
        assert reloaded.prodi == "Kesling"


def test_list_students_filters(app, make_student):
    make_student(npm="111", name="Budi", prodi="K3")
    make_student(npm="222", name="Sari", prodi="Kesling")
    with app.app_context():
        store = StudentStore()
        assert [s.npm for s in store.list_students(prodi="Kesling")] == ["222"]
        assert [s.npm for s in store.list_students(search="bud")] == ["111"]
        assert [s.npm for s in store.list_students(search="22")] == ["222"]
        assert store.find_by_npm(" 111 ").name == "Budi"


def test_delete_student_removes_assessments(app, make_student):
    sid = make_student()
    with app.app_context():
        AssessmentStore().upsert_assessment(examiner_record(sid))
        assert StudentStore().delete_student(sid) == 1
        assert Student.query.count() == 0
        assert Assessment.query.count() == 0


def test_bulk_upsert_counts_and_dry_run(app, make_student):
    make_student(npm="A1", name="Lama")
    rows = [
        {"npm": "a1", "name": "Baru", "prodi": "K3"},
        {"npm": "B2", "name": "Dua", "prodi": "Kesling"},
        {"npm": "B2", "name": "Dua Revisi", "prodi": "Kesling"},
    ]
    with app.app_context():
        store = StudentStore()
        assert store.bulk_upsert(rows, dry_run=True) == (1, 1)
        assert store.find_by_npm("B2") is None
        assert store.find_by_npm("A1").name == "Lama"

        assert store.bulk_upsert(rows) == (1, 1)
        assert store.find_by_npm("A1").name == "Baru"
        assert store.find_by_npm("b2").name == "Dua Revisi"
        assert Student.query.count() == 2
