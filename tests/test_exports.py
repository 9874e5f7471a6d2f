import csv
import io
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from openpyxl import load_workbook

from sidang_app.recap.services import (
    DETAIL_HEADERS, SUMMARY_HEADERS, detail_filename, detail_rows, local_timestamp, score_breakdown,
    summary_filename, summary_rows, write_csv, write_xlsx,
)
from sidang_app.scoring.constants import SUPERVISOR_RUBRIC_ITEMS, EvaluatorRole, ExamType
from sidang_app.scoring.services import AssessmentRecord, ExaminerScoreSet, Proceedings, SupervisorScoreSet

SIDANG = ExamType.SIDANG_SKRIPSI


class FakeStudent:
    def __init__(self, student_id, npm, name, prodi="K3"):
        self.student_id = student_id
        self.npm = npm
        self.name = name
        self.prodi = prodi
        self.pembimbing1 = "Dr. Ani"
        self.pembimbing2 = "Dr. Bambang"
        self.penguji1 = "Dr. Citra"
        self.penguji2 = ""


def supervisor(sid, role, value, **kw):
    items = {i: value for i in range(len(SUPERVISOR_RUBRIC_ITEMS))}
    return AssessmentRecord(sid, role, SIDANG, SupervisorScoreSet(items), **kw)


def examiner(sid, role, value, **kw):
    return AssessmentRecord(sid, role, SIDANG, ExaminerScoreSet(value, value, value, value), **kw)


def full_set(sid):
    return [
        supervisor(sid, EvaluatorRole.PEMBIMBING_1, 4),
        supervisor(sid, EvaluatorRole.PEMBIMBING_2, 4),
        examiner(sid, EvaluatorRole.PENGUJI_1, 70.0),
        examiner(sid, EvaluatorRole.PENGUJI_2, 70.0),
    ]


def test_summary_rows_complete_and_partial():
    students = [FakeStudent("s1", "101", "Ani"), FakeStudent("s2", "102", "Budi")]
    records = full_set("s1") + [examiner("s2", EvaluatorRole.PENGUJI_1, 90.0)]
    rows = summary_rows(students, records, SIDANG)
    assert rows[0] == ["101", "Ani", "K3", "80.00", "80.00", "70.00", "70.00", "76.00", "B", "LULUS", "Lengkap"]
    assert rows[1] == ["102", "Budi", "K3", "-", "-", "90.00", "-", "18.00", "-", "-", "Sebagian"]


def test_summary_csv_parses_back():
    students = [FakeStudent("s1", "101", "Ani")]
    payload = write_csv(SUMMARY_HEADERS, summary_rows(students, full_set("s1"), SIDANG))
    parsed = list(csv.reader(io.StringIO(payload.decode("utf-8"))))
    assert parsed[0] == SUMMARY_HEADERS
    assert len(parsed) == 2
    assert parsed[1][7] == "76.00"


def test_summary_xlsx_parses_back():
    students = [FakeStudent("s1", "101", "Ani")]
    payload = write_xlsx(SUMMARY_HEADERS, summary_rows(students, full_set("s1"), SIDANG), sheet_title="Rekap Nilai")
    wb = load_workbook(io.BytesIO(payload))
    ws = wb.active
    assert ws.title == "Rekap Nilai"
    assert [c.value for c in ws[1]] == SUMMARY_HEADERS
    assert ws.cell(row=2, column=9).value == "B"


def test_score_breakdown_formats():
    sup = supervisor(
        "s1", EvaluatorRole.PEMBIMBING_2, 5,
        proceedings=Proceedings(date="2026-06-01", time="10:00", events="Lancar", notes="OK"),
    )
    text = score_breakdown(sup)
    assert text.startswith("1. Kedisiplinan: 5 | 2. Kesopanan: 5")
    assert "20. Wawasan Umum diluar Topik: 5" in text
    assert text.endswith("|| [Berita Acara] Tgl: 2026-06-01, Wkt: 10:00, Kejadian: Lancar, Catatan: OK")

    ex = AssessmentRecord("s1", EvaluatorRole.PENGUJI_1, SIDANG, ExaminerScoreSet(80, 72.5, 60, 90))
    assert score_breakdown(ex) == "Sistematika: 80 | Isi: 72.5 | Penyajian: 60 | Tanya Jawab: 90"


def test_detail_rows_order_and_evaluator_names():
    stamp = datetime(2026, 6, 1, 9, 5, 7)
    students = [FakeStudent("s1", "101", "Ani")]
    records = [
        examiner("s1", EvaluatorRole.PENGUJI_2, 60.0, timestamp=stamp),
        supervisor("s1", EvaluatorRole.PEMBIMBING_1, 3, timestamp=stamp),
        examiner("s1", EvaluatorRole.PENGUJI_1, 80.0, timestamp=stamp),
    ]
    rows = detail_rows(students, records, SIDANG)
    assert [r[5] for r in rows] == ["Pembimbing 1", "Penguji 1", "Penguji 2"]
    assert rows[0][0] == "01/06/2026 16.05.07"
    assert rows[0][1] == "Sidang Skripsi"
    assert rows[0][6] == "Dr. Ani"
    assert rows[0][7] == "60.00"
    assert rows[2][6] == "-"
    assert len(rows[0]) == len(DETAIL_HEADERS)


def test_detail_rows_ignore_other_exam_type():
    students = [FakeStudent("s1", "101", "Ani")]
    other = AssessmentRecord("s1", EvaluatorRole.PENGUJI_1, ExamType.SEMINAR_PROPOSAL, ExaminerScoreSet(80, 80, 80, 80))
    assert detail_rows(students, [other], SIDANG) == []


def test_filenames():
    assert summary_filename(SIDANG, "csv") == "Rekap_Nilai_Sidang_Skripsi.csv"
    assert detail_filename(ExamType.SEMINAR_PROPOSAL, "xlsx") == "Arsip_Detail_Seminar_Proposal.xlsx"
    assert detail_filename(SIDANG, "csv", [FakeStudent("s1", "1", "Ani Putri")]) == "Arsip_Ani_Putri_Sidang_Skripsi.csv"


def test_timestamps_shown_in_display_zone():
    stamp = datetime(2026, 6, 1, 20, 30, 0)
    assert local_timestamp(stamp) == "02/06/2026 03.30.00"
    assert local_timestamp(stamp, tz=timezone.utc) == "01/06/2026 20.30.00"
    aware = datetime(2026, 6, 1, 20, 30, 0, tzinfo=timezone.utc)
    assert local_timestamp(aware, tz=ZoneInfo("Asia/Makassar")) == "02/06/2026 04.30.00"
    assert local_timestamp(None) == "-"

    students = [FakeStudent("s1", "101", "Ani")]
    records = [examiner("s1", EvaluatorRole.PENGUJI_1, 80.0, timestamp=stamp)]
    assert detail_rows(students, records, SIDANG, tz=timezone.utc)[0][0] == "01/06/2026 20.30.00"


def test_xlsx_drops_control_characters_from_proceedings():
    students = [FakeStudent("s1", "101", "Ani")]
    records = [supervisor(
        "s1", EvaluatorRole.PEMBIMBING_2, 4,
        proceedings=Proceedings(date="2026-06-01", time="10:00", events="Lancar", notes="baris\x0bdua"),
    )]
    payload = write_xlsx(DETAIL_HEADERS, detail_rows(students, records, SIDANG), sheet_title="Arsip Detail")
    ws = load_workbook(io.BytesIO(payload)).active
    breakdown = ws.cell(row=2, column=9).value
    assert breakdown.endswith("Catatan: barisdua")
    assert "\x0b" not in breakdown


def test_xlsx_keeps_formula_like_text_as_text():
    students = [FakeStudent("s1", "101", "=1+1")]
    payload = write_xlsx(SUMMARY_HEADERS, summary_rows(students, full_set("s1"), SIDANG))
    ws = load_workbook(io.BytesIO(payload)).active
    cell = ws.cell(row=2, column=2)
    assert cell.data_type == "s"
    assert cell.value == "=1+1"
