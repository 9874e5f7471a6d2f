import csv
import io
import re
from datetime import timezone
from zoneinfo import ZoneInfo

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font

from ..scoring.constants import (
    COMPLETION_LABELS, EXAMINER_COMPONENTS, FAIL_LABEL, PASS_LABEL, SUPERVISOR_RUBRIC_ITEMS,
    EvaluatorRole, ExamType, RoleCategory,
)
from ..scoring.services import aggregate_all


SUMMARY_HEADERS = [
    "NPM", "Nama", "Prodi",
    "Pembimbing 1 (35%)", "Pembimbing 2 (25%)",
    "Penguji 1 (20%)", "Penguji 2 (20%)",
    "Nilai Akhir", "Huruf Mutu", "Status Kelulusan", "Status Data",
]

DETAIL_HEADERS = [
    "Timestamp", "Jenis Ujian", "NPM", "Nama Mahasiswa", "Prodi", "Peran Penilai", "Nama Penilai", "Total Skor",
    "Detail Nilai / Catatan",
]

DEFAULT_DISPLAY_TIMEZONE = "Asia/Jakarta"
TIMESTAMP_FORMAT = "%d/%m/%Y %H.%M.%S"


def fmt_score(value):
    return "-" if value is None else f"{value:.2f}"


def pass_label(is_pass):
    if is_pass is None:
        return "-"
    return PASS_LABEL if is_pass else FAIL_LABEL


def summary_rows(students, assessments, exam_type):
    rows = []
    for agg in aggregate_all(students, assessments, exam_type):
        rows.append([
            agg.npm,
            agg.name,
            agg.prodi,
            fmt_score(agg.p1),
            fmt_score(agg.p2),
            fmt_score(agg.e1),
            fmt_score(agg.e2),
            f"{agg.final_score:.2f}",
            agg.letter or "-",
            pass_label(agg.is_pass),
            COMPLETION_LABELS[agg.completion],
        ])
    return rows


def _fmt_number(value):
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def score_breakdown(record):
    if record.role.category == RoleCategory.SUPERVISOR:
        details = " | ".join(
            f"{idx + 1}. {label}: {record.scores.items.get(idx, 0)}"
            for idx, label in enumerate(SUPERVISOR_RUBRIC_ITEMS)
        )
    else:
        values = record.scores.as_dict()
        details = " | ".join(f"{label}: {_fmt_number(values[key])}" for key, label, _ in EXAMINER_COMPONENTS)
    p = record.proceedings
    if p:
        details += f" || [Berita Acara] Tgl: {p.date}, Wkt: {p.time}, Kejadian: {p.events}, Catatan: {p.notes}"
    return details


def local_timestamp(ts, tz=None):
    """Stored timestamps are UTC; naive values are read as UTC."""
    if ts is None:
        return "-"
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz or ZoneInfo(DEFAULT_DISPLAY_TIMEZONE)).strftime(TIMESTAMP_FORMAT)


def detail_rows(students, assessments, exam_type, tz=None):
    """One row per assessment of the given students, in roster then role order."""
    exam_type = ExamType.from_value(exam_type)
    by_student = {}
    for a in assessments:
        if a.exam_type == exam_type:
            by_student.setdefault(a.student_id, []).append(a)
    role_order = {role: i for i, role in enumerate(EvaluatorRole)}

    rows = []
    for s in students:
        for a in sorted(by_student.get(s.student_id, []), key=lambda r: role_order[r.role]):
            evaluator = getattr(s, a.role.roster_field, "") or "-"
            rows.append([
                local_timestamp(a.timestamp, tz),
                exam_type.value,
                s.npm,
                s.name,
                s.prodi,
                a.role.value,
                evaluator,
                f"{a.total_score:.2f}",
                score_breakdown(a),
            ])
    return rows


def write_csv(headers, rows) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def _xlsx_value(value):
    # Control characters (e.g. \x0b from pasted text) are rejected by openpyxl
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def write_xlsx(headers, rows, sheet_title="Rekap") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([_xlsx_value(v) for v in row])
        # Exported text is data, never a formula
        for cell in ws[ws.max_row]:
            if cell.data_type == "f":
                cell.data_type = "s"
    ws.freeze_panes = "A2"
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _slug(text):
    return re.sub(r"[^a-zA-Z0-9]+", "_", text or "").strip("_")


def summary_filename(exam_type, ext):
    return f"Rekap_Nilai_{_slug(ExamType.from_value(exam_type).value)}.{ext}"


def detail_filename(exam_type, ext, students=None):
    exam = _slug(ExamType.from_value(exam_type).value)
    if students is not None and len(students) == 1:
        return f"Arsip_{_slug(students[0].name)}_{exam}.{ext}"
    return f"Arsip_Detail_{exam}.{ext}"
