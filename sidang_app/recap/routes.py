from zoneinfo import ZoneInfo

from flask import render_template, request, flash, redirect, url_for, current_app, Response, session
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError

from . import recap_bp
from .. import cache, csrf_required, current_exam_type
from ..api_utils import api_success, api_error
from ..scoring.constants import COMPLETION_LABELS, GRADE_LETTERS
from ..scoring.services import aggregate_all, compute_statistics, incomplete_students, pending_evaluators
from ..stores import AssessmentStore, StudentStore
from .services import (
    DETAIL_HEADERS, SUMMARY_HEADERS, detail_filename, detail_rows, summary_filename, summary_rows,
    write_csv, write_xlsx,
)

EXPORT_MIMETYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _prodi_filter():
    prodi = (request.args.get("prodi") or "").strip()
    return prodi if prodi in current_app.config["PROGRAMS"] else None


def _load(prodi=None):
    exam_type = current_exam_type()
    students = StudentStore().list_students(prodi=prodi)
    assessments = AssessmentStore().list_assessments(exam_type)
    return exam_type, students, assessments


def _export_response(headers, rows, fmt, filename, sheet_title):
    if fmt == "xlsx":
        payload = write_xlsx(headers, rows, sheet_title=sheet_title)
    else:
        payload = write_csv(headers, rows)
    return Response(payload, mimetype=EXPORT_MIMETYPES[fmt], headers={
        "Content-Disposition": f"attachment; filename={filename}"
    })


def _export_format():
    fmt = (request.values.get("format") or "csv").strip().lower()
    return fmt if fmt in EXPORT_MIMETYPES else None


@recap_bp.route("/rekap", methods=["GET"])
def index():
    prodi = _prodi_filter()
    exam_type, students, assessments = _load(prodi)
    aggregates = aggregate_all(students, assessments, exam_type)
    return render_template(
        "recap.html",
        aggregates=aggregates,
        selected_prodi=prodi or "",
        completion_labels=COMPLETION_LABELS,
    )


@recap_bp.route("/rekap/export", methods=["GET"])
def export_summary():
    fmt = _export_format()
    if not fmt:
        flash("Format ekspor tidak dikenal.", "danger")
        return redirect(url_for("recap.index"))
    prodi = _prodi_filter()
    exam_type, students, assessments = _load(prodi)
    rows = summary_rows(students, assessments, exam_type)
    if not rows:
        flash("Tidak ada data untuk diekspor.", "warning")
        return redirect(url_for("recap.index", prodi=prodi or None))
    current_app.logger.info("Summary export %s (%s, %d rows)", exam_type.value, fmt, len(rows))
    return _export_response(SUMMARY_HEADERS, rows, fmt, summary_filename(exam_type, fmt), "Rekap Nilai")


@recap_bp.route("/rekap/arsip", methods=["GET", "POST"])
@csrf_required
def export_detail():
    """
    Detailed archive of individual assessments.
    GET exports every student (optionally one program); POST exports the
    selected `student_ids`.
    """
    fmt = _export_format()
    if not fmt:
        flash("Format ekspor tidak dikenal.", "danger")
        return redirect(url_for("recap.index"))
    prodi = _prodi_filter()
    exam_type, students, assessments = _load(prodi)
    selected = None
    if request.method == "POST":
        wanted = set(request.form.getlist("student_ids"))
        if not wanted:
            flash("Pilih minimal satu mahasiswa.", "warning")
            return redirect(url_for("recap.index"))
        students = [s for s in students if s.student_id in wanted]
        selected = students
    return _detail_export(exam_type, students, assessments, fmt, selected)


@recap_bp.route("/rekap/arsip/<student_id>", methods=["GET"])
def export_student_detail(student_id):
    fmt = _export_format() or "csv"
    student = StudentStore().get_student(student_id)
    if not student:
        flash("Data mahasiswa tidak ditemukan.", "danger")
        return redirect(url_for("recap.index"))
    exam_type = current_exam_type()
    assessments = AssessmentStore().list_for_student(student.student_id, exam_type)
    return _detail_export(exam_type, [student], assessments, fmt, [student])


def _detail_export(exam_type, students, assessments, fmt, selected):
    rows = detail_rows(students, assessments, exam_type, tz=ZoneInfo(current_app.config["DISPLAY_TIMEZONE"]))
    if not rows:
        flash("Belum ada data penilaian untuk diekspor.", "warning")
        return redirect(url_for("recap.index"))
    current_app.logger.info("Detail export %s (%s, %d rows)", exam_type.value, fmt, len(rows))
    return _export_response(DETAIL_HEADERS, rows, fmt, detail_filename(exam_type, fmt, selected), "Arsip Detail")


@recap_bp.route("/rekap/hapus", methods=["POST"])
@login_required
@csrf_required
def delete_selected():
    exam_type = current_exam_type()
    student_ids = request.form.getlist("student_ids")
    if not student_ids:
        flash("Pilih minimal satu mahasiswa.", "warning")
        return redirect(url_for("recap.index"))
    store = AssessmentStore()
    try:
        deleted = store.delete_assessments(store.ids_for_students(student_ids, exam_type))
    except SQLAlchemyError:
        flash("Gagal menghapus data penilaian.", "danger")
        return redirect(url_for("recap.index"))
    flash(f"{deleted} data penilaian {exam_type.value} dihapus.", "success")
    return redirect(url_for("recap.index"))


@recap_bp.route("/rekap/hapus/<student_id>", methods=["POST"])
@login_required
@csrf_required
def delete_student_assessments(student_id):
    exam_type = current_exam_type()
    store = AssessmentStore()
    try:
        deleted = store.delete_assessments(store.ids_for_students([student_id], exam_type))
    except SQLAlchemyError:
        flash("Gagal menghapus data penilaian.", "danger")
        return redirect(url_for("recap.index"))
    flash(f"{deleted} data penilaian {exam_type.value} dihapus.", "success")
    return redirect(url_for("recap.index"))


def _stats_cache_key():
    # Rendered pages embed the session CSRF token
    return f"stats_{session.get('rlid', 'anon')}_{current_exam_type().name}_{request.full_path}"


@recap_bp.route("/statistik", methods=["GET"])
@cache.cached(key_prefix=_stats_cache_key, unless=lambda: session.get("_flashes"))
def stats():
    exam_type, students, assessments = _load()
    programs = current_app.config["PROGRAMS"]
    aggregates = aggregate_all(students, assessments, exam_type)
    statistics = compute_statistics(aggregates, programs=programs)
    prodi = _prodi_filter()
    return render_template(
        "stats.html",
        statistics=statistics,
        grade_letters=GRADE_LETTERS,
        pending=pending_evaluators(students, assessments, exam_type, prodi=prodi),
        incomplete=incomplete_students(students, assessments, exam_type, prodi=prodi),
        selected_prodi=prodi or "",
    )


# JSON API
@recap_bp.route("/api/recap", methods=["GET"])
def api_recap():
    prodi = _prodi_filter()
    exam_type, students, assessments = _load(prodi)
    items = [a.to_dict() for a in aggregate_all(students, assessments, exam_type)]
    return api_success({"items": items}, meta={"exam_type": exam_type.value, "count": len(items)})


@recap_bp.route("/api/statistics", methods=["GET"])
def api_statistics():
    exam_type, students, assessments = _load()
    aggregates = aggregate_all(students, assessments, exam_type)
    statistics = compute_statistics(aggregates, programs=current_app.config["PROGRAMS"])
    return api_success(statistics.to_dict(), meta={"exam_type": exam_type.value})


@recap_bp.route("/api/pending", methods=["GET"])
def api_pending():
    raw_prodi = (request.args.get("prodi") or "").strip()
    if raw_prodi and raw_prodi not in current_app.config["PROGRAMS"]:
        return api_error("invalid_prodi", f"Unknown program: {raw_prodi}", 400)
    exam_type, students, assessments = _load()
    prodi = raw_prodi or None
    pending = pending_evaluators(students, assessments, exam_type, prodi=prodi)
    incomplete = incomplete_students(students, assessments, exam_type, prodi=prodi)
    return api_success(
        {
            "pending": [p.to_dict() for p in pending],
            "incomplete": [a.to_dict() for a in incomplete],
        },
        meta={"exam_type": exam_type.value},
    )
