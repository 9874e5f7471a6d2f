from datetime import datetime

from flask import render_template, request, flash, redirect, url_for, current_app, abort
from sqlalchemy.exc import SQLAlchemyError

from . import assessments_bp
from .. import csrf_required, current_exam_type
from ..scoring.constants import (
    EXAMINER_COMPONENTS, PROCEEDINGS_ROLE, SUPERVISOR_RUBRIC_ITEMS, RUBRIC_MAX, RUBRIC_MIN,
    EvaluatorRole, RoleCategory,
)
from ..scoring.services import (
    AssessmentRecord, Proceedings, parse_examiner_form, parse_proceedings_form, parse_supervisor_form,
)
from ..stores import AssessmentStore, StudentStore


def _role_from_slug(role_slug):
    try:
        return EvaluatorRole.from_value(role_slug)
    except ValueError:
        abort(404)


def role_slug(role):
    return role.name.lower()


@assessments_bp.app_context_processor
def inject_role_slug():
    return {"role_slug": role_slug}


@assessments_bp.route("/penilaian", methods=["GET"])
def home():
    """
    Entry point for evaluators: pick role, program and student,
    then continue to the matching scoring form.
    """
    programs = current_app.config["PROGRAMS"]
    selected_role = (request.args.get("role") or "").strip()
    selected_prodi = (request.args.get("prodi") or "").strip()
    selected_student = (request.args.get("student_id") or "").strip()

    if selected_role and selected_student:
        role = _role_from_slug(selected_role)
        return redirect(url_for("assessments.form", role_slug=role_slug(role), student_id=selected_student))

    students = StudentStore().list_students(prodi=selected_prodi) if selected_prodi in programs else []
    return render_template(
        "home.html",
        students=students,
        selected_role=selected_role,
        selected_prodi=selected_prodi,
    )


@assessments_bp.route("/penilaian/<role_slug>/<student_id>", methods=["GET", "POST"])
@csrf_required
def form(role_slug, student_id):
    role = _role_from_slug(role_slug)
    exam_type = current_exam_type()
    student = StudentStore().get_student(student_id)
    if not student:
        flash("Data mahasiswa tidak ditemukan.", "danger")
        return redirect(url_for("assessments.home"))

    store = AssessmentStore()
    existing = store.get(exam_type, role, student.student_id)

    if request.method == "POST":
        try:
            proceedings = None
            if role.category == RoleCategory.SUPERVISOR:
                scores = parse_supervisor_form(request.form)
                if role == PROCEEDINGS_ROLE:
                    proceedings = parse_proceedings_form(request.form)
            else:
                scores = parse_examiner_form(request.form)
            record = AssessmentRecord(
                student_id=student.student_id,
                role=role,
                exam_type=exam_type,
                scores=scores,
                proceedings=proceedings,
            )
        except ValueError as e:
            flash(str(e), "danger")
            return _render_form(role, student, existing, form_values=request.form), 400

        try:
            store.upsert_assessment(record)
        except SQLAlchemyError:
            flash("Gagal menyimpan nilai. Silakan coba lagi.", "danger")
            return _render_form(role, student, existing, form_values=request.form), 500

        flash(f"Nilai {role.value} untuk {student.name} tersimpan (total {record.total_score:.2f}).", "success")
        return redirect(url_for("assessments.form", role_slug=role_slug, student_id=student.student_id))

    return _render_form(role, student, existing)


def _render_form(role, student, existing, form_values=None):
    now = datetime.now()
    proceedings = (existing.proceedings if existing else None) or Proceedings(
        date=now.strftime("%Y-%m-%d"), time=now.strftime("%H:%M")
    )
    if role.category == RoleCategory.SUPERVISOR:
        return render_template(
            "supervisor_form.html",
            role=role,
            student=student,
            existing=existing,
            rubric_items=SUPERVISOR_RUBRIC_ITEMS,
            rubric_scale=range(RUBRIC_MIN, RUBRIC_MAX + 1),
            with_proceedings=(role == PROCEEDINGS_ROLE),
            proceedings=proceedings,
            form_values=form_values or {},
        )
    return render_template(
        "examiner_form.html",
        role=role,
        student=student,
        existing=existing,
        components=EXAMINER_COMPONENTS,
        form_values=form_values or {},
    )
