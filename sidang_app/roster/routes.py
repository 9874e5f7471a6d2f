from flask import render_template, request, flash, redirect, url_for, current_app, Response
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from . import roster_bp
from .. import csrf_required
from ..decorators import MANAGEMENT_ROLES, role_required
from ..stores import StudentStore, STUDENT_FIELDS
from .services import ALLOWED_ROSTER_EXTS, import_roster, roster_csv


@roster_bp.route("/", methods=["GET"])
@login_required
@role_required(*MANAGEMENT_ROLES)
def index():
    search = (request.args.get("q") or "").strip()
    prodi = (request.args.get("prodi") or "").strip()
    if prodi not in current_app.config["PROGRAMS"]:
        prodi = ""
    students = StudentStore().list_students(prodi=prodi or None, search=search)
    return render_template("roster.html", students=students, search=search, selected_prodi=prodi)


def _form_data():
    return {name: (request.form.get(name) or "").strip() for name in STUDENT_FIELDS}


@roster_bp.route("/mahasiswa/baru", methods=["GET", "POST"])
@login_required
@role_required(*MANAGEMENT_ROLES)
@csrf_required
def add_student():
    if request.method == "POST":
        data = _form_data()
        try:
            student = StudentStore().upsert_student(data)
        except ValueError as e:
            flash(str(e), "danger")
            return render_template("student_form.html", student=None, data=data), 400
        except SQLAlchemyError:
            flash("Gagal menyimpan data mahasiswa.", "danger")
            return render_template("student_form.html", student=None, data=data), 500
        flash(f"Mahasiswa {student.name} ditambahkan.", "success")
        return redirect(url_for("roster.index"))
    return render_template("student_form.html", student=None, data={})


@roster_bp.route("/mahasiswa/<student_id>/edit", methods=["GET", "POST"])
@login_required
@role_required(*MANAGEMENT_ROLES)
@csrf_required
def edit_student(student_id):
    store = StudentStore()
    student = store.get_student(student_id)
    if not student:
        flash("Data mahasiswa tidak ditemukan.", "danger")
        return redirect(url_for("roster.index"))
    if request.method == "POST":
        data = _form_data()
        try:
            store.upsert_student(data, student_id=student.student_id)
        except ValueError as e:
            flash(str(e), "danger")
            return render_template("student_form.html", student=student, data=data), 400
        except SQLAlchemyError:
            flash("Gagal menyimpan data mahasiswa.", "danger")
            return render_template("student_form.html", student=student, data=data), 500
        flash("Data mahasiswa diperbarui.", "success")
        return redirect(url_for("roster.index"))
    return render_template("student_form.html", student=student, data=student.to_dict())


@roster_bp.route("/mahasiswa/<student_id>/hapus", methods=["POST"])
@login_required
@role_required(*MANAGEMENT_ROLES)
@csrf_required
def delete_student(student_id):
    try:
        deleted = StudentStore().delete_student(student_id)
    except SQLAlchemyError:
        flash("Gagal menghapus data mahasiswa.", "danger")
        return redirect(url_for("roster.index"))
    if deleted:
        flash("Mahasiswa beserta data penilaiannya dihapus.", "success")
    else:
        flash("Data mahasiswa tidak ditemukan.", "warning")
    return redirect(url_for("roster.index"))


@roster_bp.route("/mahasiswa/hapus", methods=["POST"])
@login_required
@role_required(*MANAGEMENT_ROLES)
@csrf_required
def delete_selected():
    student_ids = request.form.getlist("student_ids")
    if not student_ids:
        flash("Pilih minimal satu mahasiswa.", "warning")
        return redirect(url_for("roster.index"))
    try:
        deleted = StudentStore().delete_students(student_ids)
    except SQLAlchemyError:
        flash("Gagal menghapus data mahasiswa.", "danger")
        return redirect(url_for("roster.index"))
    flash(f"{deleted} mahasiswa dihapus.", "success")
    return redirect(url_for("roster.index"))


@roster_bp.route("/import", methods=["POST"])
@login_required
@role_required(*MANAGEMENT_ROLES)
@csrf_required
def import_students():
    file = request.files.get("file")
    if not file or not file.filename:
        flash("Pilih file CSV atau Excel terlebih dahulu.", "warning")
        return redirect(url_for("roster.index"))
    ext = file.filename.rsplit(".", 1)[-1].lower() if "." in file.filename else ""
    if ext not in ALLOWED_ROSTER_EXTS:
        flash("File harus berformat CSV atau Excel (.xlsx).", "danger")
        return redirect(url_for("roster.index"))

    dry_run = (request.form.get("dry_run") or "").lower() in ("1", "true", "on", "yes")
    try:
        result = import_roster(file.filename, file.read(), user_id=current_user.user_id, dry_run=dry_run)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("roster.index"))
    except SQLAlchemyError:
        flash("Import gagal disimpan ke database.", "danger")
        return redirect(url_for("roster.index"))

    prefix = "Uji coba: " if dry_run else ""
    flash(
        f"{prefix}{result['created']} dibuat, {result['updated']} diperbarui, {result['skipped']} dilewati.",
        "info" if dry_run else "success",
    )
    return redirect(url_for("roster.index"))


@roster_bp.route("/template.csv", methods=["GET"])
@login_required
@role_required(*MANAGEMENT_ROLES)
def export_roster():
    students = StudentStore().list_students()
    return Response(roster_csv(students), mimetype="text/csv", headers={
        "Content-Disposition": "attachment; filename=data_mahasiswa.csv"
    })
