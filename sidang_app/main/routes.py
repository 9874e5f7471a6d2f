from flask import Blueprint, render_template, request, redirect, url_for, flash, session
from flask_login import login_user, logout_user, current_user
from sqlalchemy import select
from werkzeug.security import check_password_hash

from ..models import User
from .. import db, csrf_required, limiter

main_bp = Blueprint("main", __name__)


def _safe_next(target):
    # Only same-site relative paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


@main_bp.route("/")
def index():
    return redirect(url_for("assessments.home"))


@main_bp.route("/exam-type", methods=["POST"])
@csrf_required
def set_exam_type():
    # The before_request hook has already stored a valid `exam_type` in the session
    return redirect(_safe_next(request.form.get("next")) or request.referrer or url_for("assessments.home"))


# Authentication routes
@main_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("5 per minute", methods=["POST"])
@csrf_required
def login():
    if current_user.is_authenticated:
        return redirect(url_for("roster.index"))
    if request.method == "POST":
        username = (request.form.get("username") or "").strip()
        password = request.form.get("password") or ""
        if not username or not password:
            flash("Username dan password wajib diisi.", "danger")
            return render_template("login.html"), 400
        user = db.session.execute(select(User).filter_by(username=username)).scalars().first()
        if not user or not user.is_active or not user.password_hash or not check_password_hash(user.password_hash, password):
            flash("Username atau Password salah!", "danger")
            return render_template("login.html"), 401
        login_user(user)
        session.permanent = True
        flash("Berhasil masuk.", "success")
        return redirect(_safe_next(request.args.get("next")) or url_for("roster.index"))
    return render_template("login.html")


@main_bp.route("/logout")
def logout():
    if current_user.is_authenticated:
        logout_user()
        flash("Anda telah keluar.", "info")
    return redirect(url_for("assessments.home"))
