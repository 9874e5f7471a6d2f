from functools import wraps
from flask import flash, redirect, url_for, current_app
from flask_login import current_user, logout_user

MANAGEMENT_ROLES = ("admin", "staff")


def role_required(*roles):
    """
    Restricts a Database (management) view to accounts holding one of `roles`.
    Place it after @login_required. Deactivated accounts are signed out.
    """
    allowed = {r.strip().lower() for r in (roles or MANAGEMENT_ROLES)}

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()

            if not getattr(current_user, "is_active", True):
                logout_user()
                flash("Akun dinonaktifkan.", "warning")
                return redirect(url_for("main.login"))

            user_role = (getattr(current_user, "role", "") or "").strip().lower()
            if user_role not in allowed:
                current_app.logger.warning("Role %s denied for %s", user_role or "-", func.__name__)
                flash("Anda tidak memiliki akses ke halaman ini.", "danger")
                return redirect(url_for("assessments.home"))

            return func(*args, **kwargs)
        return wrapper
    return decorator
