import os
import secrets
import time
from flask import Flask, session, request, url_for, flash, redirect, current_app
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import RequestEntityTooLarge
from functools import wraps
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_caching import Cache
from werkzeug.exceptions import HTTPException
from flask_limiter.errors import RateLimitExceeded

# Global extensions
db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
def _rate_key():
    try:
        ip = (request.headers.get("X-Forwarded-For") or request.remote_addr or "local")
        token = (session.get("rlid") or "")
        path = (getattr(request, "path", "/") or "/")
        return f"{ip}|{token}|{path}"
    except Exception:
        return "local"

limiter = Limiter(key_func=_rate_key)
cache = Cache()


def _env_flag(name, default):
    return (os.environ.get(name, default).strip().lower() == "true")


def create_app():
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")

    REDIS_URL = os.environ.get("REDIS_URL")
    if REDIS_URL:
        app.config["CACHE_TYPE"] = "RedisCache"
        app.config["CACHE_REDIS_URL"] = REDIS_URL
        app.config["RATELIMIT_STORAGE_URI"] = REDIS_URL
    else:
        app.config["CACHE_TYPE"] = "SimpleCache"
    app.config["RATELIMIT_ENABLED"] = _env_flag("RATELIMIT_ENABLED", "true")
    app.config["STATS_CACHE_TIMEOUT"] = int(os.environ.get("STATS_CACHE_TIMEOUT", "60"))
    # Only the statistics page is cached
    app.config["CACHE_DEFAULT_TIMEOUT"] = app.config["STATS_CACHE_TIMEOUT"]
    # Roster uploads are small spreadsheets
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", str(8 * 1024 * 1024)))
    # CSRF token TTL (seconds)
    app.config["CSRF_TOKEN_TTL"] = int(os.environ.get("CSRF_TOKEN_TTL", "7200"))

    # Fixed program set; the first entry is the default for new and imported students
    programs = [p.strip() for p in os.environ.get("PROGRAMS", "K3,Kesling").split(",") if p.strip()]
    app.config["PROGRAMS"] = programs or ["K3"]
    # Export timestamps are shown in this zone
    app.config["DISPLAY_TIMEZONE"] = os.environ.get("DISPLAY_TIMEZONE", "Asia/Jakarta")

    app.logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

    # Database configuration: use DATABASE_URL if provided, else sqlite file
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        db_path = os.path.join(os.path.dirname(__file__), "..", "sidang.db")
        database_url = f"sqlite:///{os.path.abspath(db_path)}"

    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cache.init_app(app)
    # Auth: Flask-Login
    login_manager.init_app(app)
    login_manager.login_view = "main.login"
    login_manager.login_message = "Silakan login untuk membuka menu Database."
    login_manager.login_message_category = "warning"

    # Import models so they are registered with SQLAlchemy
    from . import models  # noqa: F401

    @app.before_request
    def select_exam_type():
        from .scoring.constants import ExamType
        raw = (request.values.get("exam_type") or "").strip()
        if raw:
            try:
                session["exam_type"] = ExamType.from_value(raw).value
            except ValueError:
                pass

    @app.context_processor
    def inject_exam_context():
        from .scoring.constants import ExamType, EvaluatorRole
        return {
            "active_exam_type": current_exam_type(),
            "exam_types": list(ExamType),
            "evaluator_roles": list(EvaluatorRole),
            "programs": app.config.get("PROGRAMS", []),
        }

    @app.context_processor
    def inject_csrf_token():
        token = session.get("csrf_token")
        issued_at = session.get("csrf_token_issued_at")
        ttl = app.config.get("CSRF_TOKEN_TTL", 7200)
        # Regenerate token if missing or expired
        now = int(time.time())
        if (not token) or (not issued_at) or (ttl > 0 and (now - int(issued_at)) > ttl):
            token = secrets.token_urlsafe(32)
            session["csrf_token"] = token
            session["csrf_token_issued_at"] = now
        def _csrf_token():
            return token
        return {"csrf_token": _csrf_token, "csrf_token_value": token}

    @app.before_request
    def ensure_rate_key():
        if not session.get("rlid"):
            session["rlid"] = secrets.token_urlsafe(16)

    @login_manager.user_loader
    def load_user(user_id: str):
        from .models import User
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    # Blueprints
    from .main.routes import main_bp
    app.register_blueprint(main_bp)

    from .assessments import assessments_bp
    app.register_blueprint(assessments_bp)

    from .recap import recap_bp
    app.register_blueprint(recap_bp)

    from .roster import roster_bp
    app.register_blueprint(roster_bp, url_prefix="/database")

    @app.errorhandler(RequestEntityTooLarge)
    def handle_large_upload(e):
        limit_bytes = app.config.get("MAX_CONTENT_LENGTH") or (8 * 1024 * 1024)
        limit_mb = max(1, int(limit_bytes / (1024 * 1024)))
        flash(f"Ukuran file melebihi batas unggah (maks {limit_mb} MB).", "danger")
        return redirect(request.referrer or url_for("main.index")), 413

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(e):
        from .api_utils import api_error
        return api_error("rate_limited", "Too many requests", 429)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        if request.path.startswith("/api/"):
            from .api_utils import api_error
            return api_error(str(e.code), e.description or "", e.code)
        return e

    # Create tables on first run (dev convenience)
    with app.app_context():
        db.create_all()
        _bootstrap_admin(app)

    return app


def _bootstrap_admin(app):
    username = (os.environ.get("ADMIN_USERNAME") or "").strip()
    password = os.environ.get("ADMIN_PASSWORD") or ""
    if not username or not password:
        return
    from werkzeug.security import generate_password_hash
    from .models import User
    if User.query.filter_by(username=username).first():
        return
    db.session.add(User(username=username, password_hash=generate_password_hash(password), role="admin"))
    db.session.commit()
    app.logger.info("Created management account %s", username)


def current_exam_type():
    from .scoring.constants import ExamType
    try:
        return ExamType.from_value(session.get("exam_type") or "")
    except ValueError:
        return ExamType.SIDANG_SKRIPSI


def csrf_required(view_func):
    @wraps(view_func)
    def _wrapped(*args, **kwargs):
        method = (request.method or "GET").upper()
        if method in ("POST", "PUT", "DELETE"):
            token = (request.form.get("csrf_token") or request.headers.get("X-CSRF-Token") or "").strip()
            sess_token = (session.get("csrf_token") or "")
            issued_at = session.get("csrf_token_issued_at")
            ttl = current_app.config.get("CSRF_TOKEN_TTL", 7200)
            now = int(time.time())
            expired = not issued_at or (ttl > 0 and (now - int(issued_at)) > ttl)
            # Expired, missing or mismatched token
            if expired or not token or token != sess_token:
                flash("Refresh the page or login again", "warning")
                return redirect(request.referrer or url_for("main.index"))
        return view_func(*args, **kwargs)
    return _wrapped
