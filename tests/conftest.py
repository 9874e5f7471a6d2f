import os
import time
import tempfile

import pytest
from werkzeug.security import generate_password_hash

from sidang_app import create_app, db, cache
from sidang_app.models import User, Student, Assessment, ImportLog


@pytest.fixture(scope="session")
def temp_db_path():
    fd, path = tempfile.mkstemp(prefix="sidang_test_", suffix=".db")
    os.close(fd)
    uri_path = path.replace("\\", "/")
    os.environ["DATABASE_URL"] = f"sqlite:///{uri_path}"
    os.environ["RATELIMIT_ENABLED"] = "false"
    os.environ.pop("REDIS_URL", None)
    os.environ.pop("ADMIN_USERNAME", None)
    os.environ.pop("ADMIN_PASSWORD", None)
    yield path
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def app(temp_db_path):
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        if not User.query.filter_by(username="testuser").first():
            u = User(username="testuser", password_hash=generate_password_hash("secret"), role="admin")
            db.session.add(u)
            db.session.commit()
    return app


@pytest.fixture(autouse=True)
def clean_tables(app):
    yield
    with app.app_context():
        db.session.rollback()
        db.session.query(Assessment).delete()
        db.session.query(Student).delete()
        db.session.query(ImportLog).delete()
        db.session.commit()
        cache.clear()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def csrf(client):
    """Seeds a fresh CSRF token into the client session and returns it."""
    token = "test-csrf-token"
    with client.session_transaction() as sess:
        sess["csrf_token"] = token
        sess["csrf_token_issued_at"] = int(time.time())
    return token


@pytest.fixture()
def logged_in(client, csrf):
    resp = client.post("/login", data={"username": "testuser", "password": "secret", "csrf_token": csrf})
    assert resp.status_code == 302
    return client


@pytest.fixture()
def make_student(app):
    def _make(npm="2001", name="Budi", prodi="K3", **evaluators):
        defaults = {
            "pembimbing1": "Dr. Ani",
            "pembimbing2": "Dr. Bambang",
            "penguji1": "Dr. Citra",
            "penguji2": "Dr. Dedi",
        }
        defaults.update(evaluators)
        with app.app_context():
            s = Student(
                student_id=f"mhs-{npm}",
                npm=npm,
                name=name,
                prodi=prodi,
                title="Analisis Risiko K3",
                **defaults,
            )
            db.session.add(s)
            db.session.commit()
            return s.student_id
    return _make
