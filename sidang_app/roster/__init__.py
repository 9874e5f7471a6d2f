from flask import Blueprint

roster_bp = Blueprint("roster", __name__)

from . import routes  # noqa: E402,F401
