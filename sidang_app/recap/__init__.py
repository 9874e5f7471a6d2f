from flask import Blueprint

recap_bp = Blueprint("recap", __name__)

from . import routes  # noqa: E402,F401
