from flask import Blueprint

bp = Blueprint("auth", __name__)

from lightsout.routes.auth import routes  # noqa: F401, E402
