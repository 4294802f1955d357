"""API blueprint - JSON endpoints for domain checks and service introspection."""

from __future__ import annotations

from flask import Blueprint

bp: Blueprint = Blueprint("api", __name__, url_prefix="/api")

from mailauth.api import routes  # noqa: E402, F401
