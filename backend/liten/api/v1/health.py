"""Health check endpoint."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from liten.api.deps import json_response, timing
from liten.core.extensions import db
from liten.models.base import utcnow

bp = Blueprint("health", __name__)
log = logging.getLogger(__name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return service identity and database reachability."""

    db_status = "UP"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        log.exception("healthcheck.db_error")
        db_status = "DOWN"
    payload = {
        "status": "UP",
        "service": current_app.config.get("APP_NAME", "Liten API"),
        "version": current_app.config.get("APP_VERSION", "dev"),
        "timestamp": utcnow().isoformat(),
        "db": db_status,
    }
    return json_response(payload)
