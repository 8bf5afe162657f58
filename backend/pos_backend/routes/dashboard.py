# backend/pos_backend/routes/dashboard.py
from flask import Blueprint, current_app

from ..decorators import require_auth
from ..errors import internal_error_response, success_response
from ..extensions import db
from ..services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def stats_route():
    try:
        stats = reporting_service.get_stats(
            db.session,
            low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"],
        )
        return success_response(stats)
    except Exception:
        current_app.logger.exception("Failed to load dashboard stats")
        return internal_error_response()
