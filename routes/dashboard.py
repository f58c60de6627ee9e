"""Dashboard aggregation endpoints."""
from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from services.dashboard_service import build_alerts, build_metrics, recent_projects
from services.project_service import visible_projects_query

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _visible_projects():
    return visible_projects_query(g.user).all()


@dashboard_bp.route("/metrics", methods=["GET"])
def metrics():
    return jsonify({"success": True, "metrics": build_metrics(_visible_projects())})


@dashboard_bp.route("/recent-projects", methods=["GET"])
def recent():
    limit = request.args.get("limit", default=5, type=int)
    return jsonify(
        {"success": True, "projects": recent_projects(_visible_projects(), limit=limit)}
    )


@dashboard_bp.route("/alerts", methods=["GET"])
def alerts():
    due_soon_days = current_app.config.get("DUE_SOON_DAYS", 7)
    return jsonify(
        {
            "success": True,
            "alerts": build_alerts(_visible_projects(), due_soon_days=due_soon_days),
        }
    )
