"""
Dashboard Blueprint.

  GET /api/v1/dashboard/stats   - ASE counters, total HH, last six months of HH
"""

from flask import Blueprint, jsonify

from ase_fidel.middleware.session_context import require_feature
from ase_fidel.services.dashboard_service import get_stats

dashboard_bp = Blueprint("dashboard_bp", __name__, url_prefix="/api/v1/dashboard")


@dashboard_bp.route("/stats", methods=["GET"])
@require_feature("dashboard.view")
def stats():
    return jsonify(get_stats()), 200
