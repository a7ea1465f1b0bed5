from flask import Blueprint, jsonify, current_app

from ...services.booking import get_upcoming_appointments
from ...services.dashboard import get_stats
from ...services.loyalty_ledger import get_dashboard_metrics
from ...utils.auth import studio_member_required

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("/<int:studio_id>", methods=["GET"])
@studio_member_required("can_view_financials")
def get_dashboard(studio_id):
    """
    Studio home screen numbers
    ---
    tags:
      - Dashboard
    parameters:
      - in: path
        name: studio_id
        type: integer
        required: true
    responses:
      200:
        description: Totals, monthly revenue, cashback metrics and the next appointments
      500:
        description: Database error
    """
    try:
        stats = get_stats(studio_id)
        stats["loyalty"] = get_dashboard_metrics(studio_id)
        stats["upcoming"] = get_upcoming_appointments(studio_id)
        return jsonify(stats), 200
    except Exception as e:
        current_app.logger.error(f"Failed to build dashboard for studio {studio_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to get dashboard", "details": str(e)}), 500
