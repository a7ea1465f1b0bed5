# Marketing campaigns: audiences, history and WhatsApp dispatch
from flask import Blueprint, jsonify, request, current_app

from ...extensions import db
from ...models import MarketingCampaign, Studio
from ...scheduler import schedule_campaign
from ...services import marketing
from ...utils.auth import owner_studio_required, studio_member_required

marketing_bp = Blueprint("marketing", __name__, url_prefix="/api/marketing")

MARKETING = "can_access_marketing"


def _birthday_month(value):
    """1-12, None when absent. Raises ValueError on anything else."""
    if value is None or value == "":
        return None
    month = int(value)
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    return month


def _audience_filters(source):
    return {
        "month": _birthday_month(source.get("month")),
        "professional_id": source.get("professional_id"),
        "search": source.get("search"),
    }


@marketing_bp.route("/studios/<int:studio_id>/campaigns", methods=["GET"])
@studio_member_required(MARKETING)
def list_campaigns(studio_id):
    return jsonify(marketing.get_campaigns(studio_id)), 200


@marketing_bp.route("/studios/<int:studio_id>/campaigns", methods=["POST"])
@studio_member_required(MARKETING)
def add_campaign(studio_id):
    data = request.get_json(force=True) or {}
    data["studio_id"] = studio_id
    result = marketing.create_campaign(data)
    if not result["success"]:
        return jsonify(result), 400
    return jsonify(result), 201


@marketing_bp.route("/studios/<int:studio_id>/audience", methods=["GET"])
@studio_member_required(MARKETING)
def preview_audience(studio_id):
    """
    GET /api/marketing/studios/<studio_id>/audience?audience=birthday&month=5&professional_id=&search=
    Purpose: Who would receive a campaign. Clients without phone are never listed.
    """
    audience = request.args.get("audience", "all")
    if audience not in marketing.AUDIENCES:
        return jsonify({"error": f"Unknown audience '{audience}'"}), 400
    try:
        filters = _audience_filters(request.args)
    except ValueError:
        return jsonify({"error": "month must be a number from 1 to 12"}), 400
    recipients = marketing.get_audience(studio_id, audience, filters)
    return jsonify({"count": len(recipients), "clients": recipients}), 200


@marketing_bp.route("/studios/<int:studio_id>/metrics", methods=["GET"])
@studio_member_required(MARKETING)
def get_metrics(studio_id):
    return jsonify(marketing.get_marketing_metrics(studio_id)), 200


@marketing_bp.route("/campaigns/<int:campaign_id>/send", methods=["POST"])
@owner_studio_required(MarketingCampaign, "campaign_id", MARKETING)
def send_campaign(campaign_id):
    """
    Queue a campaign for sending
    ---
    tags:
      - Marketing
    parameters:
      - in: path
        name: campaign_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            audience:
              type: string
              enum: [all, birthday, winback, return]
            month:
              type: integer
            professional_id:
              type: integer
            search:
              type: string
    responses:
      202:
        description: Campaign queued on the background scheduler
      400:
        description: Empty audience, wrong channel or WhatsApp not connected
      404:
        description: Campaign not found
    """
    campaign = db.session.get(MarketingCampaign, campaign_id)
    if not campaign:
        return jsonify({"error": "Campaign not found"}), 404
    if campaign.channel != "whatsapp":
        return jsonify({"error": "Only WhatsApp campaigns can be sent"}), 400
    studio = db.session.get(Studio, campaign.studio_id)
    if not studio or not studio.whatsapp_instance_name or not studio.whatsapp_token:
        return jsonify({"error": "WhatsApp not configured for this studio"}), 400

    data = request.get_json(silent=True) or {}
    audience = data.get("audience") or (
        campaign.type if campaign.type in marketing.AUDIENCES else "all"
    )
    if audience not in marketing.AUDIENCES:
        return jsonify({"error": f"Unknown audience '{audience}'"}), 400
    try:
        filters = _audience_filters(data)
    except (TypeError, ValueError):
        return jsonify({"error": "month must be a number from 1 to 12"}), 400
    recipients = [
        {"name": r["name"], "phone": r["phone"]}
        for r in marketing.get_audience(campaign.studio_id, audience, filters)
    ]
    if not recipients:
        return jsonify({"error": "Audience is empty"}), 400

    campaign.status = "scheduled"
    campaign.audience_count = len(recipients)
    db.session.commit()

    job_id = schedule_campaign(current_app._get_current_object(), campaign.id, recipients)
    current_app.logger.info(f"Campaign {campaign.id} queued for {len(recipients)} recipients")
    return jsonify({
        "status": "scheduled",
        "job_id": job_id,
        "audience_count": len(recipients),
    }), 202
