"""
ASE Blueprint - extraordinary service authorizations.

  GET  /api/v1/ase?mode=my|all&q=      - list, newest first
  POST /api/v1/ase                     - create (RASCUNHO | PENDENTE)
  GET  /api/v1/ase/<id>                - one record with team snapshots
  PUT  /api/v1/ase/<id>                - full edit, team set replaced
  POST /api/v1/ase/<id>/transition     - approve / reject / send_to_hr / complete
  GET  /api/v1/ase/<id>/export         - ?format=xlsx|html
  GET  /api/v1/ase/<id>/share          - prefilled messaging link
  GET  /api/v1/ase/man-hours           - HH calculator
  GET  /api/v1/ase/statuses            - status display mapping
"""

import logging

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from ase_fidel.blueprints import json_body, public_base_url
from ase_fidel.middleware.session_context import current_context, require_feature, require_session
from ase_fidel.services import ase_service, export_service, share_service
from ase_fidel.services.ase_lifecycle import all_status_displays, compute_man_hours
from ase_fidel.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ase_bp = Blueprint("ase_bp", __name__, url_prefix="/api/v1/ase")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ═══════════════════════════════════════════════════════════════
# List / read
# ═══════════════════════════════════════════════════════════════
@ase_bp.route("", methods=["GET"])
@require_feature("ase.my")
def list_ase():
    mode = request.args.get("mode", "my")
    items = ase_service.list_ase(current_context(), mode=mode, q=request.args.get("q"))
    return jsonify({
        "items": [ase_service.serialize_ase(a) for a in items],
        "total": len(items),
        "mode": mode,
    }), 200


@ase_bp.route("/<int:ase_id>", methods=["GET"])
@require_session
def get_ase(ase_id):
    ase = ase_service.get_ase(current_context(), ase_id)
    return jsonify(ase_service.serialize_ase(ase, include_team=True)), 200


# ═══════════════════════════════════════════════════════════════
# Create / edit
# ═══════════════════════════════════════════════════════════════
@ase_bp.route("", methods=["POST"])
@require_feature("ase.create")
def create_ase():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    ase = ase_service.save_ase(current_context(), data)
    return jsonify(ase_service.serialize_ase(ase, include_team=True)), 201


@ase_bp.route("/<int:ase_id>", methods=["PUT"])
@require_feature("ase.create")
def update_ase(ase_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    ase = ase_service.save_ase(current_context(), data, ase_id=ase_id)
    return jsonify(ase_service.serialize_ase(ase, include_team=True)), 200


# ═══════════════════════════════════════════════════════════════
# Approval flow
# ═══════════════════════════════════════════════════════════════
@ase_bp.route("/<int:ase_id>/transition", methods=["POST"])
@require_session
def transition(ase_id):
    """Body: { "action": "approve|reject|send_to_hr|complete", "note": "..." }"""
    data = json_body() or {}
    action = data.get("action")
    if not action or not isinstance(action, str):
        return api_error(E.VALIDATION_REQUIRED, "action is required")
    ase = ase_service.transition_ase(current_context(), ase_id, action, data.get("note"))
    return jsonify(ase_service.serialize_ase(ase, include_team=True)), 200


# ═══════════════════════════════════════════════════════════════
# Export / share
# ═══════════════════════════════════════════════════════════════
@ase_bp.route("/<int:ase_id>/export", methods=["GET"])
@require_session
def export(ase_id):
    fmt = request.args.get("format", "xlsx").lower()
    if fmt not in ("xlsx", "html"):
        return api_error(E.VALIDATION_INVALID, "format must be 'xlsx' or 'html'")
    ase = ase_service.get_ase(current_context(), ase_id)
    company = current_app.config.get("COMPANY_NAME", "HC Engenharia")

    if fmt == "html":
        return Response(export_service.export_ase_html(ase, company), mimetype="text/html")
    return send_file(
        export_service.export_ase_xlsx(ase, company),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f"{ase.number}.xlsx",
    )


@ase_bp.route("/<int:ase_id>/share", methods=["GET"])
@require_session
def share(ase_id):
    ase = ase_service.get_ase(current_context(), ase_id)
    company = current_app.config.get("COMPANY_NAME", "HC Engenharia")
    return jsonify(share_service.build_share_link(ase, public_base_url(), company)), 200


# ═══════════════════════════════════════════════════════════════
# Calculator / status mapping
# ═══════════════════════════════════════════════════════════════
@ase_bp.route("/man-hours", methods=["GET"])
@require_session
def man_hours():
    """?start_time=HH:MM&end_time=HH:MM&team_size=N"""
    try:
        team_size = int(request.args.get("team_size", "0"))
        hh = compute_man_hours(
            request.args.get("start_time"), request.args.get("end_time"), team_size,
        )
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))
    return jsonify({"man_hours": hh}), 200


@ase_bp.route("/statuses", methods=["GET"])
@require_session
def statuses():
    return jsonify({"items": all_status_displays()}), 200
