"""
Efetivo Blueprint - personnel roster and spreadsheet import.

  GET    /api/v1/efetivo?q=                 - search by name or matricula
  POST   /api/v1/efetivo                    - create employee
  PUT    /api/v1/efetivo/<id>               - update employee
  DELETE /api/v1/efetivo/<id>               - delete employee
  GET    /api/v1/efetivo/import/template    - CSV template
  POST   /api/v1/efetivo/import/preview     - parse + validate upload, nothing written
  POST   /api/v1/efetivo/import             - upsert by matricula (file or previewed rows)
"""

import logging

from flask import Blueprint, Response, jsonify, request

from ase_fidel.blueprints import json_body
from ase_fidel.middleware.session_context import require_feature
from ase_fidel.services import employee_import_service as importer
from ase_fidel.services import registry_service
from ase_fidel.utils.errors import E, api_error

logger = logging.getLogger(__name__)

efetivo_bp = Blueprint("efetivo_bp", __name__, url_prefix="/api/v1/efetivo")


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
@efetivo_bp.route("", methods=["GET"])
@require_feature("cadastros.view")
def list_employees():
    items = registry_service.search_employees(request.args.get("q"))
    return jsonify({"items": [e.to_dict() for e in items], "total": len(items)}), 200


@efetivo_bp.route("", methods=["POST"])
@require_feature("cadastros.manage")
def create_employee():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    employee = registry_service.create_employee(data)
    return jsonify(employee.to_dict()), 201


@efetivo_bp.route("/<int:employee_id>", methods=["PUT"])
@require_feature("cadastros.manage")
def update_employee(employee_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    employee = registry_service.update_employee(employee_id, data)
    return jsonify(employee.to_dict()), 200


@efetivo_bp.route("/<int:employee_id>", methods=["DELETE"])
@require_feature("cadastros.manage")
def delete_employee(employee_id):
    registry_service.delete_employee(employee_id)
    return jsonify({"deleted": True, "id": employee_id}), 200


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════
@efetivo_bp.route("/import/template", methods=["GET"])
@require_feature("efetivo.import")
def download_template():
    """Download the CSV template for the roster import."""
    return Response(
        importer.generate_csv_template(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=efetivo_template.csv"},
    )


@efetivo_bp.route("/import/preview", methods=["POST"])
@require_feature("efetivo.import")
def preview_import():
    """Parse and validate an uploaded .xlsx/.csv - dry run."""
    upload = _extract_file()
    if upload is None:
        return api_error(E.VALIDATION_REQUIRED, "Envie um arquivo .xlsx ou .csv no campo 'file'.")

    preview = importer.build_preview(importer.parse_upload(*upload))
    return jsonify({
        "total_rows": len(preview["valid"]) + len(preview["errors"]),
        "valid_count": len(preview["valid"]),
        "error_count": len(preview["errors"]),
        "skipped": preview["skipped"],
        "valid_rows": preview["valid"],
        "errors": preview["errors"],
    }), 200


@efetivo_bp.route("/import", methods=["POST"])
@require_feature("efetivo.import")
def run_import():
    """
    Import an uploaded file, or the ``rows`` of an earlier preview.

    200 when every row was imported, 207 when some failed, 400 when none did.
    """
    upload = _extract_file()
    if upload is not None:
        preview = importer.build_preview(importer.parse_upload(*upload))
        result = importer.execute_import(preview["valid"])
        result["errors"] = preview["errors"] + result["errors"]
        result["skipped"] = preview["skipped"]
        if preview["errors"]:
            result["status"] = "partial" if result["created"] or result["updated"] else "error"
    else:
        data = json_body() or {}
        rows = data.get("rows")
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            return api_error(E.VALIDATION_REQUIRED, "Envie um arquivo ou a lista 'rows' da pré-visualização.")
        result = importer.execute_import(rows)

    status_code = {"completed": 200, "partial": 207}.get(result["status"], 400)
    return jsonify(result), status_code


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════
def _extract_file() -> tuple[str, bytes] | None:
    """(filename, bytes) of the multipart ``file`` field, or None."""
    if request.files:
        file = request.files.get("file")
        if file and file.filename:
            return file.filename, file.read()
    return None
