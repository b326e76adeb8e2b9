"""
Registry Blueprint (cadastros) - reference tables for the ASE form.

  GET/POST        /api/v1/cadastros/sectors
  PUT/DELETE      /api/v1/cadastros/sectors/<id>
  GET/POST        /api/v1/cadastros/disciplines
  PUT/DELETE      /api/v1/cadastros/disciplines/<id>
  GET/POST        /api/v1/cadastros/subdisciplines?discipline_id=
  PUT/DELETE      /api/v1/cadastros/subdisciplines/<id>
  GET/POST        /api/v1/cadastros/people?type=GERENTE|SUPERVISOR|ENCARREGADO
  PUT/DELETE      /api/v1/cadastros/people/<id>

Reads need cadastros.view, writes need cadastros.manage.
"""

from flask import Blueprint, jsonify, request

from ase_fidel.blueprints import json_body
from ase_fidel.middleware.session_context import require_feature
from ase_fidel.services import registry_service as svc
from ase_fidel.utils.errors import E, api_error
from ase_fidel.utils.helpers import parse_id

registry_bp = Blueprint("registry_bp", __name__, url_prefix="/api/v1/cadastros")

# resource → (list, create, update, delete)
_RESOURCES = {
    "sectors": (svc.list_sectors, svc.create_sector, svc.update_sector, svc.delete_sector),
    "disciplines": (
        svc.list_disciplines, svc.create_discipline, svc.update_discipline, svc.delete_discipline,
    ),
    "subdisciplines": (
        svc.list_subdisciplines, svc.create_subdiscipline,
        svc.update_subdiscipline, svc.delete_subdiscipline,
    ),
    "people": (svc.list_people, svc.create_person, svc.update_person, svc.delete_person),
}

_RESOURCE_PATTERN = "<any(sectors, disciplines, subdisciplines, people):resource>"


def _list_filters(resource: str) -> dict:
    if resource == "subdisciplines":
        return {"discipline_id": parse_id(request.args.get("discipline_id"), "discipline_id")}
    if resource == "people":
        return {"person_type": request.args.get("type") or None}
    return {}


# ═══════════════════════════════════════════════════════════════
# Collection
# ═══════════════════════════════════════════════════════════════
@registry_bp.route(f"/{_RESOURCE_PATTERN}", methods=["GET"])
@require_feature("cadastros.view")
def list_items(resource):
    list_fn = _RESOURCES[resource][0]
    items = list_fn(**_list_filters(resource))
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)}), 200


@registry_bp.route(f"/{_RESOURCE_PATTERN}", methods=["POST"])
@require_feature("cadastros.manage")
def create_item(resource):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    item = _RESOURCES[resource][1](data)
    return jsonify(item.to_dict()), 201


# ═══════════════════════════════════════════════════════════════
# Item
# ═══════════════════════════════════════════════════════════════
@registry_bp.route(f"/{_RESOURCE_PATTERN}/<int:item_id>", methods=["PUT"])
@require_feature("cadastros.manage")
def update_item(resource, item_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    item = _RESOURCES[resource][2](item_id, data)
    return jsonify(item.to_dict()), 200


@registry_bp.route(f"/{_RESOURCE_PATTERN}/<int:item_id>", methods=["DELETE"])
@require_feature("cadastros.manage")
def delete_item(resource, item_id):
    _RESOURCES[resource][3](item_id)
    return jsonify({"deleted": True, "id": item_id}), 200
