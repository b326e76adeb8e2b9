"""
ASE Service - data gateway for extraordinary service authorizations.

Parses the JSON payload into typed column values at the boundary and
applies the lifecycle rules from ase_lifecycle:

    ase = save_ase(ctx, payload)               # create (RASCUNHO | PENDENTE)
    ase = save_ase(ctx, payload, ase_id=7)     # full edit, team set replaced
    ase = transition_ase(ctx, 7, "approve")    # approval flow

``ctx`` is the caller's SessionContext. A missing context raises
AuthenticationError before anything is written.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from ase_fidel.core.exceptions import (
    AuthenticationError,
    PermissionDeniedError,
    TransitionError,
    ValidationError,
)
from ase_fidel.models import db
from ase_fidel.models.ase import (
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_REJECTED,
    Ase,
    AseTeamMember,
)
from ase_fidel.models.registry import (
    PERSON_ENCARREGADO,
    PERSON_GERENTE,
    PERSON_SUPERVISOR,
    Discipline,
    Employee,
    Person,
    Sector,
    Subdiscipline,
)
from ase_fidel.services import access_policy
from ase_fidel.services.ase_lifecycle import (
    check_entry_transition,
    compute_man_hours,
    status_display,
    validate_time_window,
    validate_transition,
)
from ase_fidel.utils.helpers import get_or_404, parse_date, parse_id, parse_time

logger = logging.getLogger(__name__)

MSG_REQUESTER_REQUIRED = "Usuário não autenticado. Faça login para salvar a ASE."
NUMBER_PREFIX = "ASE"


# ═════════════════════════════════════════════════════════════════════════════
# Payload parsing
# ═════════════════════════════════════════════════════════════════════════════

def _require_ctx(ctx):
    if ctx is None:
        raise AuthenticationError(MSG_REQUESTER_REQUIRED, 401)


def _team_ids(raw) -> list[int]:
    """Employee ids in submitted order, duplicates dropped."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("team must be a list of employee ids", details={"team": raw})
    ids = []
    for value in raw:
        if isinstance(value, dict):
            value = value.get("id")
        emp_id = parse_id(value, "team")
        if emp_id is not None and emp_id not in ids:
            ids.append(emp_id)
    return ids


def _person_ref(data: dict, field: str, person_type: str, required: bool = False):
    person_id = parse_id(data.get(field), field)
    if person_id is None:
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    person = get_or_404(Person, person_id)
    if person.type != person_type:
        raise ValidationError(
            f"{field} must reference a person of type {person_type}",
            details={field: person_id, "type": person.type},
        )
    return person.id


def parse_ase_payload(data: dict) -> dict:
    """
    Turn a request body into column values for Ase.

    Raises ValidationError on missing fields, malformed values or
    references of the wrong kind.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    errors = {}
    ase_date = parse_date(data.get("date"))
    if ase_date is None:
        errors["date"] = "required (YYYY-MM-DD)"
    start = parse_time(data.get("start_time"))
    if start is None:
        errors["start_time"] = "required (HH:MM)"
    end = parse_time(data.get("end_time"))
    if end is None:
        errors["end_time"] = "required (HH:MM)"
    if errors:
        raise ValidationError("Preencha os campos obrigatórios.", details=errors)
    validate_time_window(start, end)

    sector_id = parse_id(data.get("sector_id"), "sector_id")
    if sector_id is None:
        raise ValidationError("sector_id is required", details={"sector_id": "required"})
    get_or_404(Sector, sector_id)

    discipline_id = parse_id(data.get("discipline_id"), "discipline_id")
    if discipline_id is not None:
        get_or_404(Discipline, discipline_id)
    subdiscipline_id = parse_id(data.get("subdiscipline_id"), "subdiscipline_id")
    if subdiscipline_id is not None:
        sub = get_or_404(Subdiscipline, subdiscipline_id)
        if sub.discipline_id != discipline_id:
            raise ValidationError(
                "subdiscipline_id does not belong to discipline_id",
                details={"subdiscipline_id": subdiscipline_id, "discipline_id": discipline_id},
            )

    justification = data.get("justification") or ""
    if not isinstance(justification, str):
        raise ValidationError("justification must be text", details={"justification": justification})

    return {
        "date": ase_date,
        "start_time": start,
        "end_time": end,
        "sector_id": sector_id,
        "manager_id": _person_ref(data, "manager_id", PERSON_GERENTE, required=True),
        "supervisor_id": _person_ref(data, "supervisor_id", PERSON_SUPERVISOR),
        "encarregado_id": _person_ref(data, "encarregado_id", PERSON_ENCARREGADO),
        "discipline_id": discipline_id,
        "subdiscipline_id": subdiscipline_id,
        "justification": justification.strip(),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Numbering
# ═════════════════════════════════════════════════════════════════════════════

def generate_number(year: int | None = None) -> str:
    """Next display number for ``year``: ASE-<year>-<seq:04d>."""
    year = year or datetime.now(timezone.utc).year
    prefix = f"{NUMBER_PREFIX}-{year}-"
    numbers = db.session.query(Ase.number).filter(Ase.number.like(f"{prefix}%")).all()
    highest = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════

def man_hours_for(ase: Ase) -> float:
    return compute_man_hours(ase.start_time, ase.end_time, len(ase.team))


def serialize_ase(ase: Ase, include_team: bool = False) -> dict:
    d = ase.to_dict(include_team=include_team)
    d["man_hours"] = man_hours_for(ase)
    d["status_display"] = status_display(ase.status)
    return d


def list_ase(ctx, mode: str = "my", q: str | None = None) -> list[Ase]:
    """
    ASE records newest first.

    mode="my" limits to the caller's own requests; mode="all" needs the
    ``ase.all`` feature. ``q`` matches the number or the sector name.
    """
    _require_ctx(ctx)
    if mode not in ("my", "all"):
        raise ValidationError("mode must be 'my' or 'all'", details={"mode": mode})

    query = Ase.query
    if mode == "all":
        access_policy.ensure(ctx.role, "ase.all")
    else:
        query = query.filter(Ase.requester_user_id == ctx.user_id)

    term = (q or "").strip().lower()
    if term:
        query = query.outerjoin(Sector, Ase.sector_id == Sector.id).filter(or_(
            func.lower(Ase.number).contains(term, autoescape=True),
            func.lower(Sector.name).contains(term, autoescape=True),
        ))
    return query.order_by(Ase.created_at.desc(), Ase.id.desc()).all()


def get_ase(ctx, ase_id: int) -> Ase:
    """One ASE. Callers without ``ase.all`` only see their own."""
    _require_ctx(ctx)
    ase = get_or_404(Ase, ase_id)
    if ase.requester_user_id != ctx.user_id and not access_policy.can(ctx.role, "ase.all"):
        raise PermissionDeniedError("ase.all", ctx.role)
    return ase


# ═════════════════════════════════════════════════════════════════════════════
# Save (create / edit)
# ═════════════════════════════════════════════════════════════════════════════

def _replace_team(ase: Ase, employee_ids: list[int]) -> None:
    """Swap the whole team-snapshot set for ``employee_ids``."""
    employees = {}
    if employee_ids:
        employees = {
            e.id: e for e in Employee.query.filter(Employee.id.in_(employee_ids)).all()
        }
    missing = [i for i in employee_ids if i not in employees]
    if missing:
        raise ValidationError("Unknown employees in team", details={"team": missing})

    ase.team.clear()
    # Delete the old rows before inserting, the (ase_id, employee_id) pair is unique
    db.session.flush()
    for emp_id in employee_ids:
        emp = employees[emp_id]
        ase.team.append(AseTeamMember(
            employee_id=emp.id,
            snapshot_matricula=emp.matricula,
            snapshot_name=emp.name,
            snapshot_function=emp.function,
        ))


def save_ase(ctx, payload: dict, ase_id: int | None = None) -> Ase:
    """
    Create or fully edit an ASE and commit.

    ``payload["status"]`` picks the entry transition: RASCUNHO (draft,
    the default) or PENDENTE (submit for approval). Submitting needs a
    discipline.
    """
    _require_ctx(ctx)
    fields = parse_ase_payload(payload)
    team_ids = _team_ids(payload.get("team"))
    status = payload.get("status") or STATUS_DRAFT
    if not isinstance(status, str):
        raise ValidationError("status must be text", details={"status": status})
    target = status.strip().upper()

    ase = None
    if ase_id is not None:
        ase = get_or_404(Ase, ase_id)
        if ase.requester_user_id != ctx.user_id and not access_policy.can(ctx.role, "ase.edit_any"):
            raise PermissionDeniedError("ase.edit_any", ctx.role)

    check_entry_transition(ase.status if ase else None, target, len(team_ids))
    if target == STATUS_PENDING and fields["discipline_id"] is None:
        raise ValidationError(
            "Selecione a disciplina antes de enviar para aprovação.",
            details={"discipline_id": "required"},
        )

    try:
        if ase is None:
            ase = Ase(number=generate_number(), requester_user_id=ctx.user_id)
            db.session.add(ase)
        elif ase.status == STATUS_REJECTED:
            # Re-entering the flow clears the previous decision
            ase.decision_note = None
            ase.decided_by = None
            ase.decided_at = None
        for key, value in fields.items():
            setattr(ase, key, value)
        ase.status = target
        _replace_team(ase, team_ids)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to save ASE (id=%s) for user %s", ase_id, ctx.user_id)
        raise
    except ValidationError:
        db.session.rollback()
        raise

    logger.info(
        "ASE %s saved as %s with %d team member(s)",
        ase.number, ase.status, len(team_ids),
        extra={"user_id": ctx.user_id, "ase_id": ase.id},
    )
    return ase


# ═════════════════════════════════════════════════════════════════════════════
# Approval transitions
# ═════════════════════════════════════════════════════════════════════════════

def transition_ase(ctx, ase_id: int, action: str, note: str | None = None) -> Ase:
    """Apply an approval action (approve, reject, send_to_hr, complete)."""
    _require_ctx(ctx)
    ase = get_or_404(Ase, ase_id)

    result = validate_transition(ase.status, action)
    if result["feature"] is None:
        raise ValidationError(result["reason"], details={"action": action})
    access_policy.ensure(ctx.role, result["feature"])
    if not result["valid"]:
        raise TransitionError(action, ase.status, result["reason"])

    note = (note or "").strip() if isinstance(note, str) else ""
    if action == "reject" and not note:
        raise ValidationError(
            "Informe o motivo da reprovação.", details={"note": "required"},
        )

    ase.status = result["to"]
    if action in ("approve", "reject"):
        ase.decision_note = note or None
        ase.decided_by = ctx.user_id
        ase.decided_at = datetime.now(timezone.utc)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to %s ASE %s", action, ase_id)
        raise

    logger.info(
        "ASE %s: %s → %s", ase.number, result["from"], result["to"],
        extra={"user_id": ctx.user_id, "ase_id": ase.id},
    )
    return ase
