"""
ASE Lifecycle - man-hour calculation, status rules and status display.

Statuses:
    RASCUNHO → PENDENTE → APROVADA → ENVIADA_DP → CONCLUIDA
                        ↘ REPROVADA → (edited) → RASCUNHO | PENDENTE

Entry transitions (requester):
    save_draft          → RASCUNHO
    submit              → PENDENTE   (needs at least one team member)

Approval transitions (approvers), see ASE_TRANSITIONS:
    approve, reject, send_to_hr, complete

Usage:
    from ase_fidel.services.ase_lifecycle import compute_man_hours, check_entry_transition

    compute_man_hours("17:00", "19:30", 4)   # → 10.0
"""

from datetime import datetime, time

from ase_fidel.core.exceptions import TransitionError, ValidationError
from ase_fidel.models.ase import (
    STATUS_APPROVED,
    STATUS_COMPLETED,
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_SENT_TO_HR,
    STATUSES,
)
from ase_fidel.utils.helpers import parse_time

# Statuses in which the requester may still edit and re-submit
EDITABLE_STATUSES = frozenset({STATUS_DRAFT, STATUS_PENDING, STATUS_REJECTED})

# Statuses a requester can save into
ENTRY_STATUSES = frozenset({STATUS_DRAFT, STATUS_PENDING})

ASE_TRANSITIONS = {
    "approve": {"from": [STATUS_PENDING], "to": STATUS_APPROVED, "feature": "ase.approve"},
    "reject": {"from": [STATUS_PENDING], "to": STATUS_REJECTED, "feature": "ase.approve"},
    "send_to_hr": {"from": [STATUS_APPROVED], "to": STATUS_SENT_TO_HR, "feature": "ase.dispatch"},
    "complete": {"from": [STATUS_SENT_TO_HR], "to": STATUS_COMPLETED, "feature": "ase.dispatch"},
}


# ═════════════════════════════════════════════════════════════════════════════
# Man-hours (HH)
# ═════════════════════════════════════════════════════════════════════════════

def _as_time(value, field):
    parsed = parse_time(value)
    if parsed is None:
        raise ValueError(f"{field} must be a time (HH:MM), got {value!r}")
    return parsed


def hours_between(start, end) -> float:
    """Elapsed hours between two same-day times. Negative when end precedes start."""
    start_t = _as_time(start, "start_time")
    end_t = _as_time(end, "end_time")
    anchor = datetime(1970, 1, 1)
    delta = datetime.combine(anchor, end_t) - datetime.combine(anchor, start_t)
    return delta.total_seconds() / 3600


def compute_man_hours(start, end, team_size: int) -> float:
    """
    Man-hours = duration in hours × headcount, rounded to one decimal.

    A negative duration contributes zero; saving such an ASE is rejected
    separately by validate_time_window().
    """
    if isinstance(team_size, bool) or not isinstance(team_size, int) or team_size < 0:
        raise ValueError(f"team_size must be a non-negative integer, got {team_size!r}")
    hours = max(hours_between(start, end), 0.0)
    return round(hours * team_size, 1)


def validate_time_window(start: time, end: time) -> None:
    """Raise ValidationError unless end is strictly after start."""
    if end <= start:
        raise ValidationError(
            "O horário de fim deve ser posterior ao horário de início.",
            details={"start_time": start.strftime("%H:%M"), "end_time": end.strftime("%H:%M")},
        )


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════

def check_entry_transition(current_status: str | None, target_status: str, team_size: int) -> None:
    """
    Guard the requester-triggered transitions (→RASCUNHO, →PENDENTE).

    ``current_status`` is None for a new record.
    """
    if target_status not in ENTRY_STATUSES:
        raise ValidationError(
            f"status must be one of {sorted(ENTRY_STATUSES)}",
            details={"status": target_status},
        )
    if current_status is not None and current_status not in EDITABLE_STATUSES:
        raise TransitionError(
            "save_draft" if target_status == STATUS_DRAFT else "submit",
            current_status,
            "a ASE não pode mais ser editada",
        )
    if target_status == STATUS_PENDING and team_size < 1:
        raise ValidationError(
            "Adicione ao menos um colaborador à equipe antes de enviar para aprovação.",
            details={"team": "empty"},
        )


def validate_transition(current_status: str, action: str) -> dict:
    """
    Validate an approval action against the current status.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "feature": str|None, "reason": str|None}
    """
    rule = ASE_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": current_status, "to": None, "feature": None,
                "reason": f"Unknown action: {action}"}
    if current_status not in rule["from"]:
        return {"valid": False, "from": current_status, "to": rule["to"], "feature": rule["feature"],
                "reason": f"Cannot '{action}' from status '{current_status}'"}
    return {"valid": True, "from": current_status, "to": rule["to"], "feature": rule["feature"],
            "reason": None}


# ═════════════════════════════════════════════════════════════════════════════
# Status display
# ═════════════════════════════════════════════════════════════════════════════

DEFAULT_ICON = "clock"
DEFAULT_STYLE = "neutral"

STATUS_DISPLAY = {
    STATUS_DRAFT: {"label": "Rascunho", "icon": "edit", "style": "muted"},
    STATUS_PENDING: {"label": "Pendente", "icon": "clock", "style": "warning"},
    STATUS_APPROVED: {"label": "Aprovada", "icon": "check-circle-2", "style": "success"},
    STATUS_REJECTED: {"label": "Reprovada", "icon": "x-circle", "style": "danger"},
    STATUS_SENT_TO_HR: {"label": "Enviada DP", "icon": "send", "style": "primary"},
    STATUS_COMPLETED: {"label": "Concluída", "icon": "check-circle-2", "style": "info"},
}


def status_display(status) -> dict:
    """Label/icon/style for a status. Unknown values get the default icon, never an error."""
    known = STATUS_DISPLAY.get(status)
    if known:
        return {"status": status, **known}
    text = str(status).replace("_", " ").strip() if status else ""
    return {
        "status": status,
        "label": text or "DESCONHECIDO",
        "icon": DEFAULT_ICON,
        "style": DEFAULT_STYLE,
    }


def all_status_displays() -> list[dict]:
    return [status_display(s) for s in STATUSES]
