"""
Access Policy - the single role-visibility rule.

    is_visible(role, roles)  → True when ``roles`` is empty/None or contains ``role``

Both the navigation menu and the API feature gates are declared as data
and evaluated with this one predicate, so what the menu shows and what the
API enforces come from the same table.

Roles govern visibility, not row ownership: ownership checks (who may edit
an ASE) live in ase_service.
"""

from ase_fidel.core.exceptions import PermissionDeniedError
from ase_fidel.models.auth import (
    DEFAULT_ROLE,
    ROLE_ADMIN,
    ROLE_COORDENADOR,
    ROLE_GERENTE,
    ROLE_SUPER_ADMIN,
)

# ── Feature gates ────────────────────────────────────────────────────────────
# Feature codename → allowed roles. None means every authenticated role.

FEATURES: dict[str, tuple[str, ...] | None] = {
    "dashboard.view": None,
    "ase.create": None,
    "ase.my": None,
    "ase.all": (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_GERENTE),
    "ase.approve": (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_GERENTE),
    "ase.dispatch": (ROLE_SUPER_ADMIN, ROLE_ADMIN),
    "ase.edit_any": (ROLE_SUPER_ADMIN, ROLE_ADMIN),
    "cadastros.view": None,
    "cadastros.manage": (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_COORDENADOR),
    "efetivo.import": (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_COORDENADOR),
    "relatorios.view": None,
    "logs.view": (ROLE_SUPER_ADMIN, ROLE_ADMIN),
}

# ── Navigation menu ──────────────────────────────────────────────────────────

MENU = (
    {"key": "dashboard", "label": "Dashboard", "path": "/", "icon": "layout-dashboard"},
    {"key": "ase_new", "label": "Novo ASE", "path": "/ase/new", "icon": "plus-circle"},
    {"key": "ase_my", "label": "Minhas ASE", "path": "/ase/my", "icon": "file-text"},
    {
        "key": "ase_all",
        "label": "Todas ASE",
        "path": "/ase/all",
        "icon": "file-text",
        "roles": FEATURES["ase.all"],
    },
    {
        "key": "cadastros",
        "label": "Cadastros",
        "path": "/cadastros",
        "icon": "users",
        "children": (
            {"key": "efetivo", "label": "Efetivo", "path": "/cadastros/efetivo"},
            {"key": "pessoas", "label": "Pessoas", "path": "/cadastros/pessoas"},
            {"key": "setores", "label": "Setores", "path": "/cadastros/setores"},
            {"key": "disciplinas", "label": "Disciplinas", "path": "/cadastros/disciplinas"},
            {"key": "destinatarios", "label": "Destinatários", "path": "/cadastros/destinatarios"},
        ),
    },
    {"key": "relatorios", "label": "Relatórios", "path": "/relatorios", "icon": "bar-chart-3"},
    {
        "key": "logs",
        "label": "Logs",
        "path": "/logs",
        "icon": "history",
        "roles": FEATURES["logs.view"],
    },
)


def is_visible(role: str | None, roles) -> bool:
    """Decide whether an item restricted to ``roles`` is visible to ``role``."""
    if not roles:
        return True
    return role in roles


def item_visible(role: str | None, item: dict) -> bool:
    """Apply is_visible to a menu/item definition carrying an optional 'roles' key."""
    return is_visible(role, item.get("roles"))


def filter_menu(role: str | None) -> list[dict]:
    """Return the menu as seen by ``role`` (children filtered the same way)."""
    role = role or DEFAULT_ROLE
    result = []
    for item in MENU:
        if not item_visible(role, item):
            continue
        entry = {k: v for k, v in item.items() if k not in ("roles", "children")}
        if "children" in item:
            entry["children"] = [
                {k: v for k, v in child.items() if k != "roles"}
                for child in item["children"]
                if item_visible(role, child)
            ]
        result.append(entry)
    return result


def can(role: str | None, feature: str) -> bool:
    """True when ``role`` may use ``feature``. Unknown features are denied."""
    if feature not in FEATURES:
        return False
    return is_visible(role or DEFAULT_ROLE, FEATURES[feature])


def ensure(role: str | None, feature: str) -> None:
    """Raise PermissionDeniedError unless ``role`` may use ``feature``."""
    if not can(role, feature):
        raise PermissionDeniedError(feature, role)


def features_for(role: str | None) -> list[str]:
    return sorted(f for f in FEATURES if can(role, f))
