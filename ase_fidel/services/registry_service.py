"""
Registry Service (cadastros) - data gateway for the reference tables and
the personnel roster (efetivo).

Every create/update parses the JSON payload into typed column values and
raises ValidationError on a shape mismatch. Unique names raise
ConflictError (409) instead of leaking IntegrityError.

All writes commit here; blueprints never touch db.session.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ase_fidel.core.exceptions import ConflictError, ValidationError
from ase_fidel.models import db
from ase_fidel.models.registry import (
    VALID_PERSON_TYPES,
    Discipline,
    Employee,
    Person,
    Sector,
    Subdiscipline,
)
from ase_fidel.utils.helpers import get_or_404, parse_id

logger = logging.getLogger(__name__)


# ── Payload helpers ─────────────────────────────────────────────────────────

def _required_str(data: dict, field: str, max_len: int) -> str:
    value = data.get(field)
    if value is not None and not isinstance(value, (str, int)):
        raise ValidationError(f"{field} must be text", details={field: value})
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters", details={field: text})
    return text


def _optional_str(data: dict, field: str, max_len: int) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, (str, int)):
        raise ValidationError(f"{field} must be text", details={field: value})
    text = str(value).strip()
    if len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters", details={field: text})
    return text or None


def normalize_email(value: str | None) -> str | None:
    """Normalize an optional email; '' → None, invalid → ValidationError."""
    if not value:
        return None
    try:
        return validate_email(value.strip(), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}", details={"email": value})


def _ensure_unique_name(model, name: str, exclude_id: int | None = None, **scope):
    q = model.query.filter(func.lower(model.name) == name.lower())
    for col, val in scope.items():
        q = q.filter(getattr(model, col) == val)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first():
        raise ConflictError(model.__name__, "name", name)


def _delete(obj) -> None:
    """Delete and commit; a row still referenced by an ASE is a ValidationError."""
    db.session.delete(obj)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(
            f"{type(obj).__name__} {obj.id} is referenced by existing ASE records",
            details={"id": obj.id},
        )


# ═════════════════════════════════════════════════════════════════════════════
# Sectors
# ═════════════════════════════════════════════════════════════════════════════

def list_sectors() -> list[Sector]:
    return Sector.query.order_by(Sector.name).all()


def find_sector_by_name(name: str) -> Sector | None:
    """Case-insensitive lookup used by the spreadsheet import."""
    if not name:
        return None
    return Sector.query.filter(func.lower(Sector.name) == name.strip().lower()).first()


def create_sector(data: dict) -> Sector:
    name = _required_str(data, "name", 150)
    _ensure_unique_name(Sector, name)
    sector = Sector(name=name)
    db.session.add(sector)
    db.session.commit()
    logger.info("Sector created: %s", sector.name)
    return sector


def update_sector(sector_id: int, data: dict) -> Sector:
    sector = get_or_404(Sector, sector_id)
    name = _required_str(data, "name", 150)
    _ensure_unique_name(Sector, name, exclude_id=sector.id)
    sector.name = name
    db.session.commit()
    return sector


def delete_sector(sector_id: int) -> None:
    sector = get_or_404(Sector, sector_id)
    _delete(sector)
    logger.info("Sector deleted: %s", sector_id)


# ═════════════════════════════════════════════════════════════════════════════
# Disciplines / Subdisciplines
# ═════════════════════════════════════════════════════════════════════════════

def list_disciplines() -> list[Discipline]:
    return Discipline.query.order_by(Discipline.name).all()


def create_discipline(data: dict) -> Discipline:
    name = _required_str(data, "name", 150)
    _ensure_unique_name(Discipline, name)
    discipline = Discipline(name=name)
    db.session.add(discipline)
    db.session.commit()
    return discipline


def update_discipline(discipline_id: int, data: dict) -> Discipline:
    discipline = get_or_404(Discipline, discipline_id)
    name = _required_str(data, "name", 150)
    _ensure_unique_name(Discipline, name, exclude_id=discipline.id)
    discipline.name = name
    db.session.commit()
    return discipline


def delete_discipline(discipline_id: int) -> None:
    discipline = get_or_404(Discipline, discipline_id)
    _delete(discipline)


def list_subdisciplines(discipline_id: int | None = None) -> list[Subdiscipline]:
    q = Subdiscipline.query
    if discipline_id is not None:
        q = q.filter_by(discipline_id=discipline_id)
    return q.order_by(Subdiscipline.name).all()


def create_subdiscipline(data: dict) -> Subdiscipline:
    name = _required_str(data, "name", 150)
    discipline_id = parse_id(data.get("discipline_id"), "discipline_id")
    if discipline_id is None:
        raise ValidationError("discipline_id is required", details={"discipline_id": "required"})
    get_or_404(Discipline, discipline_id)
    _ensure_unique_name(Subdiscipline, name, discipline_id=discipline_id)
    sub = Subdiscipline(name=name, discipline_id=discipline_id)
    db.session.add(sub)
    db.session.commit()
    return sub


def update_subdiscipline(subdiscipline_id: int, data: dict) -> Subdiscipline:
    sub = get_or_404(Subdiscipline, subdiscipline_id)
    if "discipline_id" in data:
        discipline_id = parse_id(data.get("discipline_id"), "discipline_id")
        if discipline_id is None:
            raise ValidationError("discipline_id is required", details={"discipline_id": "required"})
        get_or_404(Discipline, discipline_id)
        sub.discipline_id = discipline_id
    if "name" in data:
        sub.name = _required_str(data, "name", 150)
    _ensure_unique_name(Subdiscipline, sub.name, exclude_id=sub.id, discipline_id=sub.discipline_id)
    db.session.commit()
    return sub


def delete_subdiscipline(subdiscipline_id: int) -> None:
    sub = get_or_404(Subdiscipline, subdiscipline_id)
    _delete(sub)


# ═════════════════════════════════════════════════════════════════════════════
# People (approvers / responsibles)
# ═════════════════════════════════════════════════════════════════════════════

def _person_type(data: dict) -> str:
    ptype = _required_str(data, "type", 20).upper()
    if ptype not in VALID_PERSON_TYPES:
        raise ValidationError(
            f"type must be one of {list(VALID_PERSON_TYPES)}", details={"type": ptype},
        )
    return ptype


def list_people(person_type: str | None = None) -> list[Person]:
    q = Person.query
    if person_type:
        q = q.filter_by(type=person_type.upper())
    return q.order_by(Person.name).all()


def create_person(data: dict) -> Person:
    person = Person(
        name=_required_str(data, "name", 200),
        email=normalize_email(_optional_str(data, "email", 200)),
        type=_person_type(data),
    )
    db.session.add(person)
    db.session.commit()
    return person


def update_person(person_id: int, data: dict) -> Person:
    person = get_or_404(Person, person_id)
    if "name" in data:
        person.name = _required_str(data, "name", 200)
    if "email" in data:
        person.email = normalize_email(_optional_str(data, "email", 200))
    if "type" in data:
        person.type = _person_type(data)
    db.session.commit()
    return person


def delete_person(person_id: int) -> None:
    person = get_or_404(Person, person_id)
    _delete(person)


# ═════════════════════════════════════════════════════════════════════════════
# Employees (efetivo)
# ═════════════════════════════════════════════════════════════════════════════

def search_employees(term: str | None = None) -> list[Employee]:
    """Employees ordered by name; ``term`` matches name (case-insensitive) or matricula."""
    q = Employee.query
    term = (term or "").strip()
    if term:
        q = q.filter(or_(
            func.lower(Employee.name).contains(term.lower(), autoescape=True),
            Employee.matricula.contains(term, autoescape=True),
        ))
    return q.order_by(Employee.name).all()


def _employee_fields(data: dict, partial: bool = False) -> dict:
    fields = {}
    if not partial or "matricula" in data:
        fields["matricula"] = _required_str(data, "matricula", 50)
    if not partial or "name" in data:
        fields["name"] = _required_str(data, "name", 200)
    if not partial or "function" in data:
        fields["function"] = _optional_str(data, "function", 150)
    if not partial or "email" in data:
        fields["email"] = normalize_email(_optional_str(data, "email", 200))
    if not partial or "contact" in data:
        fields["contact"] = _optional_str(data, "contact", 100)
    if not partial or "sector_id" in data:
        sector_id = parse_id(data.get("sector_id"), "sector_id")
        if sector_id is not None:
            get_or_404(Sector, sector_id)
        fields["sector_id"] = sector_id
    return fields


def _ensure_unique_matricula(matricula: str, exclude_id: int | None = None):
    q = Employee.query.filter_by(matricula=matricula)
    if exclude_id is not None:
        q = q.filter(Employee.id != exclude_id)
    if q.first():
        raise ConflictError("Employee", "matricula", matricula)


def create_employee(data: dict) -> Employee:
    fields = _employee_fields(data)
    _ensure_unique_matricula(fields["matricula"])
    employee = Employee(**fields)
    db.session.add(employee)
    db.session.commit()
    logger.info("Employee created: %s", employee.matricula)
    return employee


def update_employee(employee_id: int, data: dict) -> Employee:
    employee = get_or_404(Employee, employee_id)
    fields = _employee_fields(data, partial=True)
    if "matricula" in fields:
        _ensure_unique_matricula(fields["matricula"], exclude_id=employee.id)
    for key, value in fields.items():
        setattr(employee, key, value)
    db.session.commit()
    return employee


def delete_employee(employee_id: int) -> None:
    """Delete an employee. ASE team snapshots keep their copied data."""
    employee = get_or_404(Employee, employee_id)
    _delete(employee)
    logger.info("Employee deleted: %s", employee_id)


def upsert_employee(row: dict) -> tuple[Employee, bool]:
    """
    Insert or update by matricula without committing.

    ``row`` is an already-normalized import row. Returns (employee, created).
    """
    sector = find_sector_by_name(row.get("sector_name") or "")
    employee = Employee.query.filter_by(matricula=row["matricula"]).first()
    created = employee is None
    if created:
        employee = Employee(matricula=row["matricula"])
        db.session.add(employee)
    employee.name = row["name"]
    employee.function = row.get("function") or None
    employee.sector_id = sector.id if sector else None
    employee.email = row.get("email") or None
    return employee, created
