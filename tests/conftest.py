"""
Shared pytest fixtures for the ASE Fidel test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / auth_headers: accounts and bearer headers via the login API
    - reference: sector, discipline, subdiscipline, people and employees
"""

import pytest

from ase_fidel import create_app
from ase_fidel.models import db as _db
from ase_fidel.models.registry import (
    Discipline,
    Employee,
    Person,
    Sector,
    Subdiscipline,
)
from ase_fidel.services.session_service import create_user

DEFAULT_PASSWORD = "Secret123!"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Accounts ─────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: make_user("GERENTE") → UserAccount (role=None skips the profile)."""
    counter = {"n": 0}

    def _make(role="ENCARREGADO", email=None, **kwargs):
        counter["n"] += 1
        email = email or f"user{counter['n']}-{(role or 'noprofile').lower()}@example.com"
        return create_user(email, DEFAULT_PASSWORD, role=role, **kwargs)

    return _make


def _login(client, email, password=DEFAULT_PASSWORD):
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return res.get_json()


@pytest.fixture()
def default_password():
    return DEFAULT_PASSWORD


@pytest.fixture()
def login(client):
    """Factory: login(email) → login response body (asserts 200)."""
    return lambda email, password=DEFAULT_PASSWORD: _login(client, email, password)


@pytest.fixture()
def auth_headers(client, make_user):
    """Factory: auth_headers("ADMIN") → {"Authorization": "Bearer ..."} for a new user."""

    def _headers(role="ENCARREGADO", user=None):
        user = user or make_user(role)
        tokens = _login(client, user.email)
        return {"Authorization": f"Bearer {tokens['access_token']}"}

    return _headers


# ── Reference data ───────────────────────────────────────────────────────


@pytest.fixture()
def reference():
    """A minimal registry: one sector, a discipline tree, people of each type, three employees."""
    sector = Sector(name="Manutenção")
    discipline = Discipline(name="Mecânica")
    _db.session.add_all([sector, discipline])
    _db.session.flush()
    sub = Subdiscipline(name="Montagem", discipline_id=discipline.id)
    manager = Person(name="Gerente Um", email="gerente@example.com", type="GERENTE")
    supervisor = Person(name="Supervisor Um", type="SUPERVISOR")
    encarregado = Person(name="Encarregado Um", type="ENCARREGADO")
    employees = [
        Employee(matricula="1001", name="Ana Lima", function="Mecânica", sector_id=sector.id),
        Employee(matricula="1002", name="Bruno Reis", function="Soldador", sector_id=sector.id),
        Employee(matricula="1003", name="Carla Dias", function="Eletricista"),
    ]
    _db.session.add_all([sub, manager, supervisor, encarregado, *employees])
    _db.session.commit()
    return {
        "sector": sector,
        "discipline": discipline,
        "subdiscipline": sub,
        "manager": manager,
        "supervisor": supervisor,
        "encarregado": encarregado,
        "employees": employees,
    }


@pytest.fixture()
def ase_payload(reference):
    """Factory for a valid ASE request body."""

    def _payload(**overrides):
        body = {
            "date": "2026-03-10",
            "start_time": "17:00",
            "end_time": "19:30",
            "sector_id": reference["sector"].id,
            "manager_id": reference["manager"].id,
            "supervisor_id": reference["supervisor"].id,
            "encarregado_id": reference["encarregado"].id,
            "discipline_id": reference["discipline"].id,
            "subdiscipline_id": reference["subdiscipline"].id,
            "justification": "Parada programada da caldeira 2",
            "status": "RASCUNHO",
            "team": [e.id for e in reference["employees"][:2]],
        }
        body.update(overrides)
        return body

    return _payload
