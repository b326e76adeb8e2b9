"""
Dashboard counters and man-hour aggregates, plus the health endpoints.
"""

from datetime import date, time

import pytest

from ase_fidel.models import db
from ase_fidel.models.ase import Ase, AseTeamMember
from ase_fidel.services.dashboard_service import _last_months, get_stats


@pytest.fixture()
def make_ase(make_user, reference):
    """Factory: make_ase("APROVADA", date(2026, 3, 2), team=2) with 17:00-19:00."""
    requester = make_user("ENCARREGADO")
    counter = {"n": 0}

    def _make(status, on, team=1, start=time(17), end=time(19)):
        counter["n"] += 1
        ase = Ase(
            number=f"ASE-{on.year}-{counter['n']:04d}",
            date=on,
            start_time=start,
            end_time=end,
            sector_id=reference["sector"].id,
            status=status,
            requester_user_id=requester.id,
        )
        for emp in reference["employees"][:team]:
            ase.team.append(AseTeamMember(
                employee_id=emp.id, snapshot_matricula=emp.matricula, snapshot_name=emp.name,
            ))
        db.session.add(ase)
        db.session.commit()
        return ase

    return _make


def test_last_months_crosses_year():
    assert _last_months(date(2026, 2, 15), 4) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]


def test_empty_dashboard():
    stats = get_stats(today=date(2026, 3, 31))
    assert stats["total"] == 0
    assert stats["total_hh"] == 0.0
    assert [m["name"] for m in stats["monthly_hh"]] == ["Out", "Nov", "Dez", "Jan", "Fev", "Mar"]
    assert all(m["hh"] == 0.0 for m in stats["monthly_hh"])


def test_counts_and_approved_family_hh(make_ase):
    make_ase("RASCUNHO", date(2026, 3, 1), team=3)
    make_ase("PENDENTE", date(2026, 3, 2), team=3)
    make_ase("REPROVADA", date(2026, 3, 3), team=3)
    make_ase("APROVADA", date(2026, 3, 4), team=2)                      # 4.0
    make_ase("ENVIADA_DP", date(2026, 2, 10), team=1)                   # 2.0
    make_ase("CONCLUIDA", date(2026, 1, 20), team=3, end=time(17, 30))  # 1.5

    stats = get_stats(today=date(2026, 3, 31))
    assert stats["total"] == 6
    assert stats["pending"] == 1
    assert stats["rejected"] == 1
    assert stats["approved"] == 3
    assert stats["total_hh"] == 7.5

    by_month = {(m["year"], m["month"]): m["hh"] for m in stats["monthly_hh"]}
    assert by_month[(2026, 3)] == 4.0
    assert by_month[(2026, 2)] == 2.0
    assert by_month[(2026, 1)] == 1.5


def test_months_outside_window_count_in_total_only(make_ase):
    make_ase("APROVADA", date(2025, 6, 1), team=1)
    stats = get_stats(today=date(2026, 3, 31))
    assert stats["total_hh"] == 2.0
    assert sum(m["hh"] for m in stats["monthly_hh"]) == 0.0


def test_stats_endpoint(client, auth_headers, make_ase):
    make_ase("PENDENTE", date.today())
    res = client.get("/api/v1/dashboard/stats", headers=auth_headers("VISUALIZADOR"))
    assert res.status_code == 200
    body = res.get_json()
    assert body["pending"] == 1
    assert len(body["monthly_hh"]) == 6
    assert body["monthly_hh"][-1]["month"] == date.today().month


def test_stats_requires_session(client):
    assert client.get("/api/v1/dashboard/stats").status_code == 401


# ── Health ───────────────────────────────────────────────────────────────


def test_health_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_health_live(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
