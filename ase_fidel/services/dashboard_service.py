"""
Dashboard Service - ASE counters and man-hour (HH) totals.

  - total / pending / approved / rejected counts
  - total_hh over the approved family (APROVADA, ENVIADA_DP, CONCLUIDA)
  - monthly_hh for the last six months, by ASE date
"""

import logging
from collections import defaultdict
from datetime import date

from sqlalchemy.orm import selectinload

from ase_fidel.models.ase import APPROVED_FAMILY, STATUS_PENDING, STATUS_REJECTED, Ase
from ase_fidel.services.ase_lifecycle import compute_man_hours

logger = logging.getLogger(__name__)

MONTH_LABELS = ("Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez")


def _last_months(today: date, count: int) -> list[tuple[int, int]]:
    """(year, month) pairs, oldest first, ending with the month of ``today``."""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def get_stats(today: date | None = None, months: int = 6) -> dict:
    """Counters and HH aggregates over every ASE."""
    today = today or date.today()
    ases = Ase.query.options(selectinload(Ase.team)).all()

    window = _last_months(today, months)
    monthly = defaultdict(float)
    total_hh = 0.0
    counts = {"total": len(ases), "pending": 0, "approved": 0, "rejected": 0}

    for ase in ases:
        if ase.status == STATUS_PENDING:
            counts["pending"] += 1
        elif ase.status == STATUS_REJECTED:
            counts["rejected"] += 1
        elif ase.status in APPROVED_FAMILY:
            counts["approved"] += 1
            hh = compute_man_hours(ase.start_time, ase.end_time, len(ase.team))
            total_hh += hh
            if ase.date:
                monthly[(ase.date.year, ase.date.month)] += hh

    return {
        **counts,
        "total_hh": round(total_hh, 1),
        "monthly_hh": [
            {
                "name": MONTH_LABELS[m - 1],
                "year": y,
                "month": m,
                "hh": round(monthly.get((y, m), 0.0), 1),
            }
            for y, m in window
        ],
    }
