"""
Reference data seeding for a fresh database.

    flask seed-reference

Idempotent: existing names are left alone, only missing rows are added.
"""

import logging

from ase_fidel.models import db
from ase_fidel.models.registry import Discipline, Sector, Subdiscipline

logger = logging.getLogger(__name__)

DEFAULT_SECTORS = (
    "Caldeiraria",
    "Elétrica",
    "Instrumentação",
    "Manutenção",
    "Mecânica",
    "Planejamento",
    "Segurança do Trabalho",
    "Tubulação",
)

DEFAULT_DISCIPLINES = {
    "Civil": ("Concreto", "Estruturas Metálicas", "Terraplenagem"),
    "Elétrica": ("Força", "Iluminação", "SPDA"),
    "Instrumentação": ("Calibração", "Malhas de Controle"),
    "Mecânica": ("Equipamentos Rotativos", "Montagem", "Solda"),
    "Tubulação": ("Fabricação", "Montagem", "Teste Hidrostático"),
}


def seed_reference_data() -> dict:
    """Insert the default sectors, disciplines and subdisciplines. Commits."""
    created = {"sectors": 0, "disciplines": 0, "subdisciplines": 0}

    existing = {s.name for s in Sector.query.all()}
    for name in DEFAULT_SECTORS:
        if name not in existing:
            db.session.add(Sector(name=name))
            created["sectors"] += 1

    for disc_name, subs in DEFAULT_DISCIPLINES.items():
        discipline = Discipline.query.filter_by(name=disc_name).first()
        if discipline is None:
            discipline = Discipline(name=disc_name)
            db.session.add(discipline)
            db.session.flush()
            created["disciplines"] += 1
        existing_subs = {s.name for s in discipline.subdisciplines}
        for sub_name in subs:
            if sub_name not in existing_subs:
                db.session.add(Subdiscipline(name=sub_name, discipline_id=discipline.id))
                created["subdisciplines"] += 1

    db.session.commit()
    logger.info("Seeded reference data: %s", created)
    return created
