"""
Registry Models (cadastros) - reference tables and the personnel roster.

    Sector          - organisational sector (setor)
    Discipline      - engineering discipline
    Subdiscipline   - child of a Discipline
    Person          - approvers and responsibles, tagged GERENTE / SUPERVISOR / ENCARREGADO
    Employee        - efetivo: the workers that can be put on an ASE team
"""

from datetime import datetime, timezone

from ase_fidel.models import db

PERSON_GERENTE = "GERENTE"
PERSON_SUPERVISOR = "SUPERVISOR"
PERSON_ENCARREGADO = "ENCARREGADO"

VALID_PERSON_TYPES = (PERSON_GERENTE, PERSON_SUPERVISOR, PERSON_ENCARREGADO)


def _utcnow():
    return datetime.now(timezone.utc)


class Sector(db.Model):
    __tablename__ = "sectors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Discipline(db.Model):
    __tablename__ = "disciplines"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    subdisciplines = db.relationship(
        "Subdiscipline", back_populates="discipline", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Subdiscipline(db.Model):
    __tablename__ = "subdisciplines"

    id = db.Column(db.Integer, primary_key=True)
    discipline_id = db.Column(
        db.Integer, db.ForeignKey("disciplines.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("discipline_id", "name", name="uq_subdiscipline_discipline_name"),
    )

    discipline = db.relationship("Discipline", back_populates="subdisciplines")

    def to_dict(self):
        return {
            "id": self.id,
            "discipline_id": self.discipline_id,
            "name": self.name,
        }


class Person(db.Model):
    __tablename__ = "people"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200))
    type = db.Column(db.String(20), nullable=False)  # GERENTE | SUPERVISOR | ENCARREGADO
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.Index("ix_people_type", "type"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "type": self.type,
        }


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    matricula = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    function = db.Column(db.String(150))
    sector_id = db.Column(
        db.Integer, db.ForeignKey("sectors.id", ondelete="SET NULL"), nullable=True,
    )
    email = db.Column(db.String(200))
    contact = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    sector = db.relationship("Sector")

    def to_dict(self):
        return {
            "id": self.id,
            "matricula": self.matricula,
            "name": self.name,
            "function": self.function,
            "sector_id": self.sector_id,
            "sector_name": self.sector.name if self.sector else None,
            "email": self.email,
            "contact": self.contact,
        }

    def __repr__(self):
        return f"<Employee {self.matricula} {self.name}>"
