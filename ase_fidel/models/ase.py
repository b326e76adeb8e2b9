"""
ASE Models - extraordinary service authorizations and their team snapshots.

Business rules:
- An Ase is never hard-deleted; it only moves through STATUSES.
- AseTeamMember rows are snapshots of the employee at assignment time
  (matricula, name, function). Later edits to the Employee do not
  propagate. Saving an Ase replaces its whole team set.
"""

from datetime import datetime, timezone

from ase_fidel.models import db

# ── Status constants ─────────────────────────────────────────────────────────

STATUS_DRAFT = "RASCUNHO"
STATUS_PENDING = "PENDENTE"
STATUS_APPROVED = "APROVADA"
STATUS_REJECTED = "REPROVADA"
STATUS_SENT_TO_HR = "ENVIADA_DP"
STATUS_COMPLETED = "CONCLUIDA"

STATUSES = (
    STATUS_DRAFT,
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_SENT_TO_HR,
    STATUS_COMPLETED,
)

# Statuses counted as approved on the dashboard
APPROVED_FAMILY = frozenset({STATUS_APPROVED, STATUS_SENT_TO_HR, STATUS_COMPLETED})


def _utcnow():
    return datetime.now(timezone.utc)


class Ase(db.Model):
    __tablename__ = "ase"

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(20), unique=True, nullable=False)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    sector_id = db.Column(db.Integer, db.ForeignKey("sectors.id"), nullable=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("people.id"), nullable=True)
    supervisor_id = db.Column(db.Integer, db.ForeignKey("people.id"), nullable=True)
    encarregado_id = db.Column(db.Integer, db.ForeignKey("people.id"), nullable=True)
    discipline_id = db.Column(db.Integer, db.ForeignKey("disciplines.id"), nullable=True)
    subdiscipline_id = db.Column(db.Integer, db.ForeignKey("subdisciplines.id"), nullable=True)

    justification = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    requester_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True,
    )

    decision_note = db.Column(db.Text)
    decided_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    decided_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('RASCUNHO','PENDENTE','APROVADA','REPROVADA','ENVIADA_DP','CONCLUIDA')",
            name="ck_ase_status",
        ),
        db.Index("ix_ase_status", "status"),
    )

    sector = db.relationship("Sector", foreign_keys=[sector_id])
    manager = db.relationship("Person", foreign_keys=[manager_id])
    supervisor = db.relationship("Person", foreign_keys=[supervisor_id])
    encarregado = db.relationship("Person", foreign_keys=[encarregado_id])
    discipline = db.relationship("Discipline", foreign_keys=[discipline_id])
    subdiscipline = db.relationship("Subdiscipline", foreign_keys=[subdiscipline_id])
    requester = db.relationship("UserAccount", foreign_keys=[requester_user_id])
    team = db.relationship(
        "AseTeamMember",
        back_populates="ase",
        cascade="all, delete-orphan",
        order_by="AseTeamMember.id",
    )

    def to_dict(self, include_team=False):
        d = {
            "id": self.id,
            "number": self.number,
            "date": self.date.isoformat() if self.date else None,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "sector_id": self.sector_id,
            "sector_name": self.sector.name if self.sector else None,
            "manager_id": self.manager_id,
            "manager_name": self.manager.name if self.manager else None,
            "manager_email": self.manager.email if self.manager else None,
            "supervisor_id": self.supervisor_id,
            "encarregado_id": self.encarregado_id,
            "discipline_id": self.discipline_id,
            "subdiscipline_id": self.subdiscipline_id,
            "justification": self.justification or "",
            "status": self.status,
            "requester_user_id": self.requester_user_id,
            "requester_email": self.requester.email if self.requester else None,
            "decision_note": self.decision_note,
            "decided_by": self.decided_by,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "team_count": len(self.team),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_team:
            d["team"] = [m.to_dict() for m in self.team]
        return d

    def __repr__(self):
        return f"<Ase {self.number} {self.status}>"


class AseTeamMember(db.Model):
    __tablename__ = "ase_team"

    id = db.Column(db.Integer, primary_key=True)
    ase_id = db.Column(
        db.Integer, db.ForeignKey("ase.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    employee_id = db.Column(
        db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True,
    )
    snapshot_matricula = db.Column(db.String(50), nullable=False)
    snapshot_name = db.Column(db.String(200), nullable=False)
    snapshot_function = db.Column(db.String(150))
    created_at = db.Column(db.DateTime, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("ase_id", "employee_id", name="uq_ase_team_employee"),
    )

    ase = db.relationship("Ase", back_populates="team")

    def to_dict(self):
        return {
            "id": self.employee_id,
            "matricula": self.snapshot_matricula,
            "name": self.snapshot_name,
            "function": self.snapshot_function,
        }
