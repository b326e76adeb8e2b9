"""
Auth Models - user accounts, profiles and server-side sessions.

A UserAccount is the login identity. Its Profile carries the role that
drives feature visibility. A missing Profile is not an error: the session
layer falls back to a read-only VISUALIZADOR role.
"""

import uuid
from datetime import datetime, timezone

from ase_fidel.models import db

# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_GERENTE = "GERENTE"
ROLE_COORDENADOR = "COORDENADOR"
ROLE_SUPERVISOR = "SUPERVISOR"
ROLE_ENCARREGADO = "ENCARREGADO"
ROLE_VISUALIZADOR = "VISUALIZADOR"

VALID_ROLES = (
    ROLE_SUPER_ADMIN,
    ROLE_ADMIN,
    ROLE_GERENTE,
    ROLE_COORDENADOR,
    ROLE_SUPERVISOR,
    ROLE_ENCARREGADO,
    ROLE_VISUALIZADOR,
)

DEFAULT_ROLE = ROLE_VISUALIZADOR

USER_STATUSES = ("active", "unconfirmed", "inactive")


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class UserAccount(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256))
    full_name = db.Column(db.String(200))
    status = db.Column(db.String(20), default="active")  # active, unconfirmed, inactive
    email_confirmed_at = db.Column(db.DateTime)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    profile = db.relationship(
        "Profile", back_populates="user", uselist=False, cascade="all, delete-orphan",
    )
    sessions = db.relationship(
        "Session", back_populates="user", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "status": self.status,
            "email_confirmed": self.email_confirmed_at is not None,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<UserAccount #{self.id} {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. PROFILES
# ═══════════════════════════════════════════════════════════════
class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    email = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=DEFAULT_ROLE)
    created_at = db.Column(db.DateTime, default=_utcnow)

    user = db.relationship("UserAccount", back_populates="profile")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
        }


# ═══════════════════════════════════════════════════════════════
# 3. SESSIONS
# ═══════════════════════════════════════════════════════════════
class Session(db.Model):
    __tablename__ = "user_sessions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    token_hash = db.Column(db.String(256), nullable=False)  # SHA-256 of refresh token
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime)

    user = db.relationship("UserAccount", back_populates="sessions")

    @property
    def is_expired(self):
        return datetime.now(timezone.utc) > self.expires_at.replace(tzinfo=timezone.utc)
