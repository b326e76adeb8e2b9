"""
Session Service - identity and session holder.

Wraps sign-in, token refresh and sign-out, and resolves the caller's
profile into an explicit SessionContext:

    ctx = build_context(user_id)      # per request, from the access token
    ase_service.save_ase(ctx, payload)

Lifecycle:
    sign_in()   → server-side Session row + token pair
    refresh()   → Session rotated, role re-read from the profile
    sign_out()  → Session(s) revoked

A user without a Profile row is NOT blocked: the context falls back to
the read-only VISUALIZADOR role.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt as pyjwt
from email_validator import EmailNotValidError, validate_email
from flask import current_app

from ase_fidel.core.exceptions import AuthenticationError, ConflictError, ValidationError
from ase_fidel.models import db
from ase_fidel.models.auth import DEFAULT_ROLE, VALID_ROLES, Profile, UserAccount
from ase_fidel.services import jwt_service
from ase_fidel.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MSG_INVALID_CREDENTIALS = "E-mail ou senha incorretos."
MSG_UNCONFIRMED = "Por favor, confirme seu e-mail antes de fazer login."
MSG_INACTIVE = "Conta desativada. Procure o administrador do sistema."
MSG_SESSION_EXPIRED = "Sessão expirada. Faça login novamente."


@dataclass(frozen=True)
class SessionContext:
    """The authenticated caller, passed explicitly into services."""

    user_id: int
    email: str
    role: str
    has_profile: bool = True

    def to_dict(self):
        return {
            "id": self.user_id,
            "email": self.email,
            "role": self.role,
            "has_profile": self.has_profile,
        }


# ═══════════════════════════════════════════════════════════════
# Profile resolution
# ═══════════════════════════════════════════════════════════════
def context_for_user(user: UserAccount) -> SessionContext:
    """Build a SessionContext from a user, defaulting the role when no profile exists."""
    profile = db.session.get(Profile, user.id)
    if profile is None:
        logger.info("No profile for user %s, defaulting to %s", user.id, DEFAULT_ROLE)
        return SessionContext(user_id=user.id, email=user.email, role=DEFAULT_ROLE, has_profile=False)
    role = profile.role if profile.role in VALID_ROLES else DEFAULT_ROLE
    return SessionContext(user_id=user.id, email=user.email, role=role, has_profile=True)


def build_context(user_id: int) -> SessionContext | None:
    """Resolve the current context for a token subject; None if the account is gone or blocked."""
    user = db.session.get(UserAccount, user_id)
    if user is None or user.status != "active":
        return None
    return context_for_user(user)


def context_from_access_token(token: str) -> SessionContext | None:
    """Decode an access token and rebuild the caller's context. None when invalid."""
    try:
        payload = jwt_service.decode_access_token(token)
        user_id = int(payload["sub"])
    except (pyjwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        logger.debug("Rejected access token: %s", exc)
        return None
    return build_context(user_id)


# ═══════════════════════════════════════════════════════════════
# Sign-in / refresh / sign-out
# ═══════════════════════════════════════════════════════════════
def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def sign_in(email: str, password: str, ip_address=None, user_agent=None) -> dict:
    """
    Authenticate with email + password.

    Returns {"tokens": {...}, "user": {...}, "profile": {...}}.
    Raises AuthenticationError with a user-readable message on failure.
    """
    email = _normalize_email(email)
    user = UserAccount.query.filter_by(email=email).first()

    if user is None or not verify_password(password or "", user.password_hash):
        logger.warning("Failed sign-in for %s", email)
        raise AuthenticationError(MSG_INVALID_CREDENTIALS, 401)
    if user.status == "unconfirmed" or user.email_confirmed_at is None:
        raise AuthenticationError(MSG_UNCONFIRMED, 403)
    if user.status != "active":
        raise AuthenticationError(MSG_INACTIVE, 403)

    ctx = context_for_user(user)
    tokens = jwt_service.generate_token_pair(user.id, user.email, ctx.role)
    user.last_login_at = datetime.now(timezone.utc)
    jwt_service.create_session(
        user.id, tokens["token_hash"], ip_address, user_agent, tokens["expires_at"],
    )
    logger.info("User %s signed in with role %s", user.id, ctx.role)

    return {
        "tokens": tokens,
        "user": user.to_dict(),
        "profile": ctx.to_dict(),
    }


def refresh(refresh_token: str, ip_address=None, user_agent=None) -> dict:
    """Exchange a refresh token for a new pair, rotating the server-side session."""
    try:
        payload = jwt_service.decode_refresh_token(refresh_token)
        user_id = int(payload["sub"])
    except (pyjwt.InvalidTokenError, KeyError, TypeError, ValueError):
        raise AuthenticationError(MSG_SESSION_EXPIRED, 401)

    session = jwt_service.get_active_session_by_token(user_id, jwt_service.hash_token(refresh_token))
    if session is None:
        raise AuthenticationError(MSG_SESSION_EXPIRED, 401)
    if session.is_expired:
        jwt_service.revoke_session(session)
        raise AuthenticationError(MSG_SESSION_EXPIRED, 401)

    ctx = build_context(user_id)
    if ctx is None:
        jwt_service.revoke_session(session)
        raise AuthenticationError(MSG_SESSION_EXPIRED, 401)

    tokens = jwt_service.generate_token_pair(ctx.user_id, ctx.email, ctx.role)
    jwt_service.rotate_session(
        session, ctx.user_id, tokens["token_hash"], tokens["expires_at"], ip_address, user_agent,
    )
    return {"tokens": tokens, "profile": ctx.to_dict()}


def sign_out(ctx: SessionContext, refresh_token: str | None = None) -> None:
    """Revoke the session of ``refresh_token``, or every session of the user."""
    if refresh_token:
        jwt_service.revoke_session_by_token(jwt_service.hash_token(refresh_token))
    else:
        jwt_service.revoke_all_user_sessions(ctx.user_id)
    logger.info("User %s signed out", ctx.user_id)


# ═══════════════════════════════════════════════════════════════
# Account provisioning (CLI / admin)
# ═══════════════════════════════════════════════════════════════
def create_user(
    email: str,
    password: str,
    role: str | None = DEFAULT_ROLE,
    full_name: str = "",
    confirmed: bool = True,
) -> UserAccount:
    """Create an account, and a Profile unless ``role`` is None."""
    try:
        email = validate_email(_normalize_email(email), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}", details={"email": email})
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if role is not None and role not in VALID_ROLES:
        raise ValidationError(f"Unknown role '{role}'", details={"allowed": list(VALID_ROLES)})
    if UserAccount.query.filter_by(email=email).first():
        raise ConflictError("UserAccount", "email", email)

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    user = UserAccount(
        email=email,
        full_name=full_name,
        password_hash=hash_password(password, rounds=rounds),
        status="active" if confirmed else "unconfirmed",
        email_confirmed_at=datetime.now(timezone.utc) if confirmed else None,
    )
    db.session.add(user)
    db.session.flush()
    if role is not None:
        db.session.add(Profile(id=user.id, email=email, role=role))
    db.session.commit()
    logger.info("Created user %s (%s) role=%s", user.id, email, role)
    return user
