"""
Auth Blueprint - session endpoints.

  POST /api/v1/auth/login       - Email + password → token pair + profile
  POST /api/v1/auth/refresh     - Refresh token → new pair (session rotated)
  POST /api/v1/auth/logout      - Revoke the session(s)
  GET  /api/v1/auth/me          - Current user + profile
  GET  /api/v1/auth/menu        - Navigation menu for the caller's role
"""

from flask import Blueprint, current_app, jsonify, request

from ase_fidel import limiter
from ase_fidel.blueprints import json_body
from ase_fidel.middleware.session_context import current_context, require_session
from ase_fidel.models import db
from ase_fidel.models.auth import UserAccount
from ase_fidel.services import access_policy, session_service
from ase_fidel.utils.errors import E, api_error

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


def _login_limit():
    return current_app.config.get("LOGIN_RATE_LIMIT", "10/minute")


def _token_body(tokens: dict) -> dict:
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
    }


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
@limiter.limit(_login_limit)
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data = json_body() or {}
    email = str(data.get("email") or "").strip()
    password = str(data.get("password") or "")
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Informe e-mail e senha.")

    result = session_service.sign_in(
        email, password, request.remote_addr, request.headers.get("User-Agent", ""),
    )
    return jsonify({
        **_token_body(result["tokens"]),
        "user": result["user"],
        "profile": result["profile"],
        "menu": access_policy.filter_menu(result["profile"]["role"]),
    }), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """Body: { "refresh_token": "..." }"""
    data = json_body() or {}
    token = data.get("refresh_token")
    if not token or not isinstance(token, str):
        return api_error(E.VALIDATION_REQUIRED, "refresh_token is required")

    result = session_service.refresh(
        token, request.remote_addr, request.headers.get("User-Agent", ""),
    )
    return jsonify({**_token_body(result["tokens"]), "profile": result["profile"]}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
@require_session
def logout():
    """Revoke the given refresh token's session, or all of the caller's sessions."""
    data = json_body() or {}
    token = data.get("refresh_token")
    session_service.sign_out(current_context(), token if isinstance(token, str) else None)
    return jsonify({"message": "Sessão encerrada."}), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me, /menu
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_session
def me():
    ctx = current_context()
    user = db.session.get(UserAccount, ctx.user_id)
    return jsonify({
        "user": user.to_dict(),
        "profile": ctx.to_dict(),
        "features": access_policy.features_for(ctx.role),
    }), 200


@auth_bp.route("/menu", methods=["GET"])
@require_session
def menu():
    ctx = current_context()
    return jsonify({"role": ctx.role, "items": access_policy.filter_menu(ctx.role)}), 200
