"""
Session Context Middleware - parses the bearer token and sets g.session_ctx.

    Authorization: Bearer <access token>  →  g.session_ctx: SessionContext | None

The context is rebuilt on every request from the user's current profile,
so a role change takes effect on the next call without re-login.

Decorators:
    @require_session          - 401 when there is no authenticated caller
    @require_feature("ase.all") - 403 when the caller's role lacks the feature
"""

import functools
import logging

from flask import g, request

from ase_fidel.core.exceptions import AuthenticationError, PermissionDeniedError
from ase_fidel.services import access_policy
from ase_fidel.services.session_service import context_from_access_token

logger = logging.getLogger(__name__)

MSG_AUTH_REQUIRED = "Autenticação necessária. Faça login para continuar."

# Paths that never carry a session
SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def init_session_context(app):
    """Register the session middleware as a before_request hook."""

    @app.before_request
    def _load_session_context():
        g.session_ctx = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        if path.startswith(SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        g.session_ctx = context_from_access_token(auth_header[7:])


def current_context():
    """The SessionContext of the current request, or None."""
    return getattr(g, "session_ctx", None)


def require_session(f):
    """Decorator: reject the request with 401 when no caller is authenticated."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_context() is None:
            raise AuthenticationError(MSG_AUTH_REQUIRED, 401)
        return f(*args, **kwargs)
    return decorated


def require_feature(feature: str):
    """
    Decorator: require an authenticated caller whose role grants ``feature``.

    Usage:
        @ase_bp.route("", methods=["GET"])
        @require_feature("ase.my")
        def list_ase(): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            ctx = current_context()
            if ctx is None:
                raise AuthenticationError(MSG_AUTH_REQUIRED, 401)
            if not access_policy.can(ctx.role, feature):
                logger.warning(
                    "User %s (%s) denied feature '%s' on %s",
                    ctx.user_id, ctx.role, feature, f.__name__,
                )
                raise PermissionDeniedError(feature, ctx.role)
            return f(*args, **kwargs)
        return decorated
    return decorator
