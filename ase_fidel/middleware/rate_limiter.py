"""
Rate limiting configuration.

The Limiter instance is created in ase_fidel/__init__.py with no default
limits. The login route carries its own limit (LOGIN_RATE_LIMIT); this
module applies the per-blueprint limits.

Usage:
    from ase_fidel.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "120/minute"
READ_LIMIT = "300/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Import endpoints:  WRITE_LIMIT (spreadsheet parsing is the heaviest call)
        - Dashboard:         READ_LIMIT
        - Health check:      exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("efetivo_bp")
    if bp:
        limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("dashboard_bp")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured - login: %s, efetivo: %s, dashboard: %s",
        app.config.get("LOGIN_RATE_LIMIT"), WRITE_LIMIT, READ_LIMIT,
    )
