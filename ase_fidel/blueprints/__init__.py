"""
ASE Fidel
Blueprint registry.
"""

from flask import current_app, request


def json_body():
    """The request body as a dict, or None when it is not a JSON object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def public_base_url() -> str:
    """Base URL for links sent outside the app: PUBLIC_BASE_URL, else the request host."""
    return current_app.config.get("PUBLIC_BASE_URL") or request.host_url.rstrip("/")
