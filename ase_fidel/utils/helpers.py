"""Shared parsing and lookup helpers.

get_or_404:   primary-key lookup that raises NotFoundError
parse_date:   ISO / DD/MM/YYYY date parsing (None on bad input)
parse_time:   HH:MM[:SS] time parsing (None on bad input)
parse_id:     optional integer reference ids from JSON payloads
"""
import logging
from datetime import date, datetime, time

from ase_fidel.core.exceptions import NotFoundError, ValidationError
from ase_fidel.models import db

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_date(value):
    """Parse a date string to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD/MM/YYYY (Brazilian format)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d/%m/%Y").date()
    except (ValueError, TypeError):
        return None


def parse_time(value):
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time object, None on bad input."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def parse_id(value, field):
    """Coerce an optional reference id: '' / None → None, digits → int.

    Raises ValidationError for anything else so shape mismatches fail fast.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id", details={field: value})
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id", details={field: value})
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive id", details={field: value})
    return parsed


def format_date_br(value):
    """Format a date as dd/MM/yyyy, '' for None."""
    if not value:
        return ""
    return value.strftime("%d/%m/%Y")
