"""Messaging share link for an ASE (prefilled WhatsApp message)."""

from urllib.parse import quote

from ase_fidel.utils.helpers import format_date_br

SHARE_BASE_URL = "https://wa.me/"


def build_share_text(ase, base_url: str, company: str = "HC Engenharia") -> str:
    sector = ase.sector.name if ase.sector else ""
    return (
        f"*ASE Fidel - {company}*\n"
        f"*Nº:* {ase.number}\n"
        f"*Status:* {ase.status}\n"
        f"*Data:* {format_date_br(ase.date)}\n"
        f"*Setor:* {sector}\n"
        f"*Link:* {base_url.rstrip('/')}/#/ase/{ase.id}"
    )


def build_share_link(ase, base_url: str, company: str = "HC Engenharia") -> dict:
    """Return {"text", "url"}; the url opens the messaging app with the text prefilled."""
    text = build_share_text(ase, base_url, company)
    return {"text": text, "url": f"{SHARE_BASE_URL}?text={quote(text, safe='')}"}
