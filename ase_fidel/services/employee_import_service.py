"""
Employee Import Service - bulk load of the personnel roster (efetivo).

Accepts .xlsx (first sheet, header on row 1) or .csv uploads:

    rows = parse_upload(filename, raw_bytes)     # header-keyed dicts
    preview = build_preview(rows)                # nothing written
    result = execute_import(preview["valid"])    # upsert by matricula

Headers are matched case- and accent-insensitively:
    matricula | nome | funcao / cargo | setor | email

Rows without matricula or nome are discarded before preview. A
non-empty but invalid email is reported as a row error.
"""

import csv
import io
import logging
import unicodedata
import zipfile

from email_validator import EmailNotValidError, validate_email
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError

from ase_fidel.core.exceptions import ValidationError
from ase_fidel.models import db
from ase_fidel.services.registry_service import upsert_employee

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".csv")

# Tried in order; Excel in pt-BR saves CSV as Windows-1252
CSV_ENCODINGS = ("utf-8-sig", "cp1252")

ROW_FIELDS = ("matricula", "name", "function", "sector_name", "email")

# Normalized header → canonical field
HEADER_ALIASES = {
    "matricula": "matricula",
    "nome": "name",
    "funcao": "function",
    "cargo": "function",
    "setor": "sector_name",
    "email": "email",
    "e-mail": "email",
}

# ═══════════════════════════════════════════════════════════════
# CSV Template
# ═══════════════════════════════════════════════════════════════

CSV_TEMPLATE_HEADER = ["Matrícula", "Nome", "Função", "Setor", "Email"]
CSV_TEMPLATE_EXAMPLE = [
    ["1001", "João da Silva", "Eletricista", "Manutenção", "joao.silva@example.com"],
    ["1002", "Maria Souza", "Soldadora", "Caldeiraria", ""],
]


def generate_csv_template() -> str:
    """CSV template string for the roster import."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_TEMPLATE_HEADER)
    writer.writerows(CSV_TEMPLATE_EXAMPLE)
    return output.getvalue()


# ═══════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════

def normalize_header(value) -> str:
    """'Função ' → 'funcao'."""
    text = unicodedata.normalize("NFKD", str(value or "").strip().lower())
    return "".join(ch for ch in text if not unicodedata.combining(ch))


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    # Numeric matriculas saved by spreadsheet tools come back as "1234.0"
    if text.endswith(".0") and text[:-2].isdigit():
        text = text[:-2]
    return text


def parse_xlsx(content: bytes) -> list[dict]:
    """First worksheet as a list of header-keyed dicts."""
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
        raise ValidationError(f"Planilha inválida: {exc}", details={"file": "xlsx"})
    try:
        ws = wb.worksheets[0]
        rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()
    if not rows:
        return []
    header = [str(h) if h is not None else "" for h in rows[0]]
    return [
        {header[i]: value for i, value in enumerate(row) if i < len(header) and header[i]}
        for row in rows[1:]
    ]


def _decode_csv(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValidationError(
        "Arquivo CSV com codificação inválida. Salve como CSV UTF-8.",
        details={"file": "csv", "encodings": list(CSV_ENCODINGS)},
    )


def parse_csv(content: str | bytes) -> list[dict]:
    """CSV text as a list of header-keyed dicts. ``;`` and ``,`` delimiters."""
    if isinstance(content, bytes):
        content = _decode_csv(content)
    try:
        dialect = csv.Sniffer().sniff(content.split("\n", 1)[0], delimiters=",;")
    except csv.Error:
        dialect = csv.excel
    reader = csv.DictReader(io.StringIO(content), dialect=dialect)
    return [dict(row) for row in reader]


def parse_upload(filename: str, content: bytes) -> list[dict]:
    """Dispatch on the file extension."""
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        return parse_xlsx(content)
    if name.endswith(".csv"):
        return parse_csv(content)
    raise ValidationError(
        "Formato não suportado. Envie um arquivo .xlsx ou .csv.",
        details={"allowed": list(SUPPORTED_EXTENSIONS)},
    )


def normalize_rows(raw_rows: list[dict]) -> tuple[list[dict], int]:
    """
    Map raw header-keyed rows to canonical import rows.

    Returns (rows, skipped). ``row_num`` is the spreadsheet line (header = 1).
    """
    rows = []
    skipped = 0
    for i, raw in enumerate(raw_rows, start=2):
        row = {"row_num": i, "matricula": "", "name": "", "function": "", "sector_name": "", "email": ""}
        for key, value in raw.items():
            field = HEADER_ALIASES.get(normalize_header(key))
            if field and not row[field]:
                row[field] = _cell_text(value)
        if not row["matricula"] or not row["name"]:
            skipped += 1
            continue
        rows.append(row)
    return rows, skipped


# ═══════════════════════════════════════════════════════════════
# Preview & import
# ═══════════════════════════════════════════════════════════════

def _validate_row(row: dict) -> str | None:
    if len(row["matricula"]) > 50:
        return "matricula too long (max 50)"
    if len(row["name"]) > 200:
        return "name too long (max 200)"
    if row["email"]:
        try:
            row["email"] = validate_email(row["email"], check_deliverability=False).normalized
        except EmailNotValidError as exc:
            return f"Invalid email '{row['email']}': {exc}"
    return None


def build_preview(raw_rows: list[dict]) -> dict:
    """
    Normalize and validate without writing.

    Returns {"valid": [...], "errors": [{"row", "matricula", "error"}], "skipped": n}
    """
    rows, skipped = normalize_rows(raw_rows)
    valid, errors = [], []
    seen = set()
    for row in rows:
        error = _validate_row(row)
        if error is None and row["matricula"] in seen:
            error = f"Duplicate matricula '{row['matricula']}' in file"
        if error:
            errors.append({"row": row["row_num"], "matricula": row["matricula"], "error": error})
            continue
        seen.add(row["matricula"])
        valid.append(row)
    return {"valid": valid, "errors": errors, "skipped": skipped}


def execute_import(rows: list[dict]) -> dict:
    """
    Upsert rows by matricula, one savepoint per row.

    A failing row is reported and the import continues.
    Returns {"status", "total", "created", "updated", "errors"}.
    """
    created = updated = 0
    errors = []

    for row in rows:
        # JSON rows bypass normalize_rows; coerce every field to text the same way
        row = {**row, **{key: _cell_text(row.get(key)) for key in ROW_FIELDS}}
        if not row["matricula"] or not row["name"]:
            error = "matricula and nome are required"
        else:
            error = _validate_row(row)
        if error:
            errors.append({"row": row.get("row_num"), "matricula": row.get("matricula"), "error": error})
            continue
        try:
            with db.session.begin_nested():
                _, was_created = upsert_employee(row)
        except SQLAlchemyError as exc:
            logger.warning("Import row %s failed: %s", row.get("row_num"), exc)
            errors.append({"row": row.get("row_num"), "matricula": row["matricula"], "error": str(getattr(exc, "orig", None) or exc)})
            continue
        if was_created:
            created += 1
        else:
            updated += 1

    db.session.commit()

    imported = created + updated
    if not errors:
        status = "completed"
    elif imported:
        status = "partial"
    else:
        status = "error"
    logger.info("Employee import: %d created, %d updated, %d errors", created, updated, len(errors))
    return {
        "status": status,
        "total": len(rows),
        "created": created,
        "updated": updated,
        "errors": errors,
    }
