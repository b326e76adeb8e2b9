"""
ASE document export.

    buf = export_ase_xlsx(ase)    # BytesIO, ready for send_file
    html = export_ase_html(ase)   # print-ready page, the browser prints it to PDF

No server-side PDF engine: the printable HTML replaces it.
"""

import io
import logging
from datetime import datetime
from html import escape

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ase_fidel.services.ase_lifecycle import compute_man_hours, status_display
from ase_fidel.utils.helpers import format_date_br

logger = logging.getLogger(__name__)

BRAND_COLOR = "182554"
HEADER_FILL = PatternFill(start_color=BRAND_COLOR, end_color=BRAND_COLOR, fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
LABEL_FONT = Font(bold=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

TITLE = "Autorização de Serviço Extraordinário"


def _general_info(ase) -> list[tuple[str, str]]:
    return [
        ("Data", format_date_br(ase.date)),
        ("Setor", ase.sector.name if ase.sector else ""),
        ("Início", ase.start_time.strftime("%H:%M") if ase.start_time else ""),
        ("Fim", ase.end_time.strftime("%H:%M") if ase.end_time else ""),
        ("Solicitante", ase.requester.email if ase.requester else ""),
        ("Gerente", ase.manager.name if ase.manager else ""),
        ("Supervisor", ase.supervisor.name if ase.supervisor else ""),
        ("Encarregado", ase.encarregado.name if ase.encarregado else ""),
        ("Disciplina", ase.discipline.name if ase.discipline else ""),
        ("Subdisciplina", ase.subdiscipline.name if ase.subdiscipline else ""),
        ("HH", f"{compute_man_hours(ase.start_time, ase.end_time, len(ase.team)):.1f}"),
    ]


def _apply_header_style(ws, row: int, col_count: int) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")


def export_ase_xlsx(ase, company: str = "HC Engenharia") -> io.BytesIO:
    """Styled single-sheet workbook for one ASE."""
    wb = Workbook()
    ws = wb.active
    ws.title = "ASE"

    ws.merge_cells("A1:D1")
    ws["A1"] = f"ASE FIDEL - {TITLE}"
    ws["A1"].font = Font(size=16, bold=True, color=BRAND_COLOR)
    ws["A2"] = f"Nº {ase.number}"
    ws["A2"].font = Font(size=12, bold=True)
    ws["C2"] = f"Status: {status_display(ase.status)['label']}"
    ws["C2"].font = Font(size=11, bold=True)

    row = 4
    ws.cell(row=row, column=1, value="Informações Gerais")
    _apply_header_style(ws, row, 4)
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=4)
    row += 1
    info = _general_info(ase)
    # Two label/value pairs per line
    for i in range(0, len(info), 2):
        for offset, (label, value) in enumerate(info[i:i + 2]):
            ws.cell(row=row, column=1 + offset * 2, value=label).font = LABEL_FONT
            ws.cell(row=row, column=2 + offset * 2, value=value)
        row += 1

    row += 1
    ws.cell(row=row, column=1, value="Justificativa").font = Font(size=12, bold=True)
    row += 1
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=4)
    cell = ws.cell(row=row, column=1, value=ase.justification or "")
    cell.alignment = Alignment(wrap_text=True, vertical="top")
    ws.row_dimensions[row].height = 60

    row += 2
    headers = ["Matrícula", "Nome", "Função"]
    for col, header in enumerate(headers, 1):
        ws.cell(row=row, column=col, value=header)
    _apply_header_style(ws, row, len(headers))
    for member in ase.team:
        row += 1
        for col, value in enumerate(
            (member.snapshot_matricula, member.snapshot_name, member.snapshot_function or ""), 1,
        ):
            ws.cell(row=row, column=col, value=value).border = THIN_BORDER

    row += 2
    ws.cell(row=row, column=1, value=f"Gerado em {datetime.now().strftime('%d/%m/%Y %H:%M')} - {company}")
    ws.cell(row=row, column=1).font = Font(size=8, italic=True, color="969696")

    for col, width in enumerate((18, 34, 18, 34), 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


def export_ase_html(ase, company: str = "HC Engenharia") -> str:
    """Printable HTML with inline CSS."""
    info = _general_info(ase)
    info_rows = ""
    for i in range(0, len(info), 2):
        cells = "".join(
            f"<th>{escape(label)}</th><td>{escape(value)}</td>" for label, value in info[i:i + 2]
        )
        info_rows += f"<tr>{cells}</tr>"

    team_rows = "".join(
        f"<tr><td>{escape(m.snapshot_matricula)}</td><td>{escape(m.snapshot_name)}</td>"
        f"<td>{escape(m.snapshot_function or '')}</td></tr>"
        for m in ase.team
    ) or '<tr><td colspan="3">Nenhum colaborador.</td></tr>'

    status = status_display(ase.status)
    generated = datetime.now().strftime("%d/%m/%Y %H:%M")

    return f"""<!DOCTYPE html>
<html lang="pt-BR"><head>
<meta charset="utf-8">
<title>{escape(ase.number)}</title>
<style>
    body {{ font-family: 'Segoe UI', Arial, sans-serif; margin: 40px; color: #333; }}
    header {{ background: #{BRAND_COLOR}; color: #fff; padding: 16px 24px; display: flex;
              justify-content: space-between; align-items: center; }}
    header h1 {{ margin: 0; font-size: 24px; }}
    header p {{ margin: 2px 0; font-size: 13px; }}
    h2 {{ color: #{BRAND_COLOR}; border-bottom: 1px solid #ccc; padding-bottom: 4px; }}
    table {{ border-collapse: collapse; width: 100%; margin: 12px 0; }}
    th {{ text-align: left; padding: 6px 10px; width: 15%; }}
    td {{ padding: 6px 10px; border-bottom: 1px solid #e0e0e0; }}
    table.team th {{ background: #{BRAND_COLOR}; color: #fff; width: auto; }}
    .justification {{ white-space: pre-wrap; }}
    footer {{ margin-top: 32px; font-size: 11px; color: #999; }}
    @media print {{ body {{ margin: 20px; }} }}
</style>
</head><body>
<header>
  <div><h1>ASE FIDEL</h1><p>{TITLE}</p></div>
  <div><p>Nº {escape(ase.number)}</p><p>Status: {escape(status['label'])}</p></div>
</header>

<h2>Informações Gerais</h2>
<table>{info_rows}</table>

<h2>Justificativa</h2>
<p class="justification">{escape(ase.justification or '')}</p>

<h2>Equipe</h2>
<table class="team"><thead><tr><th>Matrícula</th><th>Nome</th><th>Função</th></tr></thead>
<tbody>{team_rows}</tbody></table>

<footer>Gerado em {generated} - {escape(company)}</footer>
</body></html>"""
