"""
Efetivo spreadsheet import - header mapping, preview, upsert and the API.
"""

import io

import pytest
from openpyxl import Workbook

from ase_fidel.core.exceptions import ValidationError
from ase_fidel.models.registry import Employee
from ase_fidel.services import employee_import_service as importer

CSV_SEMICOLON = (
    "Matrícula;Nome;Cargo;Setor;E-mail\n"
    "2001;Diego Alves;Soldador;manutenção;diego@example.com\n"
    "2002;Elisa Prado;Pintora;Inexistente;\n"
    ";Sem Matricula;Ajudante;;\n"
).encode("utf-8")


def _xlsx_bytes(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _upload(client, path, content, filename, headers):
    return client.post(
        path,
        data={"file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
        headers=headers,
    )


# ═══════════════════════════════════════════════════════════════
# Header mapping & normalization
# ═══════════════════════════════════════════════════════════════

class TestNormalize:
    @pytest.mark.parametrize("raw,expected", [
        ("Matrícula", "matricula"),
        (" FUNÇÃO ", "funcao"),
        ("E-mail", "e-mail"),
        (None, ""),
    ])
    def test_normalize_header(self, raw, expected):
        assert importer.normalize_header(raw) == expected

    def test_rows_mapped_and_incomplete_skipped(self):
        rows, skipped = importer.normalize_rows([
            {"MATRÍCULA": 1234.0, "Nome": " Ana ", "Cargo": "Mecânica", "Setor": "Manutenção"},
            {"Matricula": "", "Nome": "Sem matrícula"},
            {"Matricula": "77", "Nome": None},
            {"matricula": "88", "nome": "Bia", "Observação": "ignored"},
        ])
        assert skipped == 2
        assert rows[0] == {
            "row_num": 2, "matricula": "1234", "name": "Ana",
            "function": "Mecânica", "sector_name": "Manutenção", "email": "",
        }
        assert rows[1]["row_num"] == 5
        assert "Observação" not in rows[1]

    def test_preview_flags_bad_email_and_duplicates(self):
        preview = importer.build_preview([
            {"matricula": "1", "nome": "A", "email": "A@Example.com"},
            {"matricula": "2", "nome": "B", "email": "not-an-email"},
            {"matricula": "1", "nome": "A again"},
        ])
        assert [r["matricula"] for r in preview["valid"]] == ["1"]
        assert preview["valid"][0]["email"] == "A@example.com"
        assert [e["row"] for e in preview["errors"]] == [3, 4]
        assert "Invalid email" in preview["errors"][0]["error"]
        assert "Duplicate" in preview["errors"][1]["error"]


# ═══════════════════════════════════════════════════════════════
# File parsing
# ═══════════════════════════════════════════════════════════════

class TestParsing:
    def test_semicolon_csv_with_bom(self):
        rows = importer.parse_upload("efetivo.CSV", b"\xef\xbb\xbf" + CSV_SEMICOLON)
        assert len(rows) == 3
        assert rows[0]["Matrícula"] == "2001"
        assert rows[0]["Cargo"] == "Soldador"

    def test_comma_csv(self):
        rows = importer.parse_csv("matricula,nome\n10,Caio\n")
        assert rows == [{"matricula": "10", "nome": "Caio"}]

    def test_xlsx_first_sheet(self):
        content = _xlsx_bytes([
            ["Matrícula", "Nome", "Função", "Setor"],
            [3001, "Fábio Nunes", "Montador", "Manutenção"],
            [3002.0, "Gil Souza", None, None],
        ])
        rows, skipped = importer.normalize_rows(importer.parse_upload("efetivo.xlsx", content))
        assert skipped == 0
        assert [r["matricula"] for r in rows] == ["3001", "3002"]
        assert rows[1]["function"] == ""

    def test_corrupt_xlsx(self):
        with pytest.raises(ValidationError):
            importer.parse_upload("efetivo.xlsx", b"definitely not a zip")

    def test_windows_1252_csv(self):
        content = "Matrícula;Nome;Função\n123;João;Soldador\n".encode("cp1252")
        rows = importer.parse_csv(content)
        assert rows == [{"Matrícula": "123", "Nome": "João", "Função": "Soldador"}]

    def test_undecodable_csv(self):
        with pytest.raises(ValidationError) as exc:
            importer.parse_csv(b"matricula;nome\n1;\x81\x8d\n")
        assert exc.value.details["file"] == "csv"

    def test_unsupported_extension(self):
        with pytest.raises(ValidationError) as exc:
            importer.parse_upload("efetivo.txt", b"x")
        assert exc.value.details == {"allowed": [".xlsx", ".csv"]}

    def test_template_round_trips_through_parser(self):
        rows, skipped = importer.normalize_rows(importer.parse_csv(importer.generate_csv_template()))
        assert skipped == 0
        assert [r["matricula"] for r in rows] == ["1001", "1002"]
        assert rows[0]["function"] == "Eletricista"


# ═══════════════════════════════════════════════════════════════
# Upsert
# ═══════════════════════════════════════════════════════════════

class TestExecuteImport:
    def test_creates_and_updates_by_matricula(self, reference):
        result = importer.execute_import([
            {"row_num": 2, "matricula": "1001", "name": "Ana Lima Souza", "sector_name": "MANUTENÇÃO"},
            {"row_num": 3, "matricula": 4001, "name": "Hugo Melo", "sector_name": "Nenhum"},
        ])
        assert result == {"status": "completed", "total": 2, "created": 1, "updated": 1, "errors": []}

        updated = Employee.query.filter_by(matricula="1001").one()
        assert updated.name == "Ana Lima Souza"
        assert updated.sector_id == reference["sector"].id

        created = Employee.query.filter_by(matricula="4001").one()
        assert created.sector_id is None

    def test_partial(self):
        result = importer.execute_import([
            {"matricula": "5001", "name": "Ok"},
            {"matricula": "5002", "name": ""},
        ])
        assert result["status"] == "partial"
        assert result["created"] == 1
        assert len(result["errors"]) == 1

    def test_non_text_values_are_coerced(self, reference):
        result = importer.execute_import([
            {"matricula": 9, "name": "Xavier", "function": 7, "sector_name": 5, "email": None},
        ])
        assert result["status"] == "completed"
        emp = Employee.query.filter_by(matricula="9").one()
        assert emp.function == "7"
        assert emp.sector_id is None

    def test_all_rows_fail(self):
        result = importer.execute_import([{"matricula": "5003", "name": "X", "email": "bad"}])
        assert result["status"] == "error"
        assert Employee.query.filter_by(matricula="5003").count() == 0


# ═══════════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════════

class TestImportApi:
    def test_preview_writes_nothing(self, client, auth_headers, reference):
        res = _upload(client, "/api/v1/efetivo/import/preview", CSV_SEMICOLON, "efetivo.csv", auth_headers("ADMIN"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["total_rows"] == 2
        assert body["valid_count"] == 2
        assert body["skipped"] == 1
        assert Employee.query.filter_by(matricula="2001").count() == 0

    def test_import_file(self, client, auth_headers, reference):
        res = _upload(client, "/api/v1/efetivo/import", CSV_SEMICOLON, "efetivo.csv", auth_headers("ADMIN"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "completed"
        assert body["created"] == 2
        assert body["skipped"] == 1

        diego = Employee.query.filter_by(matricula="2001").one()
        assert diego.sector_id == reference["sector"].id
        assert diego.function == "Soldador"
        assert Employee.query.filter_by(matricula="2002").one().sector_id is None

    def test_import_with_invalid_rows_is_partial(self, client, auth_headers):
        content = b"matricula,nome,email\n6001,Ivo,ivo@example.com\n6002,Jade,jade-at-nowhere\n"
        res = _upload(client, "/api/v1/efetivo/import", content, "efetivo.csv", auth_headers("ADMIN"))
        assert res.status_code == 207
        body = res.get_json()
        assert body["status"] == "partial"
        assert body["errors"][0]["matricula"] == "6002"

    def test_import_previewed_rows(self, client, auth_headers):
        res = client.post(
            "/api/v1/efetivo/import",
            json={"rows": [{"matricula": "7001", "name": "Lia"}]},
            headers=auth_headers("COORDENADOR"),
        )
        assert res.status_code == 200
        assert res.get_json()["created"] == 1

    def test_preview_windows_1252_csv(self, client, auth_headers, reference):
        content = "Matrícula;Nome;Função;Setor\n123;João;Soldador;Manutenção\n".encode("cp1252")
        res = _upload(client, "/api/v1/efetivo/import/preview", content, "efetivo.csv", auth_headers("ADMIN"))
        assert res.status_code == 200
        row = res.get_json()["valid_rows"][0]
        assert row["name"] == "João"
        assert row["sector_name"] == "Manutenção"

    def test_preview_undecodable_csv(self, client, auth_headers):
        res = _upload(client, "/api/v1/efetivo/import/preview", b"matricula;nome\n1;\x81\n", "efetivo.csv", auth_headers("ADMIN"))
        assert res.status_code == 422

    def test_import_rows_with_numeric_fields(self, client, auth_headers, reference):
        res = client.post(
            "/api/v1/efetivo/import",
            json={"rows": [{"matricula": "9", "name": "X", "function": 7, "sector_name": 5}]},
            headers=auth_headers("ADMIN"),
        )
        assert res.status_code == 200
        assert res.get_json()["created"] == 1
        assert Employee.query.filter_by(matricula="9").one().function == "7"

    def test_missing_file_and_rows(self, client, auth_headers):
        res = client.post("/api/v1/efetivo/import", json={}, headers=auth_headers("ADMIN"))
        assert res.status_code == 400

    def test_unsupported_upload(self, client, auth_headers):
        res = _upload(client, "/api/v1/efetivo/import/preview", b"x", "efetivo.pdf", auth_headers("ADMIN"))
        assert res.status_code == 422

    def test_encarregado_cannot_import(self, client, auth_headers):
        res = _upload(client, "/api/v1/efetivo/import", CSV_SEMICOLON, "efetivo.csv", auth_headers("ENCARREGADO"))
        assert res.status_code == 403

    def test_template(self, client, auth_headers):
        res = client.get("/api/v1/efetivo/import/template", headers=auth_headers("ADMIN"))
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert res.get_data(as_text=True).splitlines()[0] == "Matrícula,Nome,Função,Setor,Email"
