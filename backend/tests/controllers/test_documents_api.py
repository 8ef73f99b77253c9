"""
HTTP tests for the general document library.
"""

import base64

import pytest

PDF = base64.b64encode(b"%PDF-1.4 recibo").decode()


@pytest.mark.controllers
@pytest.mark.documents
class TestDocumentEndpoints:
    def test_upload_list_download_and_delete(self, http, login, staff):
        login(staff)

        created = http.post(
            "/documents",
            json={
                "title": "Recibo de março",
                "type": "comprovante",
                "file_name": "recibo.pdf",
                "file_data": PDF,
            },
        )
        note = http.post(
            "/documents", json={"title": "Aviso", "type": "lembrete", "content": "Feriado"}
        )

        assert created.status_code == 201
        assert note.status_code == 201
        listed = http.get("/documents").get_json()["data"]
        assert {d["kind"] for d in listed} == {"file", "note"}
        assert all(d["file_data"] is None for d in listed)

        document_id = created.get_json()["data"]["id"]
        downloaded = http.get(f"/documents/{document_id}").get_json()["data"]
        assert downloaded["file_data"] == PDF
        assert downloaded["created_by"] == staff.name

        assert http.get("/documents?type=lembrete&q=feriado").get_json()["data"][0]["title"] == (
            "Aviso"
        )
        assert http.delete(f"/documents/{document_id}").status_code == 200
        assert http.get(f"/documents/{document_id}").status_code == 404

    def test_invalid_entry(self, http, login, coordinator):
        login(coordinator)

        response = http.post("/documents", json={"title": "Vazio", "type": "nota"})

        assert response.status_code == 400
        assert response.get_json()["data"]["kind"] == "validation"

    def test_interns_are_forbidden(self, http, login, intern):
        login(intern)

        assert http.get("/documents").status_code == 403
