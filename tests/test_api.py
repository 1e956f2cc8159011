"""
Tests for the FastAPI service.
"""

import pytest
from conftest import build_pasted_text
from fastapi.testclient import TestClient

from teif_invoice.api import app, get_company_store, get_lookup_source
from teif_invoice.companies import InMemoryCompanyStore, JsonCompanyStore
from teif_invoice.lookups import JsonLookupSource

OWNER_HEADERS = {"X-Owner-Id": "user-42"}


class UnavailableLookupSource:
    async def fetch(self, category):
        raise OSError("reference service down")


@pytest.fixture
def client(company):
    """Test client with in-memory company records and bundled reference data."""
    app.dependency_overrides[get_company_store] = lambda: InMemoryCompanyStore([company])
    app.dependency_overrides[get_lookup_source] = lambda: JsonLookupSource()
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSystemEndpoints:
    """Tests for health and field listing."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "0.1.0"}

    def test_fields(self, client):
        data = client.get("/fields").json()
        user_paths = [field["xml_path"] for field in data["header_fields"]["user_input"]]
        assert "InvoiceHeader.MessageRecieverIdentifier" in user_paths
        calculated = [field["xml_path"] for field in data["header_fields"]["calculated"]]
        assert "InvoiceBody.InvoiceMoa.AmountDetails.0.Moa.Amount" in calculated
        assert len(data["line_item_columns"]) == 11


class TestTemplateEndpoint:
    """Tests for the template download."""

    def test_download(self, client):
        response = client.get("/template", params={"company_id": "cmp-001"}, headers=OWNER_HEADERS)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "Facture_Template_" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_unknown_company(self, client):
        response = client.get("/template", params={"company_id": "cmp-999"}, headers=OWNER_HEADERS)
        assert response.status_code == 404

    def test_other_owner(self, client):
        response = client.get("/template", params={"company_id": "cmp-001"}, headers={"X-Owner-Id": "user-7"})
        assert response.status_code == 404

    def test_missing_owner_header(self, client):
        response = client.get("/template", params={"company_id": "cmp-001"})
        assert response.status_code == 422


class TestValidateEndpoint:
    """Tests for pasted-data validation."""

    def test_valid(self, client):
        response = client.post(
            "/validate",
            json={"company_id": "cmp-001", "pasted_data": build_pasted_text()},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["row_count"] == 1
        assert data["errors"] == []

    def test_invalid(self, client):
        response = client.post(
            "/validate",
            json={"company_id": "cmp-001", "pasted_data": build_pasted_text(include_header=False)},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert len(data["errors"]) == 1

    @pytest.mark.parametrize("body", [
        {"company_id": "cmp-001"},
        {"pasted_data": "Champ XML"},
        {"company_id": "", "pasted_data": "Champ XML"},
    ])
    def test_missing_fields(self, client, body):
        response = client.post("/validate", json=body, headers=OWNER_HEADERS)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_reference_data_unavailable(self, client):
        app.dependency_overrides[get_lookup_source] = lambda: UnavailableLookupSource()
        response = client.post(
            "/validate",
            json={"company_id": "cmp-001", "pasted_data": build_pasted_text()},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 502
        assert response.json()["category"] == "collaborator"


class TestGenerateEndpoint:
    """Tests for XML generation."""

    def test_generate(self, client):
        response = client.post(
            "/generate",
            json={"company_id": "cmp-001", "pasted_data": build_pasted_text()},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "invoice_INV-2024-001_" in response.headers["content-disposition"]
        assert response.text.startswith("<?xml")
        assert "<TEIF " in response.text

    def test_generate_with_errors(self, client):
        response = client.post(
            "/generate",
            json={"company_id": "cmp-001", "pasted_data": build_pasted_text(line_rows=[])},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["errors"] == [
            "Aucune ligne de facture valide détectée. Une facture doit contenir au moins une ligne."
        ]

    def test_unknown_company(self, client):
        response = client.post(
            "/generate",
            json={"company_id": "cmp-404", "pasted_data": build_pasted_text()},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 404


class TestCollaboratorFailures:
    """Tests for company record and reference data failures."""

    def test_company_records_unreadable(self, client, tmp_path):
        path = tmp_path / "companies.json"
        path.write_text("not json", encoding="utf-8")
        app.dependency_overrides[get_company_store] = lambda: JsonCompanyStore(path)
        response = client.get("/template", params={"company_id": "cmp-001"}, headers=OWNER_HEADERS)
        assert response.status_code == 502
        assert response.json() == {
            "detail": "Registre des entreprises indisponible.",
            "category": "collaborator",
        }

    def test_reference_data_message(self, client):
        app.dependency_overrides[get_lookup_source] = lambda: UnavailableLookupSource()
        response = client.get("/template", params={"company_id": "cmp-001"}, headers=OWNER_HEADERS)
        assert response.status_code == 502
        assert response.json()["detail"] == "Service de données de référence indisponible."
