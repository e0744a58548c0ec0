"""
Tests for the FastAPI service.
"""
import pytest
from fastapi.testclient import TestClient

from backend.main import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("CARTOLA_REGISTRY_URL", raising=False)
    return TestClient(app)


@pytest.fixture
def statement():
    return (
        "Banco de Chile\n"
        "Fecha,Descripcion,Monto\n"
        "2024-03-15,Pago proveedor ABC,-50000\n"
        "2024-03-18,Abono cliente XYZ,150000\n"
    ).encode("utf-8")


class TestAPI:
    """HTTP endpoints."""

    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_bank_analysis(self, client, statement):
        response = client.post(
            "/bank-analysis",
            files={"file": ("cartola.csv", statement, "text/csv")},
            data={"company_id": "empresa-1"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["bank"] == "Banco de Chile"
        assert data["transaction_count"] == 2
        assert data["transactions"][0]["date"] == "2024-03-15"
        assert data["transactions"][0]["direction"] == "debit"
        assert data["insights"][0].startswith("Flujo positivo")

    def test_bank_analysis_rejects_unknown_type(self, client):
        response = client.post("/bank-analysis", files={"file": ("cartola.xlsx", b"x", "application/octet-stream")})
        assert response.status_code == 400

    def test_bank_analysis_rejects_bad_pdf(self, client):
        response = client.post("/bank-analysis", files={"file": ("cartola.pdf", b"no es pdf", "application/pdf")})
        assert response.status_code == 400

    def test_bank_to_journal(self, client, statement):
        analysis = client.post(
            "/bank-analysis", files={"file": ("cartola.csv", statement, "text/csv")}
        ).json()["data"]

        response = client.post("/bank-to-journal", json={
            "company_id": "empresa-1",
            "transactions": analysis["transactions"],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {"created": 2, "skipped": 0}
        draft = body["data"]["drafts"][1]
        assert draft["lines"][0]["account_code"] == "1.1.1.010"
        assert draft["status"] == "draft"

    def test_bank_to_journal_requires_company(self, client):
        response = client.post("/bank-to-journal", json={"company_id": "", "transactions": []})
        assert response.status_code == 400

    def test_account_mapping(self, client):
        response = client.post("/account-mapping", json={
            "external_accounts": [
                {"code": "1.01.01.01", "description": "Caja", "activo": "1000"},
                {"code": "9.02", "description": "Sin saldo"},
            ],
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["summary"]["total_accounts"] == 1
        assert data["mappings"][0]["mapped_code"] == "1.1.1.001"
        assert data["mappings"][0]["side"] == "debit"

    def test_banks(self, client):
        banks = client.get("/banks").json()["banks"]
        assert "Banco de Chile" in banks
