"""
Tests for statement loading and settings.
"""
import pytest
from pathlib import Path

from ..core.config import Settings, load_template
from ..core.loader import StatementLoadError, StatementLoader, load_statement_text
from ..models.schema import AmountConvention


class TestStatementLoader:
    """Text decoding and PDF handling."""

    def test_utf8_with_bom(self, tmp_path):
        path = tmp_path / "cartola.csv"
        path.write_bytes("\ufeffFecha,Descripción,Monto\n".encode("utf-8"))

        assert load_statement_text(path) == "Fecha,Descripción,Monto\n"

    def test_latin1_fallback(self, tmp_path):
        path = tmp_path / "cartola.txt"
        path.write_bytes("Depósito en efectivo".encode("latin-1"))

        assert load_statement_text(path) == "Depósito en efectivo"

    def test_bytes_source(self):
        assert load_statement_text(b"Fecha;Monto", "subida.csv") == "Fecha;Monto"

    def test_pdf_detection(self):
        assert StatementLoader(Path("cartola.PDF")).is_pdf
        assert not StatementLoader(b"", "cartola.csv").is_pdf

    def test_invalid_pdf(self):
        with pytest.raises(StatementLoadError):
            load_statement_text(b"esto no es un pdf", "cartola.pdf")

    def test_missing_file(self, tmp_path):
        with pytest.raises(StatementLoadError):
            load_statement_text(tmp_path / "no-existe.csv")

    def test_load_error_is_value_error(self):
        assert issubclass(StatementLoadError, ValueError)


class TestConfig:
    """Environment settings and YAML templates."""

    def test_defaults(self):
        settings = Settings()
        assert settings.registry_url is None
        assert settings.lookup_timeout == 5.0
        assert settings.max_concurrency == 8
        assert settings.amount_convention == AmountConvention.LATAM

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CARTOLA_REGISTRY_URL", "http://registry.test")
        monkeypatch.setenv("CARTOLA_MAX_CONCURRENCY", "3")
        monkeypatch.setenv("CARTOLA_LOOKUP_TIMEOUT", "1.5")
        monkeypatch.setenv("CARTOLA_AMOUNT_CONVENTION", "ENGLISH")

        settings = Settings.from_env(tmp_path / "missing.env")

        assert settings.registry_url == "http://registry.test"
        assert settings.max_concurrency == 3
        assert settings.lookup_timeout == 1.5
        assert settings.amount_convention == AmountConvention.ENGLISH

    def test_env_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("CARTOLA_MAX_CONCURRENCY", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("CARTOLA_MAX_CONCURRENCY=4\n", encoding="utf-8")

        settings = Settings.from_env(env_file)
        monkeypatch.delenv("CARTOLA_MAX_CONCURRENCY", raising=False)

        assert settings.max_concurrency == 4

    def test_missing_template(self, tmp_path):
        with pytest.raises(ValueError):
            load_template("banks", tmp_path)

    def test_template_must_be_mapping(self, tmp_path):
        (tmp_path / "banks.yaml").write_text("- solo\n- una lista\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_template("banks", tmp_path)

    def test_templates_read_once(self, tmp_path):
        path = tmp_path / "banks.yaml"
        path.write_text("banks: []\n", encoding="utf-8")

        first = load_template("banks", tmp_path)
        path.write_text("banks: [{name: Otro}]\n", encoding="utf-8")

        assert load_template("banks", tmp_path) is first
        assert first == {"banks": []}
