"""Tests for MetaTrigger CLI commands."""

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from metatrigger.cli.main import cli

_MAPPINGS_DIR = Path(__file__).resolve().parents[1] / "mappings"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def shipped_mappings(monkeypatch):
    """Point the CLI at the mappings shipped with the repository."""
    monkeypatch.setenv("METATRIGGER_MAPPINGS_PATH", str(_MAPPINGS_DIR))


@pytest.fixture
def mappings_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("METATRIGGER_MAPPINGS_PATH", str(tmp_path))
    return tmp_path


class TestMappingsValidate:
    def test_validate_succeeds(self, runner, shipped_mappings):
        result = runner.invoke(cli, ["mappings", "validate"])
        assert result.exit_code == 0
        assert "All mappings are valid" in result.output

    def test_validate_lists_entities(self, runner, shipped_mappings):
        result = runner.invoke(cli, ["mappings", "validate"])
        assert "Loaded 3 mapping(s)" in result.output
        assert "shop.Order (associations, indexes, uniques)" in result.output
        assert "shop.Payment" in result.output

    def test_validate_reports_schema_errors(self, runner, mappings_dir):
        (mappings_dir / "order.yaml").write_text("entity: shop.Order\ninheritanceType: DIAMOND\n")
        result = runner.invoke(cli, ["mappings", "validate"])
        assert result.exit_code == 1
        assert "inheritanceType" in result.output
        assert "1 schema error(s) found" in result.output

    def test_validate_reports_boolean_keys_as_warnings(self, runner, mappings_dir):
        (mappings_dir / "payment.yaml").write_text(
            "entity: shop.Payment\ndiscriminators:\n  on: shop.OnlinePayment\n"
        )
        result = runner.invoke(cli, ["mappings", "validate"])
        assert result.exit_code == 0
        assert "[WARNING]" in result.output
        assert "parsed as a boolean" in result.output
        assert "All mappings are valid" in result.output

    def test_validate_single_file(self, runner, shipped_mappings, tmp_path):
        path = tmp_path / "order.yaml"
        path.write_text("entity: shop.Order\nindexes:\n  ix_status: [status]\n")
        result = runner.invoke(cli, ["mappings", "validate", "--path", str(path)])
        assert result.exit_code == 0
        assert "Loaded" not in result.output
        assert "All mappings are valid" in result.output

    def test_validate_missing_directory(self, runner, monkeypatch, tmp_path):
        monkeypatch.setenv("METATRIGGER_MAPPINGS_PATH", str(tmp_path / "nope"))
        result = runner.invoke(cli, ["mappings", "validate"])
        assert result.exit_code == 1
        assert "Mappings directory not found" in result.output


class TestMappingsShow:
    def test_show_entity(self, runner, shipped_mappings):
        result = runner.invoke(cli, ["mappings", "show", "shop.Payment"])
        assert result.exit_code == 0

        shown = yaml.safe_load(result.output)
        assert shown["entity"] == "shop.Payment"
        assert shown["inheritanceType"] == "SINGLE_TABLE"
        assert shown["discriminatorColumn"] == {"name": "kind", "length": 20}
        assert shown["discriminators"]["card"] == "shop.CardPayment"

    def test_show_associations(self, runner, shipped_mappings):
        result = runner.invoke(cli, ["mappings", "show", "shop.Order"])
        shown = yaml.safe_load(result.output)
        assert [a["fieldName"] for a in shown["associations"]] == ["items", "customer"]
        assert shown["associations"][0]["cascade"] == ["persist", "remove"]

    def test_show_unknown_entity(self, runner, shipped_mappings):
        result = runner.invoke(cli, ["mappings", "show", "shop.Nothing"])
        assert result.exit_code == 1
        assert "No mapping rules registered for shop.Nothing" in result.output
