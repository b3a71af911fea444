"""
Tests for mapping files: metatrigger.mapping.loader and metatrigger.mapping.validator

Covers:
  - MappingLoader.register()      — one document into a registry
  - MappingLoader.load_into()     — directory walk in file name order
  - validate_mapping_file()       — single-file validation (valid + invalid)
  - validate_mappings_dir()       — directory walk (shipped mappings pass)
"""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from metatrigger.exceptions import MappingLoadError
from metatrigger.mapping import AssociationKind, MappingLoader, MappingRegistry
from metatrigger.mapping.validator import (
    ValidationIssue,
    validate_mapping_file,
    validate_mappings_dir,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _write_yaml(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data))
    return path


def _write_raw(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


_REPO_ROOT = Path(__file__).resolve().parents[1]
_MAPPINGS_DIR = _REPO_ROOT / "mappings"

_ORDER = {
    "entity": "shop.Order",
    "associations": [
        {"type": "oneToMany", "fieldName": "items", "targetEntity": "shop.Item", "mappedBy": "order"},
    ],
    "indexes": {"ix_orders_status": ["status"]},
    "uniques": {"uq_orders_reference": ["reference"]},
}


# ---------------------------------------------------------------------------
# MappingLoader.register
# ---------------------------------------------------------------------------


class TestRegister:
    @pytest.fixture
    def registry(self):
        return MappingRegistry()

    def test_registers_every_section(self, registry):
        entity = MappingLoader(Path(".")).register(registry, {
            **_ORDER,
            "discriminatorColumn": {"name": "kind"},
            "discriminators": {"order": "shop.Order", 2: "shop.RushOrder"},
            "inheritanceType": "SINGLE_TABLE",
        })

        assert entity == "shop.Order"
        items = registry.associations_for("shop.Order")[AssociationKind.ONE_TO_MANY]
        assert [m.mapped_by for m in items] == ["order"]
        assert registry.indexes_for("shop.Order") == {"ix_orders_status": ["status"]}
        assert registry.uniques_for("shop.Order") == {"uq_orders_reference": ["reference"]}
        assert registry.discriminator_column_for("shop.Order") == {"name": "kind"}
        assert registry.discriminators_for("shop.Order") == {"order": "shop.Order", "2": "shop.RushOrder"}
        assert registry.inheritance_type_for("shop.Order") == "SINGLE_TABLE"

    def test_missing_entity(self, registry):
        with pytest.raises(MappingLoadError, match="no 'entity' key"):
            MappingLoader(Path(".")).register(registry, {"indexes": {}})

    def test_association_without_type(self, registry):
        data = {"entity": "shop.Order", "associations": [{"fieldName": "items"}]}
        with pytest.raises(MappingLoadError, match="has no 'type'"):
            MappingLoader(Path(".")).register(registry, data)

    def test_unknown_association_type(self, registry):
        data = {"entity": "shop.Order", "associations": [{"type": "sideways", "fieldName": "items"}]}
        with pytest.raises(MappingLoadError, match="Unknown association kind"):
            MappingLoader(Path(".")).register(registry, data, source=Path("order.yaml"))

    def test_section_of_wrong_shape(self, registry):
        data = {"entity": "shop.Order", "indexes": ["status"]}
        with pytest.raises(MappingLoadError, match="'indexes' of shop.Order must be a dict"):
            MappingLoader(Path(".")).register(registry, data)


# ---------------------------------------------------------------------------
# MappingLoader.load_into
# ---------------------------------------------------------------------------


class TestLoadInto:
    def test_loads_in_file_name_order(self, tmp_path):
        _write_yaml(tmp_path / "b_payment.yaml", {"entity": "shop.Payment", "inheritanceType": "JOINED"})
        _write_yaml(tmp_path / "a_order.yaml", _ORDER)
        _write_raw(tmp_path / "c_empty.yaml", "")
        _write_raw(tmp_path / "notes.txt", "entity: ignored")

        registry = MappingRegistry()
        assert MappingLoader(tmp_path).load_into(registry) == ["shop.Order", "shop.Payment"]
        assert registry.entities() == ["shop.Order", "shop.Payment"]

    def test_first_file_wins_for_duplicate_index(self, tmp_path):
        _write_yaml(tmp_path / "a.yaml", {"entity": "shop.Order", "indexes": {"ix": ["status"]}})
        _write_yaml(tmp_path / "b.yaml", {"entity": "shop.Order", "indexes": {"ix": ["reference"]}})

        registry = MappingRegistry()
        MappingLoader(tmp_path).load_into(registry)
        assert registry.indexes_for("shop.Order") == {"ix": ["status"]}

    def test_missing_directory(self, tmp_path):
        assert MappingLoader(tmp_path / "nope").load_into(MappingRegistry()) == []

    def test_shipped_mappings_load(self):
        registry = MappingRegistry()
        loaded = MappingLoader(_MAPPINGS_DIR).load_into(registry)
        assert sorted(loaded) == ["shop.Item", "shop.Order", "shop.Payment"]
        assert registry.discriminators_for("shop.Payment")["card"] == "shop.CardPayment"


# ---------------------------------------------------------------------------
# validate_mapping_file
# ---------------------------------------------------------------------------


class TestValidateMappingFile:
    def test_valid_file(self, tmp_path):
        path = _write_yaml(tmp_path / "order.yaml", _ORDER)
        assert validate_mapping_file(path) == []

    def test_missing_entity(self, tmp_path):
        path = _write_yaml(tmp_path / "order.yaml", {"indexes": {"ix": ["status"]}})
        issues = validate_mapping_file(path)
        assert len(issues) == 1
        assert "'entity' is a required property" in issues[0].message

    def test_unknown_top_level_key(self, tmp_path):
        path = _write_yaml(tmp_path / "order.yaml", {"entity": "shop.Order", "columns": {}})
        issues = validate_mapping_file(path)
        assert any("columns" in issue.message for issue in issues)

    def test_invalid_fetch_reports_path(self, tmp_path):
        data = {
            "entity": "shop.Order",
            "associations": [
                {"type": "oneToMany", "fieldName": "items", "targetEntity": "shop.Item", "fetch": "SOMETIMES"},
            ],
        }
        issues = validate_mapping_file(_write_yaml(tmp_path / "order.yaml", data))
        assert [issue.path for issue in issues] == ["associations[0]/fetch"]

    def test_association_requires_target(self, tmp_path):
        data = {"entity": "shop.Order", "associations": [{"type": "oneToMany", "fieldName": "items"}]}
        issues = validate_mapping_file(_write_yaml(tmp_path / "order.yaml", data))
        assert any("targetEntity" in issue.message for issue in issues)

    def test_invalid_inheritance_type(self, tmp_path):
        data = {"entity": "shop.Payment", "inheritanceType": "DIAMOND"}
        issues = validate_mapping_file(_write_yaml(tmp_path / "payment.yaml", data))
        assert [issue.path for issue in issues] == ["inheritanceType"]

    def test_integer_discriminator_keys_are_accepted(self, tmp_path):
        path = _write_raw(
            tmp_path / "payment.yaml",
            "entity: shop.Payment\ndiscriminators:\n  1: shop.Payment\n  2: shop.CardPayment\n",
        )
        assert validate_mapping_file(path) == []

    def test_boolean_discriminator_key_is_reported(self, tmp_path):
        path = _write_raw(
            tmp_path / "payment.yaml",
            "entity: shop.Payment\ndiscriminators:\n  on: shop.OnlinePayment\n",
        )
        issues = validate_mapping_file(path)
        assert len(issues) == 1
        assert issues[0].path == "discriminators/True"
        assert "parsed as a boolean" in issues[0].message
        assert issues[0].severity == "warning"
        assert str(issues[0]).startswith("[WARNING]")

    def test_yaml_parse_error(self, tmp_path):
        path = _write_raw(tmp_path / "broken.yaml", "entity: [unclosed\n")
        issues = validate_mapping_file(path)
        assert len(issues) == 1
        assert "YAML parse error" in issues[0].message

    def test_empty_file(self, tmp_path):
        issues = validate_mapping_file(_write_raw(tmp_path / "empty.yaml", "\n"))
        assert "empty" in issues[0].message

    def test_issue_str(self, tmp_path):
        issue = ValidationIssue(file=tmp_path / "order.yaml", message="bad", path="indexes")
        assert str(issue) == f"[ERROR] {tmp_path / 'order.yaml'} at indexes: bad"


# ---------------------------------------------------------------------------
# validate_mappings_dir
# ---------------------------------------------------------------------------


class TestValidateMappingsDir:
    def test_shipped_mappings_are_valid(self):
        assert validate_mappings_dir(_MAPPINGS_DIR) == []

    def test_collects_issues_across_files(self, tmp_path):
        _write_yaml(tmp_path / "a.yaml", {"indexes": {}})
        _write_yaml(tmp_path / "b.yaml", {"entity": "shop.Payment", "inheritanceType": "DIAMOND"})
        issues = validate_mappings_dir(tmp_path)
        assert [issue.file.name for issue in issues] == ["a.yaml", "b.yaml"]

    def test_missing_directory(self, tmp_path):
        issues = validate_mappings_dir(tmp_path / "nope")
        assert len(issues) == 1
        assert "does not exist" in issues[0].message
