"""
mapping/validator.py — JSON Schema validation for MetaTrigger mapping files.

Usage:
    from metatrigger.mapping.validator import validate_mappings_dir, validate_mapping_file

    issues = validate_mappings_dir(Path("mappings"))
    for issue in issues:
        print(issue)

PyYAML quirk: bare keys such as ``1:`` or ``on:`` are parsed as ``int`` and
``bool``.  Discriminator values are strings, so integer keys are converted
before validation and boolean keys are reported.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
_MAPPING_SCHEMA = "mapping.schema.json"


@dataclass
class ValidationIssue:
    """A single validation finding for a mapping YAML file."""

    file: Path
    message: str
    path: str = ""          # location within the document, e.g. "associations[0]/fetch"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_schema(name: str) -> dict[str, Any]:
    schema_path = _SCHEMAS_DIR / name
    with schema_path.open() as fh:
        return json.load(fh)


def _normalize_keys(obj: Any, path: str, issues: list[tuple[str, str]]) -> Any:
    """Recursively turn non-string dict keys into strings.

    Boolean keys (YAML 1.1 reads on/off/yes/no unquoted) become 'true' or
    'false' and are collected as warnings.
    """
    if isinstance(obj, dict):
        result: dict[Any, Any] = {}
        for k, v in obj.items():
            child = f"{path}/{k}" if path else str(k)
            if isinstance(k, bool):
                issues.append((child, f"Key {k!r} was parsed as a boolean; quote it"))
                k = str(k).lower()
            elif not isinstance(k, str):
                k = str(k)
            result[k] = _normalize_keys(v, child, issues)
        return result
    if isinstance(obj, list):
        return [_normalize_keys(item, f"{path}[{i}]", issues) for i, item in enumerate(obj)]
    return obj


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_mapping_file(
    yaml_path: Path,
    *,
    validator: Draft202012Validator | None = None,
) -> list[ValidationIssue]:
    """
    Validate a single mapping YAML file.

    Args:
        yaml_path: Path to the YAML file to validate.
        validator: Pre-built schema validator.  Built automatically if omitted.

    Returns:
        A list of :class:`ValidationIssue` objects (empty on success).
    """
    try:
        with yaml_path.open() as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if raw is None:
        return [
            ValidationIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]

    key_issues: list[tuple[str, str]] = []
    doc = _normalize_keys(raw, "", key_issues)
    issues = [
        ValidationIssue(file=yaml_path, message=msg, path=loc, severity="warning")
        for loc, msg in key_issues
    ]

    if validator is None:
        validator = Draft202012Validator(_load_schema(_MAPPING_SCHEMA))

    for error in sorted(validator.iter_errors(doc), key=lambda e: list(map(str, e.path))):
        issues.append(
            ValidationIssue(
                file=yaml_path,
                message=error.message,
                path=_json_path(error),
            )
        )

    return issues


def validate_mappings_dir(mappings_dir: Path) -> list[ValidationIssue]:
    """
    Validate every ``*.yaml`` file directly under *mappings_dir*.

    Returns:
        A flat list of :class:`ValidationIssue` objects across all files.
        Empty list means all files are valid.
    """
    if not mappings_dir.is_dir():
        return [
            ValidationIssue(
                file=mappings_dir,
                message=f"Mappings directory does not exist: {mappings_dir}",
            )
        ]

    validator = Draft202012Validator(_load_schema(_MAPPING_SCHEMA))

    all_issues: list[ValidationIssue] = []
    for yaml_file in sorted(mappings_dir.glob("*.yaml")):
        all_issues.extend(validate_mapping_file(yaml_file, validator=validator))
    return all_issues
