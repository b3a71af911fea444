"""Mapping CLI commands — validate and show."""

from pathlib import Path

import click
import yaml

from metatrigger.config import TriggerConfig
from metatrigger.exceptions import MappingLoadError
from metatrigger.mapping.loader import MappingLoader
from metatrigger.mapping.registry import MappingRegistry
from metatrigger.mapping.validator import validate_mapping_file, validate_mappings_dir


def _load_registry(mappings_path: Path) -> MappingRegistry:
    registry = MappingRegistry()
    MappingLoader(mappings_path).load_into(registry)
    return registry


@click.group()
def mappings():
    """Mapping file commands."""
    pass


@mappings.command()
@click.option(
    "--path",
    "target_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Validate a single YAML file instead of the whole mappings directory.",
)
def validate(target_path: Path | None):
    """Validate mapping YAML files against the JSON Schema."""
    mappings_path = TriggerConfig.from_env().mappings_path

    if target_path is not None:
        issues = validate_mapping_file(target_path)
    else:
        if not mappings_path.exists():
            click.echo(f"Error: Mappings directory not found at {mappings_path}", err=True)
            raise SystemExit(1)
        issues = validate_mappings_dir(mappings_path)

    for issue in issues:
        colour = "red" if issue.severity == "error" else "yellow"
        click.echo(click.style(str(issue), fg=colour))

    errors = [i for i in issues if i.severity == "error"]
    if errors:
        click.echo(click.style(f"\n{len(errors)} schema error(s) found", fg="red", bold=True))
        raise SystemExit(1)

    # ── Registration check ──────────────────────────────────────────────────
    # Only runs when validating the full directory (target_path is None)
    if target_path is None:
        registry = MappingRegistry()
        try:
            entities = MappingLoader(mappings_path).load_into(registry)
        except MappingLoadError as e:
            click.echo(click.style(f"\nLoading mappings failed: {e}", fg="red"), err=True)
            raise SystemExit(1)

        click.echo(f"\nLoaded {len(entities)} mapping(s):")
        for name in entities:
            rules = registry.describe(name)
            click.echo(f"  ✓ {name} ({', '.join(sorted(rules)) or 'no rules'})")

    click.echo(click.style("\nAll mappings are valid.", fg="green", bold=True))


@mappings.command("show")
@click.argument("entity")
def show_cmd(entity: str):
    """Show the rules registered for ENTITY."""
    mappings_path = TriggerConfig.from_env().mappings_path

    try:
        registry = _load_registry(mappings_path)
    except MappingLoadError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    rules = registry.describe(entity)
    if not rules:
        click.echo(f"No mapping rules registered for {entity}", err=True)
        raise SystemExit(1)

    click.echo(yaml.safe_dump({"entity": entity, **rules}, sort_keys=False).rstrip())
