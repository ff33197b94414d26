"""Template CLI commands: render and verify."""

from pathlib import Path

import click
import yaml

from hashflow.config import EngineConfig
from hashflow.engine import ScriptEngine
from hashflow.engine import verify as verify_template
from hashflow.errors import ScriptError, TemplateSyntaxError


def load_context(path: Path | None) -> dict:
    """Load a YAML or JSON context file; the top level must be a mapping."""
    if path is None:
        return {}
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise click.BadParameter(f"cannot parse {path}: {e}", param_hint="--context")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise click.BadParameter(
            f"{path} must contain a mapping, got {type(data).__name__}",
            param_hint="--context",
        )
    return data


def parse_assignments(assignments: tuple[str, ...]) -> dict:
    """Turn ``key=value`` pairs into a dict; values are read as YAML scalars."""
    values = {}
    for assignment in assignments:
        key, sep, raw = assignment.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got '{assignment}'", param_hint="--set")
        values[key.strip()] = yaml.safe_load(raw) if raw else ""
    return values


@click.command()
@click.argument("template", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--context",
    "context_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file holding the render context.",
)
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Set a context value (overrides --context). Repeatable.",
)
@click.option(
    "--interpolate/--no-interpolate",
    default=None,
    help="Interpolate ${...} placeholders in #for bodies.",
)
@click.option(
    "--line-prefix",
    default=None,
    help="Marker allowed before directives, e.g. '--'.",
)
def render(
    template: Path,
    context_path: Path | None,
    assignments: tuple[str, ...],
    interpolate: bool | None,
    line_prefix: str | None,
):
    """Render TEMPLATE and print the result."""
    config = EngineConfig.from_env()
    if interpolate is not None:
        config.interpolate = interpolate
    if line_prefix is not None:
        config.line_prefix = line_prefix

    context = load_context(context_path)
    context.update(parse_assignments(assignments))

    try:
        engine = ScriptEngine(template.read_text(), config=config)
        output = engine.evaluate(context)
    except ScriptError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    click.echo(output)


@click.command()
@click.argument(
    "templates",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--line-prefix",
    default=None,
    help="Marker allowed before directives, e.g. '--'.",
)
def verify(templates: tuple[Path, ...], line_prefix: str | None):
    """Check the grammar of one or more TEMPLATES."""
    if line_prefix is None:
        line_prefix = EngineConfig.from_env().line_prefix

    failures = 0
    for path in templates:
        try:
            verify_template(path.read_text(), line_prefix)
        except TemplateSyntaxError as e:
            failures += 1
            click.echo(click.style(f"{path}: {e}", fg="red"))
        else:
            click.echo(click.style(f"{path}: OK", fg="green"))

    passed = len(templates) - failures
    click.echo(f"\n{passed} passed, {failures} failed")
    if failures:
        raise SystemExit(1)
