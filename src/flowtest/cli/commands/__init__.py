from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from flowtest.config import ConfigError, RunnerConfig
from flowtest.core.version import FLOWTEST_VERSION
from flowtest.workflows.errors import WorkflowError
from flowtest.workflows.loader import load_document, load_source_descriptions, load_workflow_document
from flowtest.workflows.models import WorkflowResult, WorkflowStatus
from flowtest.workflows.runner import WorkflowRunner, run_document

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

STATUS_COLORS = {
    WorkflowStatus.SUCCESS: "green",
    WorkflowStatus.FAILURE: "red",
    WorkflowStatus.ERROR: "red",
}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(FLOWTEST_VERSION, prog_name="flowtest")
def flowtest() -> None:
    """Run API workflow documents against live endpoints."""


@flowtest.command(name="run", context_settings=CONTEXT_SETTINGS)
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--input",
    "-i",
    "input_values",
    multiple=True,
    help="Workflow input (format: 'name=value'). Values are parsed as JSON when possible",
)
@click.option(
    "--inputs-file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON or YAML file mapping workflow ids to their inputs",
)
@click.option(
    "--workflow",
    "-w",
    "workflow_ids",
    multiple=True,
    help="Run only workflows with these ids",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="TOML file with a [runner] table",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Output file for results (JSON)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
def run(
    path: str,
    input_values: tuple[str, ...],
    inputs_file: str | None,
    workflow_ids: tuple[str, ...],
    config_file: str | None,
    output: str | None,
    verbose: bool,
) -> None:
    """Run the workflows of a workflow document."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = RunnerConfig.from_path(config_file) if config_file else RunnerConfig()
    except ConfigError as exc:
        click.secho(f"❌ Failed to load configuration file from {config_file}", fg="red", bold=True)
        click.echo(f"\n{exc}")
        raise SystemExit(1)

    try:
        document = load_workflow_document(path)
        inputs = _collect_inputs(document.workflows, inputs_file, input_values)
        with config.create_client() as client:
            documents = load_source_descriptions(document, client, base_path=Path(path).parent)
            runner = WorkflowRunner(config=config, client=client)
            results = run_document(
                document,
                inputs,
                documents,
                runner=runner,
                workflow_ids=list(workflow_ids) or None,
            )
    except (WorkflowError, click.BadParameter) as exc:
        click.secho(f"❌ Failed to load workflows: {exc}", fg="red")
        raise SystemExit(1)

    if not results:
        click.secho("No workflows found matching criteria", fg="yellow")
        raise SystemExit(0)

    for result in results:
        _display_result(result, verbose)

    if output:
        output_data = {
            "total_workflows": len(results),
            "results": [r.to_dict() for r in results],
        }
        Path(output).write_text(json.dumps(output_data, indent=2, default=str), encoding="utf-8")
        click.echo(f"\nResults saved to: {output}")

    if any(not result.is_success for result in results):
        raise SystemExit(1)


def _display_result(result: WorkflowResult, verbose: bool) -> None:
    color = STATUS_COLORS[result.status]
    click.secho(f"[{result.status.value.upper()}] {result.workflow_id}", fg=color, bold=True)
    if result.reason:
        click.echo(f"   {result.reason}")
    if result.error_message:
        click.echo(f"   {result.error_message}")
    if verbose:
        for step_result in result.step_results:
            marker = "✓" if step_result.success else "✗"
            click.echo(f"   {marker} {step_result.step_id} ({step_result.status_code})")
        if result.outputs:
            click.echo(f"   Outputs: {json.dumps(result.outputs, default=str)}")
    click.echo(f"   Duration: {result.duration_seconds:.2f}s")


def _collect_inputs(
    workflows: list[Any],
    inputs_file: str | None,
    input_values: tuple[str, ...],
) -> dict[str, dict[str, Any]]:
    inputs: dict[str, dict[str, Any]] = {}
    if inputs_file:
        data = load_document(inputs_file)
        if not isinstance(data, dict) or not all(isinstance(value, dict) for value in data.values()):
            raise click.BadParameter("Inputs file must map workflow ids to objects", param_hint="--inputs-file")
        inputs = {workflow_id: dict(values) for workflow_id, values in data.items()}
    overrides = dict(_parse_input(value) for value in input_values)
    if overrides:
        for workflow in workflows:
            inputs.setdefault(workflow.workflow_id, {}).update(overrides)
    return inputs


def _parse_input(raw: str) -> tuple[str, Any]:
    if "=" not in raw:
        raise click.BadParameter(f"Expected 'name=value', got {raw!r}", param_hint="--input")
    name, value = raw.split("=", 1)
    try:
        return name.strip(), json.loads(value)
    except ValueError:
        return name.strip(), value
