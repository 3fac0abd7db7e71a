"""
a11y-remediator CLI -- offline tools around the remediation engine.

Commands:
    a11y-remediator route <rule-id>        Show which specialist plans a rule
    a11y-remediator validate <file>        Safety-check a fix instruction (JSON)
    a11y-remediator inspect <file>         Summarize a session attribute map (JSON)
    a11y-remediator serve                  Run the action gateway (uvicorn)
"""

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import EngineConfig
from .errors import RemediationError
from .models import PageContext, Violation
from .orchestration.specialist_router import SpecialistRouter
from .orchestration.workflow import WorkflowOrchestrator
from .security.safety_validator import SafetyValidator

app = typer.Typer(help="Automated accessibility remediation engine")
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Configure logging for every command."""
    level = "DEBUG" if verbose else EngineConfig.from_env().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        console.print(f"[bold red]Error:[/bold red] {path} not found")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] {path} is not valid JSON: {e}")
        raise typer.Exit(1)


# =============================================================================
# ROUTE
# =============================================================================


@app.command()
def route(
    rule_id: str = typer.Argument(..., help="Rule id, e.g. image-alt"),
    selector: str = typer.Option("body", help="Target selector for the sample fix"),
    html: str = typer.Option("", help="Element HTML for the sample fix"),
    impact: str = typer.Option("serious", help="Violation impact"),
):
    """Show the specialist, planned instruction and confidence for a rule."""
    violation = Violation(
        id="cli-sample",
        rule_id=rule_id,
        selector=selector,
        description="",
        impact=impact,
        html=html or "<div></div>",
    )
    router = SpecialistRouter()
    decision = router.decide(violation)
    planned = router.plan_fix(violation, PageContext())

    table = Table(title=f"Routing for {rule_id}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Specialist", planned.specialist + ("" if decision.matched else " (fallback)"))
    table.add_row("Checked", ", ".join(decision.candidates_checked))
    table.add_row("Fix type", planned.instruction.type)
    table.add_row("Params", json.dumps(planned.instruction.params.to_dict()))
    table.add_row("Confidence", f"{planned.confidence.value} ({planned.confidence.tier})")
    table.add_row(
        "Human review",
        "[yellow]required[/yellow]" if planned.confidence.requires_human_review else "no",
    )
    console.print(table)


# =============================================================================
# VALIDATE
# =============================================================================


@app.command()
def validate(
    path: Path = typer.Argument(..., help="JSON file holding one fix instruction"),
):
    """Run the safety validator on a fix instruction."""
    result = SafetyValidator().validate(_load_json(path))

    for error in result.errors:
        console.print(f"[red]BLOCKED[/red] {error}")
    for warning in result.warnings:
        console.print(f"[yellow]WARN[/yellow] {warning}")

    if not result.valid:
        console.print(f"\n[bold red]{len(result.errors)} blocking issue(s).[/bold red]")
        raise typer.Exit(1)
    console.print("[bold green]Instruction is safe to execute.[/bold green]")


# =============================================================================
# INSPECT
# =============================================================================


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="JSON file holding a session attribute map"),
    session_id: str = typer.Option("inspect", help="Session id to report under"),
):
    """Summarize where a session stands in the workflow."""
    attributes = _load_json(path)
    if not isinstance(attributes, dict):
        console.print("[bold red]Error:[/bold red] session attributes must be a JSON object")
        raise typer.Exit(1)

    try:
        orchestrator = WorkflowOrchestrator.from_attributes(
            session_id, {k: str(v) for k, v in attributes.items()}
        )
    except RemediationError as e:
        console.print(f"[bold red]{e.code}:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Session {session_id}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in orchestrator.get_summary().items():
        table.add_row(key, "-" if value in (None, "") else str(value))
    console.print(table)


# =============================================================================
# SERVE
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the action gateway with uvicorn."""
    import uvicorn

    console.print(f"[bold blue]a11y-remediator[/bold blue] serving on http://{host}:{port}")
    uvicorn.run(
        "a11y_remediator.api.gateway:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
