"""Command-line interface for infrascout."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from infrascout.analysis import RepositoryAnalyzer
from infrascout.exceptions import InfrascoutError
from infrascout.models import AnalysisResult, Environment, GitConfig, ProvisioningResult
from infrascout.provisioning import InfrastructureProvisioner, InMemoryBackend
from infrascout.settings import get_settings


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


app = typer.Typer(
    name="infrascout",
    help="Detect what a repository needs to run and plan its infrastructure.",
)


def _validate_project_path(path: Path) -> Path:
    if not path.exists():
        raise typer.BadParameter(f"Path does not exist: {path}")
    if not path.is_dir():
        raise typer.BadParameter(f"Path is not a directory: {path}")
    return path.resolve()


def _print_analysis(console: Console, analysis: AnalysisResult) -> None:
    if analysis.monorepo.is_monorepo:
        console.print(
            f"[bold]Monorepo[/bold] ({analysis.monorepo.type}): "
            f"{len(analysis.monorepo.workspace_paths)} workspaces"
        )

    apps = Table(title="Applications")
    for column in ("Name", "Path", "Framework", "Build pack", "Port", "Type"):
        apps.add_column(column)
    for detected in analysis.applications:
        apps.add_row(
            detected.name,
            detected.path,
            detected.framework,
            detected.build_pack.value,
            str(detected.default_port),
            detected.type.value,
        )
    console.print(apps)

    if analysis.databases:
        databases = Table(title="Databases")
        for column in ("Type", "Env var", "Consumers", "Detected via"):
            databases.add_column(column)
        for database in analysis.databases:
            databases.add_row(
                database.type,
                database.env_var_name,
                ", ".join(database.consumers),
                database.detected_via or "",
            )
        console.print(databases)

    for service in analysis.services:
        console.print(f"  [blue]•[/blue] {service.type}: {service.description} ({', '.join(service.consumers)})")

    required = [v for v in analysis.env_variables if v.is_required and v.default_value is None]
    console.print(
        f"\n[dim]{len(analysis.env_variables)} env variables, {len(required)} need a value[/dim]"
    )


def _print_plan(console: Console, result: ProvisioningResult, backend: InMemoryBackend) -> None:
    apps = Table(title="Applications to create")
    for column in ("Name", "Build pack", "Base directory", "Port", "Address"):
        apps.add_column(column)
    for name, record in result.applications.items():
        apps.add_row(name, record.build_pack, record.base_directory or "/", record.ports_exposes, record.fqdn or "")
    console.print(apps)

    for db_type, record in result.databases.items():
        console.print(f"  [green]✓[/green] {db_type} database [bold]{record.name}[/bold]")
    for link in backend.resource_links.values():
        console.print(f"  [blue]•[/blue] link {link.target_type} -> app {link.source_app_id} as {link.inject_as}")
    console.print(f"\n[dim]{len(backend.env_variables)} env variables, {len(backend.storages)} volumes[/dim]")
    if result.monorepo_group_id:
        console.print(f"[dim]Monorepo group {result.monorepo_group_id}[/dim]")


@app.command()
def analyze(
    project_path: Annotated[
        Path,
        typer.Argument(help="Checkout to analyze. Must live under the scratch root."),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Also write the JSON result to this file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyze a checkout and report apps, databases, services and env vars."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()

    try:
        analysis = RepositoryAnalyzer(get_settings()).analyze(project_path)
    except InfrascoutError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    if output is not None:
        output.write_text(analysis.model_dump_json(indent=2))
    if json_output:
        typer.echo(analysis.model_dump_json(indent=2))
    else:
        _print_analysis(console, analysis)


@app.command()
def plan(
    project_path: Annotated[
        Path,
        typer.Argument(help="Checkout to analyze. Must live under the scratch root."),
    ],
    repository: Annotated[
        str,
        typer.Option("--repository", "-r", help="Git repository the applications build from."),
    ],
    branch: Annotated[str, typer.Option("--branch", "-b", help="Git branch.")] = "main",
    environment: Annotated[
        str, typer.Option("--environment", "-e", help="Target environment name.")
    ] = "production",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyze a checkout and show what provisioning would create, without side effects."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()
    settings = get_settings()

    backend = InMemoryBackend(settings)
    provisioner = InfrastructureProvisioner(backend, settings=settings)
    try:
        analysis = RepositoryAnalyzer(settings).analyze(project_path)
        result = provisioner.provision(
            analysis,
            Environment(id=1, name=environment),
            destination_id=1,
            git_config=GitConfig(git_repository=repository, git_branch=branch),
        )
    except InfrascoutError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"\n[bold]infrascout[/bold] - plan for {repository} ({branch})\n")
    _print_plan(console, result, backend)


if __name__ == "__main__":
    app()
