"""Command-line interface for technocrat."""

import json
import logging
from pathlib import Path
from typing import NoReturn

import click
from rich.markup import escape

from technocrat import __version__
from technocrat.agents import (
    AGENT_KEYS,
    AgentContextError,
    get_agent_by_name,
    update_agent_context,
)
from technocrat.config.init import InitError, init_project
from technocrat.config.loader import load_config
from technocrat.config.preflight import run_all_checks
from technocrat.config.schema import TRANSPORTS, TechnocratConfig
from technocrat.console import configure_logging, console
from technocrat.features import (
    FeatureError,
    check_feature_branch,
    check_prerequisites,
    create_feature,
    get_feature_paths,
    path_variables,
    setup_plan,
)
from technocrat.mcp.errors import TemplateError
from technocrat.mcp.handler import USER_INPUT_ARGUMENT, Handler, HandlerError

logger = logging.getLogger(__name__)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]✗[/red] {escape(message)}")
    raise SystemExit(1)


def _echo_json(data: object, indent: int | None = None) -> None:
    click.echo(json.dumps(data, indent=indent))


def version_callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console.print(f"technocrat [bold cyan]{__version__}[/bold cyan]")
    ctx.exit()


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--debug", is_flag=True, help="Show verbose diagnostic output.")
@click.pass_context
def main(ctx: click.Context, debug: bool) -> None:
    """Technocrat - spec-driven development toolkit and MCP prompt server."""
    configure_logging(debug)

    if ctx.invoked_subcommand is None:
        console.print("[bold]technocrat[/bold] - spec-driven development for AI agents")
        console.print("\nRun [cyan]technocrat --help[/cyan] for available commands.")


@main.command()
def version() -> None:
    """Show version."""
    console.print(f"technocrat [bold cyan]{__version__}[/bold cyan]")


@main.command()
def check() -> None:
    """Check that required tools are installed."""
    if not run_all_checks():
        raise SystemExit(1)


@main.command()
@click.argument("project_name", required=False)
@click.option("--here", is_flag=True, help="Initialize in the current directory.")
@click.option("--no-git", is_flag=True, help="Skip git repository initialization.")
@click.option(
    "--force",
    is_flag=True,
    help="Merge templates into a non-empty directory, overwriting them.",
)
def init(project_name: str | None, here: bool, no_git: bool, force: bool) -> None:
    """Initialize a new spec-driven project.

    Creates memory/constitution.md, specs/, the document templates under
    .tchncrt/templates/ and a project config. Use '.' or --here to
    initialize the current directory.
    """
    if project_name == ".":
        here = True
        project_name = None

    if here and project_name:
        _fail("Cannot specify both a project name and --here")
    if not here and not project_name:
        _fail("Specify a project name, '.' for the current directory, or --here")

    if here:
        project_path = Path.cwd()
    else:
        project_path = Path(project_name).resolve()
        if project_path.exists() and not force:
            _fail(f"Directory '{project_name}' already exists")

    try:
        result = init_project(
            project_path,
            project_name=project_name or project_path.name,
            init_git=not no_git,
            force=force,
        )
    except InitError as e:
        _fail(str(e))

    for item in result.created:
        console.print(f"[green]✓[/green] Created {item}")
    if result.templates:
        console.print(
            f"[green]✓[/green] Copied {len(result.templates)} templates to "
            ".tchncrt/templates/"
        )
    if result.git_initialized:
        console.print("[green]✓[/green] Initialized git repository")

    console.print(f"\n[bold green]Project ready at {result.project_path}[/bold green]")
    console.print("[dim]Run 'technocrat server' to serve the workflow prompts.[/dim]")


@main.command("create-feature")
@click.argument("description", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Output result as JSON.")
def create_feature_cmd(description: tuple[str, ...], as_json: bool) -> None:
    """Create a numbered feature branch and spec directory."""
    try:
        info = create_feature(" ".join(description))
    except FeatureError as e:
        _fail(str(e))

    if as_json:
        _echo_json(info.to_dict())
        return
    for key, value in info.to_dict().items():
        click.echo(f"{key}: {value}")


@main.command("setup-plan")
@click.option("--json", "as_json", is_flag=True, help="Output result as JSON.")
def setup_plan_cmd(as_json: bool) -> None:
    """Set up plan.md for the current feature."""
    try:
        result = setup_plan()
    except FeatureError as e:
        _fail(str(e))

    if as_json:
        _echo_json(result.to_dict(), indent=2)
        return
    for key, value in result.to_dict().items():
        click.echo(f"{key}: {value}")


@main.command("check-prerequisites")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@click.option(
    "--require-tasks",
    is_flag=True,
    help="Require tasks.md to exist (implementation phase).",
)
@click.option(
    "--include-tasks", is_flag=True, help="Include tasks.md in AVAILABLE_DOCS."
)
@click.option(
    "--paths-only", is_flag=True, help="Only output path variables (no file checks)."
)
def check_prerequisites_cmd(
    as_json: bool, require_tasks: bool, include_tasks: bool, paths_only: bool
) -> None:
    """Check the prerequisites of the spec-driven workflow."""
    try:
        if paths_only:
            paths = get_feature_paths()
            check_feature_branch(paths.current_branch, paths.has_git)
            variables = path_variables(paths)
            if as_json:
                _echo_json(variables)
            else:
                for key, value in variables.items():
                    click.echo(f"{key}: {value}")
            return

        report = check_prerequisites(
            require_tasks=require_tasks, include_tasks=include_tasks
        )
    except FeatureError as e:
        _fail(str(e))

    if as_json:
        _echo_json(report.to_dict(), indent=2)
        return
    click.echo(f"FEATURE_DIR:{report.paths.feature_dir}")
    click.echo("AVAILABLE_DOCS:")
    for doc in report.docs:
        mark = "✓" if doc.available else "✗"
        click.echo(f"  {mark} {doc.name}")


@main.command("update-agent-context")
@click.argument(
    "agent", required=False, type=click.Choice(AGENT_KEYS, case_sensitive=False)
)
def update_agent_context_cmd(agent: str | None) -> None:
    """Update agent context files from the current feature's plan.md.

    Without AGENT, every existing agent file is updated (or CLAUDE.md is
    created). The configured default_agent is used when set.
    """
    agent = agent or load_config().default_agent
    selected = None
    if agent:
        selected = get_agent_by_name(agent)
        if selected is None:
            _fail(f"Unknown agent: {agent}")

    try:
        paths = get_feature_paths()
        plan, updates = update_agent_context(paths, selected)
    except (FeatureError, AgentContextError) as e:
        _fail(str(e))

    if not plan.language:
        console.print("[yellow]⚠[/yellow] No language information found in plan")
    for update in updates:
        action = "Created" if update.created else "Updated"
        console.print(
            f"[green]✓[/green] {action} {update.agent.name} context file: "
            f"[cyan]{update.path}[/cyan]"
        )

    console.print(f"\n[bold]Summary for {paths.current_branch}:[/bold]")
    if plan.language:
        console.print(f"  - Language: {escape(plan.language)}")
    if plan.framework:
        console.print(f"  - Framework: {escape(plan.framework)}")
    if plan.database:
        console.print(f"  - Database: {escape(plan.database)}")


@main.command()
@click.option("--port", "-p", type=int, help="HTTP port (default: 8080).")
@click.option("--host", help="HTTP bind address (default: 127.0.0.1).")
@click.option(
    "--transport",
    "-t",
    type=click.Choice(TRANSPORTS),
    help="Transport: http or stdio (default: http).",
)
def server(port: int | None, host: str | None, transport: str | None) -> None:
    """Start the MCP server."""
    # Imported lazily: uvicorn and the mcp SDK are only needed here.
    from technocrat.mcp.server import DEFAULT_HOST, DEFAULT_PORT, TechnocratMCPServer
    from technocrat.mcp.stdio import StdioServer

    config = load_config().merge(
        TechnocratConfig.from_dict({"port": port, "host": host, "transport": transport})
    )
    handler = Handler()

    if config.transport == "stdio":
        StdioServer(handler).serve()
        return

    console.print(
        f"[bold]Technocrat MCP server[/bold] on "
        f"[cyan]http://{config.host}:{config.port}[/cyan]"
    )
    console.print("[dim]Press Ctrl+C to stop.[/dim]")
    TechnocratMCPServer(
        handler,
        host=config.host or DEFAULT_HOST,
        port=config.port or DEFAULT_PORT,
    ).serve()


@main.command()
@click.argument("name", required=False)
@click.option("--input", "-i", "user_input", default="", help="User input to render.")
def prompts(name: str | None, user_input: str) -> None:
    """List the registered prompts or render one."""
    handler = Handler()

    if name is None:
        listed = handler.list_prompts()
        console.print(f"[bold]Prompts ({len(listed)}):[/bold]\n")
        for prompt in listed:
            console.print(
                f"  [cyan]{prompt.name}[/cyan] - [dim]{escape(prompt.description)}[/dim]"
            )
        return

    try:
        result = handler.get_prompt(name, {USER_INPUT_ARGUMENT: user_input})
    except (HandlerError, TemplateError) as e:
        _fail(str(e))

    for message in result["messages"]:
        click.echo(message["content"])
