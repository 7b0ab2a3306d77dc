"""Main CLI application using Typer."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from chorus import __version__
from chorus.config.loader import ConfigError, load_config
from chorus.config.schema import ChorusConfig

app = typer.Typer(
    name="chorus",
    help="Chorus - conversational orchestrator with self-refining sub-agents",
    no_args_is_help=True,
)

console = Console()

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file (default: $CHORUS_CONFIG or ~/.chorus/chorus.yaml)",
)


def setup_logging(level: str) -> None:
    """Route the root logger through rich at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load(config_path: str | None, log_level: str | None = None) -> ChorusConfig:
    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(code=1) from e
    setup_logging(log_level or config.logging.level)
    return config


@app.command()
def version():
    """Show chorus version."""
    console.print(f"chorus version {__version__}")


@app.command()
def serve(
    config_path: str = CONFIG_OPTION,
    host: str = typer.Option(None, "--host", help="Override bind address"),
    port: int = typer.Option(None, "--port", "-p", help="Override port"),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Start the chorus API server."""
    import uvicorn

    from chorus.server.app import create_app

    config = _load(config_path, log_level)
    host = host or config.server.host
    port = port or config.server.port

    console.print(f"[green]Starting chorus server on {host}:{port}[/green]")
    console.print(f"Model: {config.model.name} ({config.inference.backend})")
    console.print("\nPress Ctrl+C to stop")

    uvicorn.run(create_app(config), host=host, port=port, log_level=config.logging.level.lower())


@app.command()
def chat(
    user_id: str = typer.Option(..., "--user", "-u", help="User id to chat as"),
    chat_id: str = typer.Option(None, "--chat", help="Continue an existing chat"),
    config_path: str = CONFIG_OPTION,
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Start an interactive chat session."""
    import asyncio

    from chorus.cli.chat import chat_session

    config = _load(config_path, log_level)
    asyncio.run(chat_session(config, user_id=user_id, chat_id=chat_id))


# Sub-agent commands
agents_app = typer.Typer(help="Inspect stored sub-agents")
app.add_typer(agents_app, name="agents")


@agents_app.command("list")
def agents_list(config_path: str = CONFIG_OPTION):
    """List live sub-agents, newest first."""
    from chorus.storage import Database, SubAgentStore

    config = _load(config_path)
    store = SubAgentStore(Database(config.storage.database_path))

    table = Table(title="Sub-agents")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Updated")
    table.add_column("Prompt")
    for sub_agent in store.list_sub_agents():
        preview = sub_agent.prompt if len(sub_agent.prompt) <= 60 else sub_agent.prompt[:57] + "..."
        table.add_row(
            sub_agent.id, sub_agent.name, sub_agent.updated_at.strftime("%Y-%m-%d %H:%M"), preview
        )
    console.print(table)


@agents_app.command("show")
def agents_show(
    sub_agent_id: str = typer.Argument(..., help="Sub-agent id or name"),
    config_path: str = CONFIG_OPTION,
):
    """Show a sub-agent and its prompt history."""
    from chorus.exceptions import NotFoundError
    from chorus.storage import Database, SubAgentStore

    config = _load(config_path)
    store = SubAgentStore(Database(config.storage.database_path))

    try:
        sub_agent = store.resolve(sub_agent_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"[bold cyan]{sub_agent.name}[/bold cyan] [dim]{sub_agent.id}[/dim]")
    console.print(sub_agent.prompt)

    history = store.history(sub_agent.id, newest_first=True)
    if history:
        console.print(f"\n[bold]History[/bold] ({len(history)} edits, newest first)")
        for entry in history:
            console.print(f"[dim]{entry.created_at:%Y-%m-%d %H:%M}[/dim] {entry.old_prompt}")


# User commands
users_app = typer.Typer(help="Manage the user directory")
app.add_typer(users_app, name="users")


@users_app.command("create")
def users_create(
    name: str = typer.Argument(..., help="Display name"),
    user_id: str = typer.Option(None, "--id", help="Explicit user id"),
    config_path: str = CONFIG_OPTION,
):
    """Create a user."""
    from chorus.storage import Database, UserStore

    config = _load(config_path)
    user = UserStore(Database(config.storage.database_path)).create_user(name, user_id=user_id)
    console.print(f"[green]Created user {user.name}[/green] ({user.id})")


@users_app.command("list")
def users_list(config_path: str = CONFIG_OPTION):
    """List users."""
    from chorus.storage import Database, UserStore

    config = _load(config_path)
    table = Table(title="Users")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Created")
    for user in UserStore(Database(config.storage.database_path)).list_users():
        table.add_row(user.id, user.name, user.created_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


if __name__ == "__main__":
    app()
