import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from agentexec.config import get_settings

app = typer.Typer(add_completion=False, rich_markup_mode="rich")
console = Console(highlight=False)

@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    config: Path = typer.Option(
        None, "--config", "-c", exists=True, file_okay=True, dir_okay=False,
        help="Path to .agentexec.yml (overrides env)"
    ),
    root: Path = typer.Option(
        None, "--root", "-r", help="Project root to operate on (defaults to the configured one)"
    ),
):
    """
    :gear: [bold cyan]agentexec CLI[/bold cyan]
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    if verbose:
        console.print(":gear: verbose mode on")

    settings = get_settings(config_path=config)
    if root is not None:
        settings = settings.model_copy(update={"project_root": root})
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())

# Sub-commands imported lazily to cut startup time
from importlib import import_module

# Single-command modules expose `command`, groups expose `app`
for _cmd in ("run", "validate"):
    app.command(name=_cmd)(import_module(f"cli.commands.{_cmd}").command)

for _group in ("check",):
    app.add_typer(import_module(f"cli.commands.{_group}").app, name=_group)
