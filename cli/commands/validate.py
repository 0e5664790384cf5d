# CLI command for a one-off compilation check
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from agentexec.context import EngineContext
from agentexec.errors import ProjectRootError

console = Console()


def command(ctx: typer.Context):
    """Compile the project and print the feedback the planner would see"""
    try:
        context = EngineContext.from_settings(ctx.obj)
    except ProjectRootError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2)

    try:
        validation = context.interceptor.validate_sync()
        feedback = context.interceptor.format_validation_feedback(
            validation, f"Validation of {context.project_root}"
        )
    finally:
        context.close()

    console.print(Panel(
        escape(feedback),
        title="Validation",
        border_style="green" if validation.success else "red",
    ))
    if not validation.success:
        raise typer.Exit(1)
