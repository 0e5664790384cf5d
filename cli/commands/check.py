# CLI commands for trying inputs against the security validator
import typer
from rich.console import Console
from rich.markup import escape

from agentexec.errors import SecurityValidationError
from agentexec.security import validator

app = typer.Typer(help="Check planner inputs against the security rules")
console = Console()


def _report(check, *args):
    try:
        value = check(*args)
    except SecurityValidationError as e:
        console.print(f"[red]Rejected:[/red] {escape(e.reason)}")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] {escape(str(value))}")


@app.command()
def path(ctx: typer.Context, file_path: str = typer.Argument(..., help="Path relative to the project root")):
    """Validate a path a file task would write to"""
    _report(validator.validate_file_path, file_path, ctx.obj.project_root)


@app.command()
def commit(message: str = typer.Argument(..., help="Commit message")):
    """Validate a commit message"""
    _report(validator.sanitize_commit_message, message)


@app.command(name="build-op")
def build_op(operation: str = typer.Argument(..., help="Build operation name")):
    """Validate a build operation name"""
    _report(validator.validate_build_operation, operation)
