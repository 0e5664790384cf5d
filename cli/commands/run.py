# CLI command for executing a YAML task plan
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentexec.approval.gate import ApprovalRequest
from agentexec.config import Settings
from agentexec.context import EngineContext
from agentexec.engine import ExecutionEngine
from agentexec.errors import ProjectRootError
from agentexec.tasks import TaskStatus, load_plan

console = Console()

_STATUS_STYLE = {
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.CANCELLED: "yellow",
    TaskStatus.PENDING: "dim",
}


def prompt_for_approval(request: ApprovalRequest) -> None:
    console.print(f"[yellow]Approval required:[/yellow] {escape(request.subject)}")
    for key, value in request.arguments.items():
        console.print(f"  [dim]{key}:[/dim] {escape(str(value))}")
    if typer.confirm("Proceed?", default=False):
        request.approve()
    else:
        request.deny()


def command(
    ctx: typer.Context,
    plan_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML task plan"),
    rollback_on_failure: bool = typer.Option(
        False, "--rollback-on-failure", help="Undo executed tasks, newest first, if one fails"
    ),
    validate: bool = typer.Option(False, "--validate", help="Compile the project after the plan"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Approve risky operations without asking"),
    keep_going: bool = typer.Option(False, "--keep-going", help="Continue after a failed task"),
):
    """Execute a YAML task plan"""
    settings: Settings = ctx.obj
    if yes:
        settings = settings.model_copy(update={"approval_required": False})

    try:
        plan = load_plan(plan_file)
    except (yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Invalid plan {plan_file}:[/red] {escape(str(e))}")
        raise typer.Exit(2)

    try:
        context = EngineContext.from_settings(settings, approval_requester=prompt_for_approval)
    except ProjectRootError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(2)

    engine = ExecutionEngine(context)
    engine.start_execution(user_request_id=plan_file.name)
    try:
        results = engine.execute_plan(plan.tasks, stop_on_failure=not keep_going)
        by_id = {r.task_id: r for r in results}

        table = Table(title=f"Plan: {plan_file.name}", show_header=True)
        table.add_column("Task", style="cyan")
        table.add_column("Type", style="white")
        table.add_column("Status")
        table.add_column("Message", overflow="fold")
        for task in plan.tasks:
            result = by_id.get(task.id)
            style = _STATUS_STYLE.get(task.status, "white")
            status = task.status.value if result else "skipped"
            message = escape(result.display_message) if result else ""
            table.add_row(task.id, task.type.value, f"[{style}]{status}[/{style}]", message)
        console.print(table)

        failed = any(not r.success for r in results)
        if failed and rollback_on_failure:
            executed = [t.id for t in plan.tasks if t.id in by_id]
            for task_id, rollback in engine.rollback_tasks(executed):
                color = "green" if rollback.success else "red"
                text = rollback.message or rollback.error_message
                console.print(f"[{color}]Rollback {task_id}: {escape(text)}[/{color}]")

        if validate and not failed:
            validation = context.interceptor.validate_sync()
            console.print(escape(context.interceptor.format_validation_feedback(validation, "Plan executed")))
            failed = not validation.success

        stats = engine.stats()
        console.print(
            f"\n{stats.successful_executions}/{len(plan.tasks)} tasks succeeded "
            f"({stats.average_execution_time:.2f}s average)"
        )
        engine.finish_execution()
    finally:
        engine.dispose()

    if failed:
        raise typer.Exit(1)
