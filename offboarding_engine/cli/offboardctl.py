#!/usr/bin/env python3
"""
Offboarding Control CLI - Command Line Interface for the Offboarding Engine.

Provides commands for managing termination requests, recording clearance
sign-offs, triggering final settlement and revoking system access.
"""

import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config import configure_logging, load_config
from ..exceptions import OffboardingError
from ..models import (
    ApprovalStatus,
    ClearanceChecklist,
    ClearanceDecision,
    TerminationInitiation,
    TerminationReason,
    TerminationRequest,
    TerminationStatus,
)
from ..service import OffboardingService

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


class OffboardingController:
    """Main controller for Offboarding Engine operations."""

    def __init__(self, config_path: Optional[str] = None, mock_mode: Optional[bool] = None,
                 storage_path: Optional[str] = None):
        """Initialize the offboarding controller."""
        self.config = load_config(config_path)

        overrides = {}
        if mock_mode is not None:
            overrides["mock_mode"] = mock_mode
        if storage_path:
            overrides["storage_path"] = storage_path
        if overrides:
            self.config = self.config.model_copy(update=overrides)

        configure_logging(self.config.log_level)
        self.service = OffboardingService(self.config)


def _abort(error: OffboardingError):
    """Print an engine error and exit with status 1."""
    console.print(f"[red]Error: {escape(error.message)}[/red]")
    for key, value in error.details.items():
        console.print(f"  {key}: {value}", markup=False)
    sys.exit(1)


def _status_style(status: str) -> str:
    return {"APPROVED": "green", "REJECTED": "red", "PENDING": "yellow"}.get(status, "white")


def display_request(request: TerminationRequest):
    """Display a termination request."""
    style = _status_style(request.status.value)
    console.print(Panel.fit(
        f"[bold blue]Termination request {request.id}[/bold blue]\n"
        f"Status: [{style}]{request.status.value}[/{style}]"
    ))
    console.print(f"Employee: {request.employee_id}")
    console.print(f"Initiator: {request.initiator.value}")
    console.print(f"Reason: {request.reason.value}")
    console.print(f"Termination date: {request.termination_date.isoformat()}")
    if request.employee_comments:
        console.print(f"Comments: {request.employee_comments}")
    if request.decided_by:
        console.print(f"Decided by: {request.decided_by} at {request.decided_at.strftime('%Y-%m-%d %H:%M:%S')}")
    if request.hr_comments:
        console.print(f"HR comments: {request.hr_comments}")


def display_requests(requests, title: str):
    """Display a list of termination requests."""
    if not requests:
        console.print("[yellow]No termination requests found[/yellow]")
        return

    table = Table(title=f"{title} ({len(requests)})")
    table.add_column("ID", style="cyan")
    table.add_column("Employee", style="green")
    table.add_column("Initiator", style="blue")
    table.add_column("Reason", style="magenta")
    table.add_column("Last Day", style="yellow")
    table.add_column("Status")

    for request in requests:
        style = _status_style(request.status.value)
        table.add_row(
            request.id,
            request.employee_id,
            request.initiator.value,
            request.reason.value,
            request.termination_date.isoformat(),
            f"[{style}]{request.status.value}[/{style}]"
        )

    console.print(table)


def display_checklist(checklist: ClearanceChecklist):
    """Display a clearance checklist."""
    console.print(Panel.fit(
        f"[bold blue]Clearance checklist {checklist.id}[/bold blue]\n"
        f"Termination request: {checklist.termination_id}"
    ))

    table = Table(title="Department Clearance")
    table.add_column("Department", style="cyan")
    table.add_column("Status")
    table.add_column("By", style="blue")
    table.add_column("Comments", style="magenta")
    table.add_column("Rev", style="white")

    for item in checklist.items:
        style = _status_style(item.status.value)
        table.add_row(
            item.department,
            f"[{style}]{item.status.value}[/{style}]",
            item.updated_by or "",
            item.comments or "",
            str(item.revision)
        )

    console.print(table)

    if checklist.equipment_list:
        equipment_table = Table(title="Equipment")
        equipment_table.add_column("Name", style="cyan")
        equipment_table.add_column("Returned")
        equipment_table.add_column("Condition", style="magenta")
        equipment_table.add_column("Rev", style="white")

        for item in checklist.equipment_list:
            equipment_table.add_row(
                item.name,
                "[green]✓[/green]" if item.returned else "[red]✗[/red]",
                item.condition or "",
                str(item.revision)
            )

        console.print(equipment_table)

    console.print(f"Access card returned: {'yes' if checklist.card_returned else 'no'}")


@click.group()
@click.option('--config', '-c', help='Path to configuration file (JSON or YAML)')
@click.option('--storage', '-s', help='Path to the JSON state file')
@click.option('--real', is_flag=True, help='Use real HTTP collaborators instead of the configured mode')
@click.pass_context
def cli(ctx, config, storage, real):
    """Offboarding Control CLI - Employee Separation Workflow"""
    ctx.ensure_object(dict)
    try:
        ctx.obj['controller'] = OffboardingController(config, False if real else None, storage)
    except OffboardingError as e:
        _abort(e)


@cli.command()
@click.argument('employee_id')
@click.option('--initiator', type=click.Choice([i.value for i in TerminationInitiation], case_sensitive=False),
              default='EMPLOYEE', help='Who initiates the separation')
@click.option('--reason', type=click.Choice([r.value for r in TerminationReason], case_sensitive=False),
              required=True, help='Separation reason')
@click.option('--date', 'termination_date', required=True, help='Last working day (YYYY-MM-DD)')
@click.option('--comments', help='Employee comments')
@click.pass_context
def create_request(ctx, employee_id, initiator, reason, termination_date, comments):
    """Create a termination request."""
    controller = ctx.obj['controller']

    try:
        request = controller.service.create_termination_request(
            employee_id, initiator, reason, termination_date, comments
        )
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ Termination request created: {request.id}[/green]")
    display_request(request)


@cli.command()
@click.argument('request_id')
@click.option('--decision', type=click.Choice([d.value for d in ClearanceDecision], case_sensitive=False),
              required=True)
@click.option('--decider', required=True, help='ID of the approver')
@click.option('--comments', help='HR comments')
@click.option('--department', '-d', 'departments', multiple=True,
              help='Department that must sign off (repeatable; policy default if omitted)')
@click.option('--equipment', '-e', multiple=True, help='Equipment to be returned (repeatable)')
@click.option('--card-returned', is_flag=True, help='Access card is already returned')
@click.pass_context
def decide(ctx, request_id, decision, decider, comments, departments, equipment, card_returned):
    """Approve or reject a termination request."""
    controller = ctx.obj['controller']

    try:
        request = controller.service.decide_termination_request(
            request_id,
            decision,
            decider,
            comments,
            departments=list(departments) or None,
            equipment=list(equipment) or None,
            card_returned=card_returned,
        )
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ Termination request {request.status.value.lower()}[/green]")
    display_request(request)

    if request.status == TerminationStatus.APPROVED:
        checklist = controller.service.get_clearance_checklist_by_termination_id(request.id)
        display_checklist(checklist)


@cli.command()
@click.argument('request_id')
@click.pass_context
def show_request(ctx, request_id):
    """Show a termination request."""
    controller = ctx.obj['controller']

    try:
        request = controller.service.get_termination_request_by_id(request_id)
    except OffboardingError as e:
        _abort(e)

    display_request(request)


@cli.command()
@click.option('--status', help='Filter by status')
@click.option('--initiator', help='Filter by initiator')
@click.option('--employee', 'employee_id', help='Filter by employee')
@click.pass_context
def list_requests(ctx, status, initiator, employee_id):
    """List termination requests."""
    controller = ctx.obj['controller']

    try:
        requests = controller.service.list_termination_requests(
            status=status, initiator=initiator, employee_id=employee_id
        )
    except OffboardingError as e:
        _abort(e)

    display_requests(requests, "Termination Requests")


@cli.command()
@click.argument('employee_id')
@click.pass_context
def employee_requests(ctx, employee_id):
    """List an employee's termination requests."""
    controller = ctx.obj['controller']
    requests = controller.service.list_termination_requests_by_employee(employee_id)
    display_requests(requests, f"Termination Requests for {employee_id}")


@cli.command()
@click.argument('request_id')
@click.argument('termination_date')
@click.pass_context
def reschedule(ctx, request_id, termination_date):
    """Change the last working day of a pending request."""
    controller = ctx.obj['controller']

    try:
        request = controller.service.update_termination_date(request_id, termination_date)
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ Termination date set to {request.termination_date.isoformat()}[/green]")


@cli.command()
@click.argument('request_id')
@click.pass_context
def delete_request(ctx, request_id):
    """Delete a termination request that has not been approved."""
    controller = ctx.obj['controller']

    try:
        controller.service.delete_termination_request(request_id)
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ Termination request {request_id} deleted[/green]")


@cli.command()
@click.argument('checklist_id')
@click.pass_context
def show_checklist(ctx, checklist_id):
    """Show a clearance checklist."""
    controller = ctx.obj['controller']

    try:
        checklist = controller.service.get_clearance_checklist_by_id(checklist_id)
    except OffboardingError as e:
        _abort(e)

    display_checklist(checklist)


@cli.command()
@click.argument('termination_id')
@click.pass_context
def checklist_for(ctx, termination_id):
    """Show the clearance checklist of a termination request."""
    controller = ctx.obj['controller']

    try:
        checklist = controller.service.get_clearance_checklist_by_termination_id(termination_id)
    except OffboardingError as e:
        _abort(e)

    display_checklist(checklist)


@cli.command()
@click.pass_context
def list_checklists(ctx):
    """List clearance checklists."""
    controller = ctx.obj['controller']
    checklists = controller.service.list_clearance_checklists()

    if not checklists:
        console.print("[yellow]No clearance checklists found[/yellow]")
        return

    table = Table(title=f"Clearance Checklists ({len(checklists)})")
    table.add_column("ID", style="cyan")
    table.add_column("Termination", style="green")
    table.add_column("Pending", style="yellow")

    for checklist in checklists:
        completion = controller.service.get_clearance_completion_status(checklist.id)
        pending = completion.pending_departments + completion.pending_equipment
        if not completion.card_returned:
            pending.append("access card")
        table.add_row(checklist.id, checklist.termination_id, ", ".join(pending) or "[green]cleared[/green]")

    console.print(table)


@cli.command()
@click.argument('checklist_id')
@click.argument('department')
@click.option('--status', type=click.Choice([s.value for s in ApprovalStatus], case_sensitive=False),
              required=True)
@click.option('--actor', required=True, help='ID of the signing actor')
@click.option('--comments', help='Sign-off comments')
@click.option('--expected-revision', type=int, help='Fail if the item changed since this revision')
@click.pass_context
def sign_off(ctx, checklist_id, department, status, actor, comments, expected_revision):
    """Record a department's clearance decision."""
    controller = ctx.obj['controller']

    try:
        checklist = controller.service.update_clearance_department_item(
            checklist_id, department, status, comments, actor, expected_revision=expected_revision
        )
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ {department} clearance set to {status.upper()}[/green]")
    display_checklist(checklist)


@cli.command()
@click.argument('checklist_id')
@click.argument('equipment_name')
@click.option('--returned/--not-returned', default=True, help='Whether the equipment is back')
@click.option('--condition', help='Condition on return')
@click.option('--actor', help='ID of the custodian')
@click.option('--expected-revision', type=int, help='Fail if the item changed since this revision')
@click.pass_context
def return_equipment(ctx, checklist_id, equipment_name, returned, condition, actor, expected_revision):
    """Record an equipment return."""
    controller = ctx.obj['controller']

    try:
        controller.service.update_clearance_equipment_item(
            checklist_id, equipment_name, returned, condition, actor, expected_revision=expected_revision
        )
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ {equipment_name} marked as {'returned' if returned else 'not returned'}[/green]")


@cli.command()
@click.argument('checklist_id')
@click.option('--returned/--not-returned', default=True, help='Whether the access card is back')
@click.option('--actor', help='ID of the recording actor')
@click.option('--expected-revision', type=int, help='Fail if the flag changed since this revision')
@click.pass_context
def return_card(ctx, checklist_id, returned, actor, expected_revision):
    """Record the access card return."""
    controller = ctx.obj['controller']

    try:
        controller.service.update_clearance_card_return(
            checklist_id, returned, actor, expected_revision=expected_revision
        )
    except OffboardingError as e:
        _abort(e)

    console.print(f"[green]✓ Access card marked as {'returned' if returned else 'not returned'}[/green]")


@cli.command()
@click.argument('checklist_id')
@click.pass_context
def clearance_status(ctx, checklist_id):
    """Show whether a checklist is fully cleared."""
    controller = ctx.obj['controller']

    try:
        completion = controller.service.get_clearance_completion_status(checklist_id)
    except OffboardingError as e:
        _abort(e)

    if completion.fully_cleared:
        console.print("[green]✓ Fully cleared[/green]")
    else:
        console.print("[yellow]Not fully cleared[/yellow]")

    console.print(f"Departments cleared: {completion.all_departments_cleared}")
    console.print(f"Equipment returned: {completion.all_equipment_returned}")
    console.print(f"Access card returned: {completion.card_returned}")
    if completion.pending_departments:
        console.print(f"Pending departments: {', '.join(completion.pending_departments)}")
    if completion.pending_equipment:
        console.print(f"Pending equipment: {', '.join(completion.pending_equipment)}")


@cli.command()
@click.argument('termination_id')
@click.pass_context
def preview_settlement(ctx, termination_id):
    """Show what still blocks final settlement."""
    controller = ctx.obj['controller']

    try:
        preview = controller.service.preview_final_settlement(termination_id)
    except OffboardingError as e:
        _abort(e)

    if preview.can_trigger:
        console.print("[green]✓ Final settlement can be triggered[/green]")
        return

    console.print("[yellow]Final settlement is blocked:[/yellow]")
    for blocker in preview.blockers:
        console.print(f"  - {blocker}")


@cli.command()
@click.argument('termination_id')
@click.option('--actor', help='ID of the triggering actor')
@click.pass_context
def trigger_settlement(ctx, termination_id, actor):
    """Trigger final settlement for a fully cleared case."""
    controller = ctx.obj['controller']

    try:
        result = controller.service.trigger_final_settlement(termination_id, actor)
    except OffboardingError as e:
        _abort(e)

    console.print("[green]✓ Final settlement triggered[/green]")
    console.print(f"Reference: {result.acknowledgement.reference}")
    console.print(f"Triggered at: {result.triggered_at.strftime('%Y-%m-%d %H:%M:%S')}")


@cli.command()
@click.pass_context
def pending_revocations(ctx):
    """List approved separations whose access is not yet revoked."""
    controller = ctx.obj['controller']

    try:
        pending = controller.service.list_pending_access_revocations()
    except OffboardingError as e:
        _abort(e)

    if not pending:
        console.print("[green]No pending access revocations[/green]")
        return

    table = Table(title=f"Pending Access Revocations ({len(pending)})")
    table.add_column("Employee", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Reason", style="magenta")
    table.add_column("Last Day", style="yellow")
    table.add_column("Days", style="blue")
    table.add_column("Urgent")

    for entry in pending:
        table.add_row(
            entry.employee_id,
            entry.employee_name,
            entry.termination_reason.value,
            entry.termination_date.isoformat(),
            str(entry.days_since_approval),
            "[red]URGENT[/red]" if entry.is_urgent else ""
        )

    console.print(table)


@cli.command()
@click.argument('employee_id')
@click.option('--actor', help='ID of the revoking actor')
@click.pass_context
def revoke_access(ctx, employee_id, actor):
    """Revoke an employee's system access."""
    controller = ctx.obj['controller']

    try:
        result = controller.service.revoke_system_access(employee_id, actor)
    except OffboardingError as e:
        _abort(e)

    if result.already_revoked:
        console.print(f"[yellow]Access for {employee_id} was already revoked[/yellow]")
    else:
        console.print(f"[green]✓ Revoked {result.system_roles_disabled} system roles for {employee_id}[/green]")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show case statistics."""
    controller = ctx.obj['controller']
    summary = controller.service.state_manager.get_state_summary()

    console.print("[bold blue]Case Statistics[/bold blue]")
    console.print(f"Total Requests: {summary['total_requests']}")
    console.print(f"Clearance Checklists: {summary['total_checklists']}")
    console.print(f"Settlements Triggered: {summary['settlements_triggered']}")
    console.print(f"Access Revoked: {summary['access_revoked']}")

    if summary['requests_by_status']:
        console.print("\nRequests by Status:")
        for status, count in summary['requests_by_status'].items():
            console.print(f"  {status}: {count}")

    if summary['requests_by_initiator']:
        console.print("\nRequests by Initiator:")
        for initiator, count in summary['requests_by_initiator'].items():
            console.print(f"  {initiator}: {count}")


@cli.command()
@click.option('--port', default=8000, help='Port to run the API server on')
@click.option('--host', default='127.0.0.1', help='Host to bind the API server to')
@click.pass_context
def serve(ctx, port, host):
    """Start the Offboarding Engine API server."""
    from ..api import server

    server.service = ctx.obj['controller'].service

    console.print(f"[green]Starting Offboarding Engine API server on {host}:{port}[/green]")
    console.print("[blue]Press Ctrl+C to stop[/blue]")

    try:
        server.start_server(host=host, port=port, reload=False)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped[/yellow]")


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
