"""Rich views for execution plans and roles."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from ..plans.models import ExecutionPlan
from ..roles import RoleRegistry

STATUS_ICONS = {
	"done": "[green]\\[x][/green]",
	"failed": "[red][!][/red]",
	"pending": "[dim][ ][/dim]",
}


def build_plan_tree(
	plan: ExecutionPlan,
	title: str = "Execution Plan",
	completed: Optional[set[str]] = None,
	failed: Optional[set[str]] = None,
) -> Tree:
	"""Build a Rich Tree with one branch per phase."""
	completed = completed or set()
	failed = failed or set()

	progress = plan.get_progress(completed)
	pct = progress["percent_complete"]

	tree = Tree(
		f"[bold]{title}[/bold]  "
		f"[dim]({progress['completed_items']}/{progress['total_items']} items, {pct:.0f}%)[/dim]"
	)

	for phase in plan.phases:
		mode = "[cyan]parallel[/cyan]" if phase.is_parallel else "[dim]sequential[/dim]"
		phase_branch = tree.add(f"[bold]Phase {phase.number}[/bold] ({mode})")

		for item in phase.items:
			if item.id in completed:
				icon = STATUS_ICONS["done"]
			elif item.id in failed:
				icon = STATUS_ICONS["failed"]
			else:
				icon = STATUS_ICONS["pending"]
			item_branch = phase_branch.add(
				f"{icon} {escape(item.id)} [magenta]{escape(item.role)}[/magenta] {escape(item.description)}"
			)
			if item.files:
				item_branch.add(f"[dim]files: {escape(', '.join(item.files))}[/dim]")
			for risk in item.risks:
				item_branch.add(f"[yellow]risk:[/yellow] {escape(risk)}")

	return tree


def render_plan_progress(
	plan: ExecutionPlan,
	console: Optional[Console] = None,
	completed: Optional[set[str]] = None,
	failed: Optional[set[str]] = None,
) -> None:
	"""Render a plan as a Rich Tree with phases and work items."""
	console = console or Console()
	console.print(build_plan_tree(plan, completed=completed, failed=failed))


def render_report_panel(report: str, title: str = "Delegation Report", console: Optional[Console] = None) -> None:
	"""Print a plain-text report inside a panel."""
	console = console or Console()
	border = "red" if "**Outcome:** halted" in report else "cyan"
	console.print(Panel(Text(report.rstrip()), title=title, border_style=border))


def render_roles(registry: RoleRegistry, console: Optional[Console] = None) -> None:
	"""Render the role registry as a table."""
	console = console or Console()

	table = Table(title="Roles")
	table.add_column("Role", style="bold")
	table.add_column("Permissions")
	table.add_column("Produces")
	table.add_column("Escalates to")
	table.add_column("Blocks", justify="center")
	table.add_column("Source", style="dim")

	for entry in registry.list_roles():
		table.add_row(
			entry["id"],
			", ".join(entry["permissions"]),
			", ".join(entry["produces"]),
			entry["escalates_to"] or "-",
			"yes" if entry["can_block_completion"] else "",
			entry["source"],
		)

	console.print(table)
