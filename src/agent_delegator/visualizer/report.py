"""
Report Formatter - Plain-text reports of plans and run state.

Rendering is pure: the same RunState always produces the same text.
No timestamps, no terminal styling, and every list follows plan order.
"""

from typing import Optional

from ..plans.models import ExecutionPlan, FindingSeverity
from ..state import RunState, Stage

ITEM_ICONS = {
	"done": "[x]",
	"failed": "[!]",
	"pending": "[ ]",
}

SEVERITY_ORDER = [
	FindingSeverity.BLOCKER,
	FindingSeverity.WARNING,
	FindingSeverity.SUGGESTION,
	FindingSeverity.POSITIVE,
]


def _outcome(state: RunState) -> str:
	if state.error:
		return "halted"
	if state.stage == Stage.DONE:
		return "completed"
	if state.awaiting_user:
		return "awaiting clarification"
	return "in progress"


def _plan_lines(
	plan: ExecutionPlan,
	completed: Optional[set[str]] = None,
	failed: Optional[set[str]] = None,
) -> list[str]:
	completed = completed or set()
	failed = failed or set()
	lines = []

	for phase in plan.phases:
		mode = "parallel" if phase.is_parallel else "sequential"
		lines.append(f"### Phase {phase.number} ({mode})")
		for item in phase.items:
			if item.id in completed:
				icon = ITEM_ICONS["done"]
			elif item.id in failed:
				icon = ITEM_ICONS["failed"]
			else:
				icon = ITEM_ICONS["pending"]
			lines.append(f"- {icon} {item.id} ({item.role}): {item.description}")
			if item.files:
				lines.append(f"  files: {', '.join(item.files)}")
			if item.depends_on:
				lines.append(f"  depends on: {', '.join(item.depends_on)}")
			for risk in item.risks:
				lines.append(f"  risk: {risk}")
		lines.append("")

	return lines


def render_plan(plan: ExecutionPlan) -> str:
	"""Render an execution plan on its own."""
	lines = [
		"## Execution Plan",
		f"{len(plan.phases)} phase(s), {len(plan.all_items())} work item(s)",
		"",
	]
	lines.extend(_plan_lines(plan))
	return "\n".join(lines).rstrip() + "\n"


def render(state: RunState) -> str:
	"""Render the full status report for a run."""
	lines = [
		"# Delegation Report",
		"",
		f"**Request:** {state.request}",
		f"**Stage:** {state.stage.value}",
		f"**Outcome:** {_outcome(state)}",
		"",
	]

	if state.pending_questions:
		lines.append("## Questions")
		for q in state.pending_questions:
			lines.append(f"- {q}")
		lines.append("")

	if state.plan:
		progress = state.plan.get_progress(set(state.completed_item_ids))
		lines.append("## Execution Plan")
		lines.append(
			f"{progress['completed_items']}/{progress['total_items']} work items, "
			f"{progress['completed_phases']}/{progress['total_phases']} phases complete"
		)
		lines.append("")
		lines.extend(_plan_lines(
			state.plan,
			completed=set(state.completed_item_ids),
			failed=set(state.failed_item_ids),
		))

		lines.append("## Completed Work Items")
		if state.completed_item_ids:
			for item in state.plan.all_items():
				artifact = state.artifacts.get(item.id)
				if item.id not in state.completed_item_ids or artifact is None:
					continue
				lines.append(f"- {item.id} ({artifact.role}): {artifact.summary}")
				if artifact.files_changed:
					lines.append(f"  changed: {', '.join(artifact.files_changed)}")
		else:
			lines.append("- none")
		lines.append("")

	if state.escalations:
		lines.append("## Escalations")
		for entry in state.escalations:
			lines.append(f"- {entry.item_id}: {entry.from_role} -> {entry.to_role}: {entry.reason}")
		lines.append("")

	if state.findings:
		lines.append("## Review Findings")
		for severity in SEVERITY_ORDER:
			for finding in state.findings:
				if finding.severity != severity:
					continue
				note = " (accepted)" if finding in state.accepted_findings else ""
				lines.append(f"- [{severity.value}] {finding.file}: {finding.message}{note}")
		lines.append("")

	if state.fixes:
		lines.append("## Fixes")
		for fix in state.fixes:
			lines.append(f"- {fix.item_id} ({fix.role}): {fix.summary}")
		lines.append("")

	if state.error:
		lines.append("## Error")
		lines.append(state.error)
		lines.append("")

	return "\n".join(lines).rstrip() + "\n"
