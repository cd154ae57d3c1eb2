"""Shared test fixtures and helpers for agent-delegator tests."""

import inspect
from typing import Any

from agent_delegator.orchestrator.invoker import (
	Completion,
	ExternalRoleInvoker,
	Findings,
	InvocationMode,
	ProposedPlan,
	RoleContext,
	RoleResult,
)
from agent_delegator.plans.models import FindingSeverity, ReviewFinding, WorkItem
from agent_delegator.roles import Role

SENTINEL = "CLARIFICATION_COMPLETE"


def make_item(
	item_id: str,
	files: tuple[str, ...] = (),
	depends_on: tuple[str, ...] = (),
	role: str = "coder-jr",
	description: str | None = None,
) -> WorkItem:
	"""Create a WorkItem with sensible defaults."""
	return WorkItem(
		id=item_id,
		description=description or f"Edit {item_id}",
		files=list(files),
		depends_on=list(depends_on),
		role=role,
	)


def make_finding(
	severity: FindingSeverity = FindingSeverity.BLOCKER,
	file: str = "a.ts",
	message: str = "TypeError on submit",
	reproduction: str | None = None,
) -> ReviewFinding:
	return ReviewFinding(severity=severity, file=file, message=message, reproduction=reproduction)


def complete_item(context: RoleContext) -> Completion:
	"""Scripted response that completes whatever work item it is given."""
	item_id = context.item.id if context.item else "item"
	return Completion(summary=f"Done {item_id}", files_changed=list(context.files))


class ScriptedInvoker(ExternalRoleInvoker):
	"""
	Deterministic stand-in for the external capability.

	The script maps (role_id, mode) to either a list of responses, consumed
	in order, or a single response used for every call. A response is a
	RoleResult, an exception to raise, or a callable(context) returning
	either (sync or async).
	"""

	def __init__(self, script: dict[tuple[str, InvocationMode], Any] | None = None):
		self.script: dict[tuple[str, InvocationMode], Any] = script if script is not None else {}
		self.calls: list[tuple[str, RoleContext]] = []

	def calls_for(self, role_id: str, mode: InvocationMode | None = None) -> list[RoleContext]:
		return [
			ctx for rid, ctx in self.calls
			if rid == role_id and (mode is None or ctx.mode == mode)
		]

	async def invoke(self, role: Role, context: RoleContext) -> RoleResult:
		self.calls.append((role.id, context))

		key = (role.id, context.mode)
		if key not in self.script:
			raise AssertionError(f"No scripted response for {role.id} in {context.mode.value} mode")

		entry = self.script[key]
		if isinstance(entry, list):
			if not entry:
				raise AssertionError(f"Script exhausted for {role.id} in {context.mode.value} mode")
			response = entry.pop(0)
		else:
			response = entry

		if isinstance(response, Exception):
			raise response
		if callable(response):
			response = response(context)
			if inspect.isawaitable(response):
				response = await response
		return response


def happy_script(items: list[WorkItem], findings: list[ReviewFinding] | None = None) -> dict:
	"""Script for a run that clarifies, plans, executes and passes review."""
	script: dict = {
		("planner", InvocationMode.CLARIFY): [Completion(summary=SENTINEL)],
		("planner", InvocationMode.PLAN): [ProposedPlan(items=list(items))],
		("reviewer", InvocationMode.REVIEW): [Findings(findings=list(findings or []))],
	}
	for role_id in {item.role for item in items}:
		script[(role_id, InvocationMode.EXECUTE)] = complete_item
	return script
