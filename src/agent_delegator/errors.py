"""
Error taxonomy for delegation runs.

Recoverable errors (clarification, planning, escalation, blockers) are
handled by the coordinator before anything reaches the user. Hard errors
halt the run and surface as RunHalted with the best partial report.
"""

from typing import Any, Optional


class DelegationError(Exception):
	"""Base exception for delegation errors."""
	pass


class RoleNotFoundError(DelegationError):
	"""Raised when a role id is not in the registry."""

	def __init__(self, role_id: str):
		super().__init__(f"Unknown role: {role_id}")
		self.role_id = role_id


class ClarificationIncomplete(DelegationError):
	"""The planner still has open questions for the user."""

	def __init__(self, questions: list[str]):
		super().__init__(f"{len(questions)} clarifying question(s) outstanding")
		self.questions = questions


class PlanningError(DelegationError):
	"""Work items cannot be arranged into a valid execution plan."""

	UNSATISFIABLE = "unsatisfiable constraints"

	def __init__(self, reason: str = UNSATISFIABLE, item_ids: Optional[list[str]] = None):
		detail = f" ({', '.join(item_ids)})" if item_ids else ""
		super().__init__(f"{reason}{detail}")
		self.reason = reason
		self.item_ids = item_ids or []


class RoleInvocationError(DelegationError):
	"""The external capability failed to produce a usable result."""

	def __init__(self, role_id: str, reason: str):
		super().__init__(f"Role '{role_id}' failed: {reason}")
		self.role_id = role_id
		self.reason = reason


class EscalationRequired(DelegationError):
	"""A role hit work beyond its declared capability."""

	def __init__(self, reason: str, partial_output: str = ""):
		super().__init__(reason)
		self.reason = reason
		self.partial_output = partial_output


class BlockerFinding(DelegationError):
	"""Blocking review findings remain unresolved."""

	def __init__(self, findings: list):
		files = ", ".join(sorted({f.file for f in findings})) or "unknown files"
		super().__init__(f"{len(findings)} unresolved blocker(s) in {files}")
		self.findings = findings


class PermissionViolation(DelegationError):
	"""A role attempted an action outside its declared permission set."""

	def __init__(self, role_id: str, action: str):
		super().__init__(f"Role '{role_id}' is not permitted to {action}")
		self.role_id = role_id
		self.action = action


class RunHalted(DelegationError):
	"""
	A run stopped before reaching Done.

	Carries the run state and a rendered partial report so callers can
	always show what was completed.
	"""

	def __init__(self, state: Any, cause: Exception, report: str):
		super().__init__(f"Run halted in stage '{state.stage.value}': {cause}")
		self.state = state
		self.cause = cause
		self.report = report
