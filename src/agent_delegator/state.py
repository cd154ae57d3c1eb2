"""
Run State - The single mutable object owned by the coordinator.

Created at request start, passed explicitly to every stage handler,
and discarded once the run reaches Done.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .plans.models import ExecutionPlan, ReviewFinding


class Stage(str, Enum):
	"""Stages of a delegation run."""
	CLARIFYING = "clarifying"
	PLANNING = "planning"
	EXECUTING = "executing"
	REVIEWING = "reviewing"
	DEBUGGING = "debugging"
	DONE = "done"


@dataclass
class EscalationEntry:
	"""A hand-off of a work item to a higher-capability role."""
	item_id: str
	from_role: str
	to_role: str
	reason: str
	# Context snapshot carried to the escalated role
	task: str
	plan_snapshot: str
	partial_output: str = ""


@dataclass
class Exchange:
	"""One round of clarifying questions and the user's answer."""
	questions: list[str]
	answer: Optional[str] = None


@dataclass
class Artifact:
	"""What a role produced for a work item or a debug fix."""
	item_id: str
	role: str
	summary: str
	files_changed: list[str] = field(default_factory=list)


@dataclass
class RunState:
	"""Mutable state of one delegation run."""
	request: str
	stage: Stage = Stage.CLARIFYING
	plan: Optional[ExecutionPlan] = None
	completed_item_ids: list[str] = field(default_factory=list)
	failed_item_ids: list[str] = field(default_factory=list)
	artifacts: dict[str, Artifact] = field(default_factory=dict)
	fixes: list[Artifact] = field(default_factory=list)
	findings: list[ReviewFinding] = field(default_factory=list)
	accepted_findings: list[ReviewFinding] = field(default_factory=list)
	escalations: list[EscalationEntry] = field(default_factory=list)
	conversation: list[Exchange] = field(default_factory=list)
	pending_questions: list[str] = field(default_factory=list)
	debug_cycles: int = 0
	replans: int = 0
	aborted: bool = False
	error: Optional[str] = None

	@property
	def is_done(self) -> bool:
		return self.stage == Stage.DONE

	@property
	def awaiting_user(self) -> bool:
		return self.stage == Stage.CLARIFYING and bool(self.pending_questions)

	@property
	def outstanding_blockers(self) -> list[ReviewFinding]:
		"""Blockers from the latest review that were not accepted."""
		return [
			f for f in self.findings
			if f.is_blocker and f not in self.accepted_findings
		]

	def escalations_for(self, item_id: str) -> list[EscalationEntry]:
		return [e for e in self.escalations if e.item_id == item_id]

	def files_changed(self) -> list[str]:
		"""All files changed by completed items and fixes, first occurrence order."""
		files: list[str] = []
		for artifact in list(self.artifacts.values()) + self.fixes:
			files.extend(artifact.files_changed)
		return list(dict.fromkeys(files))
