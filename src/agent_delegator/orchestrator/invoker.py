"""
Role Invoker - Boundary to the external capability that performs role work.

The coordinator only sees RoleContext going in and RoleResult coming
out. What happens inside invoke() (a hosted language model, a scripted
stub in tests) is opaque: no latency, determinism or structure is
assumed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union

from ..plans.models import ExecutionPlan, ReviewFinding, WorkItem
from ..roles import ResultKind, Role
from ..state import EscalationEntry, Exchange


class InvocationMode(str, Enum):
	"""What the coordinator is asking a role to do."""
	CLARIFY = "clarify"
	PLAN = "plan"
	EXECUTE = "execute"
	REVIEW = "review"
	DEBUG = "debug"


@dataclass
class RoleContext:
	"""Everything a role receives for one invocation."""
	mode: InvocationMode
	request: str
	task: str = ""
	item: Optional[WorkItem] = None
	files: list[str] = field(default_factory=list)
	plan: Optional[ExecutionPlan] = None
	escalation_trail: list[EscalationEntry] = field(default_factory=list)
	prior_output: str = ""
	feedback: str = ""
	conversation: list[Exchange] = field(default_factory=list)
	artifacts: dict[str, str] = field(default_factory=dict)
	finding: Optional[ReviewFinding] = None

	def to_prompt(self) -> str:
		"""Render the context as a prompt section."""
		lines = [
			"# Assignment",
			"",
			f"Mode: {self.mode.value}",
			"",
			"## User Request",
			self.request,
			"",
		]

		if self.conversation:
			lines.append("## Clarifications So Far")
			for exchange in self.conversation:
				for q in exchange.questions:
					lines.append(f"**Q:** {q}")
				if exchange.answer is not None:
					lines.append(f"**A:** {exchange.answer}")
				lines.append("")

		if self.task:
			lines.append(f"## Task: {self.task}")
			lines.append("")

		if self.files:
			lines.append("### Files in scope (do not touch others):")
			for f in self.files:
				lines.append(f"- {f}")
			lines.append("")

		if self.plan:
			lines.append("### Execution Plan:")
			for phase in self.plan.phases:
				ids = ", ".join(item.id for item in phase.items)
				lines.append(f"- Phase {phase.number}: {ids}")
			lines.append("")

		if self.escalation_trail:
			lines.append("### Escalation History:")
			for entry in self.escalation_trail:
				lines.append(f"- {entry.from_role} -> {entry.to_role}: {entry.reason}")
			lines.append("")

		if self.prior_output:
			lines.append("### Partial Work To Continue From (do not restart):")
			lines.append(self.prior_output)
			lines.append("")

		if self.artifacts:
			lines.append("### Produced Changes:")
			for item_id, summary in self.artifacts.items():
				lines.append(f"- {item_id}: {summary}")
			lines.append("")

		if self.finding:
			lines.append("### Failure To Fix:")
			lines.append(f"- File: {self.finding.file}")
			lines.append(f"- Problem: {self.finding.message}")
			if self.finding.reproduction:
				lines.append("- Reproduction:")
				lines.append(self.finding.reproduction)
			lines.append("")

		if self.feedback:
			lines.append("### Feedback From Previous Attempt:")
			lines.append(self.feedback)
			lines.append("")

		return "\n".join(lines).rstrip() + "\n"


@dataclass
class ClarificationNeeded:
	questions: list[str]
	kind: ClassVar[ResultKind] = ResultKind.CLARIFICATION


@dataclass
class ProposedPlan:
	items: list[WorkItem]
	kind: ClassVar[ResultKind] = ResultKind.PLAN


@dataclass
class Findings:
	findings: list[ReviewFinding]
	kind: ClassVar[ResultKind] = ResultKind.FINDINGS


@dataclass
class Completion:
	summary: str
	files_changed: list[str] = field(default_factory=list)
	verified: bool = True
	kind: ClassVar[ResultKind] = ResultKind.COMPLETION


@dataclass
class EscalationNeeded:
	reason: str
	partial_output: str = ""
	kind: ClassVar[ResultKind] = ResultKind.ESCALATION


@dataclass
class Error:
	reason: str
	kind: ClassVar[ResultKind] = ResultKind.ERROR


RoleResult = Union[ClarificationNeeded, ProposedPlan, Findings, Completion, EscalationNeeded, Error]


class ExternalRoleInvoker(ABC):
	"""Interface to the capability that actually performs a role's work."""

	@abstractmethod
	async def invoke(self, role: Role, context: RoleContext) -> RoleResult:
		"""
		Perform one role invocation.

		Implementations either return a RoleResult or raise
		RoleInvocationError / EscalationRequired.
		"""
