"""
Plan Models - Pydantic schemas for work items and execution plans.

An ExecutionPlan is created once per request by the file ownership
planner and never patched; a change of scope produces a new plan.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FindingSeverity(str, Enum):
	"""Severity of a review finding."""
	BLOCKER = "blocker"
	WARNING = "warning"
	SUGGESTION = "suggestion"
	POSITIVE = "positive"


class WorkItem(BaseModel):
	"""A unit of delegated work scoped to specific files."""
	model_config = ConfigDict(frozen=True)

	id: str = Field(description="Unique work item identifier")
	description: str = Field(description="What needs to be done")
	files: list[str] = Field(default_factory=list, description="Files this item owns while running")
	depends_on: list[str] = Field(default_factory=list, description="Work item ids that must finish first")
	role: str = Field(description="Role id assigned to the item")
	risks: list[str] = Field(default_factory=list)

	@field_validator("files", "depends_on")
	@classmethod
	def _dedupe(cls, values: list[str]) -> list[str]:
		# Ordered set: first occurrence wins
		return list(dict.fromkeys(values))

	def shares_files_with(self, other: "WorkItem") -> bool:
		"""Check whether two items touch at least one common file."""
		return not set(self.files).isdisjoint(other.files)


class Phase(BaseModel):
	"""A group of file-disjoint, dependency-satisfied work items."""
	model_config = ConfigDict(frozen=True)

	index: int = Field(description="Zero-based position in the plan")
	items: list[WorkItem] = Field(default_factory=list)

	@property
	def number(self) -> int:
		return self.index + 1

	@property
	def is_parallel(self) -> bool:
		"""Phases with more than one item run their items concurrently."""
		return len(self.items) > 1

	@property
	def files(self) -> list[str]:
		return [f for item in self.items for f in item.files]


class ExecutionPlan(BaseModel):
	"""Ordered phases derived from a set of work items."""
	model_config = ConfigDict(frozen=True)

	phases: list[Phase] = Field(default_factory=list)

	def all_items(self) -> list[WorkItem]:
		"""All work items in execution order."""
		return [item for phase in self.phases for item in phase.items]

	def get_item(self, item_id: str) -> Optional[WorkItem]:
		for item in self.all_items():
			if item.id == item_id:
				return item
		return None

	def phase_of(self, item_id: str) -> Optional[int]:
		"""Index of the phase containing an item, or None."""
		for phase in self.phases:
			if any(item.id == item_id for item in phase.items):
				return phase.index
		return None

	def get_progress(self, completed_ids: set[str]) -> dict:
		"""Calculate progress against a set of completed item ids."""
		total = len(self.all_items())
		done = len([i for i in self.all_items() if i.id in completed_ids])
		completed_phases = len([
			p for p in self.phases
			if all(i.id in completed_ids for i in p.items)
		])
		return {
			"total_phases": len(self.phases),
			"completed_phases": completed_phases,
			"total_items": total,
			"completed_items": done,
			"percent_complete": round(done / total * 100, 1) if total > 0 else 0,
		}


class ReviewFinding(BaseModel):
	"""A single finding produced by the reviewer role."""
	model_config = ConfigDict(frozen=True)

	severity: FindingSeverity
	file: str = Field(description="File the finding targets")
	message: str
	reproduction: Optional[str] = Field(
		default=None,
		description="Stack trace or failing command that reproduces the problem",
	)

	@property
	def is_blocker(self) -> bool:
		return self.severity == FindingSeverity.BLOCKER

	@property
	def is_reproducible(self) -> bool:
		"""A blocker is actionable by the debugger only with concrete reproduction detail."""
		return bool(self.reproduction and self.reproduction.strip())
