"""
File Ownership Planner - Partitions work items into ordered phases.

Two items conflict when their file sets intersect or one depends on the
other. Items are layered topologically: each item enters the earliest
phase after all of its dependencies that holds no other item sharing a
file with it. Ties are broken by input order, so the same input always
yields the same plan.

Items with identical file sets and no declared dependency are forced
into separate phases; file lists alone cannot prove they are independent.
"""

import logging
from typing import Sequence

from ..errors import PlanningError
from ..plans.models import ExecutionPlan, Phase, WorkItem

logger = logging.getLogger(__name__)


class FileOwnershipPlanner:
	"""Builds immutable ExecutionPlans from work items."""

	def plan(self, items: Sequence[WorkItem]) -> ExecutionPlan:
		"""
		Arrange work items into phases.

		Args:
			items: Work items in the order the planner proposed them

		Returns:
			ExecutionPlan with phases in execution order

		Raises:
			PlanningError: duplicate ids, unknown dependencies, or
				dependency cycles (including self-dependencies)
		"""
		self._validate(items)

		order = self._topological_order(items)
		position = {item.id: i for i, item in enumerate(items)}

		layers: list[list[WorkItem]] = []
		placed: dict[str, int] = {}

		for item in order:
			earliest = max((placed[dep] + 1 for dep in item.depends_on), default=0)

			index = earliest
			while index < len(layers) and any(item.shares_files_with(other) for other in layers[index]):
				index += 1

			if index == len(layers):
				layers.append([])
			layers[index].append(item)
			placed[item.id] = index

		phases = [
			Phase(index=i, items=sorted(layer, key=lambda it: position[it.id]))
			for i, layer in enumerate(layers)
		]

		logger.info(f"Planned {len(items)} work items into {len(phases)} phases")
		return ExecutionPlan(phases=phases)

	def _validate(self, items: Sequence[WorkItem]) -> None:
		seen: set[str] = set()
		duplicates = []
		for item in items:
			if item.id in seen:
				duplicates.append(item.id)
			seen.add(item.id)
		if duplicates:
			raise PlanningError("duplicate work item ids", duplicates)

		self_deps = [item.id for item in items if item.id in item.depends_on]
		if self_deps:
			raise PlanningError(PlanningError.UNSATISFIABLE, self_deps)

		unknown = sorted({dep for item in items for dep in item.depends_on if dep not in seen})
		if unknown:
			raise PlanningError("unknown dependencies", unknown)

	def _topological_order(self, items: Sequence[WorkItem]) -> list[WorkItem]:
		"""Kahn's algorithm, always taking the earliest ready item in input order."""
		remaining = list(items)
		done: set[str] = set()
		order: list[WorkItem] = []

		while remaining:
			for i, item in enumerate(remaining):
				if all(dep in done for dep in item.depends_on):
					order.append(item)
					done.add(item.id)
					del remaining[i]
					break
			else:
				raise PlanningError(PlanningError.UNSATISFIABLE, [item.id for item in remaining])

		return order
