"""
Phase Runner - Fan-out/fan-in execution of one phase's work items.

Items in a phase are file-disjoint by construction, so they run
concurrently up to a concurrency limit. The runner joins on a full
barrier: it returns only after every item has either completed or
failed. Individual failures do not cancel the other items.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from ..plans.models import Phase, WorkItem

logger = logging.getLogger(__name__)

R = TypeVar("R")


class PhaseStatus(str, Enum):
	"""Outcome of a phase."""
	COMPLETED = "completed"
	PARTIAL_FAILURE = "partial_failure"
	FAILED = "failed"


@dataclass
class ItemResult(Generic[R]):
	"""Result of running a single work item."""
	item_id: str
	success: bool
	result: Optional[R] = None
	error: Optional[Exception] = None


@dataclass
class PhaseSummary(Generic[R]):
	"""Summary of a completed phase, results in plan order."""
	phase_index: int
	status: PhaseStatus
	results: list[ItemResult[R]] = field(default_factory=list)

	@property
	def succeeded(self) -> list[ItemResult[R]]:
		return [r for r in self.results if r.success]

	@property
	def failed(self) -> list[ItemResult[R]]:
		return [r for r in self.results if not r.success]


class PhaseRunner(Generic[R]):
	"""
	Runs the items of a phase with concurrency control.

	Uses asyncio.Semaphore to limit concurrent invocations.
	"""

	def __init__(self, max_concurrency: int = 4):
		if max_concurrency < 1:
			raise ValueError("max_concurrency must be at least 1")
		self.max_concurrency = max_concurrency

	async def run(
		self,
		phase: Phase,
		handler: Callable[[WorkItem], Awaitable[R]],
		on_item_complete: Optional[Callable[[ItemResult[R]], Awaitable[None]]] = None,
	) -> PhaseSummary[R]:
		"""
		Run every item of the phase through the handler.

		Args:
			phase: Phase to run
			handler: Async function performing one work item
			on_item_complete: Optional callback after each item finishes

		Returns:
			PhaseSummary once all items have finished
		"""
		if not phase.items:
			return PhaseSummary(phase_index=phase.index, status=PhaseStatus.COMPLETED)

		semaphore = asyncio.Semaphore(self.max_concurrency)
		results: dict[str, ItemResult[R]] = {}

		async def run_item(item: WorkItem) -> None:
			async with semaphore:
				try:
					item_result = ItemResult(item_id=item.id, success=True, result=await handler(item))
				except Exception as e:
					logger.warning(f"Work item {item.id} failed: {e}")
					item_result = ItemResult(item_id=item.id, success=False, error=e)

				results[item.id] = item_result

				if on_item_complete:
					try:
						await on_item_complete(item_result)
					except Exception as e:
						logger.warning(f"on_item_complete callback failed for {item.id}: {e}")

		# Fan out
		await asyncio.gather(*(run_item(item) for item in phase.items))

		# Fan in
		ordered = [results[item.id] for item in phase.items]
		failed = len([r for r in ordered if not r.success])

		if failed == 0:
			status = PhaseStatus.COMPLETED
		elif failed == len(ordered):
			status = PhaseStatus.FAILED
		else:
			status = PhaseStatus.PARTIAL_FAILURE

		logger.debug(f"Phase {phase.number} finished: {status.value}")
		return PhaseSummary(phase_index=phase.index, status=status, results=ordered)
