"""Plans module - Work items, phases and execution plans."""

from .models import ExecutionPlan, FindingSeverity, Phase, ReviewFinding, WorkItem

__all__ = [
	"ExecutionPlan",
	"FindingSeverity",
	"Phase",
	"ReviewFinding",
	"WorkItem",
]
