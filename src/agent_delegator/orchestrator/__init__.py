"""Orchestrator module - Planning, phase execution, and delegation."""

from ..state import RunState, Stage
from .batch import PhaseRunner
from .coordinator import DelegationCoordinator
from .invoker import ExternalRoleInvoker, InvocationMode, RoleContext
from .planner import FileOwnershipPlanner

__all__ = [
	"DelegationCoordinator",
	"ExternalRoleInvoker",
	"FileOwnershipPlanner",
	"InvocationMode",
	"PhaseRunner",
	"RoleContext",
	"RunState",
	"Stage",
]
