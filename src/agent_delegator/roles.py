"""
Role Registry - Named responsibility boundaries with declared permissions.

Each role states which side effects it may cause and which kinds of
result it may return. The coordinator checks both at dispatch time and
rejects anything outside the contract.

Roles can be overridden from agent definition files:
- Global: <config_dir>/agents/*.md
- Project: .claude/agents/*.md
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

import yaml

from .errors import RoleNotFoundError

logger = logging.getLogger(__name__)


class Permission(str, Enum):
	"""Side effects a role may cause."""
	READ_FILES = "read_files"
	WRITE_FILES = "write_files"
	RUN_COMMANDS = "run_commands"
	ASK_USER = "ask_user"


class ResultKind(str, Enum):
	"""Kinds of result a role invocation may return."""
	CLARIFICATION = "clarification"
	PLAN = "plan"
	FINDINGS = "findings"
	COMPLETION = "completion"
	ESCALATION = "escalation"
	ERROR = "error"


# Tool patterns passed to the external CLI for each permission
PERMISSION_TOOLS: dict[Permission, list[str]] = {
	Permission.READ_FILES: ["Read", "Glob", "Grep"],
	Permission.WRITE_FILES: ["Edit", "Write"],
	Permission.RUN_COMMANDS: ["Bash"],
	Permission.ASK_USER: [],
}


@dataclass(frozen=True)
class Role:
	"""A role and its input/output contract."""

	id: str
	description: str
	permissions: frozenset[Permission] = frozenset()
	produces: frozenset[ResultKind] = frozenset()
	escalates_to: Optional[str] = None
	can_block_completion: bool = False
	instructions: str = ""
	source_path: str = ""

	@property
	def can_write_code(self) -> bool:
		return Permission.WRITE_FILES in self.permissions

	def allows(self, permission: Permission) -> bool:
		return permission in self.permissions

	def may_produce(self, kind: ResultKind) -> bool:
		# Any role may report a hard error
		return kind == ResultKind.ERROR or kind in self.produces

	def to_allowed_tools_list(self) -> list[str]:
		"""Tool patterns for --allowedTools, in stable order."""
		tools: list[str] = []
		for permission in Permission:
			if permission in self.permissions:
				tools.extend(PERMISSION_TOOLS[permission])
		return tools


PLANNER = Role(
	id="planner",
	description="Clarifies requirements and produces file-scoped work items",
	permissions=frozenset({Permission.READ_FILES, Permission.ASK_USER}),
	produces=frozenset({ResultKind.CLARIFICATION, ResultKind.PLAN, ResultKind.COMPLETION}),
	instructions=(
		"You are the planner. Ask every question needed until the request is "
		"unambiguous; do not assume. Once nothing is unclear, produce a plan of "
		"small work items, each naming the exact files it touches, the items it "
		"depends on, the role that should do it, and its risks."
	),
)

CODER_JR = Role(
	id="coder-jr",
	description="Small, well-scoped fixes and straightforward changes",
	permissions=frozenset({Permission.READ_FILES, Permission.WRITE_FILES}),
	produces=frozenset({ResultKind.COMPLETION, ResultKind.ESCALATION}),
	escalates_to="coder-sr",
	instructions=(
		"You are a junior coder. Make the requested change in the listed files "
		"only. If the change turns out to need architectural decisions or "
		"touches more than the listed files, stop and escalate with what you "
		"have done so far."
	),
)

CODER_SR = Role(
	id="coder-sr",
	description="Complex features, refactors and architectural changes",
	permissions=frozenset({Permission.READ_FILES, Permission.WRITE_FILES, Permission.RUN_COMMANDS}),
	produces=frozenset({ResultKind.COMPLETION, ResultKind.ESCALATION}),
	instructions=(
		"You are a senior coder. Continue from any partial work you are given; "
		"never start over. Keep changes inside the listed files."
	),
)

DESIGNER = Role(
	id="designer",
	description="User interface and visual design work",
	permissions=frozenset({Permission.READ_FILES, Permission.WRITE_FILES}),
	produces=frozenset({ResultKind.COMPLETION, ResultKind.ESCALATION}),
	escalates_to="coder-sr",
	instructions=(
		"You are the designer. Implement layout, styling and interaction changes "
		"in the listed files. Escalate when the work needs non-UI logic."
	),
)

REVIEWER = Role(
	id="reviewer",
	description="Reviews produced changes; reports findings, never fixes",
	permissions=frozenset({Permission.READ_FILES, Permission.RUN_COMMANDS}),
	produces=frozenset({ResultKind.FINDINGS}),
	can_block_completion=True,
	instructions=(
		"You are the reviewer. Inspect the changed files and report findings "
		"with a severity of blocker, warning, suggestion or positive. Do not "
		"implement fixes. For blockers include the exact failing command or "
		"stack trace when you have one."
	),
)

DEBUGGER = Role(
	id="debugger",
	description="Reproduces and fixes concrete failures",
	permissions=frozenset({Permission.READ_FILES, Permission.WRITE_FILES, Permission.RUN_COMMANDS}),
	produces=frozenset({ResultKind.COMPLETION}),
	instructions=(
		"You are the debugger. Reproduce the reported failure, fix its root "
		"cause, and re-run the reproduction to verify the fix before reporting."
	),
)

DEFAULT_ROLES: tuple[Role, ...] = (PLANNER, CODER_JR, CODER_SR, DESIGNER, REVIEWER, DEBUGGER)


class RoleRegistry:
	"""
	Static table of roles, read-only once built.

	Use RoleRegistry.default() for the built-in roles or
	RoleRegistry.load() to layer agent definition files on top.
	"""

	AGENT_SUFFIX = ".md"

	def __init__(self, roles: Iterable[Role]):
		self._roles: dict[str, Role] = {}
		for role in roles:
			if role.id in self._roles:
				raise ValueError(f"Duplicate role id: {role.id}")
			self._roles[role.id] = role

		for role in self._roles.values():
			if role.escalates_to and role.escalates_to not in self._roles:
				raise ValueError(f"Role '{role.id}' escalates to unknown role '{role.escalates_to}'")

	@classmethod
	def default(cls) -> "RoleRegistry":
		return cls(DEFAULT_ROLES)

	@classmethod
	def from_agent_files(cls, paths: Iterable[Path], base: Iterable[Role] = DEFAULT_ROLES) -> "RoleRegistry":
		"""
		Build a registry from agent definition files layered over base roles.

		Later files override earlier ones with the same name. A file whose
		escalates-to names an unknown role is skipped, and the base role of
		the same name (if any) is kept.
		"""
		base_roles = {role.id: role for role in base}
		roles = dict(base_roles)
		for path in paths:
			role = load_agent_file(path)
			if role is None:
				continue
			if role.id in roles:
				logger.info(f"Agent file {path} overrides role '{role.id}'")
			roles[role.id] = role

		# Skipping one file can orphan another's target, so repeat until stable
		changed = True
		while changed:
			changed = False
			for role in list(roles.values()):
				if not role.source_path or not role.escalates_to or role.escalates_to in roles:
					continue
				logger.warning(
					f"Skipping agent file {role.source_path}: escalates to unknown role '{role.escalates_to}'"
				)
				if role.id in base_roles:
					roles[role.id] = base_roles[role.id]
				else:
					del roles[role.id]
				changed = True

		return cls(roles.values())

	@classmethod
	def load(cls, project_path: Optional[Path] = None, global_dir: Optional[Path] = None) -> "RoleRegistry":
		"""Load global then project agent files over the built-in roles."""
		paths: list[Path] = []
		project_dir = (project_path or Path.cwd()) / ".claude" / "agents"
		for directory in (global_dir, project_dir):
			if directory and directory.is_dir():
				paths.extend(sorted(directory.glob(f"*{cls.AGENT_SUFFIX}")))
		registry = cls.from_agent_files(paths)
		logger.info(f"Loaded {len(registry)} roles ({len(paths)} agent files)")
		return registry

	def get(self, role_id: str) -> Role:
		"""Get a role by id, raising RoleNotFoundError if absent."""
		try:
			return self._roles[role_id]
		except KeyError:
			raise RoleNotFoundError(role_id) from None

	def __contains__(self, role_id: str) -> bool:
		return role_id in self._roles

	def __len__(self) -> int:
		return len(self._roles)

	def escalation_target(self, role: Role) -> Optional[Role]:
		"""The role a work item is upgraded to, or None at the top of the chain."""
		if not role.escalates_to:
			return None
		return self.get(role.escalates_to)

	def list_roles(self) -> list[dict]:
		"""Summaries of all roles, sorted by id."""
		return [
			{
				"id": role.id,
				"description": role.description,
				"permissions": sorted(p.value for p in role.permissions),
				"produces": sorted(k.value for k in role.produces),
				"escalates_to": role.escalates_to,
				"can_write_code": role.can_write_code,
				"can_block_completion": role.can_block_completion,
				"source": role.source_path or "built-in",
			}
			for role in sorted(self._roles.values(), key=lambda r: r.id)
		]


def _parse_list(raw) -> list[str]:
	if isinstance(raw, str):
		return [v.strip() for v in raw.split(",") if v.strip()]
	if isinstance(raw, list):
		return [str(v).strip() for v in raw]
	return []


def load_agent_file(path: Path) -> Optional[Role]:
	"""
	Parse an agent definition file.

	Expected format:
	```
	---
	name: coder-jr
	description: Small fixes
	permissions: [read_files, write_files]
	produces: [completion, escalation]
	escalates-to: coder-sr
	can-block-completion: false
	---

	Instructions markdown...
	```

	Returns None (and logs why) if the file is not a valid definition.
	"""
	try:
		content = Path(path).read_text(encoding="utf-8")
	except OSError as e:
		logger.error(f"Failed to read agent file {path}: {e}")
		return None

	match = re.match(r"^---\s*\n(.*?)\n---\s*\n?(.*)$", content, re.DOTALL)
	if not match:
		logger.warning(f"No frontmatter found in {path}")
		return None

	try:
		frontmatter = yaml.safe_load(match.group(1))
	except yaml.YAMLError as e:
		logger.error(f"Invalid YAML frontmatter in {path}: {e}")
		return None

	if not isinstance(frontmatter, dict):
		logger.warning(f"Empty frontmatter in {path}")
		return None

	name = frontmatter.get("name")
	if not name:
		logger.warning(f"Missing 'name' in {path}")
		return None

	try:
		permissions = frozenset(Permission(p) for p in _parse_list(frontmatter.get("permissions", [])))
		produces = frozenset(ResultKind(k) for k in _parse_list(frontmatter.get("produces", [])))
	except ValueError as e:
		logger.warning(f"Invalid permission or result kind in {path}: {e}")
		return None

	return Role(
		id=str(name),
		description=frontmatter.get("description", ""),
		permissions=permissions,
		produces=produces,
		escalates_to=frontmatter.get("escalates-to") or None,
		can_block_completion=bool(frontmatter.get("can-block-completion", False)),
		instructions=match.group(2).strip(),
		source_path=str(path),
	)
