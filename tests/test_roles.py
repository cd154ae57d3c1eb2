"""Tests for the role registry and agent definition files."""

from pathlib import Path

import pytest

from agent_delegator.errors import RoleNotFoundError
from agent_delegator.roles import (
	CODER_JR,
	DEFAULT_ROLES,
	Permission,
	ResultKind,
	Role,
	RoleRegistry,
	load_agent_file,
)

AGENT_FILE = """---
name: coder-jr
description: Junior coder for this project
permissions: [read_files, write_files, run_commands]
produces: completion, escalation
escalates-to: coder-sr
---

Always run `npm test` before reporting.
"""


def write_agent(directory: Path, name: str, content: str) -> Path:
	directory.mkdir(parents=True, exist_ok=True)
	path = directory / f"{name}.md"
	path.write_text(content)
	return path


class TestDefaultRoles:
	"""Built-in role table."""

	def test_default_role_ids(self):
		registry = RoleRegistry.default()
		assert len(registry) == 6
		for role_id in ("planner", "coder-jr", "coder-sr", "designer", "reviewer", "debugger"):
			assert role_id in registry

	def test_reviewer_cannot_write(self):
		reviewer = RoleRegistry.default().get("reviewer")
		assert not reviewer.can_write_code
		assert reviewer.can_block_completion
		assert reviewer.may_produce(ResultKind.FINDINGS)
		assert not reviewer.may_produce(ResultKind.COMPLETION)

	def test_only_planner_asks_user(self):
		askers = [r.id for r in DEFAULT_ROLES if r.allows(Permission.ASK_USER)]
		assert askers == ["planner"]

	def test_error_always_allowed(self):
		assert RoleRegistry.default().get("debugger").may_produce(ResultKind.ERROR)

	def test_escalation_chain(self):
		registry = RoleRegistry.default()
		assert registry.escalation_target(registry.get("coder-jr")).id == "coder-sr"
		assert registry.escalation_target(registry.get("designer")).id == "coder-sr"
		assert registry.escalation_target(registry.get("coder-sr")) is None

	def test_allowed_tools(self):
		registry = RoleRegistry.default()
		assert registry.get("reviewer").to_allowed_tools_list() == ["Read", "Glob", "Grep", "Bash"]
		assert registry.get("planner").to_allowed_tools_list() == ["Read", "Glob", "Grep"]
		assert "Edit" in registry.get("coder-jr").to_allowed_tools_list()

	def test_unknown_role(self):
		with pytest.raises(RoleNotFoundError) as exc_info:
			RoleRegistry.default().get("architect")
		assert exc_info.value.role_id == "architect"

	def test_list_roles_sorted(self):
		ids = [entry["id"] for entry in RoleRegistry.default().list_roles()]
		assert ids == sorted(ids)
		assert RoleRegistry.default().list_roles()[0]["source"] == "built-in"


class TestRegistryValidation:
	"""Registry construction rejects inconsistent role tables."""

	def test_duplicate_ids(self):
		with pytest.raises(ValueError, match="Duplicate"):
			RoleRegistry([CODER_JR, CODER_JR])

	def test_unknown_escalation_target(self):
		with pytest.raises(ValueError, match="unknown role"):
			RoleRegistry([Role(id="solo", description="", escalates_to="nobody")])

	def test_roles_are_immutable(self):
		with pytest.raises(AttributeError):
			CODER_JR.escalates_to = "planner"


class TestAgentFiles:
	"""Agent definition file parsing."""

	def test_parse_agent_file(self, tmp_path: Path):
		path = write_agent(tmp_path, "coder-jr", AGENT_FILE)
		role = load_agent_file(path)

		assert role is not None
		assert role.id == "coder-jr"
		assert role.permissions == frozenset({
			Permission.READ_FILES,
			Permission.WRITE_FILES,
			Permission.RUN_COMMANDS,
		})
		assert role.produces == frozenset({ResultKind.COMPLETION, ResultKind.ESCALATION})
		assert role.escalates_to == "coder-sr"
		assert role.instructions == "Always run `npm test` before reporting."
		assert role.source_path == str(path)

	def test_missing_frontmatter(self, tmp_path: Path):
		path = write_agent(tmp_path, "plain", "# Just markdown\n")
		assert load_agent_file(path) is None

	def test_missing_name(self, tmp_path: Path):
		path = write_agent(tmp_path, "nameless", "---\ndescription: x\n---\nbody\n")
		assert load_agent_file(path) is None

	def test_invalid_permission(self, tmp_path: Path):
		path = write_agent(tmp_path, "bad", "---\nname: bad\npermissions: [delete_everything]\n---\n")
		assert load_agent_file(path) is None

	def test_invalid_yaml(self, tmp_path: Path):
		path = write_agent(tmp_path, "broken", "---\nname: [unclosed\n---\n")
		assert load_agent_file(path) is None

	def test_project_file_overrides_builtin(self, tmp_path: Path):
		write_agent(tmp_path / ".claude" / "agents", "coder-jr", AGENT_FILE)

		registry = RoleRegistry.load(tmp_path)
		role = registry.get("coder-jr")

		assert role.allows(Permission.RUN_COMMANDS)
		assert role.source_path.endswith("coder-jr.md")
		assert len(registry) == 6

	def test_project_overrides_global(self, tmp_path: Path):
		global_dir = tmp_path / "global"
		write_agent(global_dir, "helper", "---\nname: helper\ndescription: global\n---\n")
		write_agent(tmp_path / "proj" / ".claude" / "agents", "helper", "---\nname: helper\ndescription: project\n---\n")

		registry = RoleRegistry.load(tmp_path / "proj", global_dir=global_dir)
		assert registry.get("helper").description == "project"
		assert len(registry) == 7

	def test_invalid_files_are_skipped(self, tmp_path: Path):
		write_agent(tmp_path / ".claude" / "agents", "junk", "no frontmatter")
		registry = RoleRegistry.load(tmp_path)
		assert len(registry) == 6

	def test_unknown_escalation_target_keeps_builtin(self, tmp_path: Path):
		write_agent(
			tmp_path / ".claude" / "agents",
			"coder-jr",
			"---\nname: coder-jr\npermissions: [read_files]\nescalates-to: ghost\n---\n",
		)

		registry = RoleRegistry.load(tmp_path)
		role = registry.get("coder-jr")

		assert role.source_path == ""
		assert role.escalates_to == "coder-sr"
		assert len(registry) == 6

	def test_unknown_escalation_target_skips_new_role(self, tmp_path: Path):
		agents = tmp_path / ".claude" / "agents"
		write_agent(agents, "helper", "---\nname: helper\nescalates-to: ghost\n---\n")
		write_agent(agents, "sidekick", "---\nname: sidekick\nescalates-to: helper\n---\n")

		registry = RoleRegistry.load(tmp_path)

		assert "helper" not in registry
		assert "sidekick" not in registry
		assert len(registry) == 6
