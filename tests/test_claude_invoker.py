"""Tests for the Claude CLI invoker with a patched subprocess."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agent_delegator.errors import RoleInvocationError
from agent_delegator.orchestrator.claude_invoker import ClaudeCLIInvoker
from agent_delegator.orchestrator.invoker import Completion, EscalationNeeded, InvocationMode, RoleContext
from agent_delegator.roles import RoleRegistry

from .helpers import SENTINEL, make_item

SUBPROCESS = "agent_delegator.orchestrator.claude_invoker.asyncio.create_subprocess_exec"


def fake_process(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
	process = MagicMock()
	process.returncode = returncode
	process.communicate = AsyncMock(return_value=(stdout.encode(), stderr.encode()))
	return process


def execute_context(**kwargs) -> RoleContext:
	item = make_item("a", files=("a.ts",), description="Add submit handler")
	return RoleContext(
		mode=InvocationMode.EXECUTE,
		request="Add a login form",
		task=item.description,
		item=item,
		files=list(item.files),
		**kwargs,
	)


class TestPrompt:
	"""Prompt and command line construction."""

	def test_args_restrict_tools(self):
		invoker = ClaudeCLIInvoker(command="claude")
		args = invoker.build_args(RoleRegistry.default().get("reviewer"))
		assert args[:4] == ["claude", "--print", "--output-format", "text"]
		assert args[args.index("--allowedTools") + 1] == "Read,Glob,Grep,Bash"

	def test_clarify_prompt_mentions_sentinel(self):
		invoker = ClaudeCLIInvoker(completion_sentinel=SENTINEL)
		planner = RoleRegistry.default().get("planner")
		prompt = invoker.build_prompt(planner, RoleContext(mode=InvocationMode.CLARIFY, request="Add a button"))

		assert "# Role: planner" in prompt
		assert planner.instructions in prompt
		assert f"nothing else: {SENTINEL}" in prompt
		assert "```json" not in prompt

	def test_execute_prompt_has_scope_and_schema(self):
		invoker = ClaudeCLIInvoker()
		prompt = invoker.build_prompt(
			RoleRegistry.default().get("coder-sr"),
			execute_context(prior_output="Stubbed handler"),
		)

		assert "## Task: Add submit handler" in prompt
		assert "- a.ts" in prompt
		assert "Partial Work To Continue From" in prompt
		assert "Stubbed handler" in prompt
		assert '"files_modified"' in prompt


class TestInvoke:
	"""Subprocess handling."""

	@pytest.mark.asyncio
	async def test_completed_reply(self, tmp_path):
		reply = json.dumps({"status": "completed", "summary": "Added handler", "files_modified": ["a.ts"]})
		process = fake_process(stdout=f"```json\n{reply}\n```")
		invoker = ClaudeCLIInvoker(project_path=str(tmp_path))

		with patch(SUBPROCESS, AsyncMock(return_value=process)) as spawn:
			result = await invoker.invoke(RoleRegistry.default().get("coder-jr"), execute_context())

		assert result == Completion(summary="Added handler", files_changed=["a.ts"])
		assert spawn.call_args.kwargs["cwd"] == str(tmp_path)
		prompt = process.communicate.call_args.kwargs["input"].decode()
		assert "Add submit handler" in prompt

	@pytest.mark.asyncio
	async def test_escalate_reply(self):
		reply = json.dumps({"status": "escalate", "summary": "needs redesign", "partial_output": "draft"})
		with patch(SUBPROCESS, AsyncMock(return_value=fake_process(stdout=reply))):
			result = await ClaudeCLIInvoker().invoke(RoleRegistry.default().get("coder-jr"), execute_context())
		assert result == EscalationNeeded(reason="needs redesign", partial_output="draft")

	@pytest.mark.asyncio
	async def test_nonzero_exit(self):
		process = fake_process(stderr="rate limited", returncode=1)
		with patch(SUBPROCESS, AsyncMock(return_value=process)):
			with pytest.raises(RoleInvocationError, match="rate limited"):
				await ClaudeCLIInvoker().invoke(RoleRegistry.default().get("coder-jr"), execute_context())

	@pytest.mark.asyncio
	async def test_missing_binary(self):
		with patch(SUBPROCESS, AsyncMock(side_effect=FileNotFoundError())):
			with pytest.raises(RoleInvocationError, match="CLI not found: no-such-claude"):
				await ClaudeCLIInvoker(command="no-such-claude").invoke(
					RoleRegistry.default().get("coder-jr"), execute_context()
				)
