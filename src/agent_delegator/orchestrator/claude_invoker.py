"""
Claude CLI Invoker - Performs role work through `claude --print`.

Each invocation spawns the CLI with the role's instructions, the role
context and the expected output schema on stdin. Tools are restricted
with --allowedTools derived from the role's permission set, so a role
without write permission never gets Edit/Write.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from ..errors import RoleInvocationError
from ..roles import Role
from ..schemas import get_schema, parse_role_result
from .invoker import ExternalRoleInvoker, InvocationMode, RoleContext, RoleResult

logger = logging.getLogger(__name__)


class ClaudeCLIInvoker(ExternalRoleInvoker):
	"""Runs each role invocation as a Claude CLI subprocess."""

	def __init__(
		self,
		command: str = "claude",
		project_path: Optional[str] = None,
		completion_sentinel: str = "CLARIFICATION_COMPLETE",
	):
		"""
		Initialize the invoker.

		Args:
			command: CLI binary to run
			project_path: Working directory for the CLI
			completion_sentinel: Line the planner emits when clarification is complete
		"""
		self.command = command
		self.project_path = Path(project_path) if project_path else Path.cwd()
		self.completion_sentinel = completion_sentinel

	def build_args(self, role: Role) -> list[str]:
		"""Command line for a role invocation."""
		args = [self.command, "--print", "--output-format", "text"]
		tools = role.to_allowed_tools_list()
		if tools:
			args.extend(["--allowedTools", ",".join(tools)])
		return args

	def build_prompt(self, role: Role, context: RoleContext) -> str:
		"""Role instructions, context and output format in one prompt."""
		lines = [
			f"# Role: {role.id}",
			"",
			role.instructions,
			"",
			context.to_prompt(),
		]

		if context.mode == InvocationMode.CLARIFY:
			lines.extend([
				"## Output Format",
				"",
				"If anything about the request is unclear, reply with your questions only, one per line.",
				f"If nothing is unclear, reply with exactly this line and nothing else: {self.completion_sentinel}",
			])
		else:
			schema = get_schema(context.mode)
			if schema is not None:
				lines.append(schema.to_prompt())

		return "\n".join(lines)

	async def invoke(self, role: Role, context: RoleContext) -> RoleResult:
		prompt = self.build_prompt(role, context)

		try:
			process = await asyncio.create_subprocess_exec(
				*self.build_args(role),
				cwd=str(self.project_path),
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
			)
		except FileNotFoundError:
			raise RoleInvocationError(role.id, f"CLI not found: {self.command}") from None

		try:
			stdout, stderr = await process.communicate(input=prompt.encode())
		except asyncio.CancelledError:
			# Timeout or cancellation from the coordinator; don't leave the CLI running
			if process.returncode is None:
				process.kill()
				await process.wait()
			raise

		if process.returncode != 0:
			message = stderr.decode(errors="replace").strip() or f"exit code {process.returncode}"
			logger.error(f"CLI error for role '{role.id}': {message}")
			raise RoleInvocationError(role.id, message)

		response = stdout.decode(errors="replace")
		logger.debug(f"Role '{role.id}' replied with {len(response)} chars")
		return parse_role_result(context.mode, response)
