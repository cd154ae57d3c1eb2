"""
Delegation Coordinator - Drives a request through the role pipeline.

Stages:
- Clarifying: planner asks questions until it emits the completion sentinel
- Planning: planner proposes work items, arranged into phases
- Executing: phases run in order, items within a phase concurrently
- Reviewing: reviewer reports findings over everything produced
- Debugging: debugger fixes reproducible blockers, then re-review
- Done: terminal

The coordinator owns all routing decisions. The RunState is passed
explicitly to every stage handler and is never stored on the
coordinator, so one coordinator can drive several runs.

Recovery (retry, escalate, re-plan) is always attempted first. When a
run cannot continue it halts with RunHalted, which carries the state
and a partial report.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..config import Config
from ..errors import (
	BlockerFinding,
	ClarificationIncomplete,
	DelegationError,
	EscalationRequired,
	PermissionViolation,
	PlanningError,
	RoleInvocationError,
	RoleNotFoundError,
	RunHalted,
)
from ..plans.models import ExecutionPlan, ReviewFinding, WorkItem
from ..roles import Permission, ResultKind, Role, RoleRegistry
from ..state import Artifact, EscalationEntry, Exchange, RunState, Stage
from ..visualizer.report import render, render_plan
from .batch import PhaseRunner
from .invoker import (
	ClarificationNeeded,
	Completion,
	Error,
	EscalationNeeded,
	ExternalRoleInvoker,
	Findings,
	InvocationMode,
	ProposedPlan,
	RoleContext,
	RoleResult,
)
from .planner import FileOwnershipPlanner

logger = logging.getLogger(__name__)

AskUser = Callable[[list[str]], Awaitable[str]]
AcceptFinding = Callable[[ReviewFinding], Awaitable[bool]]
PlanCallback = Callable[[ExecutionPlan], Awaitable[None]]


class DelegationCoordinator:
	"""
	Runs the clarify -> plan -> execute -> review -> debug protocol.

	The external capability is injected as an ExternalRoleInvoker so it
	can be replaced by a deterministic stub.
	"""

	PLANNER = "planner"
	REVIEWER = "reviewer"
	DEBUGGER = "debugger"

	def __init__(
		self,
		invoker: ExternalRoleInvoker,
		registry: Optional[RoleRegistry] = None,
		config: Optional[Config] = None,
		planner: Optional[FileOwnershipPlanner] = None,
		accept_finding: Optional[AcceptFinding] = None,
		on_plan: Optional[PlanCallback] = None,
	):
		"""
		Initialize the coordinator.

		Args:
			invoker: Capability performing each role's work
			registry: Roles available to the run (default: built-in roles)
			config: Retry, timeout and escalation bounds
			planner: File ownership planner
			accept_finding: Callback(finding) -> True to accept a blocker
				that has no reproduction detail
			on_plan: Callback(plan) once the execution plan exists
		"""
		self.invoker = invoker
		self.registry = registry or RoleRegistry.default()
		self.config = config or Config()
		self.planner = planner or FileOwnershipPlanner()
		self.accept_finding = accept_finding
		self.on_plan = on_plan
		self.runner: PhaseRunner[Artifact] = PhaseRunner(max_concurrency=self.config.max_concurrency)

		self._handlers = {
			Stage.CLARIFYING: self._clarify,
			Stage.PLANNING: self._plan,
			Stage.EXECUTING: self._execute,
			Stage.REVIEWING: self._review,
			Stage.DEBUGGING: self._debug,
		}

	def start(self, request: str) -> RunState:
		"""Create the run state for a new request."""
		request = request.strip()
		if not request:
			raise ValueError("Request must not be empty")
		logger.info(f"Starting run: {request[:80]}")
		return RunState(request=request)

	def abort(self, state: RunState) -> None:
		"""
		Stop a run after the work currently in flight.

		In-flight invocations finish; no new phase or stage starts.
		"""
		state.aborted = True
		logger.warning("Run abort requested")

	async def run(self, request: str, ask_user: Optional[AskUser] = None) -> RunState:
		"""
		Drive a request to Done.

		Args:
			request: Free-text user request
			ask_user: Callback(questions) -> answer for clarifying rounds

		Raises:
			ClarificationIncomplete: questions are pending and no ask_user
			RunHalted: the run could not complete
		"""
		state = self.start(request)
		await self.advance(state)
		while state.awaiting_user:
			if ask_user is None:
				raise ClarificationIncomplete(list(state.pending_questions))
			answer = await ask_user(list(state.pending_questions))
			await self.advance(state, answer)
		return state

	async def advance(self, state: RunState, user_input: Optional[str] = None) -> RunState:
		"""
		Advance a run until it needs the user or reaches Done.

		Args:
			state: Run to advance
			user_input: Answer to the pending clarifying questions

		Returns:
			The same state, either awaiting clarification or done

		Raises:
			RunHalted: with the partial report when the run cannot continue
		"""
		if state.error:
			raise DelegationError(f"Run already halted: {state.error}")
		if state.is_done:
			return state

		if user_input is not None:
			if state.stage != Stage.CLARIFYING:
				raise ValueError(f"User input is only accepted while clarifying, not in '{state.stage.value}'")
			self._record_answer(state, user_input)

		try:
			while not state.is_done and not state.awaiting_user:
				if state.aborted:
					raise DelegationError(f"Run aborted by user during '{state.stage.value}'")
				await self._handlers[state.stage](state)
		except DelegationError as e:
			self._halt(state, e)

		if state.is_done:
			logger.info(f"Run complete: {len(state.completed_item_ids)} work items, {len(state.fixes)} fixes")
		return state

	def _halt(self, state: RunState, cause: DelegationError) -> None:
		state.error = str(cause)
		logger.error(f"Run halted in stage '{state.stage.value}': {cause}")
		raise RunHalted(state, cause, render(state)) from cause

	def _set_stage(self, state: RunState, stage: Stage) -> None:
		logger.info(f"Stage {state.stage.value} -> {stage.value}")
		state.stage = stage

	def _record_answer(self, state: RunState, answer: str) -> None:
		if state.conversation and state.conversation[-1].answer is None:
			state.conversation[-1].answer = answer
		else:
			state.conversation.append(Exchange(questions=[], answer=answer))
		state.pending_questions = []

	# Stage handlers

	async def _clarify(self, state: RunState) -> None:
		role = self.registry.get(self.PLANNER)
		self._require(role, Permission.ASK_USER, "ask the user clarifying questions")

		context = RoleContext(
			mode=InvocationMode.CLARIFY,
			request=state.request,
			conversation=list(state.conversation),
		)
		result = await self._invoke(role, context, expected=(ClarificationNeeded, Completion))

		# The sentinel only counts when it is the whole reply
		sentinel = self.config.completion_sentinel
		lines = self._clarify_lines(result)
		questions = [line for line in lines if line != sentinel]
		if not questions:
			state.pending_questions = []
			self._set_stage(state, Stage.PLANNING)
			return

		if sentinel in lines:
			logger.warning(f"Completion signal ignored: {len(questions)} question(s) still open")

		state.pending_questions = questions
		state.conversation.append(Exchange(questions=questions))
		logger.info(f"Clarification needed: {len(questions)} question(s)")

	async def _plan(self, state: RunState) -> None:
		role = self.registry.get(self.PLANNER)
		feedback = ""

		while True:
			context = RoleContext(
				mode=InvocationMode.PLAN,
				request=state.request,
				conversation=list(state.conversation),
				feedback=feedback,
			)
			result = await self._invoke(role, context, expected=(ProposedPlan,))

			try:
				plan = self._build_plan(result.items)
				break
			except PlanningError as e:
				state.replans += 1
				if state.replans > self.config.max_replans:
					raise
				logger.warning(f"Plan rejected ({state.replans}/{self.config.max_replans}): {e}")
				feedback = f"The previous plan was rejected: {e}. Propose a corrected plan."

		state.plan = plan
		if self.on_plan:
			try:
				await self.on_plan(plan)
			except Exception as e:
				logger.warning(f"on_plan callback failed: {e}")
		self._set_stage(state, Stage.EXECUTING)

	def _build_plan(self, items: list[WorkItem]) -> ExecutionPlan:
		if not items:
			raise PlanningError("plan contains no work items")

		for item in items:
			try:
				role = self.registry.get(item.role)
			except RoleNotFoundError:
				raise PlanningError(f"unknown role '{item.role}'", [item.id]) from None
			if not role.may_produce(ResultKind.COMPLETION):
				raise PlanningError(f"role '{role.id}' cannot complete work items", [item.id])
			if item.files and not role.can_write_code:
				raise PlanningError(f"role '{role.id}' cannot write files", [item.id])

		return self.planner.plan(items)

	async def _execute(self, state: RunState) -> None:
		plan = state.plan
		if plan is None:
			raise PlanningError("no execution plan to execute")

		for phase in plan.phases:
			if state.aborted:
				raise DelegationError(f"Run aborted by user before phase {phase.number}")

			logger.info(
				f"Phase {phase.number}/{len(plan.phases)}: "
				f"{len(phase.items)} item(s), {'parallel' if phase.is_parallel else 'sequential'}"
			)
			summary = await self.runner.run(phase, lambda item: self._execute_item(state, item))

			for item_result in summary.results:
				if item_result.success:
					state.completed_item_ids.append(item_result.item_id)
					state.artifacts[item_result.item_id] = item_result.result
				else:
					state.failed_item_ids.append(item_result.item_id)

			if summary.failed:
				error = summary.failed[0].error
				if isinstance(error, DelegationError):
					raise error
				raise RoleInvocationError("coordinator", f"work item {summary.failed[0].item_id} failed: {error}")

		self._set_stage(state, Stage.REVIEWING)

	async def _execute_item(self, state: RunState, item: WorkItem) -> Artifact:
		"""Run one work item, escalating with carried context when needed."""
		role = self.registry.get(item.role)
		prior_output = ""
		feedback = ""
		depth = 0

		while True:
			if item.files:
				self._require(role, Permission.WRITE_FILES, f"write {', '.join(item.files)}")

			context = RoleContext(
				mode=InvocationMode.EXECUTE,
				request=state.request,
				task=item.description,
				item=item,
				files=list(item.files),
				plan=state.plan,
				escalation_trail=state.escalations_for(item.id),
				prior_output=prior_output,
				feedback=feedback,
			)
			result = await self._invoke(role, context, expected=(Completion, EscalationNeeded))

			if isinstance(result, Completion):
				self._check_scope(role, item.files, result.files_changed)
				logger.info(f"Work item {item.id} completed by '{role.id}'")
				return Artifact(
					item_id=item.id,
					role=role.id,
					summary=result.summary,
					files_changed=list(result.files_changed),
				)

			target = self.registry.escalation_target(role)
			if target is None or depth >= self.config.max_escalation_depth:
				raise EscalationRequired(
					f"{item.id}: {result.reason} (no escalation available from '{role.id}')",
					result.partial_output or prior_output,
				)

			prior_output = result.partial_output or prior_output
			state.escalations.append(EscalationEntry(
				item_id=item.id,
				from_role=role.id,
				to_role=target.id,
				reason=result.reason,
				task=item.description,
				plan_snapshot=render_plan(state.plan),
				partial_output=prior_output,
			))
			logger.warning(f"Escalating {item.id}: {role.id} -> {target.id}: {result.reason}")

			feedback = f"Escalated from '{role.id}': {result.reason}"
			role = target
			depth += 1

	async def _review(self, state: RunState) -> None:
		role = self.registry.get(self.REVIEWER)
		self._require(role, Permission.READ_FILES, "read the produced changes")

		artifacts = {a.item_id: a.summary for a in state.artifacts.values()}
		artifacts.update({fix.item_id: fix.summary for fix in state.fixes})
		context = RoleContext(
			mode=InvocationMode.REVIEW,
			request=state.request,
			files=state.files_changed(),
			plan=state.plan,
			artifacts=artifacts,
		)
		result = await self._invoke(role, context, expected=(Findings,))
		state.findings = list(result.findings)

		blockers = state.outstanding_blockers
		logger.info(f"Review: {len(state.findings)} finding(s), {len(blockers)} blocker(s)")

		if blockers and not role.can_block_completion:
			logger.warning(f"Role '{role.id}' cannot block completion; blockers are advisory")
			blockers = []

		if not blockers:
			self._set_stage(state, Stage.DONE)
			return

		if any(f.is_reproducible for f in blockers):
			if state.debug_cycles >= self.config.max_debug_cycles:
				raise BlockerFinding(blockers)
			self._set_stage(state, Stage.DEBUGGING)
			return

		if self.accept_finding:
			for finding in blockers:
				if await self.accept_finding(finding):
					logger.info(f"Blocker accepted by user: {finding.file}: {finding.message}")
					state.accepted_findings.append(finding)

		remaining = state.outstanding_blockers
		if remaining:
			raise BlockerFinding(remaining)
		self._set_stage(state, Stage.DONE)

	async def _debug(self, state: RunState) -> None:
		role = self.registry.get(self.DEBUGGER)
		self._require(role, Permission.WRITE_FILES, "implement fixes")
		state.debug_cycles += 1

		for finding in [f for f in state.outstanding_blockers if f.is_reproducible]:
			context = RoleContext(
				mode=InvocationMode.DEBUG,
				request=state.request,
				task=f"Fix: {finding.message}",
				files=[finding.file],
				plan=state.plan,
				finding=finding,
			)
			result = await self._invoke(role, context, expected=(Completion,))
			state.fixes.append(Artifact(
				item_id=f"fix-{len(state.fixes) + 1}",
				role=role.id,
				summary=result.summary,
				files_changed=list(result.files_changed),
			))
			logger.info(f"Debugger fixed {finding.file}: {result.summary[:80]}")

		# Re-review is mandatory after any fix
		self._set_stage(state, Stage.REVIEWING)

	# Invocation and contract checks

	async def _invoke(
		self,
		role: Role,
		context: RoleContext,
		expected: tuple[type, ...],
	) -> RoleResult:
		"""
		Invoke a role, retrying hard failures with the same context.

		Permission violations are not retried.
		"""
		attempts = self.config.max_retries + 1
		last_error: Optional[RoleInvocationError] = None

		for attempt in range(1, attempts + 1):
			try:
				result = await self._invoke_once(role, context)
			except RoleInvocationError as e:
				last_error = e
			else:
				self._check_result(role, result)
				if isinstance(result, Error):
					last_error = RoleInvocationError(role.id, result.reason)
				elif not isinstance(result, expected):
					last_error = RoleInvocationError(
						role.id, f"unexpected {result.kind.value} result in {context.mode.value} mode"
					)
				elif isinstance(result, Completion) and context.mode == InvocationMode.DEBUG and not result.verified:
					last_error = RoleInvocationError(role.id, "fix reported without verification")
				elif context.mode == InvocationMode.CLARIFY and not self._clarify_lines(result):
					last_error = RoleInvocationError(role.id, "returned neither questions nor the completion signal")
				else:
					return result

			if attempt < attempts:
				logger.warning(f"Role '{role.id}' attempt {attempt}/{attempts} failed: {last_error.reason}; retrying")

		raise last_error

	async def _invoke_once(self, role: Role, context: RoleContext) -> RoleResult:
		try:
			return await asyncio.wait_for(
				self.invoker.invoke(role, context),
				timeout=self.config.invocation_timeout,
			)
		except asyncio.TimeoutError:
			raise RoleInvocationError(role.id, f"timed out after {self.config.invocation_timeout}s") from None
		except EscalationRequired as e:
			return EscalationNeeded(reason=e.reason, partial_output=e.partial_output)
		except (RoleInvocationError, PermissionViolation):
			raise
		except Exception as e:
			raise RoleInvocationError(role.id, f"{type(e).__name__}: {e}") from e

	def _require(self, role: Role, permission: Permission, action: str) -> None:
		if not role.allows(permission):
			logger.error(f"Permission violation: '{role.id}' lacks {permission.value} to {action}")
			raise PermissionViolation(role.id, action)

	def _check_result(self, role: Role, result: RoleResult) -> None:
		if not role.may_produce(result.kind):
			logger.error(f"Permission violation: '{role.id}' returned a {result.kind.value} result")
			raise PermissionViolation(role.id, f"return a {result.kind.value} result")
		if isinstance(result, Completion) and result.files_changed and not role.can_write_code:
			logger.error(f"Permission violation: '{role.id}' changed files without write permission")
			raise PermissionViolation(role.id, "write files")

	def _check_scope(self, role: Role, allowed: list[str], changed: list[str]) -> None:
		outside = [f for f in changed if f not in allowed]
		if outside:
			logger.error(f"Permission violation: '{role.id}' wrote outside its scope: {outside}")
			raise PermissionViolation(role.id, f"write outside its file scope ({', '.join(outside)})")

	def _clarify_lines(self, result: RoleResult) -> list[str]:
		"""Non-empty lines of a clarify reply, stripped."""
		if isinstance(result, Completion):
			output = [result.summary]
		elif isinstance(result, ClarificationNeeded):
			output = list(result.questions)
		else:
			return []
		return [line.strip() for text in output for line in text.splitlines() if line.strip()]
