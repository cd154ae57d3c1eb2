"""Tests for response schemas and reply parsing."""

import json

from agent_delegator.orchestrator.invoker import (
	Completion,
	Error,
	EscalationNeeded,
	Findings,
	InvocationMode,
	ProposedPlan,
)
from agent_delegator.plans.models import FindingSeverity
from agent_delegator.schemas import (
	PLAN_SCHEMA,
	REVIEW_SCHEMA,
	TASK_RESULT_SCHEMA,
	extract_json,
	get_schema,
	parse_role_result,
)


class TestResponseSchema:
	"""Best-effort schema validation."""

	def test_valid(self):
		ok, data, error = TASK_RESULT_SCHEMA.validate(json.dumps({"status": "completed", "summary": "done"}))
		assert ok
		assert data["summary"] == "done"
		assert error is None

	def test_missing_key(self):
		ok, _, error = PLAN_SCHEMA.validate("{}")
		assert not ok
		assert "items" in error

	def test_wrong_type(self):
		ok, _, error = PLAN_SCHEMA.validate(json.dumps({"items": "a, b"}))
		assert not ok
		assert "expected type 'array'" in error

	def test_enum(self):
		ok, _, error = TASK_RESULT_SCHEMA.validate(json.dumps({"status": "shrug", "summary": "?"}))
		assert not ok
		assert "must be one of" in error

	def test_not_an_object(self):
		ok, _, error = REVIEW_SCHEMA.validate("[]")
		assert not ok
		assert error == "Expected a JSON object"

	def test_invalid_json(self):
		ok, _, error = REVIEW_SCHEMA.validate("{not json")
		assert not ok
		assert error.startswith("Invalid JSON")

	def test_prompt_includes_schema(self):
		prompt = REVIEW_SCHEMA.to_prompt()
		assert prompt.startswith("## Output Format")
		assert '"severity"' in prompt

	def test_schema_per_mode(self):
		assert get_schema(InvocationMode.PLAN) is PLAN_SCHEMA
		assert get_schema(InvocationMode.DEBUG) is TASK_RESULT_SCHEMA
		assert get_schema(InvocationMode.CLARIFY) is None


def test_extract_fenced_json():
	reply = 'Here you go:\n```json\n{"status": "completed", "summary": "ok"}\n```\nThanks'
	assert json.loads(extract_json(reply)) == {"status": "completed", "summary": "ok"}


def test_extract_bare_json():
	assert extract_json('Result: {"findings": []} end') == '{"findings": []}'
	assert extract_json("no json here") is None


class TestParseRoleResult:
	"""Replies become RoleResult variants."""

	def test_clarify_is_free_text(self):
		result = parse_role_result(InvocationMode.CLARIFY, "What color?\nWhich page?\n")
		assert result == Completion(summary="What color?\nWhich page?")

	def test_clarify_empty(self):
		assert isinstance(parse_role_result(InvocationMode.CLARIFY, "  \n"), Error)

	def test_plan(self):
		reply = json.dumps({"items": [
			{"id": "a", "description": "Edit a", "role": "coder-jr", "files": ["a.ts"]},
			{"id": "b", "description": "Edit b", "role": "designer", "depends_on": ["a"], "risks": ["css"]},
		]})
		result = parse_role_result(InvocationMode.PLAN, reply)

		assert isinstance(result, ProposedPlan)
		assert [item.id for item in result.items] == ["a", "b"]
		assert result.items[1].depends_on == ["a"]

	def test_plan_item_missing_role(self):
		reply = json.dumps({"items": [{"id": "a", "description": "Edit a"}]})
		result = parse_role_result(InvocationMode.PLAN, reply)
		assert isinstance(result, Error)
		assert "invalid plan entry" in result.reason

	def test_review(self):
		reply = json.dumps({"findings": [
			{"severity": "blocker", "file": "a.ts", "message": "crash", "reproduction": "npm test"},
			{"severity": "positive", "file": "b.ts", "message": "tidy"},
		]})
		result = parse_role_result(InvocationMode.REVIEW, reply)

		assert isinstance(result, Findings)
		assert result.findings[0].severity == FindingSeverity.BLOCKER
		assert result.findings[0].is_reproducible
		assert result.findings[1].reproduction is None

	def test_review_bad_severity(self):
		reply = json.dumps({"findings": [{"severity": "fatal", "file": "a.ts", "message": "x"}]})
		assert isinstance(parse_role_result(InvocationMode.REVIEW, reply), Error)

	def test_task_completed(self):
		reply = json.dumps({"status": "completed", "summary": "done", "files_modified": ["a.ts"]})
		result = parse_role_result(InvocationMode.EXECUTE, reply)
		assert result == Completion(summary="done", files_changed=["a.ts"], verified=True)

	def test_task_escalate(self):
		reply = json.dumps({"status": "escalate", "summary": "needs design", "partial_output": "stub"})
		result = parse_role_result(InvocationMode.EXECUTE, reply)
		assert result == EscalationNeeded(reason="needs design", partial_output="stub")

	def test_task_failed(self):
		reply = json.dumps({"status": "failed", "summary": "tests do not run"})
		assert parse_role_result(InvocationMode.EXECUTE, reply) == Error(reason="tests do not run")

	def test_debug_requires_explicit_verification(self):
		reply = json.dumps({"status": "completed", "summary": "fixed"})
		assert parse_role_result(InvocationMode.DEBUG, reply).verified is False

		reply = json.dumps({"status": "completed", "summary": "fixed", "verified": True})
		assert parse_role_result(InvocationMode.DEBUG, reply).verified is True

	def test_no_json(self):
		result = parse_role_result(InvocationMode.EXECUTE, "I did it!")
		assert isinstance(result, Error)
		assert "no JSON object" in result.reason
