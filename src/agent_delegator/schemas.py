"""
Structured output schemas for role invocations.

Each invocation mode asks the external CLI for JSON matching one of
these schemas. Replies are parsed and validated here and turned into
RoleResult variants. A reply that cannot be parsed becomes an Error
result, which the coordinator treats as a hard failure.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from .orchestrator.invoker import (
	Completion,
	Error,
	EscalationNeeded,
	Findings,
	InvocationMode,
	ProposedPlan,
	RoleResult,
)
from .plans.models import FindingSeverity, ReviewFinding, WorkItem

logger = logging.getLogger(__name__)


@dataclass
class ResponseSchema:
	"""A schema for structured output from the external CLI."""

	name: str
	description: str
	json_schema: dict[str, Any] = field(default_factory=dict)

	def validate(self, response_str: str) -> tuple[bool, Optional[dict[str, Any]], Optional[str]]:
		"""
		Parse and validate a response against this schema.

		Returns:
			Tuple of (is_valid, parsed_data, error_message)
		"""
		try:
			data = json.loads(response_str)
		except json.JSONDecodeError as e:
			return False, None, f"Invalid JSON: {e}"

		if not isinstance(data, dict):
			return False, None, "Expected a JSON object"

		required = self.json_schema.get("required", [])
		properties = self.json_schema.get("properties", {})

		for key in required:
			if key not in data:
				return False, data, f"Missing required key: {key}"

		# Validate property types (best-effort)
		for key, prop_schema in properties.items():
			if key in data:
				expected_type = prop_schema.get("type")
				if expected_type and not _check_type(data[key], expected_type):
					return False, data, f"Key '{key}' expected type '{expected_type}', got '{type(data[key]).__name__}'"
				allowed = prop_schema.get("enum")
				if allowed and data[key] not in allowed:
					return False, data, f"Key '{key}' must be one of {allowed}, got {data[key]!r}"

		return True, data, None

	def to_prompt(self) -> str:
		"""Output format instructions for the prompt."""
		return "\n".join([
			"## Output Format",
			"",
			f"Respond with a single JSON object ({self.description}) matching this schema:",
			"",
			"```json",
			json.dumps(self.json_schema, indent=2),
			"```",
		])


def _check_type(value: Any, expected: str) -> bool:
	"""Check if a value matches the expected JSON schema type."""
	type_map = {
		"string": str,
		"number": (int, float),
		"integer": int,
		"boolean": bool,
		"array": list,
		"object": dict,
	}
	expected_type = type_map.get(expected)
	if expected_type is None:
		return True  # Unknown type, skip validation
	return isinstance(value, expected_type)


# Predefined schemas

PLAN_SCHEMA = ResponseSchema(
	name="plan",
	description="work items for the request",
	json_schema={
		"type": "object",
		"required": ["items"],
		"properties": {
			"items": {
				"type": "array",
				"description": "Work items, each scoped to the files it touches",
				"items": {
					"type": "object",
					"required": ["id", "description", "role"],
					"properties": {
						"id": {"type": "string"},
						"description": {"type": "string"},
						"files": {"type": "array", "items": {"type": "string"}},
						"depends_on": {"type": "array", "items": {"type": "string"}},
						"role": {"type": "string"},
						"risks": {"type": "array", "items": {"type": "string"}},
					},
				},
			},
		},
	},
)

TASK_RESULT_SCHEMA = ResponseSchema(
	name="task_result",
	description="outcome of the assigned work",
	json_schema={
		"type": "object",
		"required": ["status", "summary"],
		"properties": {
			"status": {"type": "string", "enum": ["completed", "escalate", "failed"]},
			"summary": {"type": "string", "description": "What was done, or why escalation is needed"},
			"files_modified": {
				"type": "array",
				"description": "Files that were modified",
				"items": {"type": "string"},
			},
			"partial_output": {"type": "string", "description": "Work done so far when escalating"},
			"verified": {"type": "boolean", "description": "Whether the change was verified by running it"},
		},
	},
)

REVIEW_SCHEMA = ResponseSchema(
	name="review",
	description="structured review findings",
	json_schema={
		"type": "object",
		"required": ["findings"],
		"properties": {
			"findings": {
				"type": "array",
				"items": {
					"type": "object",
					"required": ["severity", "file", "message"],
					"properties": {
						"severity": {"type": "string", "enum": [s.value for s in FindingSeverity]},
						"file": {"type": "string"},
						"message": {"type": "string"},
						"reproduction": {"type": "string", "description": "Failing command or stack trace"},
					},
				},
			},
		},
	},
)

_SCHEMAS: dict[InvocationMode, ResponseSchema] = {
	InvocationMode.PLAN: PLAN_SCHEMA,
	InvocationMode.EXECUTE: TASK_RESULT_SCHEMA,
	InvocationMode.DEBUG: TASK_RESULT_SCHEMA,
	InvocationMode.REVIEW: REVIEW_SCHEMA,
}


def get_schema(mode: InvocationMode) -> Optional[ResponseSchema]:
	"""Get the response schema for an invocation mode (None for clarify)."""
	return _SCHEMAS.get(mode)


def extract_json(response: str) -> Optional[str]:
	"""Pull a JSON object out of a reply, fenced or bare."""
	match = re.search(r"```json\s*(.*?)\s*```", response, re.DOTALL)
	if match:
		return match.group(1)
	match = re.search(r"\{[\s\S]*\}", response)
	if match:
		return match.group(0)
	return None


def parse_role_result(mode: InvocationMode, response: str) -> RoleResult:
	"""
	Turn a raw reply into a RoleResult.

	Clarify replies are free text: returned as a Completion so the
	coordinator can look for the completion sentinel, which it treats
	as questions when absent.
	"""
	if mode == InvocationMode.CLARIFY:
		text = response.strip()
		if not text:
			return Error(reason="empty reply")
		return Completion(summary=text)

	schema = _SCHEMAS[mode]
	json_str = extract_json(response)
	if json_str is None:
		logger.error(f"Could not find JSON in {mode.value} reply")
		return Error(reason=f"no JSON object in {mode.value} reply")

	valid, data, error = schema.validate(json_str)
	if not valid:
		logger.error(f"Invalid {schema.name} reply: {error}")
		return Error(reason=f"invalid {schema.name} reply: {error}")

	try:
		if mode == InvocationMode.PLAN:
			return ProposedPlan(items=[WorkItem(**item) for item in data["items"]])
		if mode == InvocationMode.REVIEW:
			return Findings(findings=[ReviewFinding(**f) for f in data["findings"]])
	except (ValidationError, TypeError) as e:
		logger.error(f"Invalid {schema.name} entry: {e}")
		return Error(reason=f"invalid {schema.name} entry: {e}")

	status = data["status"]
	if status == "escalate":
		return EscalationNeeded(reason=data["summary"], partial_output=data.get("partial_output", ""))
	if status == "failed":
		return Error(reason=data["summary"])
	return Completion(
		summary=data["summary"],
		files_changed=list(data.get("files_modified", [])),
		verified=bool(data.get("verified", mode != InvocationMode.DEBUG)),
	)
