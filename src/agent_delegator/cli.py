"""CLI for agent-delegator: run, plan, roles, and doctor commands."""

import argparse
import asyncio
import json
import platform
import shutil
import sys
from pathlib import Path

from importlib.metadata import version as pkg_version

from pydantic import ValidationError
from rich.console import Console

from .config import load_config
from .errors import ClarificationIncomplete, PlanningError, RunHalted
from .logging_config import setup_logging
from .plans.models import ExecutionPlan, ReviewFinding, WorkItem
from .roles import RoleRegistry

CORE_DEPS = ["pydantic", "rich", "platformdirs", "PyYAML"]


def _ask_user(questions: list[str]) -> str:
	"""Print clarifying questions and read one answer from stdin."""
	print()
	for q in questions:
		print(f"  ? {q}")
	return input("> ")


def _confirm_finding(finding: ReviewFinding) -> bool:
	print()
	print(f"  Blocker without reproduction: {finding.file}: {finding.message}")
	return input("  Accept and continue? [y/N] ").strip().lower() in ("y", "yes")


def cmd_run(args: argparse.Namespace) -> None:
	"""Drive a request through clarify, plan, execute, review and debug."""
	from .orchestrator.claude_invoker import ClaudeCLIInvoker
	from .orchestrator.coordinator import DelegationCoordinator
	from .visualizer.plan_progress import render_plan_progress, render_report_panel
	from .visualizer.report import render

	try:
		config = load_config()
	except ValueError as e:
		print(f"Invalid configuration: {e}")
		sys.exit(1)
	setup_logging(args.log_level or config.log_level, config.log_dir)
	console = Console()

	project_path = Path(args.project).resolve() if args.project else Path.cwd()
	registry = RoleRegistry.load(project_path, global_dir=config.agents_dir)
	invoker = ClaudeCLIInvoker(
		command=config.claude_command,
		project_path=str(project_path),
		completion_sentinel=config.completion_sentinel,
	)

	async def ask_user(questions: list[str]) -> str:
		return await asyncio.to_thread(_ask_user, questions)

	async def accept_finding(finding: ReviewFinding) -> bool:
		return await asyncio.to_thread(_confirm_finding, finding)

	async def on_plan(plan: ExecutionPlan) -> None:
		render_plan_progress(plan, console=console)

	coordinator = DelegationCoordinator(
		invoker,
		registry=registry,
		config=config,
		accept_finding=None if args.non_interactive else accept_finding,
		on_plan=on_plan,
	)

	try:
		state = asyncio.run(coordinator.run(args.request, ask_user=None if args.non_interactive else ask_user))
	except RunHalted as e:
		render_report_panel(e.report, console=console)
		sys.exit(1)
	except ClarificationIncomplete as e:
		print("Clarification needed:")
		for q in e.questions:
			print(f"  - {q}")
		sys.exit(2)

	render_report_panel(render(state), console=console)


def _load_items(path: Path) -> list[WorkItem]:
	with open(path) as f:
		data = json.load(f)
	if isinstance(data, dict):
		data = data.get("items", [])
	return [WorkItem(**item) for item in data]


def cmd_plan(args: argparse.Namespace) -> None:
	"""Arrange work items from a JSON file into phases."""
	from .orchestrator.planner import FileOwnershipPlanner
	from .visualizer.plan_progress import render_plan_progress
	from .visualizer.report import render_plan

	try:
		items = _load_items(Path(args.items))
	except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
		print(f"Could not read work items: {e}")
		sys.exit(1)

	try:
		plan = FileOwnershipPlanner().plan(items)
	except PlanningError as e:
		print(f"Planning failed: {e}")
		sys.exit(1)

	if args.tree:
		render_plan_progress(plan)
	else:
		print(render_plan(plan), end="")


def cmd_roles(args: argparse.Namespace) -> None:
	"""List the roles available to a run."""
	from .visualizer.plan_progress import render_roles

	config = load_config()
	project_path = Path(args.project).resolve() if args.project else Path.cwd()
	registry = RoleRegistry.load(project_path, global_dir=config.agents_dir)

	if args.json:
		print(json.dumps(registry.list_roles(), indent=2))
	else:
		render_roles(registry)


def _check_config_toml(config_dir: Path) -> tuple[str, str | None]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	import tomllib

	toml_path = config_dir / "config.toml"
	if not toml_path.exists():
		return "not found (optional)", None
	try:
		with open(toml_path, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		msg = f"config.toml parse error: {e}"
		return f"INVALID ({e})", msg


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("agent-delegator doctor")
	print(f"{'=' * 40}")

	issues: list[str] = []
	try:
		config = load_config()
	except (ValueError, OSError) as e:
		print(f"  Config:       FAILED ({e})")
		sys.exit(1)

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			dep_ver = pkg_version(dep)
			print(f"    {dep:22s} {dep_ver}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	toml_status, toml_issue = _check_config_toml(config.config_dir)
	print(f"    config.toml:         {toml_status}")
	if toml_issue:
		issues.append(toml_issue)
	agent_files = sorted(config.agents_dir.glob("*.md")) if config.agents_dir.is_dir() else []
	print(f"    agent files:         {len(agent_files)} in {config.agents_dir}")
	print()

	claude_path = shutil.which(config.claude_command)
	if claude_path:
		print(f"  Claude CLI:   {claude_path}")
	else:
		print(f"  Claude CLI:   NOT FOUND ({config.claude_command})")
		issues.append(f"'{config.claude_command}' is not on PATH")

	print()
	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def main(argv: list[str] | None = None) -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="agent-delegator",
		description="Delegate a request to specialised roles: clarify, plan, execute, review, debug",
	)
	subparsers = parser.add_subparsers(dest="command")

	# run
	run_parser = subparsers.add_parser("run", help="Run a request end to end")
	run_parser.add_argument("request", type=str, help="Free-text request")
	run_parser.add_argument("--project", type=str, default=None, help="Project directory (default: cwd)")
	run_parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level")
	run_parser.add_argument(
		"--non-interactive",
		action="store_true",
		help="Stop instead of prompting for clarification or blocker acceptance",
	)
	run_parser.set_defaults(func=cmd_run)

	# plan
	plan_parser = subparsers.add_parser("plan", help="Arrange work items from a JSON file into phases")
	plan_parser.add_argument("items", type=str, help="JSON file with a list of work items")
	plan_parser.add_argument("--tree", action="store_true", help="Show a tree instead of plain text")
	plan_parser.set_defaults(func=cmd_plan)

	# roles
	roles_parser = subparsers.add_parser("roles", help="List available roles")
	roles_parser.add_argument("--project", type=str, default=None, help="Project directory (default: cwd)")
	roles_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
	roles_parser.set_defaults(func=cmd_roles)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	args = parser.parse_args(argv)

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
