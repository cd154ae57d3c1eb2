"""Visualizer package - Plain-text reports and Rich terminal views."""

from .plan_progress import build_plan_tree, render_plan_progress, render_report_panel, render_roles
from .report import render, render_plan

__all__ = [
	"build_plan_tree",
	"render",
	"render_plan",
	"render_plan_progress",
	"render_report_panel",
	"render_roles",
]
