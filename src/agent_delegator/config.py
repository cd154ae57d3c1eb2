"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "agent-delegator"
APP_AUTHOR = "agent-delegator"

ENV_PREFIX = "AGENT_DELEGATOR_"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	agents_dir: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Invocation bounds
	invocation_timeout: float = 900.0
	max_retries: int = 1
	max_escalation_depth: int = 2
	max_concurrency: int = 4
	max_debug_cycles: int = 3
	max_replans: int = 2

	# Clarify -> plan gate
	completion_sentinel: str = "CLARIFICATION_COMPLETE"

	# External capability
	claude_command: str = "claude"
	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.agents_dir = self.config_dir / "agents"
		self.log_dir = self.data_dir / "logs"
		self.validate()

	def validate(self) -> None:
		"""Raise ValueError if a bound is out of range."""
		if self.invocation_timeout <= 0:
			raise ValueError(f"invocation_timeout must be positive, got {self.invocation_timeout}")
		if self.max_concurrency < 1:
			raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
		for name in ("max_retries", "max_escalation_depth", "max_debug_cycles", "max_replans"):
			if getattr(self, name) < 0:
				raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")
		if not self.completion_sentinel.strip():
			raise ValueError("completion_sentinel must not be empty")

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


PATH_FIELDS = {"config_dir", "data_dir"}

# Scalar fields that may be set from the environment, with their parsers
SCALAR_FIELDS = {
	"invocation_timeout": float,
	"max_retries": int,
	"max_escalation_depth": int,
	"max_concurrency": int,
	"max_debug_cycles": int,
	"max_replans": int,
	"completion_sentinel": str,
	"claude_command": str,
	"log_level": str,
}


def _apply_env_overrides(config: Config) -> Config:
	"""Apply AGENT_DELEGATOR_* environment variable overrides."""
	for attr in PATH_FIELDS:
		val = os.getenv(f"{ENV_PREFIX}{attr.upper()}")
		if val:
			setattr(config, attr, Path(val))

	for attr, parse in SCALAR_FIELDS.items():
		val = os.getenv(f"{ENV_PREFIX}{attr.upper()}")
		if val:
			try:
				setattr(config, attr, parse(val))
			except ValueError as e:
				raise ValueError(f"Invalid value for {ENV_PREFIX}{attr.upper()}: {val!r}") from e

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if key in PATH_FIELDS:
			setattr(config, key, Path(os.path.expanduser(val)))
		elif key in SCALAR_FIELDS:
			setattr(config, key, SCALAR_FIELDS[key](val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config
