"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import platformdirs

from .errors import ConfigurationError

APP_NAME = "task-orchestrator"
APP_AUTHOR = "task-orchestrator"
ENV_PREFIX = "TASK_ORCHESTRATOR_"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	artifacts_db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Collaborator wiring
	tasks_dir: Path = field(default_factory=lambda: Path.cwd() / "tasks")
	project_path: Path = field(default_factory=Path.cwd)
	implementer_command: str = ""
	test_command: str = "pytest -q"

	# Orchestration policy
	max_attempts: int = 3
	top_k: int = 5
	min_score: float = 0.2
	step_timeout: Optional[float] = None
	run_timeout: Optional[float] = 600.0
	max_clarifications: int = 3
	checkpoint: bool = True

	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.artifacts_db_path = self.data_dir / "artifacts.db"
		self.log_dir = self.data_dir / "logs"

	def validate(self) -> None:
		"""Reject orchestration policy values no run can honor."""
		if self.max_attempts < 1:
			raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
		if self.top_k < 1:
			raise ConfigurationError(f"top_k must be at least 1, got {self.top_k}")
		if self.max_clarifications < 0:
			raise ConfigurationError(f"max_clarifications cannot be negative, got {self.max_clarifications}")

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


PATH_FIELDS = {"config_dir", "data_dir", "tasks_dir", "project_path"}
INT_FIELDS = {"max_attempts", "top_k", "max_clarifications"}
FLOAT_FIELDS = {"min_score", "step_timeout", "run_timeout"}
BOOL_FIELDS = {"checkpoint"}
STR_FIELDS = {"implementer_command", "test_command", "log_level"}


def _coerce(key: str, val):
	"""Convert a raw env/toml value to the field's type."""
	if key in PATH_FIELDS:
		return Path(os.path.expanduser(str(val)))
	if key in INT_FIELDS:
		return int(val)
	if key in FLOAT_FIELDS:
		if val in ("", "none", "None", 0, "0"):
			return None
		return float(val)
	if key in BOOL_FIELDS:
		if isinstance(val, bool):
			return val
		return str(val).strip().lower() in ("1", "true", "yes", "on")
	return str(val)


def _apply_env_overrides(config: Config) -> Config:
	"""Apply TASK_ORCHESTRATOR_* environment variable overrides."""
	for attr in PATH_FIELDS | INT_FIELDS | FLOAT_FIELDS | BOOL_FIELDS | STR_FIELDS:
		val = os.getenv(ENV_PREFIX + attr.upper())
		if val:
			setattr(config, attr, _coerce(attr, val))
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
		if hasattr(config, key) and key not in ("artifacts_db_path", "log_dir"):
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# config_dir itself may come from the environment
	env_config_dir = os.getenv(ENV_PREFIX + "CONFIG_DIR")
	if env_config_dir:
		config.config_dir = Path(env_config_dir)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
