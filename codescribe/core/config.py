"""Layered configuration management for codescribe.

Values are resolved from, lowest precedence first: built-in defaults, the
user-global XDG file, the nearest project config file, in-memory overrides.
"""

import copy
import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAMES = (
    ".codescribe.json",
    "codescribe.config.json",
    ".codescribe.toml",
    "codescribe.config.toml",
    ".codescribe.yaml",
    "codescribe.config.yaml",
)

DEFAULT_CONFIG: dict = {
    "workflows": {
        "code-review": {
            "enabled": True,
            "createDraft": True,
            "autoAssignReviewers": False,
            "reviewers": [],
        },
        "issue-tracker": {
            "enabled": True,
            "autoTransition": True,
            "addComments": True,
            "trackTime": False,
            "trackEfficiency": False,
            "detectScopeChanges": True,
            "notifyOnScopeChange": True,
            "autoCreateSubTickets": False,
            "subTicketComplexityThreshold": 15,
            "subTicketFileCountThreshold": 8,
            "transitions": {},
            "timeStore": None,
        },
        "commit": {
            "enabled": True,
            "conventionalCommits": True,
        },
    },
    "ai": {
        "provider": "default",
        "model": "claude-haiku-4-5-20251001",
        "maxRetries": 3,
        "fallback": True,
    },
    "git": {
        "autoPush": True,
        "defaultBranch": "main",
        "conventionalCommits": True,
    },
    "github": {},
    "linear": {},
    "logging": {
        "level": "info",
        "file": False,
        "console": True,
    },
    "history": {
        "enabled": True,
        "maxEntries": 100,
        "directory": ".codescribe/history",
    },
    "security": {
        "auditCommand": ["npm", "audit", "--json"],
        "auditTimeout": 60,
    },
}

# Workflow name -> credential accessor it needs to run
_WORKFLOW_CREDENTIALS = {
    "code-review": ("github_token", "GITHUB_TOKEN"),
    "issue-tracker": ("linear_api_key", "LINEAR_API_KEY"),
}


class ConfigurationError(Exception):
    """Raised when a configuration file or credential is missing or invalid."""

    pass


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base.

    Nested dicts merge key by key; lists and scalars replace.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class Config:
    """Manages codescribe configuration.

    Attributes:
        config_dir: Path to ~/.config/codescribe/
        config_file: Path to ~/.config/codescribe/config.toml
        project_file: Path to the project config file in use, if any
    """

    def __init__(
        self,
        cwd: Optional[Path] = None,
        overrides: Optional[dict] = None,
        load_global: bool = True,
    ):
        """Initialize config by loading every layer.

        Args:
            cwd: Directory to start the project file search from
            overrides: In-memory values applied on top of all files
            load_global: Whether to read the user-global XDG file

        Raises:
            ConfigurationError: If a config file exists but cannot be parsed
        """
        xdg_config = os.getenv("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
        self.config_dir = Path(xdg_config) / "codescribe"
        self.config_file = self.config_dir / "config.toml"
        self.cwd = cwd or Path.cwd()

        self._config = copy.deepcopy(DEFAULT_CONFIG)
        if load_global and self.config_file.exists():
            self._config = deep_merge(self._config, self._load_file(self.config_file))

        self.project_file = self.find_project_file(self.cwd)
        if self.project_file is not None:
            logger.debug(f"Loading project config: {self.project_file}")
            self._config = deep_merge(self._config, self._load_file(self.project_file))

        if overrides:
            self._config = deep_merge(self._config, overrides)

    @staticmethod
    def find_project_file(start: Path) -> Optional[Path]:
        """Walk up from start and return the first project config file found."""
        current = Path(start).resolve()
        while True:
            for name in PROJECT_CONFIG_NAMES:
                candidate = current / name
                if candidate.is_file():
                    return candidate
            if current == current.parent:
                return None
            current = current.parent

    @staticmethod
    def _load_file(path: Path) -> dict:
        """Load a JSON, TOML or YAML config file into a dict."""
        try:
            if path.suffix == ".json":
                data = json.loads(path.read_text())
            elif path.suffix == ".toml":
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            else:
                data = yaml.safe_load(path.read_text())
        except Exception as e:
            raise ConfigurationError(f"Failed to load config {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Failed to load config {path}: top level must be a mapping"
            )
        return data

    def exists(self) -> bool:
        """Check if the user-global config file exists."""
        return self.config_file.exists()

    def get(self, key: str, default=None):
        """Get configuration value by key (supports dot notation).

        Args:
            key: Configuration key (e.g., 'workflows.commit.enabled')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a value by dotted key, creating intermediate tables."""
        keys = key.split(".")
        target = self._config
        for k in keys[:-1]:
            if not isinstance(target.get(k), dict):
                target[k] = {}
            target = target[k]
        target[keys[-1]] = value

    def update(self, values: dict) -> None:
        """Merge a mapping into the in-memory configuration."""
        self._config = deep_merge(self._config, values)

    def all(self) -> dict:
        """Return a deep copy of the resolved configuration."""
        return copy.deepcopy(self._config)

    def workflow(self, name: str) -> dict:
        """Return the settings table for a workflow (empty if absent)."""
        return self.get(f"workflows.{name}", {}) or {}

    @property
    def github_token(self) -> Optional[str]:
        return os.getenv("GITHUB_TOKEN") or self.get("github.token")

    @property
    def linear_api_key(self) -> Optional[str]:
        return os.getenv("LINEAR_API_KEY") or self.get("linear.apiKey")

    @property
    def ai_api_key(self) -> Optional[str]:
        return os.getenv("ANTHROPIC_API_KEY") or self.get("ai.apiKey")

    def credentials(self) -> list[str]:
        """Return every credential value currently resolvable."""
        return [
            value
            for value in (self.github_token, self.linear_api_key, self.ai_api_key)
            if value
        ]

    def validate(self) -> list[str]:
        """Return warnings for enabled workflows that lack credentials."""
        warnings = []
        for workflow, (attribute, env_var) in _WORKFLOW_CREDENTIALS.items():
            if self.get(f"workflows.{workflow}.enabled", True) and not getattr(
                self, attribute
            ):
                warnings.append(
                    f"{workflow} workflow is enabled but {env_var} is not set"
                )
        if self.get("ai.provider") != "none" and not self.ai_api_key:
            warnings.append("ANTHROPIC_API_KEY is not set; AI content will use fallbacks")
        return warnings

    @staticmethod
    def get_default_config() -> str:
        """Return default project configuration TOML template."""
        return """# CodeScribe Configuration
# Location: <project root>/.codescribe.toml
# Credentials are read from GITHUB_TOKEN, LINEAR_API_KEY and ANTHROPIC_API_KEY

[git]
# Integration branch the change set is compared against
defaultBranch = "main"

# Push unpushed commits before reading the diff
autoPush = true

conventionalCommits = true

[workflows.code-review]
enabled = true
createDraft = true
autoAssignReviewers = false
# reviewers = ["octocat"]

[workflows.issue-tracker]
enabled = true
autoTransition = true
addComments = true
trackTime = false
# Compare estimates against tracked time (estimate units assumed to be hours)
trackEfficiency = false
detectScopeChanges = true
notifyOnScopeChange = true
autoCreateSubTickets = false
subTicketComplexityThreshold = 15
subTicketFileCountThreshold = 8
# Persist time tracking between runs (omit to keep it in memory)
# timeStore = ".codescribe/time-tracking.json"

# Per-project transition overrides, merged over the defaults
# [workflows.issue-tracker.transitions."In Progress"]
# onPRCreated = "Code Review"

[workflows.commit]
enabled = true
conventionalCommits = true

[ai]
# Set provider = "none" to disable AI generation
provider = "default"
model = "claude-haiku-4-5-20251001"
maxRetries = 3
fallback = true

[logging]
level = "info"
file = false
console = true

[history]
enabled = true
maxEntries = 100
directory = ".codescribe/history"

[security]
auditCommand = ["npm", "audit", "--json"]
auditTimeout = 60
"""

    def create_default(self, path: Path, force: bool = False) -> Path:
        """Create a default project configuration file.

        Args:
            path: Where to write the file
            force: Overwrite an existing file

        Returns:
            Path to created config file

        Raises:
            FileExistsError: If config already exists and force is False
        """
        if path.exists() and not force:
            raise FileExistsError(
                f"Configuration already exists: {path}\n"
                "Remove it first or use --force to overwrite"
            )

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.get_default_config())

        return path

    @staticmethod
    def state_dir() -> Path:
        """Return the XDG state directory for codescribe."""
        xdg_state = os.getenv("XDG_STATE_HOME", os.path.expanduser("~/.local/state"))
        return Path(xdg_state) / "codescribe"
