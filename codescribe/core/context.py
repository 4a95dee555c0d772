"""Working-copy root detection and project-relative paths."""

from pathlib import Path
from typing import Optional

from codescribe.core.config import Config

DEFAULT_HISTORY_DIR = ".codescribe/history"


class ProjectContext:
    """Locates the repository a command runs against.

    Attributes:
        cwd: Directory the command was invoked from
        project_root: Nearest ancestor holding a .git entry, or cwd
    """

    def __init__(self, cwd: Optional[Path] = None):
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.project_root = self._find_project_root()

    def _find_project_root(self) -> Path:
        # .git is a file inside worktrees and submodules
        for candidate in (self.cwd, *self.cwd.parents):
            if (candidate / ".git").exists():
                return candidate
        return self.cwd

    @property
    def is_repository(self) -> bool:
        return (self.project_root / ".git").exists()

    @property
    def config_file(self) -> Optional[Path]:
        """Project configuration file in effect for this working copy."""
        return Config.find_project_file(self.cwd)

    def resolve_path(self, path: str) -> Path:
        """Resolve a configured path; relative paths hang off the project root."""
        resolved = Path(path).expanduser()
        if resolved.is_absolute():
            return resolved
        return (self.project_root / resolved).resolve()

    def history_dir(self, config: Config) -> Path:
        return self.resolve_path(config.get("history.directory", DEFAULT_HISTORY_DIR))
