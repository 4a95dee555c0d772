"""Shared fixtures for building Context snapshots and git repositories."""

import subprocess
from pathlib import Path

import pytest

from codescribe.analysis.code import classify_file
from codescribe.analysis.models import (
    CodeContext,
    ComplexityReport,
    Context,
    DependencyDelta,
    FileStatus,
    GitContext,
    ProjectInfo,
    SecurityReport,
    TicketContext,
)
from codescribe.core.config import Config
from codescribe.vcs.git_operations import Commit

SAMPLE_DIFF = """diff --git a/src/login.js b/src/login.js
index 1111111..2222222 100644
--- a/src/login.js
+++ b/src/login.js
@@ -1,3 +1,4 @@
+export function login() {}
"""


def build_context(
    branch="feature/ABC-12-add-login",
    files=None,
    commits=None,
    remote_url="git@github.com:acme/webapp.git",
    diff=SAMPLE_DIFF,
    complexity=None,
    security=None,
    dependencies=None,
    ticket_id="ABC-12",
    **git_fields,
):
    """Build a Context without touching git or the filesystem."""
    if files is None:
        files = [classify_file("src/login.js", FileStatus.MODIFIED, 40, 5)]
    if commits is None:
        commits = [Commit(hash="a" * 40, message="feat: ABC-12 add login form")]
    git = GitContext(
        branch=branch,
        remote_url=remote_url,
        diff=diff,
        diff_stats=" src/login.js | 45 +++++++++++++++++++++++++++++++++++++++-----",
        commits=commits,
        **git_fields,
    )
    code = CodeContext(
        has_changes=bool(files),
        changed_files=files,
        complexity=complexity or ComplexityReport(),
        security=security or SecurityReport(),
        dependencies=dependencies or DependencyDelta(),
    )
    return Context(git=git, code=code, project=ProjectInfo(), linear=TicketContext(ticket_id))


@pytest.fixture
def make_context():
    """Factory fixture returning build_context."""
    return build_context


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Config with no global file, no project file and no credentials."""
    for var in ("GITHUB_TOKEN", "LINEAR_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))

    def factory(overrides=None):
        return Config(cwd=tmp_path, overrides=overrides, load_global=False)

    return factory


def _git(args, cwd):
    return subprocess.run(
        ["git"] + args,
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )


@pytest.fixture
def git_repo(tmp_path):
    """Create a working repository cloned from a bare origin with a main branch."""
    origin = tmp_path / "origin.git"
    _git(["init", "--bare", "-b", "main", str(origin)], cwd=tmp_path)

    repo_path = tmp_path / "work"
    repo_path.mkdir()
    _git(["init", "-b", "main"], cwd=repo_path)
    _git(["config", "user.name", "Test User"], cwd=repo_path)
    _git(["config", "user.email", "test@example.com"], cwd=repo_path)
    _git(["remote", "add", "origin", str(origin)], cwd=repo_path)

    (repo_path / "README.md").write_text("# Test Repository\n")
    (repo_path / "src").mkdir()
    (repo_path / "src" / "app.js").write_text("export const answer = 42;\n")
    _git(["add", "."], cwd=repo_path)
    _git(["commit", "-m", "chore: initial commit"], cwd=repo_path)
    _git(["push", "-u", "origin", "main"], cwd=repo_path)

    return {
        "path": repo_path,
        "origin": origin,
        "git": lambda *args: _git(list(args), cwd=repo_path),
    }
