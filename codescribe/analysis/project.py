"""Project structure analysis: file census, configuration probe, framework detection."""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from codescribe.analysis.code import is_config_path, is_test_path
from codescribe.analysis.models import ProjectInfo

logger = logging.getLogger(__name__)

MAX_DEPTH = 10

SKIPPED_DIRECTORIES = {
    "node_modules",
    ".git",
    "dist",
    "build",
    "coverage",
    ".next",
    "vendor",
    "__pycache__",
    ".venv",
    "venv",
    ".cache",
    "out",
    "target",
}

DOCUMENTATION_EXTENSIONS = {".md", ".mdx", ".rst", ".txt", ".adoc"}
CI_PATHS = (".github/workflows/", ".circleci/", ".gitlab-ci.yml", "jenkinsfile", ".travis.yml", "azure-pipelines.yml")

# Category -> file names probed at the project root
CONFIGURATION_PROBES = {
    "package": ["package.json"],
    "typescript": ["tsconfig.json"],
    "javascript": ["jsconfig.json"],
    "eslint": [".eslintrc", ".eslintrc.js", ".eslintrc.cjs", ".eslintrc.json", ".eslintrc.yml", "eslint.config.js", "eslint.config.mjs"],
    "prettier": [".prettierrc", ".prettierrc.js", ".prettierrc.json", "prettier.config.js"],
    "babel": [".babelrc", "babel.config.js", "babel.config.json"],
    "jest": ["jest.config.js", "jest.config.ts", "jest.config.json"],
    "vitest": ["vitest.config.js", "vitest.config.ts"],
    "webpack": ["webpack.config.js"],
    "vite": ["vite.config.js", "vite.config.ts"],
    "rollup": ["rollup.config.js", "rollup.config.mjs"],
    "docker": ["Dockerfile", "docker-compose.yml", "docker-compose.yaml"],
    "python": ["pyproject.toml", "setup.py", "setup.cfg", "requirements.txt"],
    "editorconfig": [".editorconfig"],
}

# Framework -> signals; package names score 3, files score 2
FRAMEWORK_SIGNATURES = {
    "next": {"packages": ["next"], "files": ["next.config.js", "next.config.mjs"]},
    "nuxt": {"packages": ["nuxt"], "files": ["nuxt.config.js", "nuxt.config.ts"]},
    "react": {"packages": ["react", "react-dom"], "files": []},
    "vue": {"packages": ["vue"], "files": ["vue.config.js"]},
    "angular": {"packages": ["@angular/core"], "files": ["angular.json"]},
    "svelte": {"packages": ["svelte"], "files": ["svelte.config.js"]},
    "express": {"packages": ["express"], "files": []},
    "nestjs": {"packages": ["@nestjs/core"], "files": ["nest-cli.json"]},
    "electron": {"packages": ["electron"], "files": []},
    "django": {"packages": [], "files": ["manage.py"]},
}

# Framework -> project type
PROJECT_TYPES = {
    "next": "web-application",
    "nuxt": "web-application",
    "react": "frontend",
    "vue": "frontend",
    "angular": "frontend",
    "svelte": "frontend",
    "express": "backend",
    "nestjs": "backend",
    "electron": "desktop",
    "django": "backend",
}

# Lockfile -> build system, first hit wins
BUILD_SYSTEMS = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("package-lock.json", "npm"),
    ("package.json", "npm"),
    ("pyproject.toml", "python"),
    ("Makefile", "make"),
]

COVERAGE_SUMMARY = Path("coverage") / "coverage-summary.json"


def categorize(path: str) -> str:
    """Assign a relative path to test, documentation, configuration, ci or source."""
    lowered = path.lower()
    if is_test_path(path):
        return "test"
    if any(lowered.startswith(ci) or lowered == ci.rstrip("/") for ci in CI_PATHS):
        return "ci"
    if PurePosixPath(lowered).suffix in DOCUMENTATION_EXTENSIONS or lowered.startswith("docs/"):
        return "documentation"
    if is_config_path(path):
        return "configuration"
    return "source"


class ProjectAnalyzer:
    """Walks the working copy and summarizes the project."""

    def __init__(self, root: Path, max_depth: int = MAX_DEPTH):
        self.root = Path(root)
        self.max_depth = max_depth

    def analyze(self) -> ProjectInfo:
        files = list(self.walk())
        structure = self._structure(files)
        configuration = self.probe_configuration()
        manifest = self._read_manifest()
        framework, confidence = self.detect_framework(manifest)

        return ProjectInfo(
            structure=structure,
            configuration=configuration,
            project_type=self._project_type(framework, manifest, configuration),
            framework=framework,
            test_coverage=self.test_coverage(structure),
            build_system=self.build_system(),
            metadata={
                "name": manifest.get("name") or self.root.name,
                "version": manifest.get("version"),
                "description": manifest.get("description"),
                "scripts": sorted((manifest.get("scripts") or {}).keys()),
                "framework_confidence": confidence,
            },
        )

    def walk(self):
        """Yield relative POSIX paths of files within the depth bound."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            relative = Path(dirpath).relative_to(self.root)
            depth = len(relative.parts)
            dirnames[:] = sorted(
                d for d in dirnames if d not in SKIPPED_DIRECTORIES and depth < self.max_depth
            )
            for name in sorted(filenames):
                yield (relative / name).as_posix()

    @staticmethod
    def _structure(files: list[str]) -> dict[str, Any]:
        extensions = Counter(PurePosixPath(f).suffix.lower() or "<none>" for f in files)
        categories = Counter(categorize(f) for f in files)
        directories = sorted({PurePosixPath(f).parts[0] for f in files if len(PurePosixPath(f).parts) > 1})
        return {
            "total_files": len(files),
            "extensions": dict(extensions.most_common()),
            "categories": {
                name: categories.get(name, 0)
                for name in ("source", "test", "documentation", "configuration", "ci")
            },
            "top_level_directories": directories,
        }

    def probe_configuration(self) -> dict[str, list[str]]:
        found = {}
        for category, names in CONFIGURATION_PROBES.items():
            present = [name for name in names if (self.root / name).is_file()]
            if present:
                found[category] = present
        return found

    def _read_manifest(self) -> dict[str, Any]:
        manifest = self.root / "package.json"
        if not manifest.is_file():
            return {}
        try:
            data = json.loads(manifest.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Could not parse package.json: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def detect_framework(self, manifest: dict[str, Any]) -> tuple[Optional[str], float]:
        """Score each framework signature; the highest confidence wins."""
        packages = set((manifest.get("dependencies") or {}).keys())
        packages |= set((manifest.get("devDependencies") or {}).keys())

        best, best_key = None, (0.0, 0)
        for framework, signature in FRAMEWORK_SIGNATURES.items():
            score = 3 * sum(1 for p in signature["packages"] if p in packages)
            score += 2 * sum(1 for f in signature["files"] if (self.root / f).exists())
            if not score:
                continue
            possible = 3 * len(signature["packages"]) + 2 * len(signature["files"])
            # Ties on confidence go to the signature with more evidence
            key = (round(score / possible, 2), score)
            if key > best_key:
                best, best_key = framework, key

        return best, best_key[0]

    @staticmethod
    def _project_type(framework: Optional[str], manifest: dict, configuration: dict) -> str:
        if framework:
            return PROJECT_TYPES.get(framework, "application")
        if manifest.get("bin"):
            return "cli"
        if manifest:
            return "library" if manifest.get("main") or manifest.get("exports") else "node"
        if "python" in configuration:
            return "python"
        return "unknown"

    def build_system(self) -> Optional[str]:
        for marker, name in BUILD_SYSTEMS:
            if (self.root / marker).exists():
                return name
        return None

    def test_coverage(self, structure: dict[str, Any]) -> dict[str, Any]:
        coverage: dict[str, Any] = {
            "test_files": structure["categories"]["test"],
            "source_files": structure["categories"]["source"],
            "summary": None,
        }
        summary_path = self.root / COVERAGE_SUMMARY
        if summary_path.is_file():
            try:
                total = json.loads(summary_path.read_text()).get("total", {})
                coverage["summary"] = {
                    metric: total[metric].get("pct")
                    for metric in ("lines", "statements", "functions", "branches")
                    if isinstance(total.get(metric), dict)
                }
            except (json.JSONDecodeError, AttributeError) as e:
                logger.warning(f"Could not read coverage summary: {e}")
        return coverage
