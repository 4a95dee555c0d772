"""Changed-file classification and ECMAScript complexity analysis."""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any, Iterator

import esprima

from codescribe.analysis.models import (
    ChangedFile,
    ComplexityLevel,
    ComplexityReport,
    FileComplexity,
    FileStatus,
)

logger = logging.getLogger(__name__)

JS_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

TEST_FILE_PATTERN = re.compile(r"\.(test|spec)\.(js|jsx|ts|tsx|mjs)$")
TEST_SEGMENTS = {"__tests__", "test", "tests"}

CONFIG_FILENAMES = {
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "tsconfig.json",
    "jsconfig.json",
    "dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    "makefile",
    "pyproject.toml",
    "setup.cfg",
    ".gitignore",
    ".npmrc",
    ".nvmrc",
    ".editorconfig",
    ".env.example",
}
CONFIG_EXTENSIONS = {".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf"}

_STATUS_LETTERS = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "T": FileStatus.MODIFIED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.COPIED,
    "U": FileStatus.UNMERGED,
}

FUNCTION_NODES = {"FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression"}
CLASS_NODES = {"ClassDeclaration", "ClassExpression"}
CONDITIONAL_NODES = {"IfStatement", "ConditionalExpression", "SwitchCase"}
LOOP_NODES = {
    "ForStatement",
    "ForInStatement",
    "ForOfStatement",
    "WhileStatement",
    "DoWhileStatement",
}
NESTING_NODES = FUNCTION_NODES | CLASS_NODES | CONDITIONAL_NODES | LOOP_NODES

# Per-file thresholds that produce an issue entry
DEEP_NESTING_DEPTH = 5
HIGH_FILE_SCORE = 20


def is_test_path(path: str) -> bool:
    if TEST_FILE_PATTERN.search(path):
        return True
    parts = PurePosixPath(path).parts[:-1]
    if any(part in TEST_SEGMENTS for part in parts):
        return True
    name = PurePosixPath(path).name
    return name.startswith("test_") and name.endswith(".py")


def is_config_path(path: str) -> bool:
    name = PurePosixPath(path).name.lower()
    if name in CONFIG_FILENAMES:
        return True
    if ".config." in name or (name.startswith(".") and name.endswith("rc")):
        return True
    if name.startswith(".") and PurePosixPath(name).suffix in {".js", ".cjs", ".json"}:
        return True
    return PurePosixPath(name).suffix in CONFIG_EXTENSIONS


def classify_file(path: str, status: FileStatus, additions: int = 0, deletions: int = 0) -> ChangedFile:
    extension = PurePosixPath(path).suffix.lower()
    return ChangedFile(
        path=path,
        status=status,
        extension=extension,
        is_javascript=extension in JS_EXTENSIONS,
        is_config=is_config_path(path),
        is_test=is_test_path(path),
        additions=additions,
        deletions=deletions,
    )


def parse_name_status(lines: list[str], numstat: dict[str, tuple[int, int]] | None = None) -> list[ChangedFile]:
    """Build ChangedFile entries from `git diff --name-status` lines.

    Renames and copies are reported under their new path.
    """
    numstat = numstat or {}
    files = []
    for line in lines:
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue
        status = _STATUS_LETTERS.get(parts[0][0].upper())
        if status is None:
            logger.debug(f"Ignoring unknown diff status: {line}")
            continue
        path = parts[-1]
        additions, deletions = numstat.get(path, (0, 0))
        files.append(classify_file(path, status, additions, deletions))
    return files


def complexity_level(average_score: float) -> ComplexityLevel:
    if average_score <= 5:
        return ComplexityLevel.LOW
    if average_score <= 10:
        return ComplexityLevel.MEDIUM
    if average_score <= 20:
        return ComplexityLevel.HIGH
    return ComplexityLevel.VERY_HIGH


def _children(node: dict) -> Iterator[dict]:
    for key, value in node.items():
        if key in ("loc", "range"):
            continue
        if isinstance(value, dict) and "type" in value:
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict) and "type" in item:
                    yield item


def _name_of(node: Any) -> str | None:
    if isinstance(node, dict):
        if node.get("type") == "Identifier":
            return node.get("name")
        if node.get("type") == "Literal":
            return str(node.get("value"))
    return None


def _param_names(node: dict) -> list[str]:
    names = []
    for param in node.get("params") or []:
        name = _name_of(param)
        if name is None and param.get("type") == "AssignmentPattern":
            name = _name_of(param.get("left"))
        if name is None and param.get("type") == "RestElement":
            inner = _name_of(param.get("argument"))
            name = f"...{inner}" if inner else None
        names.append(name or "<pattern>")
    return names


class SourceWalker:
    """Walks one parsed module, counting constructs and collecting signatures."""

    def __init__(self, path: str):
        self.report = FileComplexity(path=path)
        self.signatures: list[str] = []
        self.classes: list[str] = []
        self.imports: list[str] = []
        self.exports: list[str] = []

    def walk(self, node: dict, depth: int = 0) -> None:
        node_type = node.get("type")
        if node_type in NESTING_NODES:
            depth += 1
            self.report.max_depth = max(self.report.max_depth, depth)

        if node_type in FUNCTION_NODES:
            self.report.functions += 1
            name = _name_of(node.get("id"))
            if name:
                self.signatures.append(f"{name}({', '.join(_param_names(node))})")
        elif node_type in CLASS_NODES:
            self.report.classes += 1
            name = _name_of(node.get("id")) or "<anonymous>"
            parent = _name_of(node.get("superClass"))
            self.classes.append(f"{name} extends {parent}" if parent else name)
        elif node_type == "SwitchCase":
            if node.get("test") is not None:
                self.report.conditionals += 1
        elif node_type in CONDITIONAL_NODES:
            self.report.conditionals += 1
        elif node_type in LOOP_NODES:
            self.report.loops += 1
        elif node_type == "ImportDeclaration":
            self.imports.append(_name_of(node.get("source")) or "")
        elif node_type == "CallExpression":
            callee = node.get("callee") or {}
            arguments = node.get("arguments") or []
            if _name_of(callee) == "require" and arguments:
                source = _name_of(arguments[0])
                if source:
                    self.imports.append(source)
        elif node_type == "ExportDefaultDeclaration":
            self.exports.append("default")
        elif node_type == "ExportNamedDeclaration":
            self.exports.extend(self._exported_names(node))

        for child in _children(node):
            self.walk(child, depth)

    @staticmethod
    def _exported_names(node: dict) -> list[str]:
        declaration = node.get("declaration")
        if declaration:
            name = _name_of(declaration.get("id"))
            if name:
                return [name]
            return [
                _name_of(item.get("id")) or "<pattern>"
                for item in declaration.get("declarations") or []
            ]
        return [
            _name_of(spec.get("exported")) or "<pattern>"
            for spec in node.get("specifiers") or []
        ]

    def finish(self) -> FileComplexity:
        report = self.report
        report.score = (
            report.functions
            + report.conditionals
            + report.classes * 2
            + report.loops * 2
            + report.max_depth // 5
        )
        if report.max_depth >= DEEP_NESTING_DEPTH:
            report.issues.append(
                {"type": "deep_nesting", "message": f"Nesting depth {report.max_depth}"}
            )
        if report.score > HIGH_FILE_SCORE:
            report.issues.append(
                {"type": "high_complexity", "message": f"Complexity score {report.score}"}
            )
        return report


def analyze_source(path: str, content: str) -> tuple[FileComplexity, dict[str, list[str]]]:
    """Parse one source file and return its complexity and AST summary.

    Files that fail to parse are estimated at one point per 20 lines.
    """
    lines = content.count("\n") + 1 if content else 0
    try:
        tree = esprima.parseModule(content, {"jsx": True, "tolerant": True})
    except Exception as e:
        logger.debug(f"Could not parse {path}: {e}")
        report = FileComplexity(path=path, score=lines // 20, lines=lines)
        report.issues.append({"type": "parse_error", "message": str(e)})
        return report, {}

    walker = SourceWalker(path)
    walker.walk(tree.toDict())
    report = walker.finish()
    report.lines = lines
    summary = {
        "functions": walker.signatures,
        "classes": walker.classes,
        "imports": walker.imports,
        "exports": walker.exports,
    }
    return report, summary


class CodeAnalyzer:
    """Runs the complexity pass over the working-copy versions of changed files."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def read(self, path: str) -> str | None:
        target = self.root / path
        try:
            return target.read_text(encoding="utf-8", errors="replace")
        except (FileNotFoundError, IsADirectoryError):
            return None

    def analyze(self, files: list[ChangedFile]) -> tuple[ComplexityReport, dict[str, Any]]:
        reports = []
        ast: dict[str, Any] = {}
        for changed in files:
            if changed.status == FileStatus.DELETED or not changed.is_javascript:
                continue
            content = self.read(changed.path)
            if content is None:
                continue
            report, summary = analyze_source(changed.path, content)
            reports.append(report)
            if summary:
                ast[changed.path] = summary

        total = sum(r.score for r in reports)
        average = round(total / len(reports), 2) if reports else 0.0
        return (
            ComplexityReport(
                total_score=total,
                average_score=average,
                level=complexity_level(average),
                files=reports,
            ),
            ast,
        )


def change_metrics(files: list[ChangedFile]) -> dict[str, int]:
    return {
        "files_changed": len(files),
        "additions": sum(f.additions for f in files),
        "deletions": sum(f.deletions for f in files),
        "javascript_files": sum(1 for f in files if f.is_javascript),
        "test_files": sum(1 for f in files if f.is_test),
        "config_files": sum(1 for f in files if f.is_config),
        "source_files": sum(1 for f in files if not f.is_test and not f.is_config),
    }
