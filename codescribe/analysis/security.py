"""Security heuristics: textual pattern scan plus the ecosystem audit tool."""

from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from codescribe.analysis.code import JS_EXTENSIONS
from codescribe.analysis.models import (
    ChangedFile,
    FileStatus,
    RiskLevel,
    SecurityReport,
    Severity,
    Vulnerability,
)

logger = logging.getLogger(__name__)

PATTERNS_FILE = Path(__file__).parent / "data" / "security_patterns.yaml"

SCANNED_EXTENSIONS = JS_EXTENSIONS | {".vue", ".svelte", ".html", ".py", ".rb", ".php"}

_AUDIT_SEVERITY = {
    "critical": Severity.HIGH,
    "high": Severity.HIGH,
    "moderate": Severity.MEDIUM,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
    "info": Severity.LOW,
}


@dataclass(frozen=True)
class SecurityPattern:
    regex: re.Pattern
    type: str
    severity: Severity
    message: str


def load_patterns(path: Path = PATTERNS_FILE) -> list[SecurityPattern]:
    """Load the pattern table from its YAML data file."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    patterns = []
    for entry in data.get("patterns", []):
        flags = re.IGNORECASE if entry.get("ignore_case") else 0
        patterns.append(
            SecurityPattern(
                regex=re.compile(entry["pattern"], flags),
                type=entry["type"],
                severity=Severity(entry["severity"]),
                message=entry.get("message", entry["type"]),
            )
        )
    return patterns


def risk_level(vulnerabilities: list[Vulnerability]) -> RiskLevel:
    """Any high finding is high risk; more than two medium is medium."""
    if any(v.severity == Severity.HIGH for v in vulnerabilities):
        return RiskLevel.HIGH
    if sum(1 for v in vulnerabilities if v.severity == Severity.MEDIUM) > 2:
        return RiskLevel.MEDIUM
    if vulnerabilities:
        return RiskLevel.LOW
    return RiskLevel.NONE


def scan_text(path: str, content: str, patterns: list[SecurityPattern]) -> list[Vulnerability]:
    """Apply every pattern to a file's content.

    Line numbers are one plus the count of newlines before the match.
    """
    findings = []
    for pattern in patterns:
        for match in pattern.regex.finditer(content):
            line = content.count("\n", 0, match.start()) + 1
            line_start = content.rfind("\n", 0, match.start()) + 1
            line_end = content.find("\n", match.start())
            snippet = content[line_start : line_end if line_end != -1 else None]
            findings.append(
                Vulnerability(
                    type=pattern.type,
                    severity=pattern.severity,
                    message=pattern.message,
                    file=path,
                    line=line,
                    code=snippet.strip()[:120],
                )
            )
    return findings


def parse_audit_output(data: dict[str, Any]) -> list[Vulnerability]:
    """Convert npm audit JSON (v7+ "vulnerabilities" or v6 "advisories")."""
    findings = []

    for name, entry in (data.get("vulnerabilities") or {}).items():
        via = []
        for item in entry.get("via") or []:
            via.append(item if isinstance(item, str) else item.get("title", ""))
        findings.append(
            Vulnerability(
                type="dependency",
                severity=_AUDIT_SEVERITY.get(entry.get("severity", "low"), Severity.LOW),
                message=f"Vulnerable dependency {name} ({entry.get('range', 'unknown range')})",
                package=name,
                via=via,
            )
        )

    for advisory in (data.get("advisories") or {}).values():
        name = advisory.get("module_name", "unknown")
        findings.append(
            Vulnerability(
                type="dependency",
                severity=_AUDIT_SEVERITY.get(advisory.get("severity", "low"), Severity.LOW),
                message=advisory.get("title") or f"Vulnerable dependency {name}",
                package=name,
                via=[advisory.get("url", "")] if advisory.get("url") else [],
            )
        )

    return findings


class SecurityScanner:
    """Runs the textual pass and the dependency audit pass."""

    def __init__(
        self,
        root: Path,
        audit_command: Optional[list[str]] = None,
        audit_timeout: int = 60,
        patterns: Optional[list[SecurityPattern]] = None,
    ):
        self.root = Path(root)
        self.audit_command = audit_command
        self.audit_timeout = audit_timeout
        self.patterns = patterns if patterns is not None else load_patterns()

    def scan(self, files: list[ChangedFile]) -> SecurityReport:
        report = SecurityReport()

        for changed in files:
            if changed.status == FileStatus.DELETED or changed.is_test:
                continue
            if changed.extension not in SCANNED_EXTENSIONS:
                continue
            try:
                content = (self.root / changed.path).read_text(encoding="utf-8", errors="replace")
            except (FileNotFoundError, IsADirectoryError):
                continue
            report.vulnerabilities.extend(scan_text(changed.path, content, self.patterns))

        audit_findings, warning = self.run_audit()
        report.vulnerabilities.extend(audit_findings)
        if warning:
            report.warnings.append(warning)

        report.risk_level = risk_level(report.vulnerabilities)
        report.issues = [
            f"{v.file}:{v.line} {v.message}" if v.file else v.message
            for v in report.vulnerabilities
        ]
        return report

    def run_audit(self) -> tuple[list[Vulnerability], Optional[str]]:
        """Run the audit tool; failures become a warning, never an exception."""
        if not self.audit_command or not (self.root / "package.json").exists():
            return [], None

        try:
            result = subprocess.run(
                self.audit_command,
                cwd=self.root,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.audit_timeout,
            )
        except FileNotFoundError:
            return [], f"Audit tool not available: {self.audit_command[0]}"
        except subprocess.TimeoutExpired:
            return [], f"Audit timed out after {self.audit_timeout}s"

        # npm audit exits non-zero when it finds vulnerabilities
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError:
            logger.debug(f"Unparseable audit output: {result.stderr}")
            return [], "Audit output could not be parsed"

        if "error" in data and not data.get("vulnerabilities") and not data.get("advisories"):
            error = data["error"]
            summary = error.get("summary") if isinstance(error, dict) else str(error)
            return [], f"Audit failed: {summary}"

        return parse_audit_output(data), None
