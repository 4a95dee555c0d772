"""Dependency delta parsing from the package manifest diff."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from codescribe.analysis.models import DependencyChange, DependencyDelta, Vulnerability

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"

DEPENDENCY_SECTIONS = {"dependencies": False, "devDependencies": True}

# Top-level manifest fields that look like "name": "value" entries
MANIFEST_FIELDS = {
    "name",
    "version",
    "description",
    "main",
    "module",
    "types",
    "license",
    "author",
    "homepage",
    "type",
    "private",
}

_SECTION_PATTERN = re.compile(r'^\s*"(?P<section>[A-Za-z]+)"\s*:\s*\{')
_ENTRY_PATTERN = re.compile(r'^\s*"(?P<name>[^"]+)"\s*:\s*"(?P<version>[^"]*)"\s*,?\s*$')
_MAJOR_PATTERN = re.compile(r"^[\^~>=<v\s]*(\d+)")


def major_version(spec: Optional[str]) -> Optional[int]:
    """Return the major component of a semver range, or None if absent.

    Examples:
        >>> major_version("^1.2.3")
        1
        >>> major_version("latest") is None
        True
    """
    if not spec:
        return None
    match = _MAJOR_PATTERN.match(spec)
    return int(match.group(1)) if match else None


def is_breaking(change: DependencyChange) -> bool:
    """A change is breaking iff its major version strictly increases."""
    old, new = major_version(change.old_version), major_version(change.new_version)
    return old is not None and new is not None and new > old


class _Block:
    """Removed and added entries of one contiguous run of changed lines."""

    def __init__(self):
        self.removed: dict[str, tuple[str, bool]] = {}
        self.added: dict[str, tuple[str, bool]] = {}

    def __bool__(self) -> bool:
        return bool(self.removed or self.added)


def parse_manifest_diff(diff: str, vulnerabilities: Iterable[Vulnerability] = ()) -> DependencyDelta:
    """Build a DependencyDelta from the unified diff of package.json.

    Removed and added lines for the same package inside one contiguous
    change block pair up as an update; unpaired lines become removed or
    added entries.
    """
    delta = DependencyDelta()
    if not diff:
        return delta

    section: Optional[str] = None
    block = _Block()

    def flush() -> None:
        nonlocal block
        if block:
            _resolve_block(block, delta)
        block = _Block()

    for raw in diff.splitlines():
        if raw.startswith(("diff --git", "index ", "--- ", "+++ ")):
            continue
        if raw.startswith("@@"):
            flush()
            section = None
            continue

        marker, line = (raw[0], raw[1:]) if raw else (" ", "")
        if marker not in "+- ":
            continue
        if marker == " ":
            flush()

        header = _SECTION_PATTERN.match(line)
        if header:
            section = header.group("section")
            continue
        if line.strip().startswith("}"):
            section = None
            continue

        if marker == " ":
            continue

        entry = _ENTRY_PATTERN.match(line)
        if entry is None:
            if section in DEPENDENCY_SECTIONS and line.strip() not in ("", "{"):
                delta.issues.append(f"Unparseable manifest line: {line.strip()}")
            continue

        name, version = entry.group("name"), entry.group("version")
        if section is None:
            if name in MANIFEST_FIELDS:
                continue
            dev = False
        elif section in DEPENDENCY_SECTIONS:
            dev = DEPENDENCY_SECTIONS[section]
        else:
            continue

        target = block.removed if marker == "-" else block.added
        target[name] = (version, dev)

    flush()
    _mark_security_updates(delta, vulnerabilities)
    return delta


def _resolve_block(block: _Block, delta: DependencyDelta) -> None:
    for name, (old_version, dev) in block.removed.items():
        if name in block.added:
            new_version, new_dev = block.added[name]
            if new_version == old_version:
                continue
            change = DependencyChange(
                name=name, old_version=old_version, new_version=new_version, dev=new_dev
            )
            delta.updated.append(change)
            if is_breaking(change):
                delta.breaking_changes.append(change)
        else:
            delta.removed.append(DependencyChange(name=name, old_version=old_version, dev=dev))

    for name, (new_version, dev) in block.added.items():
        if name in block.removed:
            continue
        change = DependencyChange(name=name, new_version=new_version, dev=dev)
        delta.added.append(change)

    delta.dev_dependencies = [
        change for change in delta.added + delta.updated if change.dev
    ]


def _mark_security_updates(delta: DependencyDelta, vulnerabilities: Iterable[Vulnerability]) -> None:
    vulnerable = {v.package for v in vulnerabilities if v.package}
    delta.security_updates = [c for c in delta.updated if c.name in vulnerable]
