"""On-disk execution history.

Each invocation is written to ``<directory>/<millis>-<hex>.json``. Files
sort by name in creation order; entries beyond the configured maximum are
evicted oldest first. Credentials and remote URLs are redacted before
anything is written.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from codescribe.utils.storage import write_json_atomic

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Keys whose values are always redacted, wherever they appear
SENSITIVE_KEYS = {"token", "apikey", "api_key", "password", "secret", "authorization", "remote_url", "remoteurl"}


def generate_execution_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def redact(value: Any, secrets_to_hide: Iterable[str]) -> Any:
    """Return a copy of value with sensitive keys and secret strings redacted."""
    hidden = sorted({s for s in secrets_to_hide if s}, key=len, reverse=True)

    def walk(item: Any) -> Any:
        if isinstance(item, dict):
            return {
                key: REDACTED if str(key).lower() in SENSITIVE_KEYS and item_value else walk(item_value)
                for key, item_value in item.items()
            }
        if isinstance(item, (list, tuple)):
            return [walk(element) for element in item]
        if isinstance(item, str):
            for secret in hidden:
                item = item.replace(secret, REDACTED)
            return item
        return item

    return walk(value)


class WorkflowHistory:
    """Reads and writes execution history records.

    Attributes:
        directory: Where record files live
        max_entries: Records kept before the oldest are evicted
        enabled: When False every operation is a no-op
    """

    def __init__(self, directory: Path, max_entries: int = 100, enabled: bool = True):
        self.directory = Path(directory)
        self.max_entries = max_entries
        self.enabled = enabled

    def record_execution(
        self,
        command: str,
        options: dict[str, Any],
        context: Optional[dict[str, Any]],
        workflows: list[str],
        results: dict[str, Any],
        duration_ms: int,
        success: bool,
        error: Optional[str] = None,
        secrets_to_hide: Iterable[str] = (),
    ) -> Optional[str]:
        """Persist one execution.

        Returns:
            The execution id, or None when history is disabled or the write failed
        """
        if not self.enabled:
            return None

        hidden = list(secrets_to_hide)
        remote_url = ((context or {}).get("git") or {}).get("remote_url")
        if remote_url:
            hidden.append(remote_url)

        execution_id = generate_execution_id()
        entry = redact(
            {
                "id": execution_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "command": command,
                "options": options,
                "context": context,
                "workflows": workflows,
                "results": results,
                "duration_ms": duration_ms,
                "success": success,
                "error": error,
            },
            hidden,
        )

        try:
            write_json_atomic(self.directory / f"{execution_id}.json", entry)
            self.cleanup()
        except OSError as e:
            logger.warning(f"Failed to record workflow execution: {e}")
            return None

        logger.debug(f"Recorded execution {execution_id}")
        return execution_id

    def _files(self) -> list[Path]:
        """History files, newest first."""
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob("*.json"), key=lambda p: p.name, reverse=True)

    def get_history(self, limit: int = 20) -> list[dict[str, Any]]:
        if not self.enabled:
            return []
        history = []
        for path in self._files()[:limit]:
            try:
                history.append(json.loads(path.read_text()))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to read history file {path.name}: {e}")
        return history

    def get_execution(self, execution_id: str) -> Optional[dict[str, Any]]:
        if not self.enabled:
            return None
        path = self.directory / f"{execution_id}.json"
        try:
            return json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read execution {execution_id}: {e}")
            return None

    def get_stats(self) -> dict[str, Any]:
        history = self.get_history(self.max_entries)
        commands: dict[str, int] = {}
        workflows: dict[str, int] = {}
        for entry in history:
            commands[entry.get("command")] = commands.get(entry.get("command"), 0) + 1
            for name in entry.get("workflows", []):
                workflows[name] = workflows.get(name, 0) + 1

        durations = [entry.get("duration_ms") or 0 for entry in history]
        return {
            "total_executions": len(history),
            "successful_executions": sum(1 for entry in history if entry.get("success")),
            "failed_executions": sum(1 for entry in history if not entry.get("success")),
            "average_duration_ms": round(sum(durations) / len(durations)) if durations else 0,
            "command_usage": commands,
            "workflow_usage": workflows,
            "recent_activity": history[:10],
        }

    def search(
        self,
        command: Optional[str] = None,
        success: Optional[bool] = None,
        workflow: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        """Filter retained history by command, outcome, workflow and time window."""
        matches = []
        for entry in self.get_history(self.max_entries):
            if command is not None and entry.get("command") != command:
                continue
            if success is not None and entry.get("success") != success:
                continue
            if workflow is not None and workflow not in entry.get("workflows", []):
                continue
            timestamp = datetime.fromisoformat(entry["timestamp"])
            if since is not None and timestamp < since:
                continue
            if until is not None and timestamp > until:
                continue
            matches.append(entry)
        return matches

    def export(self, output_file: Path) -> dict[str, Any]:
        data = {
            "export_date": datetime.now(timezone.utc).isoformat(),
            "stats": self.get_stats(),
            "history": self.get_history(self.max_entries),
        }
        write_json_atomic(Path(output_file), data)
        return data

    def cleanup(self) -> None:
        """Evict the oldest records beyond max_entries."""
        for path in self._files()[self.max_entries:]:
            path.unlink(missing_ok=True)
