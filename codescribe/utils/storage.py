"""Atomic JSON file persistence."""

import json
import tempfile
from pathlib import Path
from typing import Any


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to path via temp file + rename.

    The parent directory is created if missing.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        delete=False,
        suffix=".json.tmp",
    ) as f:
        json.dump(data, f, indent=2, default=str)
        temp_path = f.name

    # Rename to final location (atomic on POSIX)
    Path(temp_path).replace(path)
