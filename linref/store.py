"""JSON documents with corrupt-tolerant reads and atomic writes.

Every on-disk file linref owns (config, aliases, cache entries) goes through
JsonDocument. Reads never fail on a bad file: it is logged and treated as
empty. Writes replace the whole file via a temp file + os.replace(), so a
crash mid-write leaves the previous contents in place.
"""

import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonDocument:
    def __init__(self, path: Path, label: str = "document") -> None:
        self.path = path
        self.label = label

    def __repr__(self) -> str:
        return f"JsonDocument({self.label!r}, {str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any]:
        """Return the parsed object, or {} if the file is missing or unusable."""
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable %s at %s: %s", self.label, self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring %s at %s: expected a JSON object, got %s", self.label, self.path, type(data).__name__)
            return {}
        return data

    def save(self, data: dict[str, Any]) -> None:
        body = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Unique temp name per writer: concurrent saves never share a temp file.
        fd, name = tempfile.mkstemp(dir=self.path.parent, prefix=f"{self.path.name}.", suffix=".tmp")
        tmp = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(body)
            os.replace(tmp, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise
        logger.debug("Wrote %s to %s", self.label, self.path)

    @contextlib.contextmanager
    def edit(self) -> Iterator[dict[str, Any]]:
        """Read-modify-write. The file is replaced once on clean exit, untouched on error."""
        data = self.load()
        yield data
        self.save(data)

    def delete(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Deleted %s at %s", self.label, self.path)
        return True
