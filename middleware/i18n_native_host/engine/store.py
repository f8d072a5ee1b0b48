"""Resource file access for the update engine.

All filesystem work of the engine goes through a store: locating
``root/<lang>/<namespace>.json``, loading documents, taking backups and
writing documents back. FileResourceStore takes no locks; two processes
editing the same file can still lose one another's writes, although each
write replaces the file in one step.
"""

from __future__ import annotations

import contextlib
import json
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from i18n_native_host.utils.log_setup import get_logger

logger = get_logger("store")

BACKUP_MARKER = ".backup-"


class DocumentError(RuntimeError):
    """A resource file exists but cannot be used as a JSON object document."""


@dataclass
class ResourceDocument:
    namespace: str
    path: Path
    data: Dict[str, Any]


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp safe for filenames, e.g. ``2024-05-01T09-30-12-042Z``."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    millis = moment.microsecond // 1000
    return moment.strftime("%Y-%m-%dT%H-%M-%S") + f"-{millis:03d}Z"


class BaseResourceStore:
    def __init__(self, root: str | Path, language: str):
        self.root = Path(root)
        self.language = language

    @property
    def language_dir(self) -> Path:
        return self.root / self.language

    def path_for(self, namespace: str) -> Path:
        return self.language_dir / f"{namespace}.json"

    def load(self, namespace: str) -> ResourceDocument:
        raise NotImplementedError

    def backup(self, document: ResourceDocument) -> Path:
        raise NotImplementedError

    def write(self, document: ResourceDocument) -> None:
        raise NotImplementedError


class FileResourceStore(BaseResourceStore):
    def __init__(
        self,
        root: str | Path,
        language: str,
        *,
        indent: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(root, language)
        self.indent = indent
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def load(self, namespace: str) -> ResourceDocument:
        """Read a namespace file fresh from disk.

        Raises FileNotFoundError if the file is absent and DocumentError if it
        is not a UTF-8 JSON object.
        """
        path = self.path_for(namespace)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DocumentError(f"Error reading {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise DocumentError(f"Error reading {path}: top-level value is not an object")
        return ResourceDocument(namespace=namespace, path=path, data=data)

    def backup(self, document: ResourceDocument) -> Path:
        stamp = backup_timestamp(self._clock())
        target = document.path.with_name(f"{document.path.name}{BACKUP_MARKER}{stamp}")
        counter = 1
        while target.exists():
            target = document.path.with_name(
                f"{document.path.name}{BACKUP_MARKER}{stamp}-{counter}"
            )
            counter += 1
        shutil.copyfile(document.path, target)
        logger.debug("Backup created: %s", target)
        return target

    def write(self, document: ResourceDocument) -> None:
        """Overwrite the whole file with the serialized document.

        The bytes are built before anything touches the disk and land in a
        sibling temp file that replaces the original, so an encoding error
        or an interrupted write never leaves a truncated resource file.
        """
        data = json.dumps(document.data, ensure_ascii=False, indent=self.indent).encode("utf-8")
        path = document.path
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            shutil.copymode(path, tmp_name)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
