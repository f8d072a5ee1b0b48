"""Resolve edited keys across namespaces and persist the new values."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from i18n_native_host.config import DEFAULT_NAMESPACES
from i18n_native_host.engine.keypath import KeyPathError, has_leaf, resolve_leaf, stringify
from i18n_native_host.engine.store import (
    BaseResourceStore,
    DocumentError,
    FileResourceStore,
    ResourceDocument,
)
from i18n_native_host.models import EditRequest, RequestValidationError
from i18n_native_host.utils.log_setup import get_logger

logger = get_logger("engine")


@dataclass
class Resolution:
    document: ResourceDocument
    current: str

    @property
    def namespace(self) -> str:
        return self.document.namespace


@dataclass
class UpdateResult:
    updated_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    backups: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        if self.errors:
            return f"Completed with {len(self.errors)} error(s)"
        return f"Successfully updated {len(self.updated_files)} file(s)"


class UpdateSession:
    """One request's worth of edits against a single ``root/lang`` pair.

    Documents are loaded at most once per session, so a later edit to the
    same file sees earlier edits. Each file is backed up before its first
    write in the session and never again.
    """

    def __init__(
        self,
        store: BaseResourceStore,
        namespaces: Sequence[str] = DEFAULT_NAMESPACES,
        force: bool = False,
    ):
        self.store = store
        self.namespaces = list(namespaces)
        self.force = force
        self._documents: Dict[str, ResourceDocument] = {}
        self._unavailable: Set[str] = set()
        self._backed_up: Set[Path] = set()

    def _document(self, namespace: str) -> Optional[ResourceDocument]:
        if namespace in self._documents:
            return self._documents[namespace]
        if namespace in self._unavailable:
            return None
        try:
            document = self.store.load(namespace)
        except FileNotFoundError as exc:
            logger.debug("%s", exc)
            self._unavailable.add(namespace)
            return None
        except (DocumentError, OSError) as exc:
            logger.warning("%s", exc)
            self._unavailable.add(namespace)
            return None
        self._documents[namespace] = document
        return document

    def resolve(self, key: str) -> Optional[Resolution]:
        """Find the first namespace, in priority order, holding ``key``."""
        for namespace in self.namespaces:
            document = self._document(namespace)
            if document is None:
                continue
            if has_leaf(document.data, key):
                logger.debug("Key %s found in %s.json", key, namespace)
                current = stringify(resolve_leaf(document.data, key).value)
                return Resolution(document=document, current=current)
        return None

    def not_found_message(self, key: str) -> str:
        return f"Key not found in any namespace: {key} (searched: {', '.join(self.namespaces)})"

    def apply_edit(self, edit: EditRequest, result: UpdateResult) -> None:
        if edit.ns:
            logger.debug("Namespace hint for %s: %s (ignored for file selection)", edit.key, edit.ns)

        resolution = self.resolve(edit.key)
        if resolution is None:
            result.errors.append(self.not_found_message(edit.key))
            return

        if not self.force and resolution.current != edit.old:
            result.errors.append(
                f'Mismatch for {edit.key}: current="{resolution.current}", expected="{edit.old}"'
            )
            return

        if not edit.wants_write:
            result.skipped.append(f"Skipping item without 'new' value: {edit.key}")
            return

        document = resolution.document
        label = f"{document.namespace}.{edit.key}"
        try:
            if document.path not in self._backed_up:
                backup_path = self.store.backup(document)
                self._backed_up.add(document.path)
                result.backups.append(str(backup_path))
        except OSError as exc:
            result.errors.append(f"Error updating {label}: backup failed: {exc}")
            return

        try:
            cursor = resolve_leaf(document.data, edit.key)
        except KeyPathError as exc:
            result.errors.append(f"Error updating {label}: {exc}")
            return
        previous = cursor.value
        cursor.value = edit.new
        try:
            self.store.write(document)
        except (OSError, ValueError) as exc:
            # ValueError covers values that cannot be encoded, e.g. lone surrogates.
            cursor.value = previous
            result.errors.append(f"Error updating {label}: {exc}")
            return

        logger.info('Updated %s: "%s" -> "%s"', label, edit.old, edit.new)
        path = str(document.path)
        if path not in result.updated_files:
            result.updated_files.append(path)

    def apply(self, edits: Iterable[EditRequest]) -> UpdateResult:
        result = UpdateResult()
        for edit in edits:
            self.apply_edit(edit, result)
        if result.errors:
            for message in result.errors:
                logger.warning("%s", message)
        return result


def check_language_dir(root: str | Path, language: str) -> Path:
    lang_dir = Path(root).expanduser() / language
    if not Path(root).expanduser().is_dir():
        raise RequestValidationError([f"Root directory not found: {root}"])
    if not lang_dir.is_dir():
        raise RequestValidationError([f"Language directory not found: {lang_dir}"])
    return lang_dir


def apply(
    root: str | Path,
    language: str,
    force: bool,
    edits: Sequence[EditRequest],
    *,
    namespaces: Sequence[str] = DEFAULT_NAMESPACES,
    indent: int = 4,
    store: Optional[BaseResourceStore] = None,
) -> UpdateResult:
    """Apply a batch of edits; per-edit failures are reported, not raised.

    Raises RequestValidationError before any file access when the batch is
    empty or the language directory does not exist.
    """
    if not edits:
        raise RequestValidationError(["No payload provided"])
    if store is None:
        check_language_dir(root, language)
        store = FileResourceStore(Path(root).expanduser(), language, indent=indent)
    session = UpdateSession(store, namespaces=namespaces, force=force)
    return session.apply(edits)


def lookup(
    root: str | Path,
    language: str,
    key: str,
    *,
    namespaces: Sequence[str] = DEFAULT_NAMESPACES,
    store: Optional[BaseResourceStore] = None,
) -> Optional[Resolution]:
    """Read-only resolution of one key; never backs up or writes."""
    if store is None:
        check_language_dir(root, language)
        store = FileResourceStore(Path(root).expanduser(), language)
    return UpdateSession(store, namespaces=namespaces).resolve(key)
