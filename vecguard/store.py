"""Config store: loading and persisting the permission document.

``FileConfigStore`` keeps the document as YAML on disk and guards every
write with a ``DirectoryLock`` so concurrent approvals in different
processes cannot clobber each other's rules. ``MemoryConfigStore`` is
the non-persistent variant used for embedding and tests.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml
from pydantic import ValidationError

from vecguard.config import PermissionConfig, default_config, resolve_config_path
from vecguard.errors import PersistenceFailure
from vecguard.lock import DirectoryLock

logger = structlog.get_logger()

ConfigMutation = Callable[[PermissionConfig], PermissionConfig]


class ConfigStore(Protocol):
    """Interface the permission engine and security manager persist through."""

    def load(self) -> PermissionConfig:
        """Return the stored document, or the default policy if it is unusable."""

    def save(self, config: PermissionConfig) -> None:
        """Validate and persist the document. Failures raise PersistenceFailure."""

    def update(self, mutate: ConfigMutation) -> PermissionConfig:
        """Apply ``mutate`` to the current stored document and persist the result."""


def _validate(config: PermissionConfig | dict[str, Any], location: str) -> PermissionConfig:
    """Re-validate a document (models can be mutated after construction)."""
    data = config.model_dump() if isinstance(config, PermissionConfig) else config
    try:
        return PermissionConfig.model_validate(data)
    except ValidationError as e:
        raise PersistenceFailure(location, f"invalid config: {e.error_count()} error(s): {e}") from e


class FileConfigStore:
    """YAML-backed config store with cross-process locking."""

    def __init__(self, path: str | Path | None = None, *, lock_stale: float = 10.0) -> None:
        self._path = resolve_config_path(path)
        self._lock_stale = lock_stale

    @property
    def path(self) -> Path:
        return self._path

    def _lock(self) -> DirectoryLock:
        return DirectoryLock(self._path, stale=self._lock_stale)

    def read(self) -> PermissionConfig:
        """Read and validate the document without falling back to defaults.

        A missing file is not an error: it yields the default policy.

        Raises:
            PersistenceFailure: If the file cannot be read, parsed or validated.
        """
        if not self._path.exists():
            return default_config()
        try:
            with open(self._path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceFailure(str(self._path), str(e)) from e
        if data is None:
            return default_config()
        if not isinstance(data, dict):
            raise PersistenceFailure(str(self._path), "document is not a mapping")
        return _validate(data, str(self._path))

    def load(self) -> PermissionConfig:
        """Load the document, substituting the default policy on any failure."""
        try:
            config = self.read()
        except PersistenceFailure as e:
            logger.warning("config_load_failed", path=str(self._path), error=e.reason)
            return default_config()
        logger.debug("config_loaded", path=str(self._path), rules=len(config.rules))
        return config

    def save(self, config: PermissionConfig) -> None:
        """Validate and write the document atomically under the lock.

        Raises:
            PersistenceFailure: On validation, locking or I/O failure.
        """
        validated = _validate(config, str(self._path))
        with self._lock():
            self._write(validated)

    def update(self, mutate: ConfigMutation) -> PermissionConfig:
        """Run a locked read-modify-write cycle against the file.

        Args:
            mutate: Receives the document currently on disk and returns
                the document to write.

        Returns:
            The document as persisted.

        Raises:
            PersistenceFailure: If the current file is invalid, the mutated
                document fails validation, or the write fails.
        """
        with self._lock():
            current = self.read()
            updated = _validate(mutate(current), str(self._path))
            self._write(updated)
        return updated

    def _write(self, config: PermissionConfig) -> None:
        data = config.model_dump(mode="json", exclude_none=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w") as f:
                yaml.safe_dump(data, f, sort_keys=False)
            os.replace(tmp, self._path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            logger.error("config_save_failed", path=str(self._path), error=str(e))
            raise PersistenceFailure(str(self._path), str(e)) from e
        logger.info("config_saved", path=str(self._path), rules=len(config.rules))


class MemoryConfigStore:
    """In-process config store. Nothing survives the process."""

    def __init__(self, config: PermissionConfig | None = None) -> None:
        self._config = config.model_copy(deep=True) if config is not None else default_config()
        self.saves = 0

    def load(self) -> PermissionConfig:
        return self._config.model_copy(deep=True)

    def save(self, config: PermissionConfig) -> None:
        self._config = _validate(config, "<memory>")
        self.saves += 1

    def update(self, mutate: ConfigMutation) -> PermissionConfig:
        updated = _validate(mutate(self.load()), "<memory>")
        self._config = updated
        self.saves += 1
        return updated.model_copy(deep=True)
