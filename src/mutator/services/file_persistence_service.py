# src/mutator/services/file_persistence_service.py
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Optional

from mutator.core.managers.config_manager import config_manager
from mutator.core.utils.path_utils import PathUtils
from mutator.errors import InvalidPathError, WriteError
from mutator.model import PersistResult

logger = logging.getLogger(__name__)


class FilePersistenceService:
    """
    Writes an edited document back to disk below a fixed root directory.

    An existing file is first copied to `<name>.bak.<epoch_ms>`; the copy
    completes before the overwrite starts, and the original is restored from
    it if the write fails.
    """

    def __init__(self, root: Optional[Path] = None):
        configured = config_manager.get_nested("persistence.root")
        self.root = Path(root or configured or PathUtils.get_persistence_root()).resolve()

    def resolve(self, file_path: str) -> Path:
        """Resolves a caller-supplied path, refusing anything outside the root."""
        resolved = (self.root / file_path).resolve()
        root_norm = os.path.normcase(str(self.root))
        res_norm = os.path.normcase(str(resolved))
        try:
            inside = os.path.commonpath([root_norm, res_norm]) == root_norm
        except ValueError:
            inside = False

        if not inside:
            logger.warning("Refusing to persist outside %s: %s", self.root, file_path)
            raise InvalidPathError()
        return resolved

    def persist(self, file_path: str, content: str) -> PersistResult:
        target = self.resolve(file_path)

        backup: Optional[Path] = None
        try:
            if target.exists():
                backup = target.with_name(f"{target.name}.bak.{int(time.time() * 1000)}")
                shutil.copy2(target, backup)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Could not prepare %s for writing: %s", target, e)
            raise WriteError(detail=str(e)) from e

        try:
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error("Write to %s failed: %s", target, e)
            if backup is not None:
                shutil.copy2(backup, target)
                logger.info("Restored %s from %s", target, backup)
            raise WriteError(detail=str(e)) from e

        logger.info("Persisted %s (backup: %s)", target, backup)
        return PersistResult(
            persisted=True,
            file_path=self._relative(target),
            backup_path=self._relative(backup) if backup is not None else None,
        )

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()
