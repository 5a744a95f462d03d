# src/mutator/core/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving important project and runtime paths.
    """

    # --- Package specific paths

    @staticmethod
    def get_package_root() -> Path:
        """
        Returns the directory of the 'mutator' package (where settings.json lives).
        """
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    # --- Project specific paths

    @staticmethod
    def get_project_root() -> Path:
        """
        Returns the absolute path of the project root.
        Searches upwards for a directory containing 'src' and 'pyproject.toml'.
        Falls back to the current working directory for non-editable installs.
        """
        current_path = Path(__file__).resolve().parent
        while current_path != current_path.parent:
            src_dir = current_path / "src"
            pyproject_toml = current_path / "pyproject.toml"
            if src_dir.is_dir() and pyproject_toml.is_file():
                return current_path
            current_path = current_path.parent

        logger.debug("Project root not found above %s, using working directory.", Path(__file__))
        return Path.cwd()

    @staticmethod
    def get_logs_dir() -> Path:
        """
        Returns the directory for JSON-lines audit logs.
        (e.g., /path/to/project/logs)
        """
        return PathUtils.get_project_root() / "logs"

    @staticmethod
    def get_persistence_root() -> Path:
        """Returns the directory edited documents may be written into."""
        return PathUtils.get_project_root()
