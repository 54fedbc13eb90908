"""
Defaults and runtime settings for actionmap.

Module-level values are fallbacks. The values in effect are read lazily from
.actionmap/config.json through a ConfigManager. Each ActionMapCore activates
the manager of its own store with using_config() while it works.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple
import json

DEFAULT_STORE_DIR_NAME = ".actionmap"
CONFIG_FILE_NAME = "config.json"

# Remaining-day limits, both inclusive
DEFAULT_CRITICAL_DAYS = 2
DEFAULT_WARNING_DAYS = 7

DEFAULT_TITLE_MAX_LENGTH = 100
DEFAULT_DESCRIPTION_MAX_LENGTH = 1000
DEFAULT_MAX_LINKED_TASKS = 20

PROGRESS_MIN = 0
PROGRESS_MAX = 100

VALID_ITEM_STATUSES = ["not_started", "in_progress", "blocked", "done"]
VALID_PRIORITIES = ["low", "medium", "high"]

DEFAULT_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%Y%m%d",
    "%d %B %Y",      # 31 December 2024
    "%d %b %Y",      # 31 Dec 2024
    "%B %d, %Y",     # December 31, 2024
    "%b %d, %Y",     # Dec 31, 2024
]

VALIDATION_TITLE_REQUIRED = "Title is required and cannot be blank."
VALIDATION_EMPTY_PATCH = "No update parameters provided. Please specify at least one field to update."
DATE_FORMAT_ERROR = (
    "Invalid date format. Supported formats: YYYY-MM-DD, YYYY/MM/DD, DD-MM-YYYY, DD/MM/YYYY, "
    "YYYYMMDD, 'DD Month YYYY', 'Month DD, YYYY'. "
    "Examples: 2024-12-31, 31/12/2024, '31 December 2024', 'December 31, 2024'."
)


class ConfigManager:
    """
    Read-only view of one store's config.json.

    The file is parsed on first access and cached until reload(). A missing or
    unreadable file behaves like an empty one, so every getter falls back to
    the module defaults. Writing the file is StorageManager's job.
    """

    def __init__(self, store_dir: Optional[Path] = None, config_path: Optional[Path] = None) -> None:
        if config_path is None:
            config_path = Path(store_dir or DEFAULT_STORE_DIR_NAME) / CONFIG_FILE_NAME
        self.config_path = config_path
        self._values: Optional[Dict[str, Any]] = None

    @property
    def values(self) -> Dict[str, Any]:
        if self._values is None:
            self._values = self._read()
        return self._values

    def _read(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.config_path.read_text())
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def reload(self) -> Dict[str, Any]:
        self._values = None
        return self.values

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.values[key])
        except (KeyError, TypeError, ValueError):
            return default

    def get_list(self, key: str, default: List[str]) -> List[str]:
        value = self.values.get(key)
        return list(value) if isinstance(value, (list, tuple)) and value else list(default)

    def thresholds(self) -> Tuple[int, int]:
        """(critical_days, warning_days); defaults if the pair is negative or inconsistent."""
        critical = self.get_int('critical_days', DEFAULT_CRITICAL_DAYS)
        warning = self.get_int('warning_days', DEFAULT_WARNING_DAYS)
        if critical < 0 or critical > warning:
            return DEFAULT_CRITICAL_DAYS, DEFAULT_WARNING_DAYS
        return critical, warning


_config_manager_instance: Optional[ConfigManager] = None

# Set while an ActionMapCore operation runs, so each core reads its own store's config
_active_config: ContextVar[Optional[ConfigManager]] = ContextVar("actionmap_config", default=None)


@contextmanager
def using_config(manager: ConfigManager) -> Iterator[ConfigManager]:
    """Make manager the active config for the enclosed block."""
    token = _active_config.set(manager)
    try:
        yield manager
    finally:
        _active_config.reset(token)


def get_config_manager() -> ConfigManager:
    """Return the active ConfigManager.

    Inside using_config() that is the bound manager; otherwise the process
    singleton, created for ./.actionmap on first use.
    """
    active = _active_config.get()
    if active is not None:
        return active
    global _config_manager_instance
    if _config_manager_instance is None:
        _config_manager_instance = ConfigManager()
    return _config_manager_instance


def set_config_manager(manager: Optional[ConfigManager]) -> None:
    global _config_manager_instance
    _config_manager_instance = manager


def reset_config_manager() -> None:
    set_config_manager(None)


def get_critical_days() -> int:
    return get_config_manager().thresholds()[0]


def get_warning_days() -> int:
    return get_config_manager().thresholds()[1]


def get_title_max_length() -> int:
    return get_config_manager().get_int('title_max_length', DEFAULT_TITLE_MAX_LENGTH)


def get_max_linked_tasks() -> int:
    return get_config_manager().get_int('max_linked_tasks', DEFAULT_MAX_LINKED_TASKS)


def get_date_formats() -> List[str]:
    return get_config_manager().get_list('date_formats', DEFAULT_DATE_FORMATS)
