"""
JSON persistence for the reference store.

One file per collection lives under .actionmap/: maps.json, items.json,
tasks.json and config.json. Every save replaces the whole file atomically.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional, Type

from pydantic import BaseModel, ValidationError

from actionmap.constants import CONFIG_FILE_NAME, DEFAULT_STORE_DIR_NAME
from actionmap.exceptions import StorageError
from actionmap.models.base import STORED
from actionmap.models.files import ConfigFile, ItemsFile, MapsFile, TasksFile


class StoreFile(NamedTuple):
    name: str
    model: Type[BaseModel]
    # model_dump exclude spec for values recomputed on read
    derived: Optional[Dict[str, Any]] = None


MAPS = StoreFile(
    "maps.json", MapsFile,
    {"maps": {"__all__": {"item_count", "completed_item_count", "progress_rate"}}},
)
ITEMS = StoreFile(
    "items.json", ItemsFile,
    {"items": {"__all__": {"task_count", "completed_task_count", "progress_rate"}}},
)
TASKS = StoreFile("tasks.json", TasksFile)
CONFIG = StoreFile(CONFIG_FILE_NAME, ConfigFile)


class StorageManager:
    """
    Reads and writes the store's JSON files.

    Missing files load as empty models. Unreadable or invalid files raise
    StorageError rather than being silently reset.
    """

    def __init__(self, store_dir: Optional[Path] = None) -> None:
        self.store_dir = Path(store_dir) if store_dir else Path(DEFAULT_STORE_DIR_NAME)
        self.store_dir.mkdir(parents=True, exist_ok=True)

    def path_of(self, store_file: StoreFile) -> Path:
        return self.store_dir / store_file.name

    def load(self, store_file: StoreFile) -> Any:
        path = self.path_of(store_file)
        if not path.exists():
            return store_file.model()
        try:
            raw = json.loads(path.read_text())
            return store_file.model.model_validate(raw, context=STORED)
        except (OSError, ValueError, ValidationError) as e:
            raise StorageError(f"Failed to load {store_file.name}: {e}")

    def save(self, store_file: StoreFile, data: BaseModel) -> None:
        """Serialize data without derived fields and swap it into place.

        The JSON goes to a temp file in the store directory first, then
        os.replace moves it over the target, so readers never see a partial
        file.

        Raises:
            StorageError: If the file cannot be written.
        """
        payload = data.model_dump(mode="json", exclude=store_file.derived)
        target = self.path_of(store_file)
        fd, temp_name = tempfile.mkstemp(dir=self.store_dir, prefix=".tmp_actionmap_", suffix=".json")
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(temp_name, target)
        except OSError as e:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise StorageError(f"Failed to write to {target}: {e}")

    def load_maps(self) -> MapsFile:
        return self.load(MAPS)

    def save_maps(self, data: MapsFile) -> None:
        self.save(MAPS, data)

    def load_items(self) -> ItemsFile:
        return self.load(ITEMS)

    def save_items(self, data: ItemsFile) -> None:
        self.save(ITEMS, data)

    def load_tasks(self) -> TasksFile:
        return self.load(TASKS)

    def save_tasks(self, data: TasksFile) -> None:
        self.save(TASKS, data)

    def load_config(self) -> ConfigFile:
        return self.load(CONFIG)

    def save_config(self, data: ConfigFile) -> None:
        self.save(CONFIG, data)
