"""
Persistence collaborator interfaces.

The core never touches storage directly: it reads and writes entities
through a Repository per entity type and reads tasks through a TaskSource.
Any backend (the JSON reference store, an HTTP client, a database) can
implement these.
"""

from abc import ABC, abstractmethod
from typing import Generic, Iterable, List, Optional, Type, TypeVar

from actionmap.models.action_item import ActionItem
from actionmap.models.action_map import ActionMap
from actionmap.models.base import VersionedEntity
from actionmap.models.patches import ActionItemPatch, ActionMapPatch, BasePatch
from actionmap.models.task import Task

E = TypeVar("E", bound=VersionedEntity)


class Repository(ABC, Generic[E]):
    """Versioned read/write access to one entity type.

    Implementations must apply a write only when expected_version equals
    the stored version, unless force_overwrite is True, and must increment
    the stored version by exactly 1 on every successful write.
    """

    patch_model: Type[BasePatch] = BasePatch

    @abstractmethod
    def fetch_all(self, map_id: Optional[str] = None) -> List[E]:
        """Fetch every entity belonging to a map.

        Raises:
            NotFoundError: If the map does not exist.
            TransientError: If the backend is temporarily unavailable.
        """

    @abstractmethod
    def fetch_one(self, entity_id: str) -> E:
        """Fetch one entity with its current version.

        Raises:
            NotFoundError: If the entity does not exist.
            TransientError: If the backend is temporarily unavailable.
        """

    @abstractmethod
    def write(
        self,
        entity_id: str,
        patch: BasePatch,
        expected_version: int,
        force_overwrite: bool = False,
    ) -> E:
        """Apply a patch and return the stored entity with its new version.

        Raises:
            VersionConflictError: If expected_version is stale and force_overwrite is False.
            ValidationError: If the patched entity is invalid.
            NotFoundError: If the entity was deleted.
            TransientError: If the backend is temporarily unavailable.
        """

    def map_id_of(self, entity: E) -> Optional[str]:
        """Get the id of the map an entity belongs to."""
        return getattr(entity, "action_map_id", None) or entity.id


class MapRepository(Repository[ActionMap]):
    """Repository of ActionMaps."""

    patch_model = ActionMapPatch

    def map_id_of(self, entity: ActionMap) -> Optional[str]:
        return entity.id


class ItemRepository(Repository[ActionItem]):
    """Repository of ActionItems."""

    patch_model = ActionItemPatch

    def map_id_of(self, entity: ActionItem) -> Optional[str]:
        return entity.action_map_id


class TaskSource(ABC):
    """Read access to externally owned tasks."""

    @abstractmethod
    def fetch_tasks(self, task_ids: Iterable[str]) -> List[Task]:
        """Fetch the tasks with the given ids; unknown ids are skipped."""
