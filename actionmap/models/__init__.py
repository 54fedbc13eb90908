"""
Data models for the actionmap application.

Import models explicitly from their modules to avoid circular imports:
    from actionmap.models.base import ActionItemStatus, VersionedEntity
    from actionmap.models.action_map import ActionMap
    from actionmap.models.action_item import ActionItem, ActionItemNode
    from actionmap.models.task import Task
    from actionmap.models.patches import ActionMapPatch, ActionItemPatch
    from actionmap.models.results import Success, Conflict, Failure
    from actionmap.models.files import MapsFile, ItemsFile, TasksFile, ConfigFile
"""

from .action_item import ActionItem, ActionItemNode
from .action_map import ActionMap
from .task import Task
