"""
Session and write notifications.

The concurrency controller publishes an EntityEvent whenever an edit session
commits, conflicts, resolves or loses its entity; the core publishes creates
and deletes. Listeners (the core's projection cache, tests) react without the
publisher knowing about them.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, DefaultDict, Dict, List, Optional

import click


class EventType(str, Enum):
    """What happened to an entity."""
    ENTITY_CREATED = "entity.created"
    ENTITY_COMMITTED = "entity.committed"
    ENTITY_DELETED = "entity.deleted"
    ENTITY_REMOVED = "entity.removed"
    CONFLICT_DETECTED = "entity.conflict"
    CONFLICT_RESOLVED = "entity.resolved"
    WRITE_FAILED = "entity.write_failed"


@dataclass
class Event:
    type: EventType
    timestamp: datetime = field(default_factory=datetime.now)
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EntityEvent(Event):
    """An event about one map or item.

    map_id is the owning map (the map itself for ActionMap events) so that
    listeners can refresh per map.
    """
    entity_id: str = ""
    entity_type: str = ""
    map_id: Optional[str] = None
    version: Optional[int] = None

    def describe(self) -> str:
        label = f"{self.entity_type or 'entity'} {self.entity_id}".strip()
        if self.version is not None:
            label += f" v{self.version}"
        return f"{self.type.value}: {label}"


class EventListener(ABC):
    """Receives the event types it lists in subscribed_events."""

    @property
    @abstractmethod
    def subscribed_events(self) -> List[EventType]:
        ...

    @abstractmethod
    def handle(self, event: Event) -> None:
        ...


class EventBus:
    """
    Process-wide publish/subscribe hub.

    Every EventBus() call returns the same instance, so the core and each
    controller share listeners without passing the bus around.
    """

    _instance: Optional['EventBus'] = None
    _registry: DefaultDict[EventType, List[EventListener]] = defaultdict(list)

    def __new__(cls) -> 'EventBus':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def listeners_for(self, event_type: EventType) -> List[EventListener]:
        """Snapshot of the listeners registered for event_type."""
        return list(self._registry.get(event_type, ()))

    def subscribe(self, listener: EventListener) -> None:
        for event_type in listener.subscribed_events:
            registered = self._registry[event_type]
            if listener not in registered:
                registered.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        for registered in self._registry.values():
            if listener in registered:
                registered.remove(listener)

    def publish(self, event: Event) -> None:
        """Deliver event to each subscriber in registration order.

        A listener that raises is reported on stderr; delivery continues.
        """
        for listener in self.listeners_for(event.type):
            try:
                listener.handle(event)
            except Exception as e:
                click.echo(f"  ⚠ {type(listener).__name__} could not handle {event.type.value}: {e}", err=True)

    def clear(self) -> None:
        self._registry.clear()


def get_event_bus() -> EventBus:
    return EventBus()


def publish_event(event: Event) -> None:
    get_event_bus().publish(event)


def subscribe_listener(listener: EventListener) -> None:
    get_event_bus().subscribe(listener)


def unsubscribe_listener(listener: EventListener) -> None:
    get_event_bus().unsubscribe(listener)
