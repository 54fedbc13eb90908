"""
Concurrency controller: optimistic, version-stamped writes.

Every edit of a mutable entity goes through an EditSession. A write carries
the last version the client read; a stale version is rejected by the store
and the session halts in conflict_detected until the user picks one of
reload, force_overwrite or cancel. Only force_overwrite ever asks the store
to skip the version check.

Session states are driven by a transitions.Machine; see SESSION_TRANSITIONS
for the named triggers. Public controller methods return Success, Conflict
or Failure and never raise for expected failures.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from transitions import Machine, MachineError

from actionmap.exceptions import (
    ActionMapError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
    TransientError,
    ValidationError,
    VersionConflictError,
)
from actionmap.managers.events import EntityEvent, EventBus, EventType, get_event_bus
from actionmap.managers.repository import Repository
from actionmap.models.base import VersionedEntity
from actionmap.models.patches import BasePatch
from actionmap.models.results import Conflict, Failure, Result, Success, failure_from_error


class SessionState(str, Enum):
    """States of an edit session."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    COMMITTED = "committed"
    CONFLICT_DETECTED = "conflict_detected"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class ResolutionChoice(str, Enum):
    """The three ways a user can resolve a conflict."""

    RELOAD = "reload"
    FORCE_OVERWRITE = "force_overwrite"
    CANCEL = "cancel"


class SessionOutcome(str, Enum):
    """How the last round of a session ended."""

    COMMITTED = "committed"
    OVERWRITTEN = "overwritten"
    RELOADED = "reloaded"
    CANCELLED = "cancelled"
    REMOVED = "removed"


S = SessionState

# Each trigger becomes a method on EditSession
SESSION_TRANSITIONS = [
    {"trigger": "submit", "source": S.IDLE, "dest": S.SUBMITTING},
    {"trigger": "commit", "source": S.SUBMITTING, "dest": S.COMMITTED},
    {"trigger": "fail", "source": S.SUBMITTING, "dest": S.IDLE},
    {"trigger": "detect_conflict", "source": [S.SUBMITTING, S.RESOLVING], "dest": S.CONFLICT_DETECTED},
    {"trigger": "resolve", "source": S.CONFLICT_DETECTED, "dest": S.RESOLVING},
    {"trigger": "finish", "source": S.RESOLVING, "dest": S.RESOLVED},
    # Entity deleted elsewhere while writing or refetching
    {"trigger": "remove", "source": [S.SUBMITTING, S.RESOLVING], "dest": S.RESOLVED},
    {"trigger": "settle", "source": [S.COMMITTED, S.RESOLVED], "dest": S.IDLE},
]


@dataclass
class ConflictInfo:
    """Versions surfaced to the user when a write is rejected."""

    client_version: int
    server_version: int


@dataclass(eq=False)
class EditSession:
    """Edit state for one entity.

    entity and known_version are the last state read from (or written to)
    the store. pending_patch is the local, unsaved edit. state is owned by
    the session's machine and only changes through fire().
    """

    entity_id: str
    entity: VersionedEntity
    known_version: int
    pending_patch: Optional[BasePatch] = None
    conflict: Optional[ConflictInfo] = None
    last_error: Optional[ActionMapError] = None
    outcome: Optional[SessionOutcome] = None
    resolution: Optional[ResolutionChoice] = None
    history: List[SessionState] = field(default_factory=list)
    state: SessionState = field(default=SessionState.IDLE, init=False)
    machine: Machine = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.machine = Machine(
            model=self,
            states=SessionState,
            transitions=SESSION_TRANSITIONS,
            initial=SessionState.IDLE,
            auto_transitions=False,
            after_state_change="_record_state",
        )
        self.history.append(self.state)

    def _record_state(self) -> None:
        self.history.append(self.state)

    def fire(self, trigger: str) -> None:
        """Run a named trigger.

        Raises:
            InvalidTransitionError: If the trigger is not allowed in the current state.
        """
        try:
            getattr(self, trigger)()
        except MachineError:
            raise InvalidTransitionError(self.state.value, trigger, self.entity_id)

    @property
    def is_closed(self) -> bool:
        """The entity was deleted elsewhere; the session accepts no more writes."""
        return self.state == SessionState.RESOLVED and self.outcome == SessionOutcome.REMOVED

    @property
    def has_pending_edit(self) -> bool:
        return self.pending_patch is not None

    def describe(self) -> Dict[str, Any]:
        """Structured state for presentation code."""
        return {
            "entity_id": self.entity_id,
            "state": self.state.value,
            "known_version": self.known_version,
            "has_pending_edit": self.has_pending_edit,
            "conflict": (
                {
                    "client_version": self.conflict.client_version,
                    "server_version": self.conflict.server_version,
                }
                if self.conflict
                else None
            ),
            "outcome": self.outcome.value if self.outcome else None,
            "last_error": str(self.last_error) if self.last_error else None,
        }


PatchInput = Union[BasePatch, Mapping[str, Any]]


class ConcurrencyController:
    """
    Routes every write for one entity type through versioned edit sessions.

    Handles:
    - Submitting patches with the last known version
    - Detecting conflicts and holding the pending edit
    - The reload / force_overwrite / cancel resolution protocol
    - Publishing commit, conflict and removal events
    """

    def __init__(self, repository: Repository, event_bus: Optional[EventBus] = None) -> None:
        """
        Initialize ConcurrencyController.

        Args:
            repository: Persistence collaborator for the entity type.
            event_bus: Bus for session events. Defaults to the global bus.
        """
        self.repository = repository
        self.event_bus = event_bus or get_event_bus()
        self._sessions: Dict[str, EditSession] = {}

    # =========================================================================
    # Sessions
    # =========================================================================

    def open(self, entity: VersionedEntity) -> EditSession:
        """Open (or refresh) the session for an entity just read from the store.

        An existing session with a pending edit or an unresolved conflict is
        returned untouched so fresh reads never discard local work.
        """
        session = self._sessions.get(entity.id)
        if session is None or session.is_closed:
            session = EditSession(entity_id=entity.id, entity=entity, known_version=entity.version)
            self._sessions[entity.id] = session
            return session

        if session.state in (SessionState.IDLE, SessionState.RESOLVED) and not session.has_pending_edit:
            session.entity = entity
            session.known_version = entity.version
        return session

    def session(self, entity_id: str) -> Optional[EditSession]:
        """Get the session for an entity, if one is open."""
        return self._sessions.get(entity_id)

    def close(self, entity_id: str) -> None:
        """Forget the session for an entity."""
        self._sessions.pop(entity_id, None)

    def sessions(self) -> List[EditSession]:
        return list(self._sessions.values())

    def _require_session(self, entity_id: str) -> Union[EditSession, Failure]:
        session = self._sessions.get(entity_id)
        if session is None:
            return failure_from_error(
                InvalidOperationError(f"No edit session is open for '{entity_id}'.")
            )
        if session.is_closed:
            return failure_from_error(
                NotFoundError(f"'{entity_id}' was deleted by another session. Reload the list.")
            )
        return session

    # =========================================================================
    # Submitting
    # =========================================================================

    def _coerce_patch(self, patch: PatchInput) -> BasePatch:
        """Validate raw patch input against the repository's patch model.

        Raises:
            ValidationError: If the patch is malformed.
        """
        patch_model = self.repository.patch_model
        if isinstance(patch, patch_model):
            return patch
        data = patch.changes() if isinstance(patch, BasePatch) else dict(patch)
        try:
            return patch_model.model_validate(data)
        except PydanticValidationError as e:
            messages = "; ".join(
                f"{'.'.join(str(loc) for loc in err.get('loc', ())) or 'patch'}: {err.get('msg')}"
                for err in e.errors()
            )
            raise ValidationError(f"Invalid patch: {messages}")

    def submit(self, entity_id: str, patch: PatchInput) -> Result:
        """Submit an edit with the session's last known version.

        A malformed patch fails immediately with no state transition. A write
        is refused while another write for the entity is in flight or while
        a conflict is waiting for resolution.

        Args:
            entity_id: Entity to edit.
            patch: Patch model or mapping of fields to change.

        Returns:
            Success(entity) on commit, Conflict on a stale version, Failure otherwise.
        """
        session = self._require_session(entity_id)
        if isinstance(session, Failure):
            return session

        if session.state == SessionState.RESOLVED:
            session.fire("settle")

        if session.state == SessionState.SUBMITTING:
            return failure_from_error(
                InvalidOperationError(
                    f"A write for '{entity_id}' is already in flight. Wait for it to finish."
                )
            )
        if session.state != SessionState.IDLE:
            return failure_from_error(
                InvalidOperationError(
                    f"'{entity_id}' has an unresolved conflict. "
                    "Choose reload, force-overwrite or cancel first."
                )
            )

        try:
            validated = self._coerce_patch(patch)
        except ValidationError as e:
            session.last_error = e
            return failure_from_error(e)

        session.pending_patch = validated
        session.resolution = None
        session.fire("submit")

        try:
            entity = self.repository.write(
                entity_id, validated, session.known_version, force_overwrite=False
            )
        except VersionConflictError as e:
            session.conflict = ConflictInfo(
                client_version=session.known_version, server_version=e.current_version
            )
            session.fire("detect_conflict")
            self._publish(EventType.CONFLICT_DETECTED, session, version=e.current_version)
            return Conflict(
                entity_id=entity_id,
                client_version=session.known_version,
                server_version=e.current_version,
            )
        except NotFoundError as e:
            return self._close_removed(session, e)
        except ActionMapError as e:
            return self._fail_back_to_idle(session, e)
        except Exception as e:
            return self._fail_back_to_idle(session, TransientError(f"Write failed: {e}"))

        self._commit(session, entity)
        return Success(entity)

    def retry(self, entity_id: str) -> Result:
        """Resubmit the pending edit (after a transient failure or a cancel)."""
        session = self._require_session(entity_id)
        if isinstance(session, Failure):
            return session
        if session.pending_patch is None:
            return failure_from_error(
                InvalidOperationError(f"There is no pending edit for '{entity_id}'.")
            )
        return self.submit(entity_id, session.pending_patch)

    def discard(self, entity_id: str) -> Result:
        """Drop the pending edit of an idle session without writing."""
        session = self._require_session(entity_id)
        if isinstance(session, Failure):
            return session
        if session.state not in (SessionState.IDLE, SessionState.RESOLVED):
            return failure_from_error(
                InvalidOperationError(f"Cannot discard the edit of '{entity_id}' now.")
            )
        session.pending_patch = None
        session.last_error = None
        return Success(None)

    # =========================================================================
    # Resolution
    # =========================================================================

    def _require_conflict(self, entity_id: str, choice: ResolutionChoice) -> Union[EditSession, Failure]:
        session = self._require_session(entity_id)
        if isinstance(session, Failure):
            return session
        if session.state != SessionState.CONFLICT_DETECTED:
            return failure_from_error(
                InvalidOperationError(
                    f"Cannot {choice.value.replace('_', '-')} '{entity_id}': "
                    f"no conflict is pending (state: {session.state.value})."
                )
            )
        session.resolution = choice
        session.fire("resolve")
        return session

    def reload(self, entity_id: str) -> Result:
        """Discard the local edit and adopt the store's current entity.

        Returns:
            Success(entity) with the refetched entity. A refetch that fails
            transiently leaves the conflict pending.
        """
        session = self._require_conflict(entity_id, ResolutionChoice.RELOAD)
        if isinstance(session, Failure):
            return session

        try:
            entity = self.repository.fetch_one(entity_id)
        except NotFoundError as e:
            return self._close_removed(session, e)
        except ActionMapError as e:
            return self._fail_back_to_conflict(session, e)
        except Exception as e:
            return self._fail_back_to_conflict(session, TransientError(f"Reload failed: {e}"))

        session.entity = entity
        session.known_version = entity.version
        session.pending_patch = None
        self._finish_resolution(session, SessionOutcome.RELOADED)
        return Success(entity)

    def force_overwrite(self, entity_id: str) -> Result:
        """Write the pending edit ignoring the version check.

        Concurrent changes made by others to the patched fields are lost.
        The store still increments the version.
        """
        session = self._require_conflict(entity_id, ResolutionChoice.FORCE_OVERWRITE)
        if isinstance(session, Failure):
            return session

        try:
            entity = self.repository.write(
                entity_id, session.pending_patch, session.known_version, force_overwrite=True
            )
        except NotFoundError as e:
            return self._close_removed(session, e)
        except VersionConflictError as e:
            session.conflict = ConflictInfo(
                client_version=session.known_version, server_version=e.current_version
            )
            session.fire("detect_conflict")
            return Conflict(entity_id, session.known_version, e.current_version)
        except ActionMapError as e:
            return self._fail_back_to_conflict(session, e)
        except Exception as e:
            return self._fail_back_to_conflict(session, TransientError(f"Overwrite failed: {e}"))

        session.entity = entity
        session.known_version = entity.version
        session.pending_patch = None
        self._publish(EventType.ENTITY_COMMITTED, session, version=entity.version)
        self._finish_resolution(session, SessionOutcome.OVERWRITTEN)
        return Success(entity)

    def cancel(self, entity_id: str) -> Result:
        """Close the conflict dialog without writing or refetching.

        The local edit stays pending and the known version stays stale, so a
        later retry will conflict again unless the user reloads.
        """
        session = self._require_conflict(entity_id, ResolutionChoice.CANCEL)
        if isinstance(session, Failure):
            return session
        self._finish_resolution(session, SessionOutcome.CANCELLED)
        return Success(None)

    def resolve(self, entity_id: str, choice: ResolutionChoice) -> Result:
        """Dispatch a resolution choice."""
        if choice == ResolutionChoice.RELOAD:
            return self.reload(entity_id)
        if choice == ResolutionChoice.FORCE_OVERWRITE:
            return self.force_overwrite(entity_id)
        return self.cancel(entity_id)

    # =========================================================================
    # Internal transitions
    # =========================================================================

    def _commit(self, session: EditSession, entity: VersionedEntity) -> None:
        session.fire("commit")
        session.entity = entity
        session.known_version = entity.version
        session.pending_patch = None
        session.conflict = None
        session.last_error = None
        session.outcome = SessionOutcome.COMMITTED
        self._publish(EventType.ENTITY_COMMITTED, session, version=entity.version)
        session.fire("settle")

    def _finish_resolution(self, session: EditSession, outcome: SessionOutcome) -> None:
        session.fire("finish")
        session.outcome = outcome
        session.conflict = None
        session.last_error = None
        self._publish(
            EventType.CONFLICT_RESOLVED,
            session,
            version=session.known_version,
            outcome=outcome.value,
        )
        session.fire("settle")

    def _close_removed(self, session: EditSession, error: NotFoundError) -> Failure:
        session.fire("remove")
        session.outcome = SessionOutcome.REMOVED
        session.pending_patch = None
        session.conflict = None
        session.last_error = error
        self._publish(EventType.ENTITY_REMOVED, session)
        return failure_from_error(error)

    def _fail_back_to_idle(self, session: EditSession, error: ActionMapError) -> Failure:
        session.last_error = error
        session.fire("fail")
        self._publish(EventType.WRITE_FAILED, session, error=str(error))
        return failure_from_error(error)

    def _fail_back_to_conflict(self, session: EditSession, error: ActionMapError) -> Failure:
        session.last_error = error
        session.fire("detect_conflict")
        self._publish(EventType.WRITE_FAILED, session, error=str(error))
        return failure_from_error(error)

    def _publish(self, event_type: EventType, session: EditSession, version: Optional[int] = None, **data) -> None:
        self.event_bus.publish(
            EntityEvent(
                type=event_type,
                entity_id=session.entity_id,
                entity_type=session.entity.entity_type,
                map_id=self.repository.map_id_of(session.entity),
                version=version,
                data=data,
            )
        )
