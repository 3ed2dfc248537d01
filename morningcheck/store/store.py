"""
Client state store.

Explicit state container passed to whatever needs it. Mutations go through
dispatch(): the pure reducer computes the next state, then the snapshot is
persisted and listeners are notified. Remote-backed mutations use
optimistic(), which undoes its own change when the remote call fails.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

from pymongo.errors import PyMongoError

from common.utils.dates import today_string
from morningcheck.store.actions import Action, RevertProject
from morningcheck.store.reducer import reduce
from morningcheck.store.snapshot_repository import SnapshotRepository
from morningcheck.store.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[AppState], None]


class Store:
    """
    Holds one AppState and applies actions to it.
    """

    def __init__(
        self,
        repository: Optional[SnapshotRepository] = None,
        tz_name: str = "UTC",
        initial_state: Optional[AppState] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize Store.

        Args:
            repository: Snapshot persistence; None keeps state in memory only
            tz_name: Timezone defining "today" for derived stats
            initial_state: Starting state (defaults to signed out, no projects)
            clock: Optional current-time source for tests
        """
        self._repository = repository
        self._tz_name = tz_name
        self._state = initial_state or AppState()
        self._clock = clock
        self._listeners: List[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    def today(self) -> str:
        now = self._clock() if self._clock else None
        return today_string(self._tz_name, now=now)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the new state after each change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def dispatch(self, action: Action) -> AppState:
        """
        Apply an action, persist the snapshot and notify listeners.

        Returns:
            The state after the action
        """
        next_state = reduce(self._state, action, self.today())
        if next_state is self._state:
            return self._state

        self._state = next_state
        await self._persist()

        for listener in list(self._listeners):
            listener(next_state)

        return next_state

    async def _persist(self) -> None:
        if self._repository is None:
            return
        try:
            await self._repository.save(self._state.to_snapshot())
        except PyMongoError as e:
            # In-memory state stays authoritative for this session
            logger.warning(f"Failed to persist store snapshot: {e}")

    async def hydrate(self) -> AppState:
        """
        Restore the persisted snapshot, if any.

        Call once at startup before dispatching anything else.
        """
        if self._repository is None:
            return self._state

        snapshot = await self._repository.load()
        if snapshot is None:
            return self._state

        self._state = AppState.from_snapshot(snapshot)
        logger.info(f"Store hydrated with {len(self._state.projects)} projects")
        return self._state

    async def optimistic(
        self,
        action: Action,
        remote_call: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Apply a project action before its remote call; undo it if the call fails.

        Only what this action changed in its project is undone. Dispatches
        made while the call is in flight are kept.

        Args:
            action: Local change to show immediately; must carry a project_id
            remote_call: Coroutine factory performing the remote write

        Returns:
            Whatever remote_call returns

        Raises:
            TypeError: action is not scoped to a project
            Whatever remote_call raises, after the rollback
        """
        project_id = getattr(action, "project_id", None)
        if project_id is None:
            raise TypeError(f"optimistic() needs a project action, got {type(action).__name__}")

        before = self._state.find_project(project_id)
        await self.dispatch(action)
        applied = self._state.find_project(project_id)
        try:
            return await remote_call()
        except Exception as e:
            logger.warning(f"Rolling back {type(action).__name__} on project {project_id}: {e}")
            if before is not None and applied is not None and applied is not before:
                await self.dispatch(RevertProject(before=before, applied=applied))
            raise

