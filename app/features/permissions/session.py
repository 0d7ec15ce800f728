"""
Assignment session: edit one role's permission tree and save it.

States:
    IDLE --open--> LOADING --(loaded)--> EDITING --submit--> SUBMITTING
    SUBMITTING --(saved)--> IDLE
    SUBMITTING --(failed / timed out / caller cancelled)--> EDITING   (tree kept for retry)
    LOADING | EDITING --cancel--> IDLE

Only open() and submit() await the grant store. toggle() is synchronous and
pure. A session is meant to be driven from one asyncio task; a second submit()
while one is in flight is rejected without touching the store.
"""
from __future__ import annotations

import asyncio
import enum
from typing import Awaitable, Optional, Protocol, Sequence, TypeVar

from app.core import config
from app.core.exceptions import LoadError, SaveError, SessionStateError
from app.features.permissions.schemas import Forest
from app.features.permissions.tree import collect_enabled, enabled_ids, set_enabled
from app.utils import get_logger


log = get_logger(__name__)

T = TypeVar("T")


class GrantStore(Protocol):
    """Where a session reads a role's tree from and writes its grants to."""

    async def load_role_grants(self, role_id: str) -> Forest:
        ...

    async def replace_role_grants(self, role_id: str, permission_ids: Sequence[str]) -> None:
        """Atomically make `permission_ids` the role's complete grant set."""
        ...


class SessionState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    EDITING = "editing"
    SUBMITTING = "submitting"


def _drain(task: asyncio.Future) -> None:
    # Result of a request abandoned after a timeout; read it so asyncio does not warn
    if not task.cancelled() and task.exception() is not None:
        log.debug(f"Abandoned grant store request finished with {task.exception()!r}")


class AssignmentSession:
    """
    Coordinates load, edit and save of one role's grants.

    Args:
        store: Grant store (GrantStoreClient over HTTP, or DatabaseGrantStore)
        timeout: Seconds to wait on the store before failing open/submit.
            A timed out request is not aborted; its late result is ignored.
            Defaults to SUBMIT_TIMEOUT; None waits forever.
    """

    def __init__(self, store: GrantStore, timeout: Optional[float] = config.SUBMIT_TIMEOUT) -> None:
        self._store = store
        self._timeout = timeout
        self._state = SessionState.IDLE
        self._role_id: Optional[str] = None
        self._forest: Forest = ()
        # Bumped on open and cancel; a load that finishes under an older value is stale
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def role_id(self) -> Optional[str]:
        return self._role_id

    @property
    def forest(self) -> Forest:
        return self._forest

    @property
    def selection(self) -> frozenset[str]:
        """IDs that would be granted if submitted now."""
        return collect_enabled(self._forest)

    async def open(self, role_id: str) -> Forest:
        """
        Load the role's tree and start editing it.

        Raises:
            SessionStateError: If the session is not idle
            LoadError: If the store raises or times out, or the session was
                cancelled while loading; the session is idle afterwards

        If the awaiting task itself is cancelled (e.g. an outer
        asyncio.wait_for), the session returns to idle and the cancellation
        propagates.
        """
        if self._state is not SessionState.IDLE:
            raise SessionStateError("open", self._state.value)

        self._generation += 1
        generation = self._generation
        self._state = SessionState.LOADING
        self._role_id = role_id
        log.debug(f"Opening assignment session for role {role_id}")

        try:
            forest = await self._call_store(self._store.load_role_grants(role_id))
        except asyncio.CancelledError:
            if generation == self._generation:
                self._reset()
            log.info(f"Loading permissions of role {role_id} was cancelled by the caller")
            raise
        except Exception as exc:
            if generation == self._generation:
                self._reset()
            log.warning(f"Loading permissions of role {role_id} failed: {exc!r}")
            raise LoadError(role_id, f"Failed to load permissions of role {role_id}") from exc

        if generation != self._generation:
            log.info(f"Discarding permissions of role {role_id} loaded after cancel")
            raise LoadError(role_id, "Session was cancelled while loading")

        self._forest = tuple(forest)
        self._state = SessionState.EDITING
        return self._forest

    def toggle(self, permission_id: str, value: bool) -> Forest:
        """
        Set one node's enabled flag. Unknown IDs are ignored.

        Raises:
            SessionStateError: If the session is not editing
        """
        if self._state is not SessionState.EDITING:
            raise SessionStateError("toggle", self._state.value)
        self._forest = set_enabled(self._forest, permission_id, value)
        return self._forest

    async def submit(self) -> frozenset[str]:
        """
        Replace the role's grants with every enabled node of the tree.

        Returns:
            The submitted permission IDs; the session is idle afterwards

        Raises:
            SessionStateError: If not editing, including while another submit is in flight
            SaveError: If the store raises or times out; the session is back to
                editing with the tree unchanged

        If the awaiting task itself is cancelled, the session is back to
        editing as well and the cancellation propagates. The request already
        sent is not aborted; its late result is ignored.
        """
        if self._state is not SessionState.EDITING:
            raise SessionStateError("submit", self._state.value)

        role_id = self._role_id
        selection = enabled_ids(self._forest)
        self._state = SessionState.SUBMITTING
        log.debug(f"Submitting {len(selection)} permissions for role {role_id}")

        try:
            await self._call_store(self._store.replace_role_grants(role_id, selection))
        except asyncio.CancelledError:
            self._state = SessionState.EDITING
            log.warning(f"Saving permissions of role {role_id} was cancelled by the caller; edits kept")
            raise
        except Exception as exc:
            self._state = SessionState.EDITING
            log.warning(f"Saving permissions of role {role_id} failed: {exc!r}")
            raise SaveError(role_id, f"Failed to save permissions of role {role_id}") from exc

        log.info(f"Saved {len(selection)} permissions for role {role_id}")
        self._reset()
        return frozenset(selection)

    def cancel(self) -> None:
        """
        Drop the tree and return to idle. No request is sent.

        Raises:
            SessionStateError: If the session is idle or submitting
        """
        if self._state not in (SessionState.LOADING, SessionState.EDITING):
            raise SessionStateError("cancel", self._state.value)
        log.debug(f"Cancelled assignment session for role {self._role_id}")
        self._generation += 1
        self._reset()

    def _reset(self) -> None:
        self._state = SessionState.IDLE
        self._role_id = None
        self._forest = ()

    async def _call_store(self, request: Awaitable[T]) -> T:
        task = asyncio.ensure_future(request)
        try:
            # shield: giving up on a request (timeout or caller cancel) never aborts it
            if self._timeout is None:
                return await asyncio.shield(task)
            return await asyncio.wait_for(asyncio.shield(task), self._timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            task.add_done_callback(_drain)
            raise
