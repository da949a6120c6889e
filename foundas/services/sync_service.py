"""Keep a local content record in step with the server for one path.

The controller owns a single authoritative state. Editing the path or
password derives a fresh signing identity in a worker thread, waits for the
input to go quiet, then reads the path once:

    Idle -> DerivingIdentity -> Debouncing -> Fetching -> Settled(owned, claimed)

Reads are tagged with an input generation. A derivation or read that
completes after the inputs have changed again is discarded, and the shared
single-flight transport cancels superseded requests outright.

Thread-safety: all state is mutated on the event loop. Only the key
derivation runs in a worker thread, and its result is applied back on the
loop after the generation check.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from foundas.exceptions import (
    FatalError,
    NotOwnerError,
    RequestCancelledError,
    TransientError,
    UnauthorizedError,
    UnclaimedError,
)
from foundas.rendering.renderer import render_markdown
from foundas.schemas.content import ContentRecord, ContentType
from foundas.services.envelope_service import (
    build_read_envelope,
    build_rotate_envelope,
    build_write_envelope,
    decode_record,
)
from foundas.services.identity_service import derive_identity
from foundas.services.path_service import MAX_PATH_LENGTH, validate_path
from foundas.services.view_service import derive_view

if TYPE_CHECKING:
    from collections.abc import Callable

    from foundas.schemas.content import PublishedView, RawUpload
    from foundas.services.identity_service import SigningIdentity
    from foundas.services.transport_service import SingleFlightTransport

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.2


@dataclass(frozen=True)
class Idle:
    """No usable inputs yet, or the path is invalid."""


@dataclass(frozen=True)
class DerivingIdentity:
    """Key stretching for the current inputs is running."""


@dataclass(frozen=True)
class Debouncing:
    """Identity ready; waiting for the inputs to stay unchanged."""


@dataclass(frozen=True)
class Fetching:
    """A read for the current inputs is outstanding."""


@dataclass(frozen=True)
class Settled:
    """Outcome of the last read.

    ``owned``: the current password may write to the path.
    ``claimed``: the path already has an owner on the server.
    """

    owned: bool
    claimed: bool


SyncState = Idle | DerivingIdentity | Debouncing | Fetching | Settled


class SyncController:
    """State machine syncing one editing session with the server."""

    def __init__(
        self,
        transport: SingleFlightTransport,
        path: str = "",
        password: str = "",
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_path_length: int = MAX_PATH_LENGTH,
        derive: Callable[[str, str], SigningIdentity] = derive_identity,
        render: Callable[[str], str] = render_markdown,
        on_change: Callable[[SyncState], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._transport = transport
        self._path = path
        self._password = password
        self._debounce_seconds = debounce_seconds
        self._max_path_length = max_path_length
        self._derive = derive
        self._render = render
        self._on_change = on_change
        self._on_error = on_error

        self._state: SyncState = Idle()
        self._last_settled: Settled | None = None
        self._generation = 0
        self._identity: SigningIdentity | None = None
        self._record = ContentRecord()
        self._derive_tasks: set[asyncio.Task[None]] = set()
        self._fetch_task: asyncio.Task[None] | None = None
        self._debounce_timer: asyncio.TimerHandle | None = None
        self.last_error: Exception | None = None

    # -- Read-only views -------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def path(self) -> str:
        return self._path

    @property
    def password(self) -> str:
        return self._password

    @property
    def path_valid(self) -> bool:
        return validate_path(self._path, self._max_path_length)

    @property
    def identity(self) -> SigningIdentity | None:
        """Identity for the current inputs, once derived."""
        return self._identity

    @property
    def owned(self) -> bool | None:
        """Whether the current password owns the path; None until settled."""
        if isinstance(self._state, Settled):
            return self._state.owned
        return None

    @property
    def claimed(self) -> bool | None:
        """Whether the path has an owner on the server; None until settled."""
        if isinstance(self._state, Settled):
            return self._state.claimed
        return None

    # -- Editing ---------------------------------------------------------

    @property
    def record(self) -> ContentRecord:
        return self._record

    @record.setter
    def record(self, record: ContentRecord) -> None:
        self._record = record

    def edit(self, **fields: Any) -> ContentRecord:
        """Update buffers of the local record, e.g. ``edit(md="# Hi")``."""
        self._record = self._record.model_copy(update=fields)
        return self._record

    def switch_type(self, content_type: ContentType) -> ContentRecord:
        """Change what the path serves without dropping any buffer."""
        self._record = self._record.with_type(content_type)
        return self._record

    def view(self, upload: RawUpload | None = None) -> PublishedView | None:
        """Live view of the local record; None for raw bytes without a file."""
        if self._record.type is ContentType.BYTES and upload is None:
            return None
        return derive_view(self._record, upload, self._render)

    # -- Input changes ---------------------------------------------------

    def start(self) -> None:
        """Begin syncing with the inputs given at construction."""
        self._inputs_changed()

    def set_inputs(self, path: str | None = None, password: str | None = None) -> None:
        """Change the path and/or password and restart the sync cycle."""
        if path is not None:
            self._path = path
        if password is not None:
            self._password = password
        self._inputs_changed()

    def refresh(self) -> None:
        """Read the path again with the current identity, e.g. after a transient failure.

        A failed refresh falls back to the last settled state.
        """
        if self._identity is None:
            self._inputs_changed()
            return
        self._generation += 1
        self._schedule_read(self._generation)

    def _inputs_changed(self) -> None:
        self._generation += 1
        self._cancel_debounce()
        self._identity = None
        self._last_settled = None
        if not self.path_valid:
            logger.debug("Path %r is not valid, not syncing", self._path)
            self._set_state(Idle())
            return
        self._set_state(DerivingIdentity())
        task = asyncio.create_task(
            self._derive_identity(self._generation, self._path, self._password)
        )
        self._derive_tasks.add(task)
        task.add_done_callback(self._derive_tasks.discard)

    async def _derive_identity(self, generation: int, path: str, password: str) -> None:
        try:
            identity = await asyncio.to_thread(self._derive, path, password)
        except FatalError as exc:
            if generation == self._generation:
                self._restore()
                self._report(exc)
            return
        if generation != self._generation:
            logger.debug("Discarding identity derived for stale inputs")
            return
        self._identity = identity
        self._schedule_read(generation)

    def _schedule_read(self, generation: int) -> None:
        self._cancel_debounce()
        self._set_state(Debouncing())
        loop = asyncio.get_running_loop()
        self._debounce_timer = loop.call_later(
            self._debounce_seconds, self._start_read, generation
        )

    def _cancel_debounce(self) -> None:
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
            self._debounce_timer = None

    def _start_read(self, generation: int) -> None:
        self._debounce_timer = None
        identity = self._identity
        if generation != self._generation or identity is None:
            return
        self._set_state(Fetching())
        self._fetch_task = asyncio.create_task(self._read(generation, identity, self._path))

    async def _read(self, generation: int, identity: SigningIdentity, path: str) -> None:
        envelope = build_read_envelope(identity, path)
        record: ContentRecord | None = None
        try:
            payload = await self._transport.send(envelope)
            record = decode_record(payload)
        except RequestCancelledError:
            logger.debug("Read of %r superseded", path)
            return
        except UnclaimedError:
            outcome = Settled(owned=True, claimed=False)
        except UnauthorizedError as exc:
            logger.debug("Read of %r rejected: %s", path, exc)
            outcome = Settled(owned=False, claimed=True)
        except TransientError as exc:
            if generation == self._generation:
                self._restore()
                self._report(exc)
            return
        else:
            outcome = Settled(owned=True, claimed=True)

        if generation != self._generation:
            logger.debug("Discarding read result for stale inputs")
            return
        if record is not None:
            self._record = record
        self._settle(outcome)

    # -- Mutations -------------------------------------------------------

    def _require_owner(self) -> SigningIdentity:
        state = self._state
        if not isinstance(state, Settled) or not state.owned or self._identity is None:
            raise NotOwnerError()
        return self._identity

    async def publish(self, upload: RawUpload | None = None) -> bool:
        """Write the local record and its view to the server.

        Returns False when a newer request superseded the write.

        Raises:
            NotOwnerError: The controller has not settled as owner.
            UnauthorizedError: The server rejected the signature.
            TransientError: Network failure or server error.
        """
        identity = self._require_owner()
        generation = self._generation
        path = self._path
        view = derive_view(self._record, upload, self._render)
        envelope = build_write_envelope(identity, path, self._record, view)
        try:
            await self._transport.send(envelope)
        except RequestCancelledError:
            logger.info("Publish of %r superseded", path)
            return False
        logger.info("Published %r", path)
        if generation == self._generation:
            self._settle(Settled(owned=True, claimed=True))
        return True

    async def rotate_password(self, new_password: str) -> bool:
        """Make *new_password* the owner password of the current path.

        The rotation is signed with the current identity. On success the
        controller switches to the new password and settles again from
        scratch, unless the inputs changed while the request was outstanding.
        Returns False when a newer request superseded the rotation or the
        inputs changed while the new key was being derived.
        """
        identity = self._require_owner()
        if self.claimed is False:
            raise NotOwnerError("path is unclaimed; publish before changing its password")
        generation = self._generation
        path = self._path
        new_identity = await asyncio.to_thread(self._derive, path, new_password)
        if generation != self._generation:
            logger.info("Inputs changed during rotation of %r, not sending", path)
            return False
        envelope = build_rotate_envelope(identity, path, new_identity.public_key)
        try:
            await self._transport.send(envelope)
        except RequestCancelledError:
            logger.info("Password rotation of %r superseded", path)
            return False
        logger.info("Rotated password of %r", path)
        if generation != self._generation:
            logger.info("Inputs changed during rotation of %r, keeping them", path)
            return True
        self.set_inputs(password=new_password)
        return True

    # -- Waiting and teardown -------------------------------------------

    async def settle(self) -> SyncState:
        """Wait until no derivation, debounce or read is pending."""
        loop = asyncio.get_running_loop()
        while True:
            if self._derive_tasks:
                await asyncio.wait(set(self._derive_tasks))
            elif self._debounce_timer is not None:
                await asyncio.sleep(max(0.0, self._debounce_timer.when() - loop.time()))
            elif self._fetch_task is not None and not self._fetch_task.done():
                await asyncio.wait({self._fetch_task})
            else:
                return self._state

    async def aclose(self) -> None:
        """Stop the timer and any pending work."""
        self._generation += 1
        self._cancel_debounce()
        tasks = [*self._derive_tasks]
        if self._fetch_task is not None and not self._fetch_task.done():
            tasks.append(self._fetch_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # -- Internals -------------------------------------------------------

    def _set_state(self, state: SyncState) -> None:
        if state == self._state:
            return
        logger.debug("Sync state %s -> %s", self._state, state)
        self._state = state
        if self._on_change is not None:
            self._on_change(state)

    def _settle(self, outcome: Settled) -> None:
        self._last_settled = outcome
        self._set_state(outcome)

    def _restore(self) -> None:
        self._set_state(self._last_settled if self._last_settled is not None else Idle())

    def _report(self, exc: Exception) -> None:
        self.last_error = exc
        logger.warning("Sync of %r failed: %s", self._path, exc)
        if self._on_error is not None:
            self._on_error(exc)
