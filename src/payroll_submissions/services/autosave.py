"""Debounced auto-save coordination for editors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_submissions.calculators.period import PeriodCalculator
from payroll_submissions.calculators.types import EntryInput, PayrollGroup
from payroll_submissions.config import get_settings
from payroll_submissions.services.draft_store import NO_DATA_REASON, DraftSaveResult, DraftStore
from payroll_submissions.services.roles import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftKey:
    """Identifies one editable payroll batch."""

    location_id: UUID
    pay_date: date
    payroll_group: PayrollGroup


SaveFn = Callable[[DraftKey, list[EntryInput]], Awaitable[DraftSaveResult]]


@dataclass
class DraftSession:
    """Editor state for one key.

    ``revision`` increases on every edit; ``saved_revision`` is the latest
    revision known to be persisted.
    """

    key: DraftKey
    entries: list[EntryInput] = field(default_factory=list)
    revision: int = 0
    saved_revision: int = 0
    submission_id: UUID | None = None
    last_saved_at: datetime | None = None
    last_result: DraftSaveResult | None = None
    in_flight: bool = False

    @property
    def dirty(self) -> bool:
        return self.revision > self.saved_revision


class AutoSaver:
    """Saves each key's latest entries after a quiet period.

    Every ``schedule`` call restarts the key's timer. At most one save per key
    runs at a time; edits that arrive while a save is in flight are picked up
    by the next save, so the newest entries are always the last ones written.
    Failures are logged and leave the session dirty for the next cycle.
    """

    def __init__(self, save: SaveFn, debounce_seconds: float | None = None):
        self._save = save
        self.debounce_seconds = (
            get_settings().autosave_debounce_seconds
            if debounce_seconds is None
            else debounce_seconds
        )
        self._sessions: dict[DraftKey, DraftSession] = {}
        self._timers: dict[DraftKey, asyncio.Task[None]] = {}
        self._locks: dict[DraftKey, asyncio.Lock] = {}

    def session(self, key: DraftKey) -> DraftSession:
        if key not in self._sessions:
            self._sessions[key] = DraftSession(key=key)
            self._locks[key] = asyncio.Lock()
        return self._sessions[key]

    def schedule(self, key: DraftKey, entries: Sequence[EntryInput]) -> DraftSession:
        """Record an edit and (re)start the debounce timer."""
        state = self.session(key)
        state.entries = list(entries)
        state.revision += 1

        self._cancel_timer(key)
        self._timers[key] = asyncio.create_task(self._save_after_quiet_period(key))
        return state

    async def flush(self, key: DraftKey) -> DraftSaveResult | None:
        """Save immediately, skipping any pending timer."""
        self._cancel_timer(key)
        if key not in self._sessions:
            return None
        return await self._save_latest(key)

    async def flush_all(self) -> None:
        for key in list(self._sessions):
            await self.flush(key)

    async def close(self) -> None:
        """Cancel pending timers without saving."""
        for key in list(self._timers):
            self._cancel_timer(key)

    async def discard(self, key: DraftKey) -> DraftSession | None:
        """Forget a key once its batch is submitted, dropping unsaved edits.

        Waits for an in-flight save to finish so it cannot outlive the key.
        """
        self._cancel_timer(key)
        lock = self._locks.get(key)
        if lock is None:
            return None
        async with lock:
            self._locks.pop(key, None)
            return self._sessions.pop(key, None)

    def _cancel_timer(self, key: DraftKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    async def _save_after_quiet_period(self, key: DraftKey) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        await self._save_latest(key)

    async def _save_latest(self, key: DraftKey) -> DraftSaveResult | None:
        state = self._sessions.get(key)
        if state is None:
            return None
        async with self._locks[key]:
            if self._sessions.get(key) is not state:
                # Discarded while waiting for the lock
                return state.last_result
            if not state.dirty:
                return state.last_result

            revision = state.revision
            entries = list(state.entries)
            state.in_flight = True
            try:
                result = await self._save(key, entries)
            except Exception:
                logger.exception(
                    "Auto-save failed for location %s pay date %s", key.location_id, key.pay_date
                )
                result = DraftSaveResult(saved=False, reason="Draft could not be saved; will retry")
            finally:
                state.in_flight = False

            state.last_result = result
            if result.saved:
                state.saved_revision = max(state.saved_revision, revision)
                state.submission_id = result.submission_id
                state.last_saved_at = result.saved_at
            elif result.submission_id is None and result.reason == NO_DATA_REASON:
                # Nothing to persist; not an error
                state.saved_revision = max(state.saved_revision, revision)
            return result


def draft_store_saver(
    session_factory: async_sessionmaker[AsyncSession],
    actor: Actor,
    periods: PeriodCalculator | None = None,
) -> SaveFn:
    """Build a save function that runs each save in its own session."""

    async def save(key: DraftKey, entries: list[EntryInput]) -> DraftSaveResult:
        async with session_factory() as session:
            store = DraftStore(session, periods=periods)
            return await store.save_draft(
                actor, key.location_id, key.pay_date, key.payroll_group, entries
            )

    return save
