from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Callable

from ..domain.models import Proposal
from ..observability.logging import get_logger
from ..pricing.summary import build_summary
from ..storage.errors import RemoteStoreError
from ..storage.local_cache import LocalCache, cache_key
from ..storage.remote_store import RemoteStore
from .change_detector import ChangeDetector
from .debounce import DebouncedTask
from .merge import (
    build_snapshot,
    decode_snapshot,
    encode_snapshot,
    merge_remote_and_cached,
    proposal_from_snapshot,
)
from .state import ProposalState

log = get_logger("proposal_sync")


class SaveState(str, Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    SAVING = "saving"


class SyncEngine:
    """
    Keeps one proposal at a time durable across the local cache and the
    remote store.

    - `load(id)` resolves remote -> cache -> defaults and never raises for
      storage failures.
    - Every change to `state` writes the snapshot to the local cache
      immediately and (re)arms a debounced remote write of the derived summary.
      Changes inside the post-load quiet window are held and saved when the
      window closes.
    - Loading another id drops the pending remote write for the previous one.

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        *,
        remote: RemoteStore,
        cache: LocalCache,
        state: ProposalState | None = None,
        detector: ChangeDetector | None = None,
        debounce_s: float = 1.0,
        quiet_period_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = state or ProposalState()
        self._remote = remote
        self._cache = cache
        self._detector = detector or ChangeDetector()
        self._quiet_period_s = max(0.0, float(quiet_period_s))
        self._clock = clock
        self._debounce = DebouncedTask(debounce_s, self._push_remote, name="proposal_remote_save")

        self._active_id: str | None = None
        self._load_generation = 0
        self._quiet_until = 0.0
        self._save_states: dict[str, SaveState] = {}
        self._write_lock = asyncio.Lock()
        self._held_save: asyncio.TimerHandle | None = None
        self._held = False

        self._unsubscribe = self.state.subscribe(self._on_change)

    # --- introspection ---

    @property
    def proposal_id(self) -> str | None:
        return self._active_id

    @property
    def proposal(self) -> Proposal:
        return self.state.proposal

    @property
    def remote_write_pending(self) -> bool:
        return self._debounce.pending

    def save_state(self, proposal_id: str | None = None) -> SaveState:
        pid = proposal_id or self._active_id
        return self._save_states.get(pid or "", SaveState.IDLE)

    # --- load ---

    async def load(self, proposal_id: str) -> Proposal:
        pid = str(proposal_id or "").strip()
        if not pid:
            raise ValueError("proposal_id is required")

        # A change held by the quiet window still reaches the cache.
        self._save_held()

        previous = self._active_id
        if self._debounce.cancel():
            log.info("pending_remote_save_dropped", proposal_id=previous, next_proposal_id=pid)
        if previous and self._save_states.get(previous) == SaveState.DIRTY:
            self._save_states[previous] = SaveState.IDLE

        # Until the new proposal is in place, changes belong to nobody.
        self._active_id = None
        self._load_generation += 1
        generation = self._load_generation
        self._detector.reset(pid)

        proposal, source = await self._resolve(pid)

        if generation != self._load_generation:
            log.info("proposal_load_superseded", proposal_id=pid)
            return proposal

        self.state.replace(proposal)
        self._active_id = pid
        self._quiet_until = self._clock() + self._quiet_period_s
        self._save_states[pid] = SaveState.IDLE
        log.info("proposal_loaded", proposal_id=pid, source=source)
        return proposal

    async def _resolve(self, pid: str) -> tuple[Proposal, str]:
        summary = None
        try:
            summary = await self._remote.fetch(pid)
        except RemoteStoreError as e:
            log.warning("remote_fetch_failed", proposal_id=pid, error=str(e), retryable=e.retryable)
        except Exception:
            log.exception("remote_fetch_error", proposal_id=pid)

        cached = self._read_cache(pid)

        if summary is not None:
            if cached is not None:
                try:
                    return merge_remote_and_cached(pid, summary, cached), "remote+cache"
                except (TypeError, ValueError) as e:
                    log.warning("cached_snapshot_invalid", proposal_id=pid, error=str(e))
            return merge_remote_and_cached(pid, summary, None), "remote"

        if cached is not None:
            try:
                return proposal_from_snapshot(pid, cached), "cache"
            except (TypeError, ValueError) as e:
                log.warning("cached_snapshot_invalid", proposal_id=pid, error=str(e))

        return Proposal(id=pid), "defaults"

    def _read_cache(self, pid: str) -> dict | None:
        try:
            return decode_snapshot(self._cache.get(cache_key(pid)))
        except ValueError as e:
            log.warning("cached_snapshot_corrupt", proposal_id=pid, error=str(e))
            return None

    # --- save ---

    def _on_change(self, proposal: Proposal, _fields: frozenset[str]) -> None:
        if self._active_id is None or proposal.id != self._active_id:
            return
        remaining = self._quiet_until - self._clock()
        if remaining > 0:
            # Held, not dropped: whatever is current when the window closes gets saved.
            self._held = True
            if self._held_save is None:
                self._held_save = asyncio.get_running_loop().call_later(remaining, self._save_held)
            return
        self._release_held()
        self._save(proposal)

    def _release_held(self) -> bool:
        """Disarm the held save. Returns True when a change was being held."""
        if self._held_save is not None:
            self._held_save.cancel()
            self._held_save = None
        held, self._held = self._held, False
        return held

    def _save_held(self) -> None:
        if self._release_held() and self._active_id is not None:
            self._save(self.state.proposal)

    def _save(self, proposal: Proposal) -> bool:
        pid = proposal.id
        snapshot = build_snapshot(proposal)
        if not self._detector.has_changed(pid, snapshot):
            return False

        try:
            self._cache.set(cache_key(pid), encode_snapshot(snapshot))
        except OSError as e:
            # Unrecorded, so the next change tries the cache again.
            log.error("local_cache_write_failed", proposal_id=pid, error=str(e))
        else:
            self._detector.record(pid, snapshot)

        self._save_states[pid] = SaveState.DIRTY
        self._debounce.restart(pid, self._load_generation)
        return True

    async def _push_remote(self, pid: str, generation: int) -> None:
        # One remote write at a time; a queued write sends whatever is current
        # once the previous one settles.
        async with self._write_lock:
            # A load since this write was armed makes it stale.
            if generation != self._load_generation or pid != self._active_id:
                log.info("stale_remote_save_skipped", proposal_id=pid)
                return
            proposal = self.state.proposal
            if proposal.id != pid:
                return

            summary = build_summary(proposal)
            self._save_states[pid] = SaveState.SAVING
            try:
                await self._remote.update(pid, summary)
                log.info(
                    "remote_saved",
                    proposal_id=pid,
                    total_value=summary.totalValue,
                    progress=summary.progress,
                )
            except RemoteStoreError as e:
                # The cache already holds this state; the next edit's cycle retries.
                log.warning("remote_save_failed", proposal_id=pid, error=str(e), retryable=e.retryable)
            except Exception:
                log.exception("remote_save_error", proposal_id=pid)
            finally:
                # An edit during the write left us Dirty with a fresh timer armed.
                if self._save_states.get(pid) == SaveState.SAVING:
                    self._save_states[pid] = SaveState.IDLE

    # --- lifecycle ---

    async def flush(self) -> None:
        """Save a held change, send the pending remote write now and wait for writes in flight."""
        self._save_held()
        await self._debounce.fire_now()
        await self._debounce.wait_idle()

    async def close(self) -> None:
        await self.flush()
        self._unsubscribe()
