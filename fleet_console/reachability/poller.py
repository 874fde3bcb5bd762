"""
Status Poller — reachability of a server's address and hostname.

Runs beside, never in front of, the rest of a server card: nothing waits
on it and it never disables an action trigger.

Each subject (IP or hostname) is checked once when it first becomes
known. With a refresh interval configured, ``run_async`` re-checks every
watched subject on that heartbeat.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from fleet_console.models.outcomes import Failure
from fleet_console.models.reachability import ReachabilityState, ReachabilityStatus
from fleet_console.session.calls import guarded_call
from fleet_console.session.guard import SessionGuard
from fleet_console.transport.client import path_segment

logger = logging.getLogger(__name__)


class StatusPoller:
    """Independent reachability state per subject key."""

    def __init__(self, guard: SessionGuard, refresh_seconds: Optional[float] = None):
        self.guard = guard
        self.refresh_seconds = refresh_seconds
        self._states: Dict[str, ReachabilityState] = {}
        self._watched: List[str] = []
        self._pending: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def watched(self) -> List[str]:
        return list(self._watched)

    def state(self, subject_key: str) -> ReachabilityState:
        """Current state; UNKNOWN until a check for the subject has resolved."""
        return self._states.get(subject_key) or ReachabilityState(subject_key=subject_key)

    async def refresh(self, subject_key: str) -> ReachabilityState:
        """
        Ping one subject.

        A failed check keeps whatever was known before (UNKNOWN if nothing).
        """
        body = await guarded_call(
            self.guard,
            "GET",
            f"/api/ping/{path_segment(subject_key)}",
            f"Ping failed for {subject_key}",
        )
        if isinstance(body, Failure):
            return self.state(subject_key)

        raw = body.get("status") if isinstance(body, dict) else None
        if raw not in (ReachabilityStatus.UP.value, ReachabilityStatus.DOWN.value):
            logger.warning("Unexpected ping answer for %s: %r", subject_key, body)
            return self.state(subject_key)

        new_state = ReachabilityState(
            subject_key=subject_key,
            status=ReachabilityStatus(raw),
            checked_at=datetime.utcnow(),
        )
        self._states[subject_key] = new_state
        return new_state

    def watch(self, subject_key: Optional[str]) -> Optional[asyncio.Task]:
        """
        Start tracking a subject the first time it becomes available.

        Schedules the one-shot check in the background and returns its task;
        returns None for an empty or already-watched subject.
        """
        if not subject_key or subject_key in self._watched:
            return None
        self._watched.append(subject_key)
        task = asyncio.create_task(self.refresh(subject_key))
        self._pending[subject_key] = task
        task.add_done_callback(lambda _t, key=subject_key: self._pending.pop(key, None))
        return task

    async def settle(self) -> None:
        """Wait for every outstanding check to resolve."""
        pending = list(self._pending.values())
        if pending:
            await asyncio.gather(*pending)

    async def refresh_all(self) -> List[ReachabilityState]:
        return list(await asyncio.gather(*(self.refresh(s) for s in self._watched)))

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Re-check watched subjects every ``refresh_seconds`` until stopped."""
        if self.refresh_seconds is None:
            return
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.refresh_seconds)
                except asyncio.TimeoutError:
                    await self.refresh_all()
        finally:
            self._running = False
