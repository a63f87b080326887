import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from random_radio.models.state import Predicate, Zone

logger = logging.getLogger(__name__)

Continuation = Callable[[Zone], Any]


@dataclass
class PendingWait:
    predicate: Predicate
    continuation: Continuation
    created_at: float


def matches(predicate: Predicate, zone: Zone) -> bool:
    """Tolerant partial match of a zone snapshot against a predicate.

    Independent checks are OR-ed; a check only takes part when its
    predicate field is set.
    """
    now_playing = zone.now_playing

    if predicate.now_playing is not None and now_playing is not None:
        seek_position = predicate.now_playing.seek_position
        # The push stream sometimes skips a seek position, allow one off
        if seek_position is not None and now_playing.seek_position in (seek_position, seek_position + 1):
            return True
        if predicate.now_playing.length is not None and now_playing.length:
            return True

    if predicate.is_play_allowed is not None and predicate.is_play_allowed == zone.is_play_allowed:
        return True
    if predicate.is_pause_allowed is not None and predicate.is_pause_allowed == zone.is_pause_allowed:
        return True
    if predicate.state is not None and predicate.state == zone.state:
        return True

    if predicate.settings is not None:
        auto_radio = predicate.settings.auto_radio
        if auto_radio is not None and auto_radio == zone.settings.auto_radio:
            return True

    return False


class PredicateMatcher:
    """Turns pushed zone snapshots into per-zone continuations.

    Holds at most one pending wait per zone id. Registering a wait for a zone
    that already has one cancels and replaces it: the replaced continuation
    is dropped without being invoked.
    """

    def __init__(self, wait_timeout: float | None = None) -> None:
        self._wait_timeout = wait_timeout
        self._waits: dict[str, PendingWait] = {}
        self._tasks: set[asyncio.Task] = set()

    def register(self, zone_id: str, predicate: Predicate, continuation: Continuation) -> None:
        if zone_id in self._waits:
            logger.debug("Replacing pending wait for %s", zone_id)
        self._waits[zone_id] = PendingWait(predicate, continuation, time.monotonic())

    def discard(self, zone_id: str) -> None:
        self._waits.pop(zone_id, None)

    def pending(self, zone_id: str) -> PendingWait | None:
        return self._waits.get(zone_id)

    def __len__(self) -> int:
        return len(self._waits)

    def feed(self, zone: Zone) -> bool:
        """Evaluate the zone's pending wait; return True when it fired."""
        if self._wait_timeout is not None:
            self._prune(time.monotonic())

        wait = self._waits.get(zone.zone_id)
        if wait is None or wait.predicate.is_empty():
            return False
        if not matches(wait.predicate, zone):
            return False

        # Drop first so the continuation can register its successor
        del self._waits[zone.zone_id]
        try:
            outcome = wait.continuation(zone)
        except Exception:
            logger.exception("Continuation for %s failed", zone.zone_id)
            return True
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        return True

    def _prune(self, now: float) -> None:
        expired = [
            zone_id for zone_id, wait in self._waits.items()
            if now - wait.created_at > self._wait_timeout
        ]
        for zone_id in expired:
            logger.warning("Abandoned wait for %s after %.0fs", zone_id, self._wait_timeout)
            del self._waits[zone_id]

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Continuation failed", exc_info=task.exception())
