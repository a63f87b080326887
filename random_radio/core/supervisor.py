import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from random_radio.core.matcher import PredicateMatcher
from random_radio.core.traversal import ALBUM_PATH, TRACK_PATH, BrowseTraversal
from random_radio.models.settings import RadioMode
from random_radio.models.state import NowPlayingPredicate, PlayState, Predicate, SettingsPredicate, Zone
from random_radio.platform.base import PlatformError, Transport

logger = logging.getLogger(__name__)

PATHS = {
    RadioMode.TRACK: TRACK_PATH,
    RadioMode.ALBUM: ALBUM_PATH,
}

PLAY_PREDICATE = Predicate(settings=SettingsPredicate(auto_radio=True), state=PlayState.PLAYING)
STOP_PREDICATE = Predicate(settings=SettingsPredicate(auto_radio=True), state=PlayState.STOPPED)
METADATA_PREDICATE = Predicate(now_playing=NowPlayingPredicate(length=True), state=PlayState.STOPPED)
STOPPED_PREDICATE = Predicate(state=PlayState.STOPPED)
RADIO_OFF_PREDICATE = Predicate(settings=SettingsPredicate(auto_radio=False))


class SupervisorState(str, Enum):
    IDLE = "idle"
    AWAITING_METADATA = "awaiting_metadata"
    PLAY_MONITORING = "play_monitoring"
    STOP_MONITORING = "stop_monitoring"
    RESELECTING = "reselecting"
    AWAITING_RADIO_OFF = "awaiting_radio_off"
    AWAITING_STOP = "awaiting_stop"


class ZoneSupervisor:
    """Keeps the radio loop of one configured output running.

    Every transition registers the next wait with the matcher; the matched
    snapshot drives the following step. A stopped zone with nothing left to
    play gets a freshly selected item, after which stop monitoring is armed
    again.
    """

    def __init__(
        self,
        output_id: str,
        *,
        matcher: PredicateMatcher,
        transport: Transport,
        traversal: BrowseTraversal,
        mode: Callable[[str], RadioMode],
        resync: Callable[[], None],
        settle_delay: float = 0.5,
    ) -> None:
        self.output_id = output_id
        self.state = SupervisorState.IDLE
        self.zone_id: str | None = None
        self._matcher = matcher
        self._transport = transport
        self._traversal = traversal
        self._mode = mode
        self._resync = resync
        self._settle_delay = settle_delay
        self._settle_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def mode(self) -> RadioMode:
        return self._mode(self.output_id)

    def supervise(self, zone: Zone) -> None:
        """Enter the loop from the zone's current snapshot."""
        if self.state is SupervisorState.RESELECTING:
            logger.debug("%s: selection in progress, not re-arming", zone.display_name)
            return
        self.zone_id = zone.zone_id

        if zone.state is not PlayState.PLAYING:
            self._watch_play(zone)
        elif zone.now_playing is not None and zone.now_playing.length:
            self._watch_stop(zone)
        else:
            logger.info("%s: setup now_playing.length monitoring", zone.display_name)
            self._await(zone, SupervisorState.AWAITING_METADATA, METADATA_PREDICATE, self._on_metadata)

    def disable(self, keep_wait: bool = False) -> None:
        """Drop the pending wait and any scheduled radio toggle."""
        if self.zone_id is not None and not keep_wait:
            self._matcher.discard(self.zone_id)
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
        self.state = SupervisorState.IDLE

    def _await(self, zone: Zone, state: SupervisorState, predicate: Predicate, continuation) -> None:
        self.state = state
        self._matcher.register(zone.zone_id, predicate, continuation)

    def _watch_play(self, zone: Zone) -> None:
        logger.info("%s: setup play monitoring", zone.display_name)
        self._await(zone, SupervisorState.PLAY_MONITORING, PLAY_PREDICATE, self._on_play)

    def _watch_stop(self, zone: Zone) -> None:
        logger.info("%s: setup stop monitoring", zone.display_name)
        self._await(zone, SupervisorState.STOP_MONITORING, STOP_PREDICATE, self._on_stop)

    def _on_metadata(self, zone: Zone) -> None:
        self.state = SupervisorState.IDLE
        self._resync()

    def _on_play(self, zone: Zone) -> None:
        if zone.state is PlayState.PLAYING:
            self.supervise(zone)
            return

        # Native radio is on but the zone is idle: take over from it
        self._turn_radio_off(zone)
        self._await(zone, SupervisorState.AWAITING_RADIO_OFF, RADIO_OFF_PREDICATE, self._on_radio_off)

    def _on_radio_off(self, zone: Zone):
        return self._reselect(zone, forced=True)

    def _on_stop(self, zone: Zone):
        if zone.state is PlayState.STOPPED:
            return self._reselect(zone)

        self._turn_radio_off(zone)
        # Only allow reactivation after playback stopped
        self._await(zone, SupervisorState.AWAITING_STOP, STOPPED_PREDICATE, self._watch_play)

    async def _reselect(self, zone: Zone, forced: bool = False) -> None:
        if zone.is_play_allowed and not forced:
            self._watch_play(zone)
            return

        path = PATHS.get(self.mode)
        if path is None:
            self.state = SupervisorState.IDLE
            return

        self.state = SupervisorState.RESELECTING
        try:
            result = await self._traversal.play(zone.zone_id, path)
        except Exception:
            logger.exception("%s: random selection failed", zone.display_name)
            result = None

        if self.state is not SupervisorState.RESELECTING or self.mode is RadioMode.OFF:
            # Reconfigured while the traversal was in flight
            return
        if result is not None and result.exact:
            logger.info("%s: playing %r", zone.display_name, result.item.title)
        self._watch_stop(zone)

    def _turn_radio_off(self, zone: Zone) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self._settle_delay, self._spawn_radio_off, zone.zone_id)

    def _spawn_radio_off(self, zone_id: str) -> None:
        self._settle_handle = None
        task = asyncio.ensure_future(self._radio_off(zone_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _radio_off(self, zone_id: str) -> None:
        try:
            await self._transport.change_settings(zone_id, auto_radio=False)
        except PlatformError as exc:
            logger.warning("Turning auto radio off for %s failed: %s", zone_id, exc)
