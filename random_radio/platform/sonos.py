import asyncio
import logging
from collections.abc import Callable

import soco
from soco.exceptions import SoCoException
from soco.groups import ZoneGroup

from random_radio.models.state import NowPlaying, Output, PlayState, Zone, ZoneEvent, ZoneEventKind, ZoneSettings
from random_radio.platform.base import PlatformError
from random_radio.platform.library import SonosLibraryBrowser, run_blocking
from random_radio.utils.retry import TRANSIENT_ERRORS, retry_soco

logger = logging.getLogger(__name__)

_STATES = {
    "PLAYING": PlayState.PLAYING,
    "PAUSED_PLAYBACK": PlayState.PAUSED,
    "STOPPED": PlayState.STOPPED,
    "TRANSITIONING": PlayState.LOADING,
}

# Repeating play modes keep a Sonos queue going on its own, the closest
# thing the household has to a native continuous radio.
_CONTINUOUS_MODES = {"REPEAT_ALL", "SHUFFLE", "REPEAT_ONE", "SHUFFLE_REPEAT_ONE"}

# (shuffle, continuous) -> SoCo play_mode string
_PLAY_MODES = {
    (False, False): "NORMAL",
    (True, False): "SHUFFLE_NOREPEAT",
    (False, True): "REPEAT_ALL",
    (True, True): "SHUFFLE",
}

def _seconds(timestamp: str | None) -> int | None:
    """Parse a SoCo ``H:MM:SS`` position; None when not reported."""
    if not timestamp or ":" not in timestamp:
        return None
    try:
        hours, minutes, seconds = (int(part) for part in timestamp.split(":"))
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds

def _snapshot(group) -> Zone:
    coordinator = group.coordinator
    transport = coordinator.get_current_transport_info()
    track = coordinator.get_current_track_info()
    play_mode = coordinator.play_mode
    queue_size = coordinator.queue_size

    state = _STATES.get(transport.get("current_transport_state", ""), PlayState.STOPPED)
    now_playing = None
    if track.get("uri"):
        now_playing = NowPlaying(
            seek_position=_seconds(track.get("position")),
            length=_seconds(track.get("duration")) or None,
            title=track.get("title", ""),
        )

    try:
        queue_position = int(track.get("playlist_position") or 0)
    except ValueError:
        queue_position = 0
    # Stopped at the end of the queue means nothing is left to play
    play_allowed = state is PlayState.PAUSED or (state is PlayState.STOPPED and queue_position < queue_size)

    return Zone(
        zone_id=group.uid,
        display_name=group.short_label,
        state=state,
        is_play_allowed=play_allowed,
        is_pause_allowed=state is PlayState.PLAYING,
        now_playing=now_playing,
        settings=ZoneSettings(auto_radio=play_mode in _CONTINUOUS_MODES),
        outputs=[Output(output_id=member.uid, display_name=member.player_name) for member in group.members],
    )


class SonosPlatform:
    """Sonos household seen as a push source of zone snapshots.

    Zone groups are discovered periodically and polled for state; the first
    poll after subscribing delivers the full zone list, later polls deliver
    only what changed.
    """

    def __init__(self, poll_interval: float = 1.0, discovery_interval: int = 30, page_size: int = 100) -> None:
        self._poll_interval = poll_interval
        self._discovery_interval = discovery_interval
        self._groups: dict[str, ZoneGroup] = {}
        self._zones: dict[str, Zone] = {}
        self._handler: Callable[[ZoneEvent], None] | None = None
        self._subscribed = False
        self._tasks: list[asyncio.Task] = []
        self.browser = SonosLibraryBrowser(self, page_size=page_size)

    async def start(self) -> None:
        """Run initial discovery and start background tasks."""
        await self._discover()
        self._tasks = [
            asyncio.create_task(self._discovery_loop()),
            asyncio.create_task(self._poll_loop()),
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    def subscribe_zones(self, handler: Callable[[ZoneEvent], None]) -> None:
        self._handler = handler
        self._subscribed = False

    def zones(self) -> list[Zone]:
        return list(self._zones.values())

    def zone_by_output_id(self, output_id: str) -> Zone | None:
        for zone in self._zones.values():
            if any(output.output_id == output_id for output in zone.outputs):
                return zone
        return None

    def coordinator(self, zone_or_output_id: str) -> soco.SoCo:
        group = self._groups.get(zone_or_output_id)
        if group is None:
            zone = self.zone_by_output_id(zone_or_output_id)
            group = self._groups.get(zone.zone_id) if zone else None
        if group is None:
            raise PlatformError(f"Unknown zone or output {zone_or_output_id!r}")
        return group.coordinator

    def any_speaker(self) -> soco.SoCo:
        for group in self._groups.values():
            return group.coordinator
        raise PlatformError("No Sonos speakers available")

    async def change_settings(self, zone_id: str, *, auto_radio: bool) -> None:
        coordinator = self.coordinator(zone_id)

        def _set():
            shuffle = "SHUFFLE" in coordinator.play_mode
            coordinator.play_mode = _PLAY_MODES[(shuffle, auto_radio)]

        await run_blocking(_set)
        logger.info("Auto radio %s for %s", "on" if auto_radio else "off", zone_id)

    async def _discover(self) -> None:
        """Discover Sonos zone groups on the network."""
        try:
            devices = await asyncio.to_thread(soco.discover, timeout=5)
        except Exception:
            logger.exception("Discovery failed")
            return

        if not devices:
            logger.warning("No Sonos devices found")
            return

        try:
            any_device = next(iter(devices))
            groups = await asyncio.to_thread(lambda: any_device.all_groups)
        except (SoCoException, OSError):
            logger.exception("Failed to read zone groups")
            return

        self._groups = {group.uid: group for group in groups}
        logger.info("Discovered %d zone groups", len(self._groups))

    async def trigger_rediscovery(self) -> None:
        """Trigger an immediate re-discovery (e.g. after a speaker becomes unreachable)."""
        await self._discover()

    async def _discovery_loop(self) -> None:
        while True:
            await asyncio.sleep(self._discovery_interval)
            await self._discover()

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self._poll()
            except Exception:
                logger.exception("Publishing zone snapshots failed")
            await asyncio.sleep(self._poll_interval)

    @retry_soco()
    async def _read(self, group) -> Zone:
        return await asyncio.to_thread(_snapshot, group)

    async def _poll(self) -> None:
        snapshots: dict[str, Zone] = {}
        for zone_id, group in list(self._groups.items()):
            try:
                snapshots[zone_id] = await self._read(group)
            except TRANSIENT_ERRORS as exc:
                logger.warning("Reading zone %s failed: %s", zone_id, exc)
                if zone_id in self._zones:
                    snapshots[zone_id] = self._zones[zone_id]
        self._publish(snapshots)

    def _publish(self, snapshots: dict[str, Zone]) -> None:
        previous = self._zones
        self._zones = snapshots
        if self._handler is None:
            return

        if not self._subscribed:
            self._subscribed = True
            self._handler(ZoneEvent(kind=ZoneEventKind.SUBSCRIBED, zones=list(snapshots.values())))
            return

        event = ZoneEvent(
            kind=ZoneEventKind.CHANGED,
            zones_changed=[zone for zone_id, zone in snapshots.items() if zone_id in previous and previous[zone_id] != zone],
            zones_added=[zone for zone_id, zone in snapshots.items() if zone_id not in previous],
            zones_removed=[zone_id for zone_id in previous if zone_id not in snapshots],
        )
        if event.zones_changed or event.zones_added or event.zones_removed:
            self._handler(event)
