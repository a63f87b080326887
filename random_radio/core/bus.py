import logging
from collections.abc import Callable

from random_radio.core.matcher import PredicateMatcher
from random_radio.models.state import ZoneEvent, ZoneEventKind

logger = logging.getLogger(__name__)


class SnapshotBus:
    """Forwards every pushed zone snapshot to the matcher."""

    def __init__(self, matcher: PredicateMatcher, on_resync: Callable[[], None] | None = None) -> None:
        self._matcher = matcher
        self._on_resync = on_resync

    def handle(self, event: ZoneEvent) -> None:
        resync = False

        if event.kind is ZoneEventKind.SUBSCRIBED:
            logger.info("Subscribed to %d zones", len(event.zones))
            zones = list(event.zones)
            resync = True
        else:
            zones = [*event.zones_changed, *event.zones_added]
            resync = bool(event.zones_added)
            for zone_id in event.zones_removed:
                self._matcher.discard(zone_id)

        # Supervision is armed first so this batch can already satisfy it
        if resync and self._on_resync:
            self._on_resync()

        for zone in zones:
            self._matcher.feed(zone)
