import logging
from typing import Any

from pydantic import ValidationError

from random_radio.core.bus import SnapshotBus
from random_radio.core.matcher import PredicateMatcher
from random_radio.core.selector import ENGINE_TITLES, Engine, RandomSelector
from random_radio.core.supervisor import ZoneSupervisor
from random_radio.core.traversal import PROFILE_PATH, BrowseTraversal
from random_radio.models.settings import (
    DropdownValue,
    LayoutItem,
    RadioMode,
    RadioSettings,
    SettingsLayout,
)
from random_radio.platform.base import Platform
from random_radio.services.status import StatusBoard
from random_radio.services.store import SettingsStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
NO_ACTIVE_ZONES = "No active zones"

SUCCESS = "Success"
NOT_VALID = "NotValid"

MODE_TITLES = {
    RadioMode.OFF: "Off",
    RadioMode.TRACK: RadioMode.TRACK.value,
    RadioMode.ALBUM: RadioMode.ALBUM.value,
}


class RadioService:
    """Owns the wait registry and one supervisor per configured output."""

    def __init__(
        self,
        platform: Platform,
        store: SettingsStore,
        status: StatusBoard,
        *,
        settle_delay: float = 0.5,
        wait_timeout: float | None = None,
        rng_seed: int | None = None,
    ) -> None:
        self.platform = platform
        self._store = store
        self._status = status
        self._settle_delay = settle_delay
        self._rng_seed = rng_seed

        self.settings = self._load_settings()
        self.matcher = PredicateMatcher(wait_timeout=wait_timeout)
        self.bus = SnapshotBus(self.matcher, on_resync=self.resync)
        self.traversal = BrowseTraversal(platform.browser, RandomSelector(self.settings.engine, rng_seed))
        self.supervisors: dict[str, ZoneSupervisor] = {}

    def _load_settings(self) -> RadioSettings:
        values = self._store.load(SETTINGS_KEY)
        if values is None:
            return RadioSettings()
        try:
            return RadioSettings.from_values(values)
        except ValidationError:
            logger.exception("Ignoring invalid stored settings")
            return RadioSettings()

    def start(self) -> None:
        self.platform.subscribe_zones(self.bus.handle)

    def mode(self, output_id: str) -> RadioMode:
        return self.settings.modes.get(output_id, RadioMode.OFF)

    def start_engine(self, engine: Engine) -> None:
        if engine != self.traversal.selector.engine:
            self.traversal.selector = RandomSelector(engine, self._rng_seed)

    def supervisor(self, output_id: str) -> ZoneSupervisor:
        if output_id not in self.supervisors:
            self.supervisors[output_id] = ZoneSupervisor(
                output_id,
                matcher=self.matcher,
                transport=self.platform,
                traversal=self.traversal,
                mode=self.mode,
                resync=self.resync,
                settle_delay=self._settle_delay,
            )
        return self.supervisors[output_id]

    def resync(self) -> None:
        """Arm supervision for every configured zone and publish the status."""
        lines = []
        active: dict[str, str] = {}  # output id -> zone id

        # One supervisor per zone, the first configured output wins
        for output_id, mode in self.settings.active_modes().items():
            zone = self.platform.zone_by_output_id(output_id)
            if zone is None or zone.zone_id in active.values():
                continue
            active[output_id] = zone.zone_id
            lines.append(f"{zone.display_name}: {mode.value}")

        for output_id in list(self.supervisors):
            if output_id in active:
                continue
            supervisor = self.supervisors.pop(output_id)
            supervisor.disable(keep_wait=supervisor.zone_id in active.values())

        for output_id in active:
            self.supervisor(output_id).supervise(self.platform.zone_by_output_id(output_id))

        self._status.set_status("\n".join(lines) if lines else NO_ACTIVE_ZONES, False)

    async def profiles(self) -> list[str]:
        return await self.traversal.enumerate(PROFILE_PATH) or []

    async def settings_layout(self, values: dict[str, Any] | None = None) -> SettingsLayout:
        if values is None:
            values = self.settings.to_values()
        return make_layout(values, await self.profiles())

    async def save_settings(self, values: dict[str, Any], dryrun: bool = False) -> tuple[str, SettingsLayout]:
        layout = await self.settings_layout(values)
        if layout.has_error:
            return NOT_VALID, layout

        try:
            settings = RadioSettings.from_values(layout.values)
        except ValidationError as exc:
            logger.info("Rejected settings: %s", exc)
            layout.has_error = True
            return NOT_VALID, layout

        if not dryrun:
            self.start_engine(settings.engine)
            self.settings = settings
            self._store.save(SETTINGS_KEY, settings.to_values())
            self.resync()
        return SUCCESS, layout


def make_layout(values: dict[str, Any], profiles: list[str]) -> SettingsLayout:
    """Build the settings page and flag values it cannot accept."""
    layout = SettingsLayout(values=dict(values))

    if profiles:
        item = LayoutItem(
            type="dropdown",
            title="Profile",
            setting="profile",
            values=[DropdownValue(title=name, value=name) for name in profiles],
        )
        profile = values.get("profile")
        if profile is not None and profile not in profiles:
            item.error = f"Unknown profile {profile!r}"
        layout.layout.append(item)

    item = LayoutItem(
        type="dropdown",
        title="Random Number Engine",
        setting="engine",
        values=[DropdownValue(title=title, value=int(engine)) for engine, title in ENGINE_TITLES.items()],
    )
    if values.get("engine", Engine.MT19937) not in {int(engine) for engine in Engine}:
        item.error = "Unknown engine"
    layout.layout.append(item)

    layout.layout.append(LayoutItem(type="zone", title="Zone", setting="zone"))

    zone = values.get("zone")
    if isinstance(zone, dict) and zone.get("output_id"):
        output_id = zone["output_id"]
        item = LayoutItem(
            type="dropdown",
            title="Random Mode",
            setting=output_id,
            values=[DropdownValue(title=title, value=mode.value) for mode, title in MODE_TITLES.items()],
        )
        if values.get(output_id, RadioMode.OFF.value) not in {mode.value for mode in RadioMode}:
            item.error = "Unknown mode"
        layout.layout.append(item)

    layout.has_error = any(item.error for item in layout.layout)
    return layout
