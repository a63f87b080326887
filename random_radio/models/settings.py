from enum import Enum
from typing import Any

from pydantic import BaseModel

from random_radio.core.selector import Engine

RESERVED_KEYS = ("profile", "engine", "zone")


class RadioMode(str, Enum):
    OFF = ""
    TRACK = "Tracks"
    ALBUM = "Albums"


class ZoneRef(BaseModel):
    output_id: str
    name: str = ""


class RadioSettings(BaseModel):
    """Persisted radio configuration.

    On disk and on the settings page the per-output modes are flattened next
    to the reserved keys: ``{"profile", "engine", "zone", <output_id>: mode}``.
    """

    profile: str | None = None
    engine: Engine = Engine.MT19937
    zone: ZoneRef | None = None
    modes: dict[str, RadioMode] = {}

    @classmethod
    def from_values(cls, values: dict[str, Any]) -> "RadioSettings":
        modes = {key: value for key, value in values.items() if key not in RESERVED_KEYS}
        return cls(
            profile=values.get("profile"),
            engine=values.get("engine", Engine.MT19937),
            zone=values.get("zone"),
            modes=modes,
        )

    def to_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {
            "profile": self.profile,
            "engine": int(self.engine),
            "zone": self.zone.model_dump() if self.zone else None,
        }
        for output_id, mode in self.modes.items():
            values[output_id] = mode.value
        return values

    def active_modes(self) -> dict[str, RadioMode]:
        return {output_id: mode for output_id, mode in self.modes.items() if mode is not RadioMode.OFF}


class DropdownValue(BaseModel):
    title: str
    value: str | int | None


class LayoutItem(BaseModel):
    type: str  # "dropdown", "zone"
    title: str
    setting: str
    values: list[DropdownValue] = []
    error: str | None = None


class SettingsLayout(BaseModel):
    values: dict[str, Any]
    layout: list[LayoutItem] = []
    has_error: bool = False


class SaveSettingsResponse(BaseModel):
    status: str  # "Success" or "NotValid"
    settings: SettingsLayout
