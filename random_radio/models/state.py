from enum import Enum

from pydantic import BaseModel


class PlayState(str, Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    LOADING = "loading"


class NowPlaying(BaseModel):
    seek_position: int | None = None  # seconds
    length: int | None = None  # seconds, absent while metadata is loading
    title: str = ""


class ZoneSettings(BaseModel):
    auto_radio: bool = False


class Output(BaseModel):
    output_id: str
    display_name: str = ""


class Zone(BaseModel):
    """One zone snapshot as pushed by the platform."""

    zone_id: str
    display_name: str = ""
    state: PlayState = PlayState.STOPPED
    is_play_allowed: bool = False
    is_pause_allowed: bool = False
    now_playing: NowPlaying | None = None
    settings: ZoneSettings = ZoneSettings()
    outputs: list[Output] = []


class NowPlayingPredicate(BaseModel):
    seek_position: int | None = None
    length: bool | None = None  # only presence of a length is tested


class SettingsPredicate(BaseModel):
    auto_radio: bool | None = None


class Predicate(BaseModel):
    """Partial zone description; unset fields are not tested."""

    now_playing: NowPlayingPredicate | None = None
    is_play_allowed: bool | None = None
    is_pause_allowed: bool | None = None
    state: PlayState | None = None
    settings: SettingsPredicate | None = None

    def is_empty(self) -> bool:
        now_playing = self.now_playing
        settings = self.settings
        return (
            (now_playing is None or (now_playing.seek_position is None and now_playing.length is None))
            and self.is_play_allowed is None
            and self.is_pause_allowed is None
            and self.state is None
            and (settings is None or settings.auto_radio is None)
        )


class ZoneEventKind(str, Enum):
    SUBSCRIBED = "Subscribed"
    CHANGED = "Changed"


class ZoneEvent(BaseModel):
    kind: ZoneEventKind
    zones: list[Zone] = []
    zones_changed: list[Zone] = []
    zones_added: list[Zone] = []
    zones_removed: list[str] = []


class ZoneSummary(BaseModel):
    zone_id: str
    display_name: str
    state: PlayState
    auto_radio: bool
    outputs: list[Output]
    mode: str = ""
    supervisor: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    zones: int = 0
    supervised: int = 0


class StatusResponse(BaseModel):
    message: str = ""
    is_error: bool = False


class ErrorResponse(BaseModel):
    error: str
    detail: str = ""
