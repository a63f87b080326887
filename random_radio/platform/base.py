from collections.abc import Callable
from typing import Protocol

from random_radio.models.browse import BrowseOptions, BrowseResult, LoadOptions, LoadResult
from random_radio.models.state import Zone, ZoneEvent


class PlatformError(Exception):
    """A transport or browse call to the platform failed."""


class Browser(Protocol):
    async def browse(self, opts: BrowseOptions) -> BrowseResult: ...

    async def load(self, opts: LoadOptions) -> LoadResult: ...


class Transport(Protocol):
    def subscribe_zones(self, handler: Callable[[ZoneEvent], None]) -> None: ...

    def zone_by_output_id(self, output_id: str) -> Zone | None: ...

    def zones(self) -> list[Zone]: ...

    async def change_settings(self, zone_id: str, *, auto_radio: bool) -> None: ...


class Platform(Transport, Protocol):
    browser: Browser

    async def start(self) -> None: ...

    async def stop(self) -> None: ...
