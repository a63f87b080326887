import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from random_radio.core.selector import RandomSelector
from random_radio.models.browse import BrowseItem, BrowseList, BrowseOptions, BrowseResult, LoadOptions, LoadResult
from random_radio.platform.base import Browser, PlatformError

logger = logging.getLogger(__name__)

LIBRARY = "Library"
RANDOM_DEPTH = 2


class SegmentRule(str, Enum):
    EXACT = "exact"  # item whose title equals the segment
    FIRST = "first"  # first item on the page
    RANDOM = "random"  # random offset over the whole list


@dataclass(frozen=True)
class Segment:
    title: str = ""
    rule: SegmentRule = SegmentRule.EXACT
    optional: bool = False  # when absent, match the next segment on the same page


WILDCARD = Segment(rule=SegmentRule.RANDOM)


class TraversalPath(tuple):
    """Ordered browse segments from the root list down to a leaf."""

    def __new__(cls, *segments: Segment | str) -> "TraversalPath":
        parsed = []
        for segment in segments:
            if isinstance(segment, str):
                segment = Segment(segment, SegmentRule.EXACT if segment else SegmentRule.FIRST)
            parsed.append(segment)

        if not parsed:
            raise ValueError("A traversal path needs at least one segment")
        for depth, segment in enumerate(parsed):
            if segment.rule is not SegmentRule.RANDOM:
                continue
            if depth != RANDOM_DEPTH or parsed[0].title != LIBRARY:
                raise ValueError(f"Random selection is only valid at depth {RANDOM_DEPTH} under {LIBRARY!r}")
            if depth == len(parsed) - 1:
                raise ValueError("Random selection cannot be the terminal segment")

        return super().__new__(cls, parsed)

    @property
    def last(self) -> int:
        return len(self) - 1

    def __str__(self) -> str:
        return "/".join("<random>" if s.rule is SegmentRule.RANDOM else s.title for s in self)


TRACK_PATH = TraversalPath(LIBRARY, "Tracks", WILDCARD, "Play Now")
ALBUM_PATH = TraversalPath(LIBRARY, "Albums", WILDCARD, Segment("Play Album", optional=True), "Play Now")
PROFILE_PATH = TraversalPath("Settings", "Profile", "")


@dataclass
class TraversalResult:
    item: BrowseItem
    exact: bool  # False when the last-item fallback was used


class TraversalAborted(Exception):
    pass


def pick(items: list[BrowseItem], segment: Segment) -> tuple[BrowseItem, bool] | None:
    """Select the item for a segment from one loaded page.

    Returns the item and whether the rule was met; without a titled match the
    last item on the page is returned as an inexact fallback.
    """
    if not items:
        return None
    if segment.rule is not SegmentRule.EXACT:
        return items[0], True

    for item in items:
        if item.title == segment.title:
            return item, True
    return items[-1], False


class BrowseTraversal:
    """Walks the remote browse hierarchy one request at a time.

    The platform keeps a single browse cursor per session, so concurrent
    traversals are serialised on a lock.
    """

    def __init__(self, browser: Browser, selector: RandomSelector) -> None:
        self._browser = browser
        self.selector = selector
        self._lock = asyncio.Lock()

    async def traverse(self, path: TraversalPath) -> TraversalResult | None:
        async with self._lock:
            return await self._guarded(self._resolve, path)

    async def enumerate(self, path: TraversalPath) -> list[str] | None:
        """Collect every title at the terminal level of ``path``."""
        async with self._lock:
            return await self._guarded(self._collect, path)

    async def play(self, zone_id: str, path: TraversalPath) -> TraversalResult | None:
        """Resolve ``path`` and start the leaf action on a zone."""
        async with self._lock:
            result = await self._guarded(self._resolve, path)
            if result is None:
                return None
            if not result.exact:
                logger.warning("No exact match along %s, not playing %r", path, result.item.title)
                return result

            opts = BrowseOptions(zone_or_output_id=zone_id, item_key=result.item.item_key)
            try:
                await self._browser.browse(opts)
            except PlatformError as exc:
                logger.warning("Playback command for %s failed: %s", zone_id, exc)
                return None
            return result

    async def _guarded(self, walk, path: TraversalPath):
        try:
            return await walk(path)
        except (PlatformError, TraversalAborted) as exc:
            logger.warning("Traversal of %s aborted: %s", path, exc)
            return None

    async def _resolve(self, path: TraversalPath) -> TraversalResult:
        _, page, depth, exact = await self._descend(path)
        found = pick(page.items, path[depth])
        if found is None:
            raise TraversalAborted(f"empty list at depth {depth}")
        item, matched = found
        return TraversalResult(item, exact and matched)

    async def _collect(self, path: TraversalPath) -> list[str]:
        listing, page, _, exact = await self._descend(path, from_start=True)
        if not exact:
            raise TraversalAborted(f"missing segment along {path}")
        titles = [item.title for item in page.items]
        offset = page.offset + len(page.items)

        while page.items and offset < listing.count:
            page = await self._load(offset)
            titles.extend(item.title for item in page.items)
            offset += len(page.items)
        return titles

    async def _descend(self, path: TraversalPath, from_start: bool = False) -> tuple[BrowseList, LoadResult, int, bool]:
        """Walk from the root to the page holding the terminal segment.

        The returned flag is False once a fixed segment was missing and the
        walk went on through the last item of that level instead. With
        ``from_start`` the terminal level is loaded from its first item
        rather than from the remembered display offset.
        """
        result = await self._browser.browse(BrowseOptions(pop_all=True))
        depth = 0
        exact = True

        while True:
            listing = self._expect_list(result)
            segment = path[depth]
            terminal = depth == path.last or (segment.optional and depth == path.last - 1)
            page = await self._load(0 if from_start and terminal else self._offset(path, depth, listing))

            if segment.optional and depth < path.last:
                if not any(item.title == segment.title for item in page.items):
                    depth += 1
                    segment = path[depth]

            if depth == path.last:
                return listing, page, depth, exact

            found = pick(page.items, segment)
            if found is None:
                raise TraversalAborted(f"empty list {listing.title!r} at depth {depth}")
            item, matched = found
            exact = exact and matched
            logger.debug("Depth %d: %r -> %r", depth, listing.title, item.title)
            result = await self._browser.browse(BrowseOptions(item_key=item.item_key))
            depth += 1

    def _offset(self, path: TraversalPath, depth: int, listing: BrowseList) -> int:
        if path[depth].rule is SegmentRule.RANDOM:
            if listing.title != path[depth - 1].title:
                raise TraversalAborted(f"expected list {path[depth - 1].title!r}, got {listing.title!r}")
            if listing.count < 1:
                raise TraversalAborted(f"list {listing.title!r} is empty")
            return self.selector.integer(0, listing.count - 1)
        return max(listing.display_offset or 0, 0)

    async def _load(self, offset: int) -> LoadResult:
        return await self._browser.load(LoadOptions(offset=offset, set_display_offset=offset))

    @staticmethod
    def _expect_list(result: BrowseResult) -> BrowseList:
        if result.action != "list" or result.list is None:
            raise TraversalAborted(f"unexpected browse action {result.action!r}")
        return result.list
