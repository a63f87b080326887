"""Browse hierarchy over the Sonos music library.

The household's library is exposed as a cursor-based list hierarchy::

    Explore                       level 0
      Library                     level 1
        Albums / Tracks           level 2, paged over the whole library
          <album>                 level 3: Play Album
            Play Album            level 4: Play Now, Add Next, Queue
          <track>                 level 3: Play Now, Add Next, Queue
      Settings                    level 1
        Profile                   level 2: music library shares

Item keys are only valid until the cursor is reset with ``pop_all``.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from random_radio.models.browse import BrowseItem, BrowseList, BrowseOptions, BrowseResult, LoadOptions, LoadResult
from random_radio.platform.base import PlatformError
from random_radio.utils.retry import TRANSIENT_ERRORS

if TYPE_CHECKING:
    from random_radio.platform.sonos import SonosPlatform

logger = logging.getLogger(__name__)

PLAY_NOW = "Play Now"
ADD_NEXT = "Add Next"
QUEUE = "Queue"
PLAY_ALBUM = "Play Album"

ACTIONS = (PLAY_NOW, ADD_NEXT, QUEUE)


@dataclass
class Node:
    title: str
    kind: str  # "menu", "category", "track", "album", "actions", "action", "profiles", "profile"
    children: tuple["Node", ...] = ()
    search_type: str | None = None
    target: Any = None  # DIDL object the node stands for
    display_offset: int | None = field(default=None, compare=False)

    @property
    def hint(self) -> str:
        if self.kind == "action":
            return "action"
        if self.kind == "actions":
            return "action_list"
        return "list"


async def run_blocking(func: Callable, *args):
    """Run a SoCo call in a worker thread, surfacing failures as PlatformError."""
    try:
        return await asyncio.to_thread(func, *args)
    except TRANSIENT_ERRORS as exc:
        raise PlatformError(str(exc)) from exc


def _actions(target: Any) -> tuple[Node, ...]:
    return tuple(Node(title, "action", target=target) for title in ACTIONS)


def _root() -> Node:
    return Node(
        "Explore",
        "menu",
        children=(
            Node(
                "Library",
                "menu",
                children=(
                    Node("Albums", "category", search_type="albums"),
                    Node("Tracks", "category", search_type="tracks"),
                ),
            ),
            Node("Settings", "menu", children=(Node("Profile", "profiles"),)),
        ),
    )


class SonosLibraryBrowser:
    def __init__(self, platform: "SonosPlatform", page_size: int = 100) -> None:
        self._platform = platform
        self._page_size = page_size
        self._stack: list[Node] = [_root()]
        self._keys: dict[str, Node] = {}
        self._counter = itertools.count(1)

    async def browse(self, opts: BrowseOptions) -> BrowseResult:
        if opts.pop_all:
            self._stack = [_root()]
            self._keys.clear()
        elif opts.item_key is not None:
            node = self._keys.get(opts.item_key)
            if node is None:
                raise PlatformError(f"Unknown item key {opts.item_key!r}")

            if node.kind in ("action", "profile"):
                if node.kind == "action" and opts.zone_or_output_id:
                    await self._perform(node, opts.zone_or_output_id)
                    return BrowseResult(action="message", message=node.title)
                return BrowseResult(action="none")
            self._stack.append(node)

        current = self._stack[-1]
        total, _ = await self._entries(current, 0, 1)
        return BrowseResult(action="list", list=self._describe(current, total))

    async def load(self, opts: LoadOptions) -> LoadResult:
        current = self._stack[-1]
        offset = max(opts.offset, 0)
        total, entries = await self._entries(current, offset, opts.count or self._page_size)
        if opts.set_display_offset is not None:
            current.display_offset = opts.set_display_offset

        items = []
        for node in entries:
            key = str(next(self._counter))
            self._keys[key] = node
            items.append(BrowseItem(title=node.title, item_key=key, hint=node.hint))
        return LoadResult(items=items, offset=offset, list=self._describe(current, total))

    def _describe(self, node: Node, total: int) -> BrowseList:
        return BrowseList(
            title=node.title,
            level=len(self._stack) - 1,
            count=total,
            display_offset=node.display_offset,
        )

    async def _entries(self, node: Node, offset: int, count: int) -> tuple[int, list[Node]]:
        if node.kind == "category":
            library = self._platform.any_speaker().music_library
            result = await run_blocking(
                lambda: library.get_music_library_information(node.search_type, start=offset, max_items=count)
            )
            kind = "album" if node.search_type == "albums" else "track"
            return result.total_matches, [Node(item.title, kind, target=item) for item in result]

        if node.kind == "profiles":
            library = self._platform.any_speaker().music_library
            shares = await run_blocking(library.list_library_shares)
            children = tuple(Node(share, "profile") for share in shares)
        elif node.kind == "album":
            children = (Node(PLAY_ALBUM, "actions", target=node.target),)
        elif node.kind in ("track", "actions"):
            children = _actions(node.target)
        else:
            children = node.children

        return len(children), list(children[offset:offset + count])

    async def _perform(self, node: Node, zone_or_output_id: str) -> None:
        coordinator = self._platform.coordinator(zone_or_output_id)
        target = node.target

        def _play_now():
            coordinator.clear_queue()
            coordinator.add_to_queue(target)
            coordinator.play_from_queue(0)

        if node.title == PLAY_NOW:
            await run_blocking(_play_now)
        elif node.title == ADD_NEXT:
            await run_blocking(lambda: coordinator.add_to_queue(target, as_next=True))
        else:
            await run_blocking(lambda: coordinator.add_to_queue(target))
        logger.info("%s %r on %s", node.title, getattr(target, "title", target), zone_or_output_id)
