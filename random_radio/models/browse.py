from pydantic import BaseModel


class BrowseOptions(BaseModel):
    hierarchy: str = "browse"
    item_key: str | None = None
    pop_all: bool = False
    zone_or_output_id: str | None = None


class LoadOptions(BaseModel):
    hierarchy: str = "browse"
    offset: int = 0
    count: int | None = None
    set_display_offset: int | None = None


class BrowseList(BaseModel):
    title: str
    level: int
    count: int = 0
    display_offset: int | None = None


class BrowseItem(BaseModel):
    title: str
    item_key: str | None = None
    hint: str | None = None  # "list", "action", "action_list"


class BrowseResult(BaseModel):
    action: str  # "list", "message", "none"
    list: BrowseList | None = None
    message: str = ""
    is_error: bool = False


class LoadResult(BaseModel):
    items: list[BrowseItem] = []
    offset: int = 0
    list: BrowseList
