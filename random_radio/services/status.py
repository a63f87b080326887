import logging
from collections.abc import Callable

from random_radio.models.state import StatusResponse

logger = logging.getLogger(__name__)


class StatusBoard:
    """Holds the last published status line and notifies listeners."""

    def __init__(self, on_change: Callable[[StatusResponse], None] | None = None) -> None:
        self._status = StatusResponse()
        self._on_change = on_change

    @property
    def current(self) -> StatusResponse:
        return self._status

    def set_status(self, message: str, is_error: bool = False) -> None:
        status = StatusResponse(message=message, is_error=is_error)
        if status == self._status:
            return
        self._status = status
        logger.info("Status: %s", message.replace("\n", "; "))
        if self._on_change:
            self._on_change(status)
