from fastapi import APIRouter, Request

from random_radio.models.state import StatusResponse

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request):
    """Last published status: one ``<zone>: <mode>`` line per active zone."""
    return request.app.state.status.current
