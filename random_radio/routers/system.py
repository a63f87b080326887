from fastapi import APIRouter, Request

from random_radio.models.state import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Health check with zone and supervisor counts."""
    radio = request.app.state.radio
    return HealthResponse(
        status="ok",
        zones=len(radio.platform.zones()),
        supervised=len(radio.supervisors),
    )
