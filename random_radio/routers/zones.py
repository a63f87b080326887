from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from random_radio.models.state import ErrorResponse, ZoneSummary

router = APIRouter()


def _summary(radio, zone) -> ZoneSummary:
    mode = ""
    supervisor = None
    for output in zone.outputs:
        if output.output_id in radio.supervisors:
            supervisor = radio.supervisors[output.output_id].state.value
        mode = mode or radio.mode(output.output_id).value

    return ZoneSummary(
        zone_id=zone.zone_id,
        display_name=zone.display_name,
        state=zone.state,
        auto_radio=zone.settings.auto_radio,
        outputs=zone.outputs,
        mode=mode,
        supervisor=supervisor,
    )


@router.get("/zones", response_model=list[ZoneSummary])
async def get_zones(request: Request):
    """Latest zone snapshots with their configured random mode."""
    radio = request.app.state.radio
    return [_summary(radio, zone) for zone in radio.platform.zones()]


@router.get("/zones/{output_id}", response_model=ZoneSummary, responses={404: {"model": ErrorResponse}})
async def get_zone(output_id: str, request: Request):
    """Zone holding the given output."""
    radio = request.app.state.radio
    zone = radio.platform.zone_by_output_id(output_id)
    if not zone:
        return JSONResponse(status_code=404, content=ErrorResponse(error="Output not found", detail=output_id).model_dump())
    return _summary(radio, zone)
