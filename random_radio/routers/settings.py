from typing import Any

from fastapi import APIRouter, Request

from random_radio.models.settings import SaveSettingsResponse, SettingsLayout

router = APIRouter()


@router.get("/settings", response_model=SettingsLayout)
async def get_settings(request: Request):
    """Settings page layout with the current values."""
    return await request.app.state.radio.settings_layout()


@router.put("/settings", response_model=SaveSettingsResponse)
async def save_settings(values: dict[str, Any], request: Request, dryrun: bool = False):
    """Validate and, unless ``dryrun``, apply and persist settings."""
    status, layout = await request.app.state.radio.save_settings(values, dryrun=dryrun)
    return SaveSettingsResponse(status=status, settings=layout)
