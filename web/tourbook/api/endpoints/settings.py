from typing import Any, Dict
from fastapi import APIRouter

from tourbook.api.schemas.conversation_schemas import SettingIn
from tourbook.deps import SessionDep
from tourbook.services import SettingsService


router = APIRouter()


@router.get("", response_model=Dict[str, Any])
async def list_settings(sess: SessionDep):
    return await SettingsService(sess).all()


@router.put("/{key}", response_model=Dict[str, Any])
async def put_setting(key: str, payload: SettingIn, sess: SessionDep):
    value = await SettingsService(sess).set(key, payload.value)
    await sess.commit()
    return {"key": key, "value": value}
