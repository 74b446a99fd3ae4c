from typing import List, Optional
from fastapi import APIRouter, Query

from tourbook.api.schemas.conversation_schemas import SystemLogOut
from tourbook.deps import SessionDep
from tourbook.services import SystemLogService


router = APIRouter()


@router.get("", response_model=List[SystemLogOut])
async def list_system_logs(
    sess: SessionDep,
    level: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
):
    """Most recent entries first"""
    logs = await SystemLogService(sess).list(level=level, source=source, skip=offset, limit=limit)
    return [SystemLogOut.model_validate(entry) for entry in logs]
