from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from tourbook.api.schemas.activity_schemas import ActivityIn, ActivityOut, ActivityUpdate
from tourbook.deps import SessionDep
from tourbook.security import operator_required
from tourbook.services import ActivityService


router = APIRouter()


@router.get("", response_model=List[ActivityOut])
async def list_activities(
    sess: SessionDep,
    featured: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    include_inactive: bool = Query(False, alias="includeInactive"),
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
):
    """Catalogue listing, featured activities first"""
    service = ActivityService(sess)
    activities = await service.list(
        active=None if include_inactive else True,
        featured=featured,
        search=search,
        skip=offset,
        limit=limit,
    )
    return [ActivityOut.model_validate(a) for a in activities]


@router.get("/{ref}", response_model=ActivityOut)
async def get_activity(ref: str, sess: SessionDep):
    """Single activity by id or slug"""
    activity = await ActivityService(sess).get(ref)
    return ActivityOut.model_validate(activity)


@router.post(
    "",
    response_model=ActivityOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(operator_required())],
)
async def create_activity(payload: ActivityIn, sess: SessionDep):
    service = ActivityService(sess)
    activity = await service.create(payload.model_dump())

    await sess.commit()
    await sess.refresh(activity)

    return ActivityOut.model_validate(activity)


@router.put("/{ref}", response_model=ActivityOut, dependencies=[Depends(operator_required())])
async def update_activity(ref: str, payload: ActivityUpdate, sess: SessionDep):
    """Update the fields present in the body"""
    service = ActivityService(sess)
    activity = await service.update(ref, payload.model_dump(exclude_unset=True))

    await sess.commit()
    await sess.refresh(activity)

    return ActivityOut.model_validate(activity)


@router.delete("/{ref}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(operator_required())])
async def delete_activity(ref: str, sess: SessionDep):
    await ActivityService(sess).delete(ref)
    await sess.commit()
