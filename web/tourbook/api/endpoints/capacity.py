from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from tourbook.api.schemas.capacity_schemas import CapacityIn, CapacitySlotOut, CapacityUpdate
from tourbook.deps import SessionDep
from tourbook.security import operator_required
from tourbook.services import CapacityService, slot_from_row


router = APIRouter()


@router.get("", response_model=List[CapacitySlotOut])
async def get_capacity(
    sess: SessionDep,
    date: Optional[str] = Query(None),
    activity_id: Optional[str] = Query(None, alias="activityId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    """Effective slots, persisted rows merged with default schedules.

    ``activityId`` takes a numeric id or a slug.
    """
    service = CapacityService(sess)
    slots = await service.resolve(
        date=date,
        activity_id=activity_id,
        start_date=start_date,
        end_date=end_date,
    )
    return [CapacitySlotOut.model_validate(s) for s in slots]


@router.post(
    "",
    response_model=CapacitySlotOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(operator_required())],
)
async def create_capacity(payload: CapacityIn, sess: SessionDep):
    service = CapacityService(sess)
    slot = await service.create_slot(
        activity_id=payload.activity_id,
        date=payload.date,
        time=payload.time,
        total_seats=payload.total_seats,
    )
    await sess.commit()

    return CapacitySlotOut.model_validate(slot_from_row(slot))


@router.patch("/{slot_id}", response_model=CapacitySlotOut, dependencies=[Depends(operator_required())])
async def update_capacity(slot_id: int, payload: CapacityUpdate, sess: SessionDep):
    """Change total seats; refused below the seats already booked"""
    slot = await CapacityService(sess).update_total(slot_id, payload.total_seats)
    return CapacitySlotOut.model_validate(slot_from_row(slot))


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(operator_required())])
async def delete_capacity(slot_id: int, sess: SessionDep):
    await CapacityService(sess).delete_slot(slot_id)
