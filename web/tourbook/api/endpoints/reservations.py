from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from tourbook.api.schemas.reservation_schemas import (
    ManualReservationIn, ReservationIn, ReservationOut, ReservationStats
)
from tourbook.deps import SessionDep
from tourbook.security import operator_required
from tourbook.services import ReservationService


router = APIRouter()


@router.get("", response_model=List[ReservationOut], dependencies=[Depends(operator_required())])
async def list_reservations(
    sess: SessionDep,
    status_: Optional[str] = Query(None, alias="status"),
    activity_id: Optional[int] = Query(None, alias="activityId", gt=0),
    date: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
):
    reservations = await ReservationService(sess).list(
        status=status_,
        activity_id=activity_id,
        date=date,
        source=source,
        skip=offset,
        limit=limit,
    )
    return [ReservationOut.model_validate(r) for r in reservations]


@router.get("/stats", response_model=ReservationStats, dependencies=[Depends(operator_required())])
async def reservation_stats(sess: SessionDep):
    """Totals over non-cancelled reservations"""
    return ReservationStats.model_validate(await ReservationService(sess).stats())


@router.post("", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_reservation(payload: ReservationIn, sess: SessionDep):
    """Public booking; the reservation starts as pending"""
    reservation = await ReservationService(sess).create(
        **payload.model_dump(),
        status="pending",
        source="direct",
    )
    return ReservationOut.model_validate(reservation)


@router.post(
    "/manual",
    response_model=ReservationOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(operator_required())],
)
async def create_manual_reservation(payload: ManualReservationIn, sess: SessionDep):
    reservation = await ReservationService(sess).create(**payload.model_dump(), source="manual")
    return ReservationOut.model_validate(reservation)


@router.get("/{reservation_id}", response_model=ReservationOut, dependencies=[Depends(operator_required())])
async def get_reservation(reservation_id: int, sess: SessionDep):
    return ReservationOut.model_validate(await ReservationService(sess).get(reservation_id))


@router.post("/{reservation_id}/cancel", response_model=ReservationOut, dependencies=[Depends(operator_required())])
async def cancel_reservation(reservation_id: int, sess: SessionDep):
    """Cancel and release seats; repeating the call changes nothing"""
    return ReservationOut.model_validate(await ReservationService(sess).cancel(reservation_id))


@router.post("/{reservation_id}/confirm", response_model=ReservationOut, dependencies=[Depends(operator_required())])
async def confirm_reservation(reservation_id: int, sess: SessionDep):
    return ReservationOut.model_validate(await ReservationService(sess).confirm(reservation_id))
