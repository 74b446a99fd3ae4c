from fastapi import APIRouter, Depends

from tourbook.security import operator_required
from tourbook.api.endpoints import (
    activities, capacity, reservations, webhooks, conversations, settings, system_logs
)


# Create main API router
api_router = APIRouter()

# Catalogue (public reads, operator writes)
api_router.include_router(
    activities.router,
    prefix="/activities",
    tags=["activities"]
)

# Capacity resolver and slot maintenance
api_router.include_router(
    capacity.router,
    prefix="/capacity",
    tags=["capacity"]
)

# Reservation admission (public create, operator management)
api_router.include_router(
    reservations.router,
    prefix="/reservations",
    tags=["reservations"]
)

# Inbound webhooks (signature / platform checks inside)
api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["webhooks"]
)

# WhatsApp threads and hand-offs (operator access)
api_router.include_router(
    conversations.router,
    tags=["conversations"],
    dependencies=[Depends(operator_required())]
)

# Runtime settings (operator access)
api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["settings"],
    dependencies=[Depends(operator_required())]
)

# System log (operator access)
api_router.include_router(
    system_logs.router,
    prefix="/system-logs",
    tags=["system-logs"],
    dependencies=[Depends(operator_required())]
)
