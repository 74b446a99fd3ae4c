from .activity_service import ActivityService
from .capacity_service import CapacityService, CapacitySlot, resolve_slots, slot_from_row
from .reservation_service import ReservationService
from .order_webhook_service import OrderWebhookService
from .whatsapp_webhook_service import WhatsAppWebhookService
from .conversation_service import ConversationService
from .settings_service import SettingsService
from .system_log_service import SystemLogService

__all__ = [
    "ActivityService",
    "CapacityService",
    "CapacitySlot",
    "resolve_slots",
    "slot_from_row",
    "ReservationService",
    "OrderWebhookService",
    "WhatsAppWebhookService",
    "ConversationService",
    "SettingsService",
    "SystemLogService",
]
