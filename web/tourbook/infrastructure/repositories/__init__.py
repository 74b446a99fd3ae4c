from .activity_repository import ActivityRepository
from .capacity_repository import CapacityRepository
from .reservation_repository import ReservationRepository
from .message_repository import MessageRepository
from .support_request_repository import SupportRequestRepository
from .system_log_repository import SystemLogRepository
from .setting_repository import SettingRepository

__all__ = [
    "ActivityRepository",
    "CapacityRepository",
    "ReservationRepository",
    "MessageRepository",
    "SupportRequestRepository",
    "SystemLogRepository",
    "SettingRepository",
]
