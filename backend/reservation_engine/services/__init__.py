"""
Módulo de serviços - lógica de alocação de reservas.
"""

from reservation_engine.services.inventory import InventoryLedger
from reservation_engine.services.holds import HoldManager
from reservation_engine.services.queue import QueueManager
from reservation_engine.services.notifications import (
    NotificationEmitter,
    DatabaseNotificationEmitter,
    ReadyNotice,
)
from reservation_engine.services.allocation import AllocationEngine
from reservation_engine.services.reservation import ReservationService

__all__ = [
    "InventoryLedger",
    "HoldManager",
    "QueueManager",
    "NotificationEmitter",
    "DatabaseNotificationEmitter",
    "ReadyNotice",
    "AllocationEngine",
    "ReservationService",
]
