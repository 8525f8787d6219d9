# Business entities
from app.models.entities import (
    User, RoomType, Room, Reservation, Invoice, Payment,
    Service, ServiceOrder, CleaningTask, MaintenanceRequest, Feedback
)

__all__ = [
    'User', 'RoomType', 'Room', 'Reservation', 'Invoice', 'Payment',
    'Service', 'ServiceOrder', 'CleaningTask', 'MaintenanceRequest', 'Feedback'
]
