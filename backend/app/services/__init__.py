# Business Services
from app.services.user_service import UserService
from app.services.room_service import RoomService
from app.services.reservation_service import ReservationService
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService
from app.services.cleaning_service import CleaningService
from app.services.maintenance_service import MaintenanceService
from app.services.service_order_service import ServiceCatalogService, ServiceOrderService
from app.services.feedback_service import FeedbackService
from app.services.statistics_service import StatisticsService

__all__ = [
    'UserService', 'RoomService', 'ReservationService', 'InvoiceService',
    'PaymentService', 'CleaningService', 'MaintenanceService',
    'ServiceCatalogService', 'ServiceOrderService', 'FeedbackService',
    'StatisticsService'
]
