"""
统计服务
汇总房态、预订、营收和工单数据
"""
from typing import List, Optional
from datetime import date, datetime, timedelta
from decimal import Decimal
from sqlalchemy.orm import Session
from app.models.entities import Reservation, ReservationStatus, Room
from app.services.cleaning_service import CleaningService
from app.services.feedback_service import FeedbackService
from app.services.invoice_service import InvoiceService
from app.services.maintenance_service import MaintenanceService
from app.services.payment_service import PaymentService
from app.services.reservation_service import ReservationService
from app.services.room_service import RoomService
from app.services.service_order_service import ServiceOrderService
from app.services.errors import InvalidOperationError
from app.services.ledger import net_paid


class StatisticsService:
    """统计服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_dashboard(self) -> dict:
        """获取仪表盘数据"""
        today = datetime.utcnow().date()
        payment_service = PaymentService(self.db)
        month_start = today.replace(day=1)

        return {
            'rooms': RoomService(self.db).get_occupancy_stats(),
            'reservations': ReservationService(self.db).get_statistics(),
            'revenue': {
                'today': payment_service.get_total_for_period(today, today),
                'month_to_date': payment_service.get_total_for_period(month_start, today),
                'outstanding': InvoiceService(self.db).get_statistics()['outstanding']
            },
            'open_work_items': {
                'cleaning': len(CleaningService(self.db).get_open_items()),
                'maintenance': len(MaintenanceService(self.db).get_open_items()),
                'service_orders': len(ServiceOrderService(self.db).get_open_items()),
                'feedback': len(FeedbackService(self.db).get_open_items())
            },
            'average_rating': FeedbackService(self.db).get_average_rating()
        }

    def get_receptionist_dashboard(self) -> dict:
        """前台视图：当日到离、在住客人、可售房和未结发票"""
        today = date.today()
        reservation_service = ReservationService(self.db)
        rooms = RoomService(self.db).get_occupancy_stats()

        new_today = self.db.query(Reservation).filter(
            Reservation.created_at >= datetime.combine(datetime.utcnow().date(), datetime.min.time())
        ).count()
        current_guests = self.db.query(Reservation).filter(
            Reservation.status == ReservationStatus.CHECKED_IN
        ).count()
        arrivals_next_7_days = self.db.query(Reservation).filter(
            Reservation.status.in_([ReservationStatus.PENDING, ReservationStatus.CONFIRMED]),
            Reservation.check_in_date > today,
            Reservation.check_in_date <= today + timedelta(days=7)
        ).count()

        return {
            'today_arrivals': len(reservation_service.get_today_arrivals()),
            'today_departures': len(reservation_service.get_today_departures()),
            'today_new_reservations': new_today,
            'current_guests': current_guests,
            'occupied_rooms': rooms['occupied'],
            'available_rooms': rooms['available'],
            'expected_arrivals_next_7_days': arrivals_next_7_days,
            'unpaid_invoices': len(InvoiceService(self.db).get_unpaid_invoices()),
            'occupancy_rate': rooms['occupancy_rate']
        }

    def get_housekeeper_dashboard(self, user_id: Optional[int] = None) -> dict:
        """客房视图：待清洁房间、当日预离和维修房；给出 user_id 时附带本人未完成任务数"""
        rooms = RoomService(self.db).get_occupancy_stats()
        cleaning = CleaningService(self.db)

        stats = {
            'rooms_needing_cleaning': self.db.query(Room).filter(
                Room.needs_cleaning == True  # noqa: E712
            ).count(),
            'today_departures': len(ReservationService(self.db).get_today_departures()),
            'occupied_rooms': rooms['occupied'],
            'maintenance_rooms': rooms['maintenance'],
            'open_cleaning_tasks': len(cleaning.get_open_items())
        }
        if user_id is not None:
            stats['my_open_tasks'] = sum(
                1 for task in cleaning.list(assigned_to_id=user_id)
                if task.status in cleaning.open_statuses
            )
        return stats

    def get_revenue_by_day(self, start_date: date, end_date: date) -> List[dict]:
        """逐日净收款"""
        if end_date < start_date:
            raise InvalidOperationError("结束日期不能早于开始日期")

        payments = PaymentService(self.db).get_payments_by_date(start_date, end_date)
        by_day = {}
        for payment in payments:
            by_day.setdefault(payment.payment_date.date(), []).append(payment)

        result = []
        day = start_date
        while day <= end_date:
            day_payments = by_day.get(day, [])
            result.append({
                'date': day,
                'revenue': net_paid(day_payments) if day_payments else Decimal("0.00"),
                'count': len(day_payments)
            })
            day += timedelta(days=1)
        return result
