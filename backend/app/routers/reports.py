"""
报表路由
"""
from datetime import date, timedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User
from app.services.statistics_service import StatisticsService
from app.services.reservation_service import ReservationService
from app.services.room_service import RoomService
from app.security.auth import require_staff, require_manager, require_housekeeping
from app.routers.errors import http_error

router = APIRouter(prefix="/reports", tags=["统计报表"])


@router.get("/dashboard")
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取仪表盘数据"""
    return StatisticsService(db).get_dashboard()


@router.get("/dashboard/receptionist")
def get_receptionist_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """前台仪表盘"""
    return StatisticsService(db).get_receptionist_dashboard()


@router.get("/dashboard/housekeeper")
def get_housekeeper_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_housekeeping)
):
    """客房仪表盘，含当前用户的未完成清洁任务数"""
    return StatisticsService(db).get_housekeeper_dashboard(current_user.id)


@router.get("/revenue")
def get_revenue_report(
    start_date: date = Query(default_factory=lambda: date.today() - timedelta(days=7)),
    end_date: date = Query(default_factory=date.today),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """获取逐日营收"""
    try:
        return StatisticsService(db).get_revenue_by_day(start_date, end_date)
    except ValueError as e:
        raise http_error(e)


@router.get("/occupancy")
def get_occupancy_report(
    start_date: date = Query(default_factory=date.today),
    end_date: date = Query(default_factory=lambda: date.today() + timedelta(days=7)),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """当前房态与未来入住预测"""
    try:
        forecast = ReservationService(db).get_occupancy_forecast(start_date, end_date)
    except ValueError as e:
        raise http_error(e)
    return {
        'current': RoomService(db).get_occupancy_stats(),
        'forecast': forecast
    }


@router.get("/room-types")
def get_room_type_report(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取各房型房间统计"""
    return RoomService(db).get_room_type_stats()
