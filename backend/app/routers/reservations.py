"""
预订管理路由
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, ReservationStatus
from app.models.schemas import (
    ReservationCreate, ReservationUpdate, ReservationCancel, ReservationResponse,
    AssignRoomRequest, CheckInRequest
)
from app.services.reservation_service import ReservationService
from app.security.auth import get_current_user, require_staff
from app.routers.errors import http_error

router = APIRouter(prefix="/reservations", tags=["预订管理"])


def _response(service: ReservationService, reservation_id: int) -> ReservationResponse:
    return ReservationResponse(**service.get_reservation_detail(reservation_id))


@router.get("", response_model=List[ReservationResponse])
def list_reservations(
    status: Optional[ReservationStatus] = None,
    guest_id: Optional[int] = None,
    room_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取预订列表"""
    service = ReservationService(db)
    reservations = service.get_reservations(status, guest_id, room_id, start_date, end_date)
    return [_response(service, r.id) for r in reservations]


@router.get("/today-arrivals", response_model=List[ReservationResponse])
def get_today_arrivals(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """今日预抵"""
    service = ReservationService(db)
    return [_response(service, r.id) for r in service.get_today_arrivals()]


@router.get("/today-departures", response_model=List[ReservationResponse])
def get_today_departures(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """今日预离"""
    service = ReservationService(db)
    return [_response(service, r.id) for r in service.get_today_departures()]


@router.get("/statistics")
def reservation_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return ReservationService(db).get_statistics()


@router.get("/forecast")
def occupancy_forecast(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """逐日入住预测"""
    try:
        return ReservationService(db).get_occupancy_forecast(start_date, end_date)
    except ValueError as e:
        raise http_error(e)


@router.get("/availability")
def check_availability(
    room_id: int,
    check_in: date = Query(...),
    check_out: date = Query(...),
    exclude_reservation_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """检查房间在指定日期是否可订"""
    try:
        available = ReservationService(db).check_availability(
            room_id, check_in, check_out, exclude_reservation_id
        )
        return {"room_id": room_id, "is_available": available}
    except ValueError as e:
        raise http_error(e)


@router.get("/by-number/{reservation_no}", response_model=ReservationResponse)
def get_reservation_by_no(
    reservation_no: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    service = ReservationService(db)
    reservation = service.get_reservation_by_no(reservation_no)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="预订不存在")
    return _response(service, reservation.id)


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取预订详情"""
    service = ReservationService(db)
    detail = service.get_reservation_detail(reservation_id)
    if not detail:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="预订不存在")
    return ReservationResponse(**detail)


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """创建预订"""
    service = ReservationService(db)
    try:
        reservation = service.create_reservation(data, current_user.id)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)


@router.put("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    data: ReservationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """修改预订"""
    service = ReservationService(db)
    try:
        reservation = service.update_reservation(reservation_id, data)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    service = ReservationService(db)
    try:
        reservation = service.confirm_reservation(reservation_id)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{reservation_id}/assign-room", response_model=ReservationResponse)
def assign_room(
    reservation_id: int,
    data: AssignRoomRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """分配房间"""
    service = ReservationService(db)
    try:
        reservation = service.assign_room(reservation_id, data.room_id)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{reservation_id}/check-in", response_model=ReservationResponse)
def check_in(
    reservation_id: int,
    data: CheckInRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """办理入住"""
    service = ReservationService(db)
    try:
        reservation = service.check_in(reservation_id, current_user.id, data.room_id)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{reservation_id}/check-out", response_model=ReservationResponse)
def check_out(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """办理退房"""
    service = ReservationService(db)
    try:
        reservation = service.check_out(reservation_id, current_user.id)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    data: ReservationCancel,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """取消预订"""
    service = ReservationService(db)
    try:
        reservation = service.cancel_reservation(reservation_id, data.reason, current_user.id)
        return _response(service, reservation.id)
    except ValueError as e:
        raise http_error(e)
