"""
房间管理路由
房型、房间、房态和可用性查询
"""
from typing import List, Optional
from datetime import date
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, RoomStatus
from app.models.schemas import (
    RoomTypeCreate, RoomTypeUpdate, RoomTypeResponse,
    RoomCreate, RoomUpdate, RoomStatusUpdate, RoomResponse, RoomAvailabilityResponse
)
from app.services.room_service import RoomService
from app.security.auth import get_current_user, require_manager, require_any_staff
from app.routers.errors import http_error

router = APIRouter(prefix="/rooms", tags=["房间管理"])


# ============== 房型 ==============

@router.get("/types", response_model=List[RoomTypeResponse])
def list_room_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取房型列表"""
    service = RoomService(db)
    return [RoomTypeResponse(**service.get_room_type_detail(rt.id)) for rt in service.get_room_types()]


@router.get("/types/statistics")
def room_type_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_any_staff)
):
    return RoomService(db).get_room_type_stats()


@router.post("/types", response_model=RoomTypeResponse, status_code=status.HTTP_201_CREATED)
def create_room_type(
    data: RoomTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """创建房型"""
    service = RoomService(db)
    try:
        room_type = service.create_room_type(data)
        return RoomTypeResponse(**service.get_room_type_detail(room_type.id))
    except ValueError as e:
        raise http_error(e)


@router.put("/types/{room_type_id}", response_model=RoomTypeResponse)
def update_room_type(
    room_type_id: int,
    data: RoomTypeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """更新房型"""
    service = RoomService(db)
    try:
        room_type = service.update_room_type(room_type_id, data)
        return RoomTypeResponse(**service.get_room_type_detail(room_type.id))
    except ValueError as e:
        raise http_error(e)


@router.delete("/types/{room_type_id}")
def delete_room_type(
    room_type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """删除房型"""
    try:
        RoomService(db).delete_room_type(room_type_id)
        return {"message": "房型已删除"}
    except ValueError as e:
        raise http_error(e)


# ============== 房间 ==============

@router.get("", response_model=List[RoomResponse])
def list_rooms(
    status: Optional[RoomStatus] = None,
    room_type_id: Optional[int] = None,
    floor: Optional[int] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取房间列表"""
    service = RoomService(db)
    rooms = service.get_rooms(status, room_type_id, floor, min_price, max_price)
    return [RoomResponse(**service.get_room_detail(r.id)) for r in rooms]


@router.get("/statistics")
def occupancy_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_any_staff)
):
    """房态统计"""
    return RoomService(db).get_occupancy_stats()


@router.get("/available", response_model=List[RoomAvailabilityResponse])
def available_rooms(
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """查询指定日期各房间的可用情况"""
    try:
        return RoomService(db).get_available_rooms(check_in, check_out)
    except ValueError as e:
        raise http_error(e)


@router.get("/find-available", response_model=Optional[RoomResponse])
def find_available_room(
    room_type_id: int,
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """按房型查找一间可用房间"""
    service = RoomService(db)
    room = service.find_available_room_of_type(room_type_id, check_in, check_out)
    return RoomResponse(**service.get_room_detail(room.id)) if room else None


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取房间详情"""
    detail = RoomService(db).get_room_detail(room_id)
    if not detail:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="房间不存在")
    return RoomResponse(**detail)


@router.get("/{room_id}/availability")
def room_availability(
    room_id: int,
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """单个房间的可用性、下一个可订日期和价格"""
    service = RoomService(db)
    try:
        available = service.is_room_available(room_id, check_in, check_out)
        return {
            'room_id': room_id,
            'is_available': available,
            'next_available_date': None if available else service.next_available_date(room_id, check_in),
            'price': service.calculate_price(room_id, check_in, check_out)
        }
    except ValueError as e:
        raise http_error(e)


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """创建房间"""
    service = RoomService(db)
    try:
        room = service.create_room(data)
        return RoomResponse(**service.get_room_detail(room.id))
    except ValueError as e:
        raise http_error(e)


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(
    room_id: int,
    data: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """更新房间"""
    service = RoomService(db)
    try:
        room = service.update_room(room_id, data)
        return RoomResponse(**service.get_room_detail(room.id))
    except ValueError as e:
        raise http_error(e)


@router.patch("/{room_id}/status", response_model=RoomResponse)
def update_room_status(
    room_id: int,
    data: RoomStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_any_staff)
):
    """更新房态"""
    service = RoomService(db)
    try:
        room = service.update_room_status(room_id, data.status)
        return RoomResponse(**service.get_room_detail(room.id))
    except ValueError as e:
        raise http_error(e)


@router.delete("/{room_id}")
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """删除房间"""
    try:
        RoomService(db).delete_room(room_id)
        return {"message": "房间已删除"}
    except ValueError as e:
        raise http_error(e)
