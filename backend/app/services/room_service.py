"""
房间服务
管理 Room 和 RoomType 对象，提供按日期的可用性判断
可用性采用半开区间 [check_in, check_out)：离店当天可被新预订入住
"""
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
import logging
from sqlalchemy.orm import Session
from app.models.entities import (
    Room, RoomType, RoomStatus, Reservation, ReservationStatus
)
from app.models.schemas import RoomCreate, RoomUpdate, RoomTypeCreate, RoomTypeUpdate
from app.services.errors import NotFoundError, InvalidOperationError

logger = logging.getLogger(__name__)

# 占用房间、阻止删除或置为可用的预订状态
HOLDING_STATUSES = (ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN)


class RoomService:
    """房间服务"""

    def __init__(self, db: Session):
        self.db = db

    # ============== 房型操作 ==============

    def get_room_types(self) -> List[RoomType]:
        """获取所有房型"""
        return self.db.query(RoomType).order_by(RoomType.name).all()

    def get_room_type(self, room_type_id: int) -> Optional[RoomType]:
        return self.db.query(RoomType).filter(RoomType.id == room_type_id).first()

    def get_room_type_by_name(self, name: str) -> Optional[RoomType]:
        return self.db.query(RoomType).filter(RoomType.name == name).first()

    def create_room_type(self, data: RoomTypeCreate) -> RoomType:
        """创建房型"""
        if self.get_room_type_by_name(data.name):
            raise InvalidOperationError(f"房型名称 '{data.name}' 已存在")

        room_type = RoomType(**data.model_dump())
        self.db.add(room_type)
        self.db.commit()
        self.db.refresh(room_type)
        return room_type

    def update_room_type(self, room_type_id: int, data: RoomTypeUpdate) -> RoomType:
        """更新房型"""
        room_type = self.get_room_type(room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        update_data = data.model_dump(exclude_unset=True)
        if 'name' in update_data:
            existing = self.get_room_type_by_name(update_data['name'])
            if existing and existing.id != room_type_id:
                raise InvalidOperationError(f"房型名称 '{update_data['name']}' 已存在")

        for key, value in update_data.items():
            setattr(room_type, key, value)

        self.db.commit()
        self.db.refresh(room_type)
        return room_type

    def delete_room_type(self, room_type_id: int) -> bool:
        """删除房型"""
        room_type = self.get_room_type(room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        room_count = self.db.query(Room).filter(Room.room_type_id == room_type_id).count()
        if room_count > 0:
            raise InvalidOperationError(f"该房型下有 {room_count} 间房间，无法删除")

        self.db.delete(room_type)
        self.db.commit()
        return True

    def get_room_type_detail(self, room_type_id: int) -> Optional[dict]:
        """获取房型及房间数量"""
        room_type = self.get_room_type(room_type_id)
        if not room_type:
            return None

        return {
            'id': room_type.id,
            'name': room_type.name,
            'description': room_type.description,
            'base_price': room_type.base_price,
            'capacity': room_type.capacity,
            'amenities': room_type.amenities,
            'image_url': room_type.image_url,
            'created_at': room_type.created_at,
            'room_count': len(room_type.rooms)
        }

    # ============== 房间操作 ==============

    def get_rooms(self, status: Optional[RoomStatus] = None,
                  room_type_id: Optional[int] = None,
                  floor: Optional[int] = None,
                  min_price: Optional[Decimal] = None,
                  max_price: Optional[Decimal] = None) -> List[Room]:
        """获取房间列表"""
        query = self.db.query(Room)

        if status is not None:
            query = query.filter(Room.status == status)
        if room_type_id is not None:
            query = query.filter(Room.room_type_id == room_type_id)
        if floor is not None:
            query = query.filter(Room.floor == floor)
        if min_price is not None:
            query = query.filter(Room.base_price >= min_price)
        if max_price is not None:
            query = query.filter(Room.base_price <= max_price)

        return query.order_by(Room.floor, Room.room_number).all()

    def get_room(self, room_id: int) -> Optional[Room]:
        return self.db.query(Room).filter(Room.id == room_id).first()

    def get_room_by_number(self, room_number: str) -> Optional[Room]:
        return self.db.query(Room).filter(Room.room_number == room_number).first()

    def lock_room(self, room_id: int) -> Room:
        """
        以 SELECT ... FOR UPDATE 锁定房间行
        所有把预订挂到房间上的操作都先取得该锁，再做重叠检查，
        保证同一房间的并发分配在事务内串行执行
        """
        room = self.db.query(Room).filter(Room.id == room_id).with_for_update().first()
        if not room:
            raise NotFoundError(f"房间 {room_id} 不存在")
        return room

    def create_room(self, data: RoomCreate) -> Room:
        """创建房间"""
        if self.get_room_by_number(data.room_number):
            raise InvalidOperationError(f"房间号 '{data.room_number}' 已存在")

        room_type = self.get_room_type(data.room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        values = data.model_dump()
        if values.get('base_price') is None:
            values['base_price'] = room_type.base_price

        room = Room(**values)
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        logger.info("创建房间 %s", room.room_number)
        return room

    def update_room(self, room_id: int, data: RoomUpdate) -> Room:
        """更新房间"""
        room = self.get_room(room_id)
        if not room:
            raise NotFoundError("房间不存在")

        update_data = data.model_dump(exclude_unset=True)

        if 'room_type_id' in update_data and not self.get_room_type(update_data['room_type_id']):
            raise NotFoundError("房型不存在")

        # 手动标记清洁完成时记录清洁时间
        if update_data.get('needs_cleaning') is False and room.needs_cleaning:
            room.last_cleaned = datetime.utcnow()

        for key, value in update_data.items():
            setattr(room, key, value)

        self.db.commit()
        self.db.refresh(room)
        return room

    def _has_holding_reservations(self, room_id: int) -> bool:
        return self.db.query(Reservation).filter(
            Reservation.room_id == room_id,
            Reservation.status.in_(HOLDING_STATUSES)
        ).count() > 0

    def delete_room(self, room_id: int) -> bool:
        """删除房间，有未完成预订时拒绝"""
        room = self.get_room(room_id)
        if not room:
            raise NotFoundError("房间不存在")

        has_active = self.db.query(Reservation).filter(
            Reservation.room_id == room_id,
            Reservation.status.in_([
                ReservationStatus.PENDING,
                ReservationStatus.CONFIRMED,
                ReservationStatus.CHECKED_IN,
            ])
        ).count() > 0
        if has_active:
            raise InvalidOperationError("该房间有未完成的预订，无法删除")

        self.db.delete(room)
        self.db.commit()
        return True

    def update_room_status(self, room_id: int, status: RoomStatus) -> Room:
        """手动更新房间状态"""
        room = self.get_room(room_id)
        if not room:
            raise NotFoundError("房间不存在")

        if status == RoomStatus.AVAILABLE and self._has_holding_reservations(room_id):
            raise InvalidOperationError("房间有生效中的预订，不能标记为可用")

        old_status = room.status
        room.status = status
        self.db.commit()
        self.db.refresh(room)
        logger.info("房间 %s 状态 %s -> %s", room.room_number, old_status.value, status.value)
        return room

    # ============== 可用性查询 ==============

    def is_room_available(self, room_id: int, check_in: date, check_out: date,
                          exclude_reservation_id: Optional[int] = None) -> bool:
        """
        房间在 [check_in, check_out) 内是否空闲
        维修中的房间视为不可用；已取消的预订不参与重叠判断
        """
        room = self.get_room(room_id)
        if not room:
            raise NotFoundError(f"房间 {room_id} 不存在")

        if room.status == RoomStatus.MAINTENANCE:
            return False

        query = self.db.query(Reservation).filter(
            Reservation.room_id == room_id,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.check_in_date < check_out,
            Reservation.check_out_date > check_in
        )
        if exclude_reservation_id is not None:
            query = query.filter(Reservation.id != exclude_reservation_id)

        return query.first() is None

    def next_available_date(self, room_id: int, from_date: date) -> date:
        """
        从 from_date 起房间最早可入住的日期
        沿未取消预订按入住日升序找第一个空档；连续订满时返回最后一个离店日
        """
        reservations = self.db.query(Reservation).filter(
            Reservation.room_id == room_id,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.check_out_date > from_date
        ).order_by(Reservation.check_in_date).all()

        current = from_date
        for reservation in reservations:
            if current < reservation.check_in_date:
                return current
            current = max(current, reservation.check_out_date)
        return current

    def find_available_room_of_type(self, room_type_id: int, check_in: date,
                                    check_out: date) -> Optional[Room]:
        """返回指定房型中第一间可用房间，无则返回 None"""
        rooms = self.db.query(Room).filter(
            Room.room_type_id == room_type_id,
            Room.status != RoomStatus.MAINTENANCE
        ).all()

        for room in rooms:
            if self.is_room_available(room.id, check_in, check_out):
                return room
        return None

    def get_available_rooms(self, check_in: date, check_out: date) -> List[dict]:
        """列出非维修房间在指定日期的可用情况"""
        if check_out <= check_in:
            raise InvalidOperationError("离店日期必须晚于入住日期")

        result = []
        rooms = self.db.query(Room).filter(
            Room.status != RoomStatus.MAINTENANCE
        ).order_by(Room.room_number).all()

        for room in rooms:
            is_available = self.is_room_available(room.id, check_in, check_out)
            result.append({
                'id': room.id,
                'room_number': room.room_number,
                'room_type_name': room.room_type.name,
                'base_price': room.base_price,
                'capacity': room.room_type.capacity,
                'is_available': is_available,
                'next_available_date': None if is_available else self.next_available_date(room.id, check_in),
                'amenities': room.room_type.amenity_list
            })
        return result

    def calculate_price(self, room_id: int, check_in: date, check_out: date) -> Decimal:
        """按房间价格计算住宿费用"""
        if check_out <= check_in:
            raise InvalidOperationError("离店日期必须晚于入住日期")

        room = self.get_room(room_id)
        if not room:
            raise NotFoundError("房间不存在")

        nights = (check_out - check_in).days
        return Decimal(str(room.base_price)) * nights

    # ============== 统计 ==============

    def get_room_detail(self, room_id: int) -> Optional[dict]:
        room = self.get_room(room_id)
        if not room:
            return None

        return {
            'id': room.id,
            'room_number': room.room_number,
            'floor': room.floor,
            'room_type_id': room.room_type_id,
            'room_type_name': room.room_type.name if room.room_type else None,
            'base_price': room.base_price,
            'status': room.status,
            'needs_cleaning': bool(room.needs_cleaning),
            'last_cleaned': room.last_cleaned,
            'cleaned_by_id': room.cleaned_by_id,
            'notes': room.notes
        }

    def get_occupancy_stats(self) -> dict:
        """房态统计与出租率"""
        rooms = self.db.query(Room).all()
        stats = {
            'total': len(rooms),
            'available': 0,
            'occupied': 0,
            'reserved': 0,
            'maintenance': 0,
            'needs_cleaning': 0
        }

        for room in rooms:
            stats[room.status.value] += 1
            if room.needs_cleaning:
                stats['needs_cleaning'] += 1

        in_service = stats['total'] - stats['maintenance']
        in_use = stats['occupied'] + stats['reserved']
        stats['occupancy_rate'] = round(in_use / in_service * 100) if in_service > 0 else 0
        return stats

    def get_room_type_stats(self) -> List[dict]:
        """按房型统计房间数"""
        result = []
        for room_type in self.get_room_types():
            rooms = room_type.rooms
            result.append({
                'room_type_id': room_type.id,
                'room_type_name': room_type.name,
                'total': len(rooms),
                'available': sum(1 for r in rooms if r.status == RoomStatus.AVAILABLE),
                'base_price': room_type.base_price
            })
        return result
