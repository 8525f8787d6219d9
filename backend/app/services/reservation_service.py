"""
预订服务
管理 Reservation 的生命周期：创建、分房、入住、退房、取消

状态流转：pending -> confirmed -> checked_in -> checked_out
任何未终结的状态都可以取消；checked_out 和 cancelled 为终态
"""
from typing import List, Optional
from datetime import datetime, date, timedelta
from decimal import Decimal
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.entities import (
    Reservation, ReservationStatus, ACTIVE_RESERVATION_STATUSES,
    Room, RoomStatus, RoomType, User, CleaningTask, Priority
)
from app.models.schemas import ReservationCreate, ReservationUpdate
from app.services.errors import NotFoundError, InvalidOperationError
from app.services.ledger import calculate_tax, to_money
from app.services.room_service import RoomService

logger = logging.getLogger(__name__)

# 可以修改、分房的状态
OPEN_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class ReservationService:
    """预订服务"""

    def __init__(self, db: Session):
        self.db = db
        self.room_service = RoomService(db)

    def _generate_reservation_no(self) -> str:
        """生成预订号：RES-日期-序号，序号接当日最大号"""
        prefix = f"RES-{datetime.now().strftime('%Y%m%d')}-"
        last_no = self.db.query(func.max(Reservation.reservation_no)).filter(
            Reservation.reservation_no.like(f'{prefix}%')
        ).scalar()
        seq = int(last_no[len(prefix):]) + 1 if last_no else 1
        return f'{prefix}{str(seq).zfill(4)}'

    # ============== 查询 ==============

    def get_reservations(self, status: Optional[ReservationStatus] = None,
                         guest_id: Optional[int] = None,
                         room_id: Optional[int] = None,
                         start_date: Optional[date] = None,
                         end_date: Optional[date] = None) -> List[Reservation]:
        """获取预订列表；日期范围按住宿区间重叠筛选"""
        query = self.db.query(Reservation)

        if status:
            query = query.filter(Reservation.status == status)
        if guest_id:
            query = query.filter(Reservation.guest_id == guest_id)
        if room_id:
            query = query.filter(Reservation.room_id == room_id)
        if start_date:
            query = query.filter(Reservation.check_out_date > start_date)
        if end_date:
            query = query.filter(Reservation.check_in_date < end_date)

        return query.order_by(Reservation.check_in_date.desc()).all()

    def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(Reservation.id == reservation_id).first()

    def get_reservation_by_no(self, reservation_no: str) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(
            Reservation.reservation_no == reservation_no
        ).first()

    def _require_reservation(self, reservation_id: int) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        if not reservation:
            raise NotFoundError(f"预订 {reservation_id} 不存在")
        return reservation

    def get_today_arrivals(self) -> List[Reservation]:
        """今日预抵"""
        return self.db.query(Reservation).filter(
            Reservation.check_in_date == date.today(),
            Reservation.status.in_(OPEN_STATUSES)
        ).all()

    def get_today_departures(self) -> List[Reservation]:
        """今日预离"""
        return self.db.query(Reservation).filter(
            Reservation.check_out_date == date.today(),
            Reservation.status == ReservationStatus.CHECKED_IN
        ).all()

    # ============== 可用性 ==============

    def check_availability(self, room_id: int, check_in: date, check_out: date,
                           exclude_reservation_id: Optional[int] = None) -> bool:
        """房间在 [check_in, check_out) 内是否可订"""
        return self.room_service.is_room_available(
            room_id, check_in, check_out, exclude_reservation_id
        )

    def is_room_type_available(self, room_type_id: int, check_in: date, check_out: date,
                               exclude_reservation_id: Optional[int] = None) -> bool:
        """房型在指定日期是否还有余房"""
        room_count = self.db.query(Room).filter(
            Room.room_type_id == room_type_id,
            Room.status != RoomStatus.MAINTENANCE
        ).count()

        query = self.db.query(Reservation).filter(
            Reservation.room_type_id == room_type_id,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
            Reservation.check_in_date < check_out,
            Reservation.check_out_date > check_in
        )
        if exclude_reservation_id is not None:
            query = query.filter(Reservation.id != exclude_reservation_id)

        return query.count() < room_count

    def _validate_stay(self, room_type: RoomType, check_in: date, check_out: date,
                       number_of_guests: int):
        if check_out <= check_in:
            raise InvalidOperationError("离店日期必须晚于入住日期")
        if number_of_guests < 1 or number_of_guests > (room_type.capacity or 1):
            raise InvalidOperationError(
                f"入住人数必须在 1 到 {room_type.capacity} 之间"
            )

    def _attach_room(self, reservation: Reservation, room_id: int,
                     exclude_reservation_id: Optional[int] = None,
                     check_type_capacity: bool = False) -> Room:
        """
        锁定房间后校验房型和日期，再把房间挂到预订上
        check_type_capacity 为真时还要求房型仍有余量
        """
        room = self.room_service.lock_room(room_id)

        if room.room_type_id != reservation.room_type_id:
            raise InvalidOperationError("房间房型与预订房型不一致")

        if not self.check_availability(room.id, reservation.check_in_date,
                                       reservation.check_out_date, exclude_reservation_id):
            logger.warning("房间 %s 在 %s ~ %s 不可用", room.room_number,
                           reservation.check_in_date, reservation.check_out_date)
            raise InvalidOperationError(f"房间 {room.room_number} 在所选日期不可用")

        if check_type_capacity and not self.is_room_type_available(
                room.room_type_id, reservation.check_in_date, reservation.check_out_date,
                exclude_reservation_id):
            raise InvalidOperationError(f"房型 {room.room_type.name} 在所选日期已无空房")

        reservation.room_id = room.id
        reservation.room = room
        if room.status == RoomStatus.AVAILABLE:
            room.status = RoomStatus.RESERVED
        return room

    def _release_room(self, room: Room, reservation_id: int):
        """没有其他生效预订占用时，房间恢复可用"""
        if room.status not in (RoomStatus.RESERVED, RoomStatus.OCCUPIED):
            return

        others = self.db.query(Reservation).filter(
            Reservation.room_id == room.id,
            Reservation.id != reservation_id,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES)
        ).all()

        if any(r.status == ReservationStatus.CHECKED_IN for r in others):
            room.status = RoomStatus.OCCUPIED
        elif others:
            room.status = RoomStatus.RESERVED
        else:
            room.status = RoomStatus.AVAILABLE

    # ============== 生命周期 ==============

    def create_reservation(self, data: ReservationCreate, created_by: Optional[int] = None) -> Reservation:
        """
        创建预订
        1. 校验客人、房型、日期和入住人数
        2. 指定了房间则锁房并做重叠检查；无论是否指定房间都要检查房型余量
        3. 总价 = 房型价格 × 晚数
        """
        guest = self.db.query(User).filter(User.id == data.guest_id).first()
        if not guest:
            raise NotFoundError(f"客人 {data.guest_id} 不存在")
        if not guest.is_active:
            raise InvalidOperationError("客人账号已停用")

        room_type = self.room_service.get_room_type(data.room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        self._validate_stay(room_type, data.check_in_date, data.check_out_date,
                            data.number_of_guests)
        if data.check_in_date < date.today():
            raise InvalidOperationError("入住日期不能早于今天")

        reservation = Reservation(
            reservation_no=self._generate_reservation_no(),
            guest_id=guest.id,
            room_type_id=room_type.id,
            check_in_date=data.check_in_date,
            check_out_date=data.check_out_date,
            number_of_guests=data.number_of_guests,
            special_requests=data.special_requests,
            total_price=Decimal(str(room_type.base_price)) * (data.check_out_date - data.check_in_date).days,
            status=ReservationStatus.PENDING,
            created_by=created_by
        )

        if data.room_id is not None:
            self._attach_room(reservation, data.room_id, check_type_capacity=True)
            reservation.status = ReservationStatus.CONFIRMED
        elif not self.is_room_type_available(room_type.id, data.check_in_date, data.check_out_date):
            raise InvalidOperationError(f"房型 {room_type.name} 在所选日期已无空房")

        self.db.add(reservation)
        self.db.commit()
        self.db.refresh(reservation)
        logger.info("创建预订 %s (客人 %s, %s ~ %s)", reservation.reservation_no,
                    guest.id, reservation.check_in_date, reservation.check_out_date)
        return reservation

    def confirm_reservation(self, reservation_id: int) -> Reservation:
        """确认待定预订"""
        reservation = self._require_reservation(reservation_id)
        if reservation.status != ReservationStatus.PENDING:
            raise InvalidOperationError(f"状态为 {reservation.status.value} 的预订不能确认")

        reservation.status = ReservationStatus.CONFIRMED
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def update_reservation(self, reservation_id: int, data: ReservationUpdate) -> Reservation:
        """
        修改预订
        已分房时对原房间重新做重叠检查（排除自身），并重算总价；
        尚无付款的发票按新总价重新计费
        """
        reservation = self._require_reservation(reservation_id)
        if reservation.status not in OPEN_STATUSES:
            raise InvalidOperationError(f"状态为 {reservation.status.value} 的预订不可修改")

        update_data = data.model_dump(exclude_unset=True)

        room_type_id = update_data.get('room_type_id', reservation.room_type_id)
        room_type = self.room_service.get_room_type(room_type_id)
        if not room_type:
            raise NotFoundError("房型不存在")

        check_in = update_data.get('check_in_date', reservation.check_in_date)
        check_out = update_data.get('check_out_date', reservation.check_out_date)
        guests = update_data.get('number_of_guests', reservation.number_of_guests)
        self._validate_stay(room_type, check_in, check_out, guests)

        room = reservation.room
        if room is not None and room.room_type_id != room_type_id:
            # 换房型后原房间不再适用
            self._release_room(room, reservation.id)
            reservation.room_id = None
            reservation.room = None
            room = None

        if room is not None:
            self.room_service.lock_room(room.id)
            if not self.check_availability(room.id, check_in, check_out, reservation.id):
                raise InvalidOperationError(f"房间 {room.room_number} 在新日期不可用")
        elif not self.is_room_type_available(room_type_id, check_in, check_out, reservation.id):
            raise InvalidOperationError(f"房型 {room_type.name} 在所选日期已无空房")

        for key, value in update_data.items():
            setattr(reservation, key, value)

        reservation.total_price = Decimal(str(room_type.base_price)) * (check_out - check_in).days

        for invoice in reservation.invoices:
            if not invoice.payments:
                invoice.amount = to_money(reservation.total_price)
                invoice.tax = calculate_tax(invoice.amount, invoice.tax_percentage or 0)
                invoice.total = invoice.amount + invoice.tax

        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def assign_room(self, reservation_id: int, room_id: int) -> Reservation:
        """分配房间：房型须一致且日期无重叠，房间状态变为已预订"""
        reservation = self._require_reservation(reservation_id)
        if reservation.status not in OPEN_STATUSES:
            raise InvalidOperationError(f"状态为 {reservation.status.value} 的预订不能分房")

        previous = reservation.room
        self._attach_room(reservation, room_id, exclude_reservation_id=reservation.id)
        if previous is not None and previous.id != room_id:
            self._release_room(previous, reservation.id)

        if reservation.status == ReservationStatus.PENDING:
            reservation.status = ReservationStatus.CONFIRMED

        self.db.commit()
        self.db.refresh(reservation)
        logger.info("预订 %s 分配房间 %s", reservation.reservation_no, reservation.room.room_number)
        return reservation

    def check_in(self, reservation_id: int, staff_id: int,
                 room_id: Optional[int] = None) -> Reservation:
        """
        办理入住
        1. 已入住、已退房、已取消的预订拒绝
        2. 传入房间与已分配房间不同则重新分房
        3. 预订状态 -> checked_in，房间状态 -> occupied
        """
        reservation = self._require_reservation(reservation_id)

        if reservation.status == ReservationStatus.CHECKED_IN:
            raise InvalidOperationError("该预订已办理入住")
        if reservation.status not in OPEN_STATUSES:
            raise InvalidOperationError(f"状态为 {reservation.status.value} 的预订不能入住")

        if room_id is not None and room_id != reservation.room_id:
            previous = reservation.room
            self._attach_room(reservation, room_id, exclude_reservation_id=reservation.id)
            if previous is not None:
                self._release_room(previous, reservation.id)
            room = reservation.room
        elif reservation.room_id is not None:
            room = self.room_service.lock_room(reservation.room_id)
        else:
            raise InvalidOperationError("预订尚未分配房间")

        if room.status == RoomStatus.MAINTENANCE:
            raise InvalidOperationError(f"房间 {room.room_number} 正在维修")
        if room.status == RoomStatus.OCCUPIED:
            raise InvalidOperationError(f"房间 {room.room_number} 仍有客人在住")

        reservation.status = ReservationStatus.CHECKED_IN
        reservation.checked_in_at = datetime.utcnow()
        reservation.checked_in_by = staff_id
        room.status = RoomStatus.OCCUPIED

        self.db.commit()
        self.db.refresh(reservation)
        logger.info("预订 %s 入住房间 %s，操作人 %s",
                    reservation.reservation_no, room.room_number, staff_id)
        return reservation

    def check_out(self, reservation_id: int, staff_id: int) -> Reservation:
        """
        办理退房
        1. 仅在住预订可退房
        2. 房间标记待清洁；仍有后续预订占用时保持已预订，否则恢复可用
        3. 房间没有未完成的清洁任务时自动生成一个，派给未完成任务最少的保洁员
        """
        from app.services.cleaning_service import CleaningService

        reservation = self._require_reservation(reservation_id)
        if reservation.status != ReservationStatus.CHECKED_IN:
            raise InvalidOperationError("只有在住的预订可以退房")

        reservation.status = ReservationStatus.CHECKED_OUT
        reservation.checked_out_at = datetime.utcnow()
        reservation.checked_out_by = staff_id

        room = reservation.room
        self._release_room(room, reservation.id)
        room.needs_cleaning = True

        cleaning = CleaningService(self.db)
        if not cleaning.has_open_task(room.id):
            housekeeper = cleaning.pick_housekeeper()
            self.db.add(CleaningTask(
                room_id=room.id,
                description=f"退房清洁：预订 {reservation.reservation_no}",
                priority=Priority.HIGH,
                assigned_to_id=housekeeper.id if housekeeper else None,
                created_by=staff_id
            ))

        self.db.commit()
        self.db.refresh(reservation)
        logger.info("预订 %s 退房，房间 %s 待清洁", reservation.reservation_no, room.room_number)
        return reservation

    def cancel_reservation(self, reservation_id: int, reason: str,
                           actor_id: Optional[int] = None) -> Reservation:
        """取消预订，已退房或已取消的预订不可取消；释放房间"""
        reservation = self._require_reservation(reservation_id)

        if reservation.status == ReservationStatus.CHECKED_OUT:
            raise InvalidOperationError("已退房的预订不能取消")
        if reservation.status == ReservationStatus.CANCELLED:
            raise InvalidOperationError("预订已取消")

        was_checked_in = reservation.status == ReservationStatus.CHECKED_IN
        reservation.status = ReservationStatus.CANCELLED
        reservation.cancel_reason = reason
        reservation.cancelled_at = datetime.utcnow()

        room = reservation.room
        if room is not None:
            self._release_room(room, reservation.id)
            if was_checked_in:
                room.needs_cleaning = True

        self.db.commit()
        self.db.refresh(reservation)
        logger.info("预订 %s 已取消 (操作人 %s): %s", reservation.reservation_no, actor_id, reason)
        return reservation

    # ============== 详情与统计 ==============

    def get_reservation_detail(self, reservation_id: int) -> Optional[dict]:
        """获取预订详情（包含关联信息）"""
        reservation = self.get_reservation(reservation_id)
        if not reservation:
            return None

        return {
            'id': reservation.id,
            'reservation_no': reservation.reservation_no,
            'guest_id': reservation.guest_id,
            'guest_name': reservation.guest.full_name if reservation.guest else None,
            'room_type_id': reservation.room_type_id,
            'room_type_name': reservation.room_type.name if reservation.room_type else None,
            'room_id': reservation.room_id,
            'room_number': reservation.room.room_number if reservation.room else None,
            'check_in_date': reservation.check_in_date,
            'check_out_date': reservation.check_out_date,
            'nights': reservation.nights,
            'status': reservation.status,
            'payment_status': reservation.payment_status,
            'total_price': reservation.total_price,
            'number_of_guests': reservation.number_of_guests,
            'special_requests': reservation.special_requests,
            'checked_in_at': reservation.checked_in_at,
            'checked_out_at': reservation.checked_out_at,
            'cancelled_at': reservation.cancelled_at,
            'cancel_reason': reservation.cancel_reason,
            'created_at': reservation.created_at
        }

    def get_statistics(self) -> dict:
        """按状态统计预订数量"""
        stats = {'total': self.db.query(Reservation).count()}
        for status in ReservationStatus:
            stats[status.value] = self.db.query(Reservation).filter(
                Reservation.status == status
            ).count()
        stats['today_arrivals'] = len(self.get_today_arrivals())
        stats['today_departures'] = len(self.get_today_departures())
        return stats

    def get_occupancy_forecast(self, start_date: date, end_date: date) -> List[dict]:
        """逐日统计 [start_date, end_date] 内每晚被占用的预订数"""
        if end_date < start_date:
            raise InvalidOperationError("结束日期不能早于开始日期")

        reservations = self.db.query(Reservation).filter(
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.check_in_date <= end_date,
            Reservation.check_out_date > start_date
        ).all()

        forecast = []
        day = start_date
        while day <= end_date:
            count = sum(1 for r in reservations if r.check_in_date <= day < r.check_out_date)
            forecast.append({'date': day, 'count': count})
            day += timedelta(days=1)
        return forecast
