"""
维修请求服务
高/紧急优先级的请求使非在住房间进入维修状态；
最后一个此类请求解决或取消后房间恢复
"""
from typing import Optional
from datetime import datetime
import logging
from sqlalchemy.orm import Session
from app.models.entities import (
    MaintenanceRequest, MaintenanceStatus, Priority, Room, RoomStatus,
    Reservation, ReservationStatus
)
from app.models.schemas import MaintenanceRequestCreate
from app.services.errors import NotFoundError
from app.services.work_item_service import WorkItemService

logger = logging.getLogger(__name__)

BLOCKING_PRIORITIES = (Priority.HIGH, Priority.URGENT)


class MaintenanceService(WorkItemService):
    """维修请求服务"""

    model = MaintenanceRequest
    entity_name = "维修请求"
    initial_status = MaintenanceStatus.REPORTED
    started_status = MaintenanceStatus.IN_PROGRESS
    done_status = MaintenanceStatus.RESOLVED
    cancelled_status = MaintenanceStatus.CANCELLED

    def __init__(self, db: Session):
        super().__init__(db)

    def create_request(self, data: MaintenanceRequestCreate,
                       reported_by: Optional[int] = None) -> MaintenanceRequest:
        """登记维修请求"""
        room = None
        if data.room_id is not None:
            room = self.db.query(Room).filter(Room.id == data.room_id).first()
            if not room:
                raise NotFoundError(f"房间 {data.room_id} 不存在")
        if data.assigned_to_id is not None:
            self._require_staff(data.assigned_to_id)

        request = MaintenanceRequest(
            room_id=data.room_id,
            issue_description=data.issue_description,
            priority=data.priority,
            assigned_to_id=data.assigned_to_id,
            reported_by=reported_by
        )

        if room is not None and data.priority in BLOCKING_PRIORITIES:
            self._block_room(room)

        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        return request

    def _on_assign(self, request: MaintenanceRequest):
        # 派工即开始处理
        if request.status == MaintenanceStatus.REPORTED:
            request.status = MaintenanceStatus.IN_PROGRESS
            request.started_at = request.started_at or datetime.utcnow()

    def _block_room(self, room: Room):
        if room.status != RoomStatus.OCCUPIED:
            room.status = RoomStatus.MAINTENANCE
            logger.info("房间 %s 因维修请求停用", room.room_number)

    def _restore_room(self, request: MaintenanceRequest):
        room = request.room
        if room is None or room.status != RoomStatus.MAINTENANCE:
            return

        still_blocking = self.db.query(MaintenanceRequest).filter(
            MaintenanceRequest.room_id == room.id,
            MaintenanceRequest.id != request.id,
            MaintenanceRequest.priority.in_(BLOCKING_PRIORITIES),
            MaintenanceRequest.status.in_(self.open_statuses)
        ).count() > 0
        if still_blocking:
            return

        has_booking = self.db.query(Reservation).filter(
            Reservation.room_id == room.id,
            Reservation.status.in_([ReservationStatus.PENDING, ReservationStatus.CONFIRMED])
        ).count() > 0
        room.status = RoomStatus.RESERVED if has_booking else RoomStatus.AVAILABLE
        logger.info("房间 %s 维修结束，恢复为 %s", room.room_number, room.status.value)

    def _on_update(self, request: MaintenanceRequest, previous: dict):
        """调整优先级时同步房态"""
        if 'priority' not in previous or request.room is None:
            return
        was_blocking = previous['priority'] in BLOCKING_PRIORITIES
        is_blocking = request.priority in BLOCKING_PRIORITIES
        if is_blocking and not was_blocking:
            self._block_room(request.room)
        elif was_blocking and not is_blocking:
            self._restore_room(request)

    def _on_delete(self, request: MaintenanceRequest):
        if request.priority in BLOCKING_PRIORITIES:
            self._restore_room(request)

    def _on_complete(self, request: MaintenanceRequest, actor_id: int):
        self._restore_room(request)

    def _on_cancel(self, request: MaintenanceRequest, actor_id: int):
        self._restore_room(request)
