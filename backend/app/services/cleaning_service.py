"""
清洁任务服务
创建任务即标记房间待清洁；完成任务清除标记并记录清洁人和时间
"""
from typing import List, Optional
from datetime import datetime, date
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.entities import (
    CleaningTask, CleaningStatus, Priority, Room, User, UserRole,
    Reservation, ReservationStatus
)
from app.models.schemas import CleaningTaskCreate
from app.services.errors import NotFoundError
from app.services.work_item_service import WorkItemService

logger = logging.getLogger(__name__)


class CleaningService(WorkItemService):
    """清洁任务服务"""

    model = CleaningTask
    entity_name = "清洁任务"
    initial_status = CleaningStatus.PENDING
    started_status = CleaningStatus.IN_PROGRESS
    done_status = CleaningStatus.COMPLETED
    cancelled_status = CleaningStatus.CANCELLED

    def __init__(self, db: Session):
        super().__init__(db)

    def get_tasks_for_room(self, room_id: int) -> List[CleaningTask]:
        return self.db.query(CleaningTask).filter(
            CleaningTask.room_id == room_id
        ).order_by(CleaningTask.created_at.desc()).all()

    def has_open_task(self, room_id: int) -> bool:
        return self.db.query(CleaningTask).filter(
            CleaningTask.room_id == room_id,
            CleaningTask.status.in_(self.open_statuses)
        ).count() > 0

    def pick_housekeeper(self) -> Optional[User]:
        """未完成任务最少的在职保洁员"""
        open_counts = self.db.query(
            CleaningTask.assigned_to_id,
            func.count(CleaningTask.id).label('open_count')
        ).filter(
            CleaningTask.status.in_(self.open_statuses)
        ).group_by(CleaningTask.assigned_to_id).subquery()

        return self.db.query(User).outerjoin(
            open_counts, open_counts.c.assigned_to_id == User.id
        ).filter(
            User.role == UserRole.HOUSEKEEPER,
            User.is_active == True  # noqa: E712
        ).order_by(
            func.coalesce(open_counts.c.open_count, 0), User.id
        ).first()

    def create_task(self, data: CleaningTaskCreate, created_by: Optional[int] = None) -> CleaningTask:
        """创建清洁任务"""
        room = self.db.query(Room).filter(Room.id == data.room_id).first()
        if not room:
            raise NotFoundError(f"房间 {data.room_id} 不存在")
        if data.assigned_to_id is not None:
            self._require_staff(data.assigned_to_id)

        task = CleaningTask(
            room_id=room.id,
            description=data.description,
            priority=data.priority,
            assigned_to_id=data.assigned_to_id,
            created_by=created_by
        )
        room.needs_cleaning = True

        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def _on_complete(self, task: CleaningTask, actor_id: int):
        room = task.room
        room.needs_cleaning = False
        room.last_cleaned = datetime.utcnow()
        room.cleaned_by_id = task.assigned_to_id or actor_id

    def _on_delete(self, task: CleaningTask):
        # 房间没有其他未完成任务时撤销待清洁标记
        others = self.db.query(CleaningTask).filter(
            CleaningTask.room_id == task.room_id,
            CleaningTask.id != task.id,
            CleaningTask.status.in_(self.open_statuses)
        ).count()
        if not others and task.room is not None:
            task.room.needs_cleaning = False

    def create_checkout_tasks(self, checkout_date: date,
                              created_by: Optional[int] = None) -> List[CleaningTask]:
        """
        为指定日期预离的在住房间批量生成高优先级清洁任务
        已有未完成清洁任务的房间跳过；任务逐个派给负载最低的保洁员
        """
        rooms = self.db.query(Room).join(
            Reservation, Reservation.room_id == Room.id
        ).filter(
            Reservation.check_out_date == checkout_date,
            Reservation.status == ReservationStatus.CHECKED_IN
        ).distinct().order_by(Room.room_number).all()

        created = []
        for room in rooms:
            if self.has_open_task(room.id):
                continue
            housekeeper = self.pick_housekeeper()
            task = CleaningTask(
                room_id=room.id,
                description=f"退房清洁：{checkout_date.isoformat()} 预离",
                priority=Priority.HIGH,
                assigned_to_id=housekeeper.id if housekeeper else None,
                created_by=created_by
            )
            self.db.add(task)
            # 刷新后下一轮派单能计入本任务
            self.db.flush()
            created.append(task)

        self.db.commit()
        for task in created:
            self.db.refresh(task)
        logger.info("%s 预离房间生成清洁任务 %s 个", checkout_date, len(created))
        return created
