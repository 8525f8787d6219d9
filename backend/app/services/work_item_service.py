"""
工单服务基类
服务订单、清洁任务、维修请求和客人反馈共用同一套生命周期：
创建 -> (分配) -> 开始 -> 完成；完成前可取消、修改或删除
子类提供实体模型、状态枚举和各自的联动规则
"""
from typing import List, Optional, Type
from datetime import datetime, date, timedelta
import logging
from sqlalchemy.orm import Session
from app.models.entities import User, UserRole
from app.services.errors import NotFoundError, InvalidOperationError

logger = logging.getLogger(__name__)


class WorkItemService:
    """工单服务基类"""

    model: Type = None
    entity_name = "工单"

    # 子类设置为各自状态枚举的成员
    initial_status = None
    started_status = None
    done_status = None
    cancelled_status = None

    def __init__(self, db: Session):
        self.db = db

    @property
    def terminal_statuses(self) -> tuple:
        return (self.done_status, self.cancelled_status)

    @property
    def open_statuses(self) -> tuple:
        return (self.initial_status, self.started_status)

    # ============== 查询 ==============

    def get(self, item_id: int):
        return self.db.query(self.model).filter(self.model.id == item_id).first()

    def _require(self, item_id: int):
        item = self.get(item_id)
        if not item:
            raise NotFoundError(f"{self.entity_name} {item_id} 不存在")
        return item

    def list(self, status=None, assigned_to_id: Optional[int] = None,
             start_date: Optional[date] = None,
             end_date: Optional[date] = None) -> List:
        """按状态、负责人、创建日期筛选"""
        query = self.db.query(self.model)

        if status is not None:
            query = query.filter(self.model.status == status)
        if assigned_to_id is not None:
            query = query.filter(self.model.assigned_to_id == assigned_to_id)
        if start_date:
            query = query.filter(
                self.model.created_at >= datetime.combine(start_date, datetime.min.time())
            )
        if end_date:
            query = query.filter(
                self.model.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time())
            )

        return query.order_by(self.model.created_at.desc(), self.model.id.desc()).all()

    def get_open_items(self) -> List:
        return self.db.query(self.model).filter(
            self.model.status.in_(self.open_statuses)
        ).order_by(self.model.created_at).all()

    # ============== 状态流转 ==============

    def _require_staff(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"用户 {user_id} 不存在")
        if not user.is_active or user.role == UserRole.GUEST:
            raise InvalidOperationError(f"用户 {user_id} 不是在职员工")
        return user

    def _ensure_not_terminal(self, item):
        if item.status == self.done_status:
            raise InvalidOperationError(f"{self.entity_name}已完成")
        if item.status == self.cancelled_status:
            raise InvalidOperationError(f"{self.entity_name}已取消")

    def assign(self, item_id: int, assignee_id: int):
        """分配负责人"""
        item = self._require(item_id)
        self._ensure_not_terminal(item)
        self._require_staff(assignee_id)

        item.assigned_to_id = assignee_id
        self._on_assign(item)

        self.db.commit()
        self.db.refresh(item)
        return item

    def start(self, item_id: int, actor_id: int):
        """开始处理，未分配时由操作人认领"""
        item = self._require(item_id)
        if item.status != self.initial_status:
            raise InvalidOperationError(
                f"状态为 {item.status.value} 的{self.entity_name}不能开始"
            )

        item.status = self.started_status
        item.started_at = datetime.utcnow()
        if item.assigned_to_id is None:
            item.assigned_to_id = actor_id

        self.db.commit()
        self.db.refresh(item)
        return item

    def complete(self, item_id: int, actor_id: int, notes: Optional[str] = None):
        """完成，记录完成人和时间"""
        item = self._require(item_id)
        self._ensure_not_terminal(item)

        now = datetime.utcnow()
        item.status = self.done_status
        item.completed_at = now
        item.completed_by = actor_id
        if item.started_at is None:
            item.started_at = now
        if notes:
            item.resolution_notes = notes
        self._on_complete(item, actor_id)

        self.db.commit()
        self.db.refresh(item)
        logger.info("%s %s 已完成，操作人 %s", self.entity_name, item.id, actor_id)
        return item

    def cancel(self, item_id: int, actor_id: int, reason: Optional[str] = None):
        """取消，已完成的不能取消"""
        item = self._require(item_id)
        self._ensure_not_terminal(item)

        item.status = self.cancelled_status
        item.completed_at = datetime.utcnow()
        item.completed_by = actor_id
        if reason:
            item.resolution_notes = reason
        self._on_cancel(item, actor_id)

        self.db.commit()
        self.db.refresh(item)
        logger.info("%s %s 已取消，操作人 %s", self.entity_name, item.id, actor_id)
        return item

    # ============== 修改与删除 ==============

    def update(self, item_id: int, data):
        """修改未结束的工单，只写入请求中给出的字段"""
        item = self._require(item_id)
        self._ensure_not_terminal(item)

        changes = data.model_dump(exclude_unset=True)
        if changes.get('assigned_to_id') is not None:
            self._require_staff(changes['assigned_to_id'])

        previous = {key: getattr(item, key) for key in changes}
        for key, value in changes.items():
            setattr(item, key, value)
        self._on_update(item, previous)

        self.db.commit()
        self.db.refresh(item)
        return item

    def delete(self, item_id: int) -> bool:
        """删除工单，已完成或已取消的保留作记录"""
        item = self._require(item_id)
        if item.status in self.terminal_statuses:
            raise InvalidOperationError(
                f"状态为 {item.status.value} 的{self.entity_name}不能删除"
            )

        self._on_delete(item)
        self.db.delete(item)
        self.db.commit()
        logger.info("%s %s 已删除", self.entity_name, item_id)
        return True

    # 子类联动钩子
    def _on_assign(self, item):
        pass

    def _on_update(self, item, previous: dict):
        pass

    def _on_delete(self, item):
        pass

    def _on_complete(self, item, actor_id: int):
        pass

    def _on_cancel(self, item, actor_id: int):
        pass

    # ============== 统计 ==============

    def get_statistics(self) -> dict:
        items = self.db.query(self.model).all()
        stats = {
            'total': len(items),
            'by_status': {s.value: 0 for s in type(self.initial_status)},
            'by_assignee': {}
        }
        if hasattr(self.model, 'priority'):
            stats['by_priority'] = {}

        for item in items:
            stats['by_status'][item.status.value] += 1
            if item.assigned_to_id is not None and item.status in self.open_statuses:
                stats['by_assignee'][item.assigned_to_id] = stats['by_assignee'].get(item.assigned_to_id, 0) + 1
            if 'by_priority' in stats and item.priority is not None:
                key = item.priority.value
                stats['by_priority'][key] = stats['by_priority'].get(key, 0) + 1

        return stats
