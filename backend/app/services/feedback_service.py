"""
客人反馈服务
"""
from typing import List, Optional
from datetime import date, datetime, timedelta
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.entities import Feedback, FeedbackStatus, Reservation, User
from app.models.schemas import FeedbackCreate
from app.services.errors import NotFoundError, InvalidOperationError
from app.services.work_item_service import WorkItemService


class FeedbackService(WorkItemService):
    """反馈服务：处理完成即为已解决，取消即为驳回"""

    model = Feedback
    entity_name = "反馈"
    initial_status = FeedbackStatus.OPEN
    started_status = FeedbackStatus.IN_PROGRESS
    done_status = FeedbackStatus.RESOLVED
    cancelled_status = FeedbackStatus.DISMISSED

    def __init__(self, db: Session):
        super().__init__(db)

    def create_feedback(self, data: FeedbackCreate) -> Feedback:
        if data.rating < 1 or data.rating > 5:
            raise InvalidOperationError("评分必须在 1 到 5 之间")

        guest_id = data.guest_id
        if data.reservation_id is not None:
            reservation = self.db.query(Reservation).filter(
                Reservation.id == data.reservation_id
            ).first()
            if not reservation:
                raise NotFoundError(f"预订 {data.reservation_id} 不存在")
            if guest_id is None:
                guest_id = reservation.guest_id
            elif reservation.guest_id != guest_id:
                raise InvalidOperationError(f"预订 {reservation.reservation_no} 不属于该客人")

        guest = None
        if guest_id is not None:
            guest = self.db.query(User).filter(User.id == guest_id).first()
            if not guest:
                raise NotFoundError(f"用户 {guest_id} 不存在")

        feedback = Feedback(
            guest_id=guest_id,
            reservation_id=data.reservation_id,
            guest_name=data.guest_name or (guest.full_name if guest else None),
            guest_email=data.guest_email or (guest.email if guest else None),
            rating=data.rating,
            subject=data.subject,
            comments=data.comments,
            category=data.category
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)
        return feedback

    def resolve(self, feedback_id: int, actor_id: int, notes: Optional[str] = None) -> Feedback:
        return self.complete(feedback_id, actor_id, notes)

    def get_feedback(self, guest_id: Optional[int] = None,
                     reservation_id: Optional[int] = None,
                     rating: Optional[int] = None,
                     category: Optional[str] = None,
                     unresolved_only: bool = False) -> List[Feedback]:
        query = self.db.query(Feedback)
        if guest_id is not None:
            query = query.filter(Feedback.guest_id == guest_id)
        if reservation_id is not None:
            query = query.filter(Feedback.reservation_id == reservation_id)
        if rating is not None:
            query = query.filter(Feedback.rating == rating)
        if category:
            query = query.filter(Feedback.category == category)
        if unresolved_only:
            query = query.filter(Feedback.status.in_(self.open_statuses))
        return query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()

    def get_average_rating(self, start_date: Optional[date] = None,
                           end_date: Optional[date] = None) -> Optional[float]:
        """平均评分，无反馈时返回 None"""
        query = self.db.query(func.avg(Feedback.rating))
        if start_date:
            query = query.filter(Feedback.created_at >= datetime.combine(start_date, datetime.min.time()))
        if end_date:
            query = query.filter(
                Feedback.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time())
            )
        average = query.scalar()
        return round(float(average), 2) if average is not None else None

    def get_statistics(self) -> dict:
        stats = super().get_statistics()
        items = self.db.query(Feedback).all()

        by_category = {}
        by_rating = {r: 0 for r in range(1, 6)}
        for item in items:
            key = item.category or "general"
            by_category[key] = by_category.get(key, 0) + 1
            by_rating[item.rating] += 1

        stats['by_category'] = by_category
        stats['by_rating'] = by_rating
        stats['average_rating'] = self.get_average_rating()
        return stats
