"""
客人反馈路由
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, UserRole, FeedbackStatus
from app.models.schemas import FeedbackCreate, FeedbackUpdate, FeedbackResponse
from app.services.feedback_service import FeedbackService
from app.security.auth import get_current_user, require_staff
from app.routers.errors import http_error
from app.routers.work_items import register_work_item_routes

router = APIRouter(prefix="/feedback", tags=["客人反馈"])


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    data: FeedbackCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """提交反馈，客人只能以本人身份、为本人的预订提交"""
    if current_user.role == UserRole.GUEST:
        data = data.model_copy(update={'guest_id': current_user.id})
    try:
        return FeedbackService(db).create_feedback(data)
    except ValueError as e:
        raise http_error(e)


@router.get("/search", response_model=List[FeedbackResponse])
def search_feedback(
    guest_id: Optional[int] = None,
    reservation_id: Optional[int] = None,
    rating: Optional[int] = None,
    category: Optional[str] = None,
    unresolved_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return FeedbackService(db).get_feedback(guest_id, reservation_id, rating, category, unresolved_only)


@router.get("/average-rating")
def average_rating(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return {'average_rating': FeedbackService(db).get_average_rating(start_date, end_date)}


register_work_item_routes(router, FeedbackService, FeedbackResponse, FeedbackStatus,
                          update_schema=FeedbackUpdate)
