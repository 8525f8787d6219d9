"""
客房保障路由
清洁任务与维修请求
"""
from typing import List
from datetime import date
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, CleaningStatus, MaintenanceStatus
from app.models.schemas import (
    CleaningTaskCreate, CleaningTaskUpdate, CleaningTaskResponse, CheckoutTasksCreate,
    MaintenanceRequestCreate, MaintenanceRequestUpdate, MaintenanceRequestResponse
)
from app.services.cleaning_service import CleaningService
from app.services.maintenance_service import MaintenanceService
from app.security.auth import require_staff, require_any_staff, require_manager
from app.routers.errors import http_error
from app.routers.work_items import register_work_item_routes

cleaning_router = APIRouter(prefix="/cleaning-tasks", tags=["清洁任务"])
maintenance_router = APIRouter(prefix="/maintenance-requests", tags=["维修请求"])


@cleaning_router.post("", response_model=CleaningTaskResponse, status_code=status.HTTP_201_CREATED)
def create_cleaning_task(
    data: CleaningTaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """创建清洁任务，房间标记为待清洁"""
    try:
        return CleaningService(db).create_task(data, created_by=current_user.id)
    except ValueError as e:
        raise http_error(e)


@cleaning_router.post("/checkout-tasks", response_model=List[CleaningTaskResponse],
                      status_code=status.HTTP_201_CREATED)
def create_checkout_tasks(
    data: CheckoutTasksCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """为当日（或指定日期）预离房间批量生成清洁任务"""
    checkout_date = data.checkout_date or date.today()
    return CleaningService(db).create_checkout_tasks(checkout_date, created_by=current_user.id)


@cleaning_router.get("/by-room/{room_id}", response_model=List[CleaningTaskResponse])
def list_tasks_for_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_any_staff)
):
    return CleaningService(db).get_tasks_for_room(room_id)


register_work_item_routes(cleaning_router, CleaningService, CleaningTaskResponse,
                          CleaningStatus, update_schema=CleaningTaskUpdate)


@maintenance_router.post("", response_model=MaintenanceRequestResponse,
                         status_code=status.HTTP_201_CREATED)
def create_maintenance_request(
    data: MaintenanceRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_any_staff)
):
    """报修，高优先级且房间空闲时转为维修状态"""
    try:
        return MaintenanceService(db).create_request(data, reported_by=current_user.id)
    except ValueError as e:
        raise http_error(e)


register_work_item_routes(maintenance_router, MaintenanceService,
                          MaintenanceRequestResponse, MaintenanceStatus,
                          update_schema=MaintenanceRequestUpdate)
