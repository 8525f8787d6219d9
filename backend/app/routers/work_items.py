"""
工单通用路由
服务订单、清洁任务、维修请求、客人反馈共用的查询与状态流转接口
"""
from typing import Callable, List, Optional, Type
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User
from app.models.schemas import WorkItemAssign, WorkItemComplete, WorkItemCancel
from app.security.auth import require_any_staff, require_staff, require_manager
from app.services.work_item_service import WorkItemService
from app.routers.errors import http_error


def register_work_item_routes(router: APIRouter,
                              service_class: Type[WorkItemService],
                              response_model: Type,
                              status_enum: Type,
                              assign_permission: Callable = require_staff,
                              update_schema: Optional[Type] = None):
    """
    在 router 上挂载列表、详情、统计和 assign/start/complete/cancel
    给出 update_schema 时再挂载 PUT / DELETE /{item_id}
    """
    entity_name = service_class.entity_name

    @router.get("", response_model=List[response_model])
    def list_items(
        status: Optional[status_enum] = None,
        assigned_to_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_any_staff)
    ):
        return service_class(db).list(status, assigned_to_id, start_date, end_date)

    @router.get("/open", response_model=List[response_model])
    def list_open_items(
        db: Session = Depends(get_db),
        current_user: User = Depends(require_any_staff)
    ):
        return service_class(db).get_open_items()

    @router.get("/mine", response_model=List[response_model])
    def list_my_items(
        db: Session = Depends(get_db),
        current_user: User = Depends(require_any_staff)
    ):
        """当前用户负责的工单"""
        return service_class(db).list(assigned_to_id=current_user.id)

    @router.get("/statistics")
    def item_statistics(
        db: Session = Depends(get_db),
        current_user: User = Depends(require_staff)
    ):
        return service_class(db).get_statistics()

    @router.get("/{item_id}", response_model=response_model)
    def get_item(
        item_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_any_staff)
    ):
        item = service_class(db).get(item_id)
        if not item:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                                detail=f"{entity_name}不存在")
        return item

    if update_schema is not None:
        @router.put("/{item_id}", response_model=response_model)
        def update_item(
            item_id: int,
            data: update_schema,
            db: Session = Depends(get_db),
            current_user: User = Depends(require_staff)
        ):
            try:
                return service_class(db).update(item_id, data)
            except ValueError as e:
                raise http_error(e)

        @router.delete("/{item_id}")
        def delete_item(
            item_id: int,
            db: Session = Depends(get_db),
            current_user: User = Depends(require_manager)
        ):
            try:
                service_class(db).delete(item_id)
                return {"message": f"{entity_name}已删除"}
            except ValueError as e:
                raise http_error(e)

    @router.post("/{item_id}/assign", response_model=response_model)
    def assign_item(
        item_id: int,
        data: WorkItemAssign,
        db: Session = Depends(get_db),
        current_user: User = Depends(assign_permission)
    ):
        try:
            return service_class(db).assign(item_id, data.assigned_to_id)
        except ValueError as e:
            raise http_error(e)

    @router.post("/{item_id}/start", response_model=response_model)
    def start_item(
        item_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_any_staff)
    ):
        try:
            return service_class(db).start(item_id, current_user.id)
        except ValueError as e:
            raise http_error(e)

    @router.post("/{item_id}/complete", response_model=response_model)
    def complete_item(
        item_id: int,
        data: WorkItemComplete,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_any_staff)
    ):
        try:
            return service_class(db).complete(item_id, current_user.id, data.notes)
        except ValueError as e:
            raise http_error(e)

    @router.post("/{item_id}/cancel", response_model=response_model)
    def cancel_item(
        item_id: int,
        data: WorkItemCancel,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_staff)
    ):
        try:
            return service_class(db).cancel(item_id, current_user.id, data.reason)
        except ValueError as e:
            raise http_error(e)

    return router
