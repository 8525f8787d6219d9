"""
附加服务路由
服务目录与服务订单
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, ServiceOrderStatus
from app.models.schemas import (
    ServiceCreate, ServiceUpdate, ServiceResponse,
    ServiceOrderCreate, ServiceOrderUpdate, ServiceOrderResponse
)
from app.services.service_order_service import ServiceCatalogService, ServiceOrderService
from app.security.auth import require_staff, require_manager, get_current_user
from app.routers.errors import http_error
from app.routers.work_items import register_work_item_routes

router = APIRouter(prefix="/services", tags=["服务目录"])
orders_router = APIRouter(prefix="/service-orders", tags=["服务订单"])


# ============== 服务目录 ==============

@router.get("", response_model=List[ServiceResponse])
def list_services(
    service_type: Optional[str] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取服务目录"""
    return ServiceCatalogService(db).get_services(service_type, active_only)


@router.get("/statistics")
def service_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return ServiceCatalogService(db).get_statistics()


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ServiceCatalogService(db).get_service(service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="服务不存在")
    return service


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    try:
        return ServiceCatalogService(db).create_service(data)
    except ValueError as e:
        raise http_error(e)


@router.put("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: ServiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    try:
        return ServiceCatalogService(db).update_service(service_id, data)
    except ValueError as e:
        raise http_error(e)


@router.delete("/{service_id}")
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    try:
        ServiceCatalogService(db).delete_service(service_id)
        return {"message": "服务已删除"}
    except ValueError as e:
        raise http_error(e)


# ============== 服务订单 ==============

@orders_router.post("", response_model=ServiceOrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    data: ServiceOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """为预订下单附加服务"""
    try:
        return ServiceOrderService(db).create_order(data, created_by=current_user.id)
    except ValueError as e:
        raise http_error(e)


@orders_router.get("/by-reservation/{reservation_id}", response_model=List[ServiceOrderResponse])
def list_orders_by_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return ServiceOrderService(db).get_orders_by_reservation(reservation_id)


register_work_item_routes(orders_router, ServiceOrderService, ServiceOrderResponse,
                          ServiceOrderStatus, update_schema=ServiceOrderUpdate)
