"""
附加服务目录与服务订单
订单按下单时的服务价格计费；已完成或已取消的订单不能修改、取消或删除
"""
from typing import List, Optional
from decimal import Decimal
import logging
from sqlalchemy.orm import Session
from app.models.entities import (
    Service, ServiceOrder, ServiceOrderStatus, Reservation, ReservationStatus
)
from app.models.schemas import (
    ServiceCreate, ServiceUpdate, ServiceOrderCreate, ServiceOrderUpdate
)
from app.services.errors import NotFoundError, InvalidOperationError
from app.services.ledger import to_money
from app.services.work_item_service import WorkItemService

logger = logging.getLogger(__name__)


class ServiceCatalogService:
    """附加服务目录"""

    def __init__(self, db: Session):
        self.db = db

    def get_services(self, service_type: Optional[str] = None,
                     active_only: bool = False) -> List[Service]:
        query = self.db.query(Service)
        if service_type:
            query = query.filter(Service.service_type == service_type)
        if active_only:
            query = query.filter(Service.is_active == True)  # noqa: E712
        return query.order_by(Service.service_type, Service.name).all()

    def get_service(self, service_id: int) -> Optional[Service]:
        return self.db.query(Service).filter(Service.id == service_id).first()

    def _require_service(self, service_id: int) -> Service:
        service = self.get_service(service_id)
        if not service:
            raise NotFoundError(f"服务 {service_id} 不存在")
        return service

    def _check_name_free(self, name: str, exclude_id: Optional[int] = None):
        query = self.db.query(Service).filter(Service.name == name)
        if exclude_id is not None:
            query = query.filter(Service.id != exclude_id)
        if query.first():
            raise InvalidOperationError(f"服务名称 '{name}' 已存在")

    def create_service(self, data: ServiceCreate) -> Service:
        self._check_name_free(data.name)
        service = Service(**data.model_dump())
        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)
        return service

    def update_service(self, service_id: int, data: ServiceUpdate) -> Service:
        service = self._require_service(service_id)
        update_data = data.model_dump(exclude_unset=True)
        if 'name' in update_data:
            self._check_name_free(update_data['name'], exclude_id=service_id)

        for key, value in update_data.items():
            setattr(service, key, value)

        self.db.commit()
        self.db.refresh(service)
        return service

    def delete_service(self, service_id: int) -> bool:
        """删除服务，已有订单的服务只能停用"""
        service = self._require_service(service_id)
        if service.orders:
            raise InvalidOperationError("该服务已有订单，无法删除，请改为停用")

        self.db.delete(service)
        self.db.commit()
        return True

    def get_statistics(self) -> dict:
        services = self.db.query(Service).all()
        by_type = {}
        for service in services:
            by_type[service.service_type] = by_type.get(service.service_type, 0) + 1
        return {
            'total': len(services),
            'active': sum(1 for s in services if s.is_active),
            'by_type': by_type
        }


class ServiceOrderService(WorkItemService):
    """服务订单"""

    model = ServiceOrder
    entity_name = "服务订单"
    initial_status = ServiceOrderStatus.PENDING
    started_status = ServiceOrderStatus.IN_PROGRESS
    done_status = ServiceOrderStatus.COMPLETED
    cancelled_status = ServiceOrderStatus.CANCELLED

    def __init__(self, db: Session):
        super().__init__(db)
        self.catalog = ServiceCatalogService(db)

    def get_orders_by_reservation(self, reservation_id: int) -> List[ServiceOrder]:
        return self.db.query(ServiceOrder).filter(
            ServiceOrder.reservation_id == reservation_id
        ).order_by(ServiceOrder.created_at).all()

    def create_order(self, data: ServiceOrderCreate, created_by: Optional[int] = None) -> ServiceOrder:
        """下单：预订须有效，服务须在售"""
        reservation = self.db.query(Reservation).filter(
            Reservation.id == data.reservation_id
        ).first()
        if not reservation:
            raise NotFoundError(f"预订 {data.reservation_id} 不存在")
        if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.CHECKED_OUT):
            raise InvalidOperationError(f"状态为 {reservation.status.value} 的预订不能下单")

        service = self.catalog._require_service(data.service_id)
        if not service.is_active:
            raise InvalidOperationError(f"服务 {service.name} 已停售")

        unit_price = to_money(service.price)
        order = ServiceOrder(
            reservation_id=reservation.id,
            service_id=service.id,
            quantity=data.quantity,
            unit_price=unit_price,
            total_price=unit_price * data.quantity,
            scheduled_time=data.scheduled_time,
            delivery_location=data.delivery_location,
            special_instructions=data.special_instructions,
            created_by=created_by
        )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        logger.info("预订 %s 下单服务 %s x%s", reservation.reservation_no, service.name, data.quantity)
        return order

    def update_order(self, order_id: int, data: ServiceOrderUpdate) -> ServiceOrder:
        return self.update(order_id, data)

    def delete_order(self, order_id: int) -> bool:
        return self.delete(order_id)

    def _on_update(self, order: ServiceOrder, previous: dict):
        # 单价锁定在下单时，只按数量重算
        order.total_price = to_money(order.unit_price) * order.quantity

    def get_statistics(self) -> dict:
        stats = super().get_statistics()
        completed = self.db.query(ServiceOrder).filter(
            ServiceOrder.status == ServiceOrderStatus.COMPLETED
        ).all()
        stats['completed_revenue'] = to_money(sum((o.total_price for o in completed), Decimal("0")))
        return stats
