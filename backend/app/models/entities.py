"""
业务实体定义
房间、预订、账单与各类工单的 SQLAlchemy 模型
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric
)
from sqlalchemy.orm import relationship, declared_attr
from app.database import Base


# ============== 枚举定义 ==============

class UserRole(str, Enum):
    """用户角色"""
    MANAGER = "manager"            # 经理
    RECEPTIONIST = "receptionist"  # 前台
    HOUSEKEEPER = "housekeeper"    # 客房保洁
    GUEST = "guest"                # 客人


class RoomStatus(str, Enum):
    """房间状态"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


class ReservationStatus(str, Enum):
    """预订状态"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """支付状态（只读派生，不落库）"""
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentMethod(str, Enum):
    """支付方式"""
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class Priority(str, Enum):
    """工单优先级"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ServiceOrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CleaningStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MaintenanceStatus(str, Enum):
    REPORTED = "reported"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class FeedbackStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# 占用房间的预订状态
ACTIVE_RESERVATION_STATUSES = (
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.CHECKED_IN,
)


# ============== 实体定义 ==============

class User(Base):
    """
    用户对象 - 员工和客人共用
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(100), unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(20))
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.GUEST)
    is_active = Column(Boolean, default=True)
    password_reset_required = Column(Boolean, default=False)   # 重置密码后首次需修改
    hire_date = Column(Date)                         # 员工入职日期
    id_type = Column(String(20))                     # 证件类型
    id_number = Column(String(50))                   # 证件号码
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservations = relationship(
        "Reservation", back_populates="guest", foreign_keys="Reservation.guest_id"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class RoomType(Base):
    """房型对象"""
    __tablename__ = "room_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    base_price = Column(Numeric(10, 2), nullable=False)
    capacity = Column(Integer, default=2)            # 最大入住人数
    amenities = Column(Text)                         # 逗号分隔
    image_url = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rooms = relationship("Room", back_populates="room_type")

    @property
    def amenity_list(self) -> list:
        if not self.amenities:
            return []
        return [a.strip() for a in self.amenities.split(",") if a.strip()]


class Room(Base):
    """房间对象"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, nullable=False)
    floor = Column(Integer, nullable=False)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(RoomStatus), default=RoomStatus.AVAILABLE)
    needs_cleaning = Column(Boolean, default=False)
    last_cleaned = Column(DateTime)
    cleaned_by_id = Column(Integer, ForeignKey("users.id"))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room_type = relationship("RoomType", back_populates="rooms")
    cleaned_by = relationship("User", foreign_keys=[cleaned_by_id])
    reservations = relationship("Reservation", back_populates="room")
    cleaning_tasks = relationship("CleaningTask", back_populates="room")
    maintenance_requests = relationship("MaintenanceRequest", back_populates="room")


class Reservation(Base):
    """预订对象 - 预订生命周期的聚合根"""
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    reservation_no = Column(String(20), unique=True, nullable=False)
    guest_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    room_type_id = Column(Integer, ForeignKey("room_types.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    status = Column(SQLEnum(ReservationStatus), default=ReservationStatus.PENDING)
    total_price = Column(Numeric(10, 2), nullable=False)
    number_of_guests = Column(Integer, default=1)
    special_requests = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id"))
    checked_in_at = Column(DateTime)
    checked_in_by = Column(Integer, ForeignKey("users.id"))
    checked_out_at = Column(DateTime)
    checked_out_by = Column(Integer, ForeignKey("users.id"))
    cancelled_at = Column(DateTime)
    cancel_reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    guest = relationship("User", back_populates="reservations", foreign_keys=[guest_id])
    room_type = relationship("RoomType")
    room = relationship("Room", back_populates="reservations")
    invoices = relationship("Invoice", back_populates="reservation")
    service_orders = relationship("ServiceOrder", back_populates="reservation")

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    @property
    def payment_status(self) -> PaymentStatus:
        """由发票和支付流水实时计算"""
        from app.services.ledger import derive_payment_status
        if not self.invoices:
            return PaymentStatus.PENDING
        total = sum(inv.total for inv in self.invoices)
        payments = [p for inv in self.invoices for p in inv.payments]
        return derive_payment_status(total, payments)


class Invoice(Base):
    """发票对象，支付状态由支付流水派生"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_no = Column(String(20), unique=True, nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    tax_percentage = Column(Numeric(5, 2), default=0)
    tax = Column(Numeric(10, 2), default=0)
    total = Column(Numeric(10, 2), nullable=False)
    due_date = Column(Date)
    notes = Column(Text)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservation = relationship("Reservation", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.id")

    @property
    def net_paid(self):
        from app.services.ledger import net_paid
        return net_paid(self.payments)

    @property
    def balance(self):
        return self.total - self.net_paid

    @property
    def payment_status(self) -> PaymentStatus:
        from app.services.ledger import derive_payment_status
        return derive_payment_status(self.total, self.payments)


class Payment(Base):
    """
    支付流水
    退款是一条负金额的新流水，原流水只标记已退款
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(DateTime, default=datetime.utcnow)
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    transaction_id = Column(String(100))
    notes = Column(Text)
    is_refunded = Column(Boolean, default=False)
    refund_reason = Column(Text)
    refund_of_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    processed_by = Column(Integer, ForeignKey("users.id"))

    invoice = relationship("Invoice", back_populates="payments")
    refund_of = relationship("Payment", remote_side=[id])
    processor = relationship("User")

    @property
    def is_refund(self) -> bool:
        return self.refund_of_id is not None


class Service(Base):
    """附加服务目录"""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    service_type = Column(String(50), nullable=False)   # 如 餐饮/洗衣/接送
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    orders = relationship("ServiceOrder", back_populates="service")


class WorkItemMixin:
    """工单公共字段：状态由各实体自行定义"""

    created_at = Column(DateTime, default=datetime.utcnow)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    resolution_notes = Column(Text)

    @declared_attr
    def assigned_to_id(cls):
        return Column(Integer, ForeignKey("users.id"))

    @declared_attr
    def completed_by(cls):
        return Column(Integer, ForeignKey("users.id"))

    @declared_attr
    def assignee(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.assigned_to_id")


class ServiceOrder(WorkItemMixin, Base):
    """服务订单"""
    __tablename__ = "service_orders"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    quantity = Column(Integer, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(ServiceOrderStatus), default=ServiceOrderStatus.PENDING)
    scheduled_time = Column(DateTime)
    delivery_location = Column(String(100))
    special_instructions = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id"))

    reservation = relationship("Reservation", back_populates="service_orders")
    service = relationship("Service", back_populates="orders")


class CleaningTask(WorkItemMixin, Base):
    """清洁任务"""
    __tablename__ = "cleaning_tasks"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    description = Column(Text)
    priority = Column(SQLEnum(Priority), default=Priority.MEDIUM)
    status = Column(SQLEnum(CleaningStatus), default=CleaningStatus.PENDING)
    created_by = Column(Integer, ForeignKey("users.id"))

    room = relationship("Room", back_populates="cleaning_tasks")


class MaintenanceRequest(WorkItemMixin, Base):
    """维修请求"""
    __tablename__ = "maintenance_requests"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    issue_description = Column(Text, nullable=False)
    priority = Column(SQLEnum(Priority), default=Priority.MEDIUM)
    status = Column(SQLEnum(MaintenanceStatus), default=MaintenanceStatus.REPORTED)
    reported_by = Column(Integer, ForeignKey("users.id"))

    room = relationship("Room", back_populates="maintenance_requests")


class Feedback(WorkItemMixin, Base):
    """客人反馈"""
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=True)
    guest_name = Column(String(100))
    guest_email = Column(String(100))
    rating = Column(Integer, nullable=False)
    subject = Column(String(200))
    comments = Column(Text)
    category = Column(String(50))
    status = Column(SQLEnum(FeedbackStatus), default=FeedbackStatus.OPEN)

    guest = relationship("User", foreign_keys=[guest_id])
    reservation = relationship("Reservation")

    @property
    def is_resolved(self) -> bool:
        return self.status == FeedbackStatus.RESOLVED
