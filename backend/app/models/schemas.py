"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, ConfigDict, ValidationInfo
from app.models.entities import (
    UserRole, RoomStatus, ReservationStatus, PaymentStatus, PaymentMethod,
    Priority, ServiceOrderStatus, CleaningStatus, MaintenanceStatus, FeedbackStatus
)


# ============== 认证 / 用户 Schemas ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole = UserRole.GUEST
    hire_date: Optional[date] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)


class UserUpdate(BaseModel):
    email: Optional[str] = Field(None, max_length=100)
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    hire_date: Optional[date] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)


class GuestRegister(BaseModel):
    """客人自助注册，角色固定为 guest"""
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=100)
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    password: str = Field(..., min_length=6)


class PasswordReset(BaseModel):
    email: str


class PasswordResetResponse(BaseModel):
    message: str
    temporary_password: str


class PasswordChange(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserResponse(UserBase):
    id: int
    full_name: str
    is_active: bool
    password_reset_required: bool = False
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============== 房型 Schemas ==============

class RoomTypeBase(BaseModel):
    name: str = Field(..., max_length=50)
    description: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    capacity: int = Field(default=2, ge=1)
    amenities: Optional[str] = None
    image_url: Optional[str] = None


class RoomTypeCreate(RoomTypeBase):
    pass


class RoomTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    capacity: Optional[int] = Field(None, ge=1)
    amenities: Optional[str] = None
    image_url: Optional[str] = None


class RoomTypeResponse(RoomTypeBase):
    id: int
    created_at: datetime
    room_count: int = 0
    model_config = ConfigDict(from_attributes=True)


# ============== 房间 Schemas ==============

class RoomCreate(BaseModel):
    room_number: str = Field(..., max_length=10)
    floor: int
    room_type_id: int
    base_price: Optional[Decimal] = Field(None, ge=0)  # 缺省取房型价格
    notes: Optional[str] = None


class RoomUpdate(BaseModel):
    floor: Optional[int] = None
    room_type_id: Optional[int] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    needs_cleaning: Optional[bool] = None
    notes: Optional[str] = None


class RoomStatusUpdate(BaseModel):
    status: RoomStatus


class RoomResponse(BaseModel):
    id: int
    room_number: str
    floor: int
    room_type_id: int
    room_type_name: Optional[str] = None
    base_price: Decimal
    status: RoomStatus
    needs_cleaning: bool
    last_cleaned: Optional[datetime] = None
    cleaned_by_id: Optional[int] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class RoomAvailabilityResponse(BaseModel):
    id: int
    room_number: str
    room_type_name: str
    base_price: Decimal
    capacity: int
    is_available: bool
    next_available_date: Optional[date] = None
    amenities: List[str] = []


# ============== 预订 Schemas ==============

class ReservationCreate(BaseModel):
    guest_id: int
    room_type_id: int
    room_id: Optional[int] = None
    check_in_date: date
    check_out_date: date
    number_of_guests: int = Field(default=1, ge=1)
    special_requests: Optional[str] = None

    @field_validator('check_out_date')
    @classmethod
    def validate_dates(cls, v: date, info: ValidationInfo) -> date:
        """离店日期必须晚于入住日期"""
        check_in = info.data.get('check_in_date')
        if check_in and v <= check_in:
            raise ValueError('离店日期必须晚于入住日期')
        return v


class ReservationUpdate(BaseModel):
    room_type_id: Optional[int] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    number_of_guests: Optional[int] = Field(None, ge=1)
    special_requests: Optional[str] = None


class ReservationCancel(BaseModel):
    reason: str = Field(..., min_length=1)


class AssignRoomRequest(BaseModel):
    room_id: int


class CheckInRequest(BaseModel):
    room_id: Optional[int] = None


class ReservationResponse(BaseModel):
    id: int
    reservation_no: str
    guest_id: int
    guest_name: Optional[str] = None
    room_type_id: int
    room_type_name: Optional[str] = None
    room_id: Optional[int] = None
    room_number: Optional[str] = None
    check_in_date: date
    check_out_date: date
    nights: int
    status: ReservationStatus
    payment_status: PaymentStatus
    total_price: Decimal
    number_of_guests: int
    special_requests: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: datetime


# ============== 账务 Schemas ==============

class PaymentCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class CardPaymentCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)
    card_number: str = Field(..., min_length=12, max_length=23)
    card_holder: str
    expiry_month: int = Field(..., ge=1, le=12)
    expiry_year: int = Field(..., ge=2000)
    method: PaymentMethod = PaymentMethod.CREDIT_CARD


class BankTransferCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)
    bank_reference: str = Field(..., min_length=1)
    notes: Optional[str] = None


class CashPaymentCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)
    notes: Optional[str] = None


class RefundCreate(BaseModel):
    reason: str = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(None, gt=0)  # 缺省全额退款


class PaymentResponse(BaseModel):
    id: int
    invoice_id: int
    amount: Decimal
    payment_date: datetime
    method: PaymentMethod
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    is_refunded: bool
    refund_reason: Optional[str] = None
    refund_of_id: Optional[int] = None
    processed_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class InvoiceCreate(BaseModel):
    reservation_id: int
    amount: Decimal = Field(..., ge=0)
    tax_percentage: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceGenerate(BaseModel):
    tax_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class InvoiceUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    tax_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: int
    invoice_no: str
    reservation_id: int
    reservation_no: Optional[str] = None
    amount: Decimal
    tax_percentage: Decimal
    tax: Decimal
    total: Decimal
    net_paid: Decimal
    balance: Decimal
    status: PaymentStatus
    due_date: Optional[date] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    payments: List[PaymentResponse] = []


# ============== 附加服务 Schemas ==============

class ServiceBase(BaseModel):
    name: str = Field(..., max_length=100)
    service_type: str = Field(..., max_length=50)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    service_type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ServiceResponse(ServiceBase):
    id: int
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


# ============== 工单 Schemas ==============

class WorkItemAssign(BaseModel):
    assigned_to_id: int


class WorkItemComplete(BaseModel):
    notes: Optional[str] = None


class WorkItemCancel(BaseModel):
    reason: Optional[str] = None


class WorkItemResponse(BaseModel):
    id: int
    assigned_to_id: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    resolution_notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ServiceOrderCreate(BaseModel):
    reservation_id: int
    service_id: int
    quantity: int = Field(default=1, ge=1)
    scheduled_time: Optional[datetime] = None
    delivery_location: Optional[str] = None
    special_instructions: Optional[str] = None


class ServiceOrderUpdate(BaseModel):
    quantity: Optional[int] = Field(None, ge=1)
    scheduled_time: Optional[datetime] = None
    delivery_location: Optional[str] = None
    special_instructions: Optional[str] = None


class ServiceOrderResponse(WorkItemResponse):
    reservation_id: int
    service_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: ServiceOrderStatus
    scheduled_time: Optional[datetime] = None
    delivery_location: Optional[str] = None
    special_instructions: Optional[str] = None


class CleaningTaskCreate(BaseModel):
    room_id: int
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    assigned_to_id: Optional[int] = None


class CleaningTaskUpdate(BaseModel):
    description: Optional[str] = None
    priority: Optional[Priority] = None
    assigned_to_id: Optional[int] = None


class CheckoutTasksCreate(BaseModel):
    checkout_date: Optional[date] = None  # 缺省为今天


class CleaningTaskResponse(WorkItemResponse):
    room_id: int
    description: Optional[str] = None
    priority: Priority
    status: CleaningStatus


class MaintenanceRequestCreate(BaseModel):
    room_id: Optional[int] = None
    issue_description: str = Field(..., min_length=1)
    priority: Priority = Priority.MEDIUM
    assigned_to_id: Optional[int] = None


class MaintenanceRequestUpdate(BaseModel):
    issue_description: Optional[str] = Field(None, min_length=1)
    priority: Optional[Priority] = None
    assigned_to_id: Optional[int] = None


class MaintenanceRequestResponse(WorkItemResponse):
    room_id: Optional[int] = None
    issue_description: str
    priority: Priority
    status: MaintenanceStatus
    reported_by: Optional[int] = None


class FeedbackCreate(BaseModel):
    guest_id: Optional[int] = None
    reservation_id: Optional[int] = None
    guest_name: Optional[str] = Field(None, max_length=100)
    guest_email: Optional[str] = Field(None, max_length=100)
    rating: int = Field(..., ge=1, le=5)
    subject: Optional[str] = Field(None, max_length=200)
    comments: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)


class FeedbackUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    subject: Optional[str] = Field(None, max_length=200)
    comments: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)


class FeedbackResponse(WorkItemResponse):
    guest_id: Optional[int] = None
    reservation_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    rating: int
    subject: Optional[str] = None
    comments: Optional[str] = None
    category: Optional[str] = None
    status: FeedbackStatus
    is_resolved: bool
