"""
账务管理路由
发票、收款、退款
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.entities import User, PaymentStatus
from app.models.schemas import (
    InvoiceCreate, InvoiceGenerate, InvoiceUpdate, InvoiceResponse,
    PaymentCreate, CashPaymentCreate, CardPaymentCreate, BankTransferCreate,
    RefundCreate, PaymentResponse
)
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService
from app.security.auth import require_staff, require_manager
from app.routers.errors import http_error

router = APIRouter(prefix="/billing", tags=["账务管理"])


def _invoice_response(service: InvoiceService, invoice_id: int) -> InvoiceResponse:
    return InvoiceResponse(**service.get_invoice_detail(invoice_id))


# ============== 发票 ==============

@router.get("/invoices", response_model=List[InvoiceResponse])
def list_invoices(
    reservation_id: Optional[int] = None,
    guest_id: Optional[int] = None,
    status: Optional[PaymentStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取发票列表"""
    service = InvoiceService(db)
    invoices = service.get_invoices(reservation_id, guest_id, status, start_date, end_date)
    return [_invoice_response(service, inv.id) for inv in invoices]


@router.get("/invoices/unpaid", response_model=List[InvoiceResponse])
def list_unpaid_invoices(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    service = InvoiceService(db)
    return [_invoice_response(service, inv.id) for inv in service.get_unpaid_invoices()]


@router.get("/invoices/overdue", response_model=List[InvoiceResponse])
def list_overdue_invoices(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    service = InvoiceService(db)
    return [_invoice_response(service, inv.id) for inv in service.get_overdue_invoices()]


@router.get("/invoices/statistics")
def invoice_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    return InvoiceService(db).get_statistics()


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取发票详情"""
    service = InvoiceService(db)
    detail = service.get_invoice_detail(invoice_id)
    if not detail:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="发票不存在")
    return InvoiceResponse(**detail)


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(
    data: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """开具发票"""
    service = InvoiceService(db)
    try:
        invoice = service.create_invoice(data)
        return _invoice_response(service, invoice.id)
    except ValueError as e:
        raise http_error(e)


@router.post("/reservations/{reservation_id}/invoice", response_model=InvoiceResponse,
             status_code=status.HTTP_201_CREATED)
def generate_invoice(
    reservation_id: int,
    data: InvoiceGenerate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """按预订生成住宿发票"""
    service = InvoiceService(db)
    try:
        invoice = service.generate_from_reservation(reservation_id, data.tax_percentage)
        return _invoice_response(service, invoice.id)
    except ValueError as e:
        raise http_error(e)


@router.put("/invoices/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    service = InvoiceService(db)
    try:
        invoice = service.update_invoice(invoice_id, data)
        return _invoice_response(service, invoice.id)
    except ValueError as e:
        raise http_error(e)


@router.delete("/invoices/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    try:
        InvoiceService(db).delete_invoice(invoice_id)
        return {"message": "发票已删除"}
    except ValueError as e:
        raise http_error(e)


# ============== 收款与退款 ==============

@router.get("/payments", response_model=List[PaymentResponse])
def list_payments(
    invoice_id: Optional[int] = None,
    reservation_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """获取支付流水；无条件时返回最近流水"""
    service = PaymentService(db)
    if invoice_id:
        return service.get_payments_by_invoice(invoice_id)
    if reservation_id:
        return service.get_payments_by_reservation(reservation_id)
    if start_date and end_date:
        return service.get_payments_by_date(start_date, end_date)
    return service.get_recent_payments()


@router.get("/payments/summary")
def payment_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """期间收款汇总"""
    service = PaymentService(db)
    return {
        'start_date': start_date,
        'end_date': end_date,
        'total': service.get_total_for_period(start_date, end_date),
        'by_method': service.get_totals_by_method(start_date, end_date)
    }


@router.get("/payments/statistics")
def payment_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    return PaymentService(db).get_statistics()


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def record_payment(
    data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """登记收款"""
    try:
        return PaymentService(db).record_payment(
            data.invoice_id, data.amount, data.method,
            processed_by=current_user.id,
            transaction_id=data.transaction_id,
            notes=data.notes
        )
    except ValueError as e:
        raise http_error(e)


@router.post("/payments/cash", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def cash_payment(
    data: CashPaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    try:
        return PaymentService(db).process_cash_payment(
            data.invoice_id, data.amount, current_user.id, data.notes
        )
    except ValueError as e:
        raise http_error(e)


@router.post("/payments/card", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def card_payment(
    data: CardPaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    try:
        return PaymentService(db).process_card_payment(
            data.invoice_id, data.amount, data.card_number, data.card_holder,
            data.expiry_month, data.expiry_year, data.method, current_user.id
        )
    except ValueError as e:
        raise http_error(e)


@router.post("/payments/bank-transfer", response_model=PaymentResponse,
             status_code=status.HTTP_201_CREATED)
def bank_transfer(
    data: BankTransferCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    try:
        return PaymentService(db).process_bank_transfer(
            data.invoice_id, data.amount, data.bank_reference, current_user.id, data.notes
        )
    except ValueError as e:
        raise http_error(e)


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse,
             status_code=status.HTTP_201_CREATED)
def refund_payment(
    payment_id: int,
    data: RefundCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    """退款（仅经理）"""
    try:
        return PaymentService(db).refund_payment(
            payment_id, data.reason, data.amount, processed_by=current_user.id
        )
    except ValueError as e:
        raise http_error(e)
