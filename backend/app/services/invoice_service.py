"""
发票服务
发票金额 = 金额 + 税额；支付状态由支付流水派生，从不落库
"""
from typing import List, Optional
from datetime import datetime, date, timedelta
from decimal import Decimal
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.config import settings
from app.models.entities import (
    Invoice, Reservation, PaymentStatus, ServiceOrder, ServiceOrderStatus
)
from app.models.schemas import InvoiceCreate, InvoiceUpdate
from app.services.errors import NotFoundError, InvalidOperationError
from app.services.ledger import calculate_tax, to_money

logger = logging.getLogger(__name__)


class InvoiceService:
    """发票服务"""

    def __init__(self, db: Session):
        self.db = db

    def _generate_invoice_no(self) -> str:
        """生成发票号：INV-日期-序号，序号接当日最大号"""
        prefix = f"INV-{datetime.now().strftime('%Y%m%d')}-"
        last_no = self.db.query(func.max(Invoice.invoice_no)).filter(
            Invoice.invoice_no.like(f'{prefix}%')
        ).scalar()
        seq = int(last_no[len(prefix):]) + 1 if last_no else 1
        return f'{prefix}{str(seq).zfill(4)}'

    # ============== 查询 ==============

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_invoice_by_no(self, invoice_no: str) -> Optional[Invoice]:
        return self.db.query(Invoice).filter(Invoice.invoice_no == invoice_no).first()

    def _require_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            raise NotFoundError(f"发票 {invoice_id} 不存在")
        return invoice

    def get_invoices(self, reservation_id: Optional[int] = None,
                     guest_id: Optional[int] = None,
                     status: Optional[PaymentStatus] = None,
                     start_date: Optional[date] = None,
                     end_date: Optional[date] = None) -> List[Invoice]:
        """获取发票列表；状态为派生值，在内存中过滤"""
        query = self.db.query(Invoice)

        if reservation_id:
            query = query.filter(Invoice.reservation_id == reservation_id)
        if guest_id:
            query = query.join(Reservation).filter(Reservation.guest_id == guest_id)
        if start_date:
            query = query.filter(Invoice.created_at >= datetime.combine(start_date, datetime.min.time()))
        if end_date:
            query = query.filter(
                Invoice.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time())
            )

        invoices = query.order_by(Invoice.created_at.desc()).all()
        if status:
            invoices = [inv for inv in invoices if inv.payment_status == status]
        return invoices

    def get_unpaid_invoices(self) -> List[Invoice]:
        """未结清发票（待支付和部分支付）"""
        return [inv for inv in self.get_invoices() if inv.payment_status != PaymentStatus.PAID]

    def get_overdue_invoices(self) -> List[Invoice]:
        """逾期发票：到期日早于今天且未结清"""
        candidates = self.db.query(Invoice).filter(
            Invoice.due_date.isnot(None),
            Invoice.due_date < date.today()
        ).order_by(Invoice.due_date).all()
        return [inv for inv in candidates if inv.payment_status != PaymentStatus.PAID]

    # ============== 创建与修改 ==============

    def create_invoice(self, data: InvoiceCreate) -> Invoice:
        """为预订开具发票"""
        reservation = self.db.query(Reservation).filter(
            Reservation.id == data.reservation_id
        ).first()
        if not reservation:
            raise NotFoundError(f"预订 {data.reservation_id} 不存在")

        amount = to_money(data.amount)
        tax = calculate_tax(amount, data.tax_percentage)

        invoice = Invoice(
            invoice_no=self._generate_invoice_no(),
            reservation_id=reservation.id,
            amount=amount,
            tax_percentage=data.tax_percentage,
            tax=tax,
            total=amount + tax,
            due_date=data.due_date,
            notes=data.notes
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info("开具发票 %s，预订 %s，合计 %s", invoice.invoice_no,
                    reservation.reservation_no, invoice.total)
        return invoice

    def generate_from_reservation(self, reservation_id: int,
                                  tax_percentage: Optional[Decimal] = None) -> Invoice:
        """
        按预订生成发票，到期日为离店日
        金额 = 房型价格 × 晚数 + 已完成服务订单金额
        """
        reservation = self.db.query(Reservation).filter(
            Reservation.id == reservation_id
        ).first()
        if not reservation:
            raise NotFoundError(f"预订 {reservation_id} 不存在")

        if tax_percentage is None:
            tax_percentage = Decimal(str(settings.DEFAULT_TAX_PERCENTAGE))

        room_charges = Decimal(str(reservation.room_type.base_price)) * reservation.nights
        orders = self.db.query(ServiceOrder).filter(
            ServiceOrder.reservation_id == reservation.id,
            ServiceOrder.status == ServiceOrderStatus.COMPLETED
        ).all()
        service_charges = sum((to_money(o.total_price) for o in orders), Decimal("0"))

        notes = f"Accommodation charges for reservation {reservation.reservation_no}"
        if orders:
            notes += f"; {len(orders)} service order(s): {to_money(service_charges)}"

        return self.create_invoice(InvoiceCreate(
            reservation_id=reservation.id,
            amount=room_charges + service_charges,
            tax_percentage=tax_percentage,
            due_date=reservation.check_out_date,
            notes=notes
        ))

    def update_invoice(self, invoice_id: int, data: InvoiceUpdate) -> Invoice:
        """修改发票，已有支付流水的发票不可改"""
        invoice = self._require_invoice(invoice_id)
        if invoice.payments:
            raise InvalidOperationError("发票已有支付记录，不能修改")

        update_data = data.model_dump(exclude_unset=True)
        if 'amount' in update_data:
            invoice.amount = to_money(update_data['amount'])
        if 'tax_percentage' in update_data:
            invoice.tax_percentage = update_data['tax_percentage']
        if 'due_date' in update_data:
            invoice.due_date = update_data['due_date']
        if 'notes' in update_data:
            invoice.notes = update_data['notes']

        invoice.tax = calculate_tax(invoice.amount, invoice.tax_percentage or 0)
        invoice.total = to_money(invoice.amount) + invoice.tax

        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def delete_invoice(self, invoice_id: int) -> bool:
        """删除发票，已有支付流水的发票不可删"""
        invoice = self._require_invoice(invoice_id)
        if invoice.payments:
            raise InvalidOperationError("发票已有支付记录，不能删除")

        self.db.delete(invoice)
        self.db.commit()
        return True

    # ============== 详情与统计 ==============

    def get_invoice_detail(self, invoice_id: int) -> Optional[dict]:
        """获取发票详情（含支付流水）"""
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None

        return {
            'id': invoice.id,
            'invoice_no': invoice.invoice_no,
            'reservation_id': invoice.reservation_id,
            'reservation_no': invoice.reservation.reservation_no if invoice.reservation else None,
            'amount': invoice.amount,
            'tax_percentage': invoice.tax_percentage or Decimal("0"),
            'tax': invoice.tax,
            'total': invoice.total,
            'net_paid': invoice.net_paid,
            'balance': invoice.balance,
            'status': invoice.payment_status,
            'due_date': invoice.due_date,
            'notes': invoice.notes,
            'paid_at': invoice.paid_at,
            'created_at': invoice.created_at,
            'payments': list(invoice.payments)
        }

    def get_statistics(self) -> dict:
        """发票统计"""
        invoices = self.db.query(Invoice).all()
        since = datetime.utcnow() - timedelta(days=30)

        stats = {
            'total_invoices': len(invoices),
            'paid': 0,
            'partially_paid': 0,
            'pending': 0,
            'total_billed': Decimal("0.00"),
            'total_collected': Decimal("0.00"),
            'outstanding': Decimal("0.00"),
            'last_30_days_billed': Decimal("0.00"),
            'overdue': len(self.get_overdue_invoices())
        }

        for invoice in invoices:
            stats[invoice.payment_status.value] += 1
            stats['total_billed'] += invoice.total
            stats['total_collected'] += invoice.net_paid
            if invoice.created_at and invoice.created_at >= since:
                stats['last_30_days_billed'] += invoice.total

        stats['outstanding'] = stats['total_billed'] - stats['total_collected']
        return stats
