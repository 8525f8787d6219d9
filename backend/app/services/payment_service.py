"""
支付服务 - 发票的只追加流水
1. 收款前校验余额，禁止超付
2. 退款写一条负金额流水，原流水只标记已退款
3. 每次记账后按流水重算发票的 paid_at
"""
from typing import List, Optional
from datetime import datetime, date, timedelta
from decimal import Decimal
import logging
import uuid
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.config import settings
from app.models.entities import Invoice, Payment, PaymentMethod, PaymentStatus
from app.services.errors import NotFoundError, InvalidOperationError
from app.services.ledger import net_paid, derive_payment_status, to_money

logger = logging.getLogger(__name__)


def luhn_valid(card_number: str) -> bool:
    """Luhn 校验"""
    digits = [int(c) for c in card_number if c.isdigit()]
    if len(digits) < 12 or len(digits) > 19:
        return False
    checksum = 0
    for i, digit in enumerate(reversed(digits)):
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        checksum += digit
    return checksum % 10 == 0


class PaymentService:
    """支付服务"""

    def __init__(self, db: Session):
        self.db = db

    # ============== 查询 ==============

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def get_payments_by_invoice(self, invoice_id: int) -> List[Payment]:
        return self.db.query(Payment).filter(
            Payment.invoice_id == invoice_id
        ).order_by(Payment.id).all()

    def get_payments_by_reservation(self, reservation_id: int) -> List[Payment]:
        return self.db.query(Payment).join(Invoice).filter(
            Invoice.reservation_id == reservation_id
        ).order_by(Payment.id).all()

    def get_recent_payments(self, limit: Optional[int] = None) -> List[Payment]:
        return self.db.query(Payment).order_by(
            Payment.payment_date.desc(), Payment.id.desc()
        ).limit(limit or settings.RECENT_PAYMENTS_LIMIT).all()

    def get_payments_by_date(self, start_date: date, end_date: date) -> List[Payment]:
        """获取 [start_date, end_date] 内的支付流水（含两端）"""
        start = datetime.combine(start_date, datetime.min.time())
        end = datetime.combine(end_date + timedelta(days=1), datetime.min.time())
        return self.db.query(Payment).filter(
            Payment.payment_date >= start,
            Payment.payment_date < end
        ).order_by(Payment.payment_date).all()

    def get_total_for_period(self, start_date: date, end_date: date) -> Decimal:
        """期间净收款（退款冲减）"""
        return net_paid(self.get_payments_by_date(start_date, end_date))

    def get_totals_by_method(self, start_date: Optional[date] = None,
                             end_date: Optional[date] = None) -> dict:
        """按支付方式汇总净收款"""
        if start_date and end_date:
            payments = self.get_payments_by_date(start_date, end_date)
        else:
            payments = self.db.query(Payment).all()

        totals = {method.value: Decimal("0.00") for method in PaymentMethod}
        for payment in payments:
            totals[payment.method.value] += to_money(payment.amount)
        return totals

    def get_statistics(self) -> dict:
        """支付统计"""
        payments = self.db.query(Payment).all()
        refunds = [p for p in payments if p.amount < 0]
        return {
            'payment_count': len(payments) - len(refunds),
            'refund_count': len(refunds),
            'gross_received': to_money(sum((p.amount for p in payments if p.amount > 0), Decimal("0"))),
            'total_refunded': to_money(-sum((p.amount for p in refunds), Decimal("0"))),
            'net_received': net_paid(payments),
            'by_method': self.get_totals_by_method()
        }

    # ============== 记账 ==============

    def _commit(self, invoice: Invoice, action: str):
        """提交流水；数据库出错时回滚并记录，异常照常抛出"""
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("发票 %s %s写入失败", invoice.invoice_no, action)
            raise

    def _refresh_paid_at(self, invoice: Invoice):
        """按流水重算结清时间：结清时补记，不再结清时清空"""
        if derive_payment_status(invoice.total, invoice.payments) == PaymentStatus.PAID:
            if invoice.paid_at is None:
                invoice.paid_at = datetime.utcnow()
        else:
            invoice.paid_at = None

    def record_payment(self, invoice_id: int, amount, method: PaymentMethod,
                       processed_by: Optional[int] = None,
                       transaction_id: Optional[str] = None,
                       notes: Optional[str] = None) -> Payment:
        """登记收款，金额不得超过发票余额"""
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError(f"发票 {invoice_id} 不存在")

        amount = to_money(amount)
        if amount <= 0:
            raise InvalidOperationError("支付金额必须大于 0")

        remaining = to_money(invoice.total) - net_paid(invoice.payments)
        if amount > remaining:
            logger.warning("发票 %s 超额支付被拒绝：%s > 余额 %s", invoice.invoice_no, amount, remaining)
            raise InvalidOperationError(f"支付金额 {amount} 超过发票余额 {remaining}")

        payment = Payment(
            invoice=invoice,
            amount=amount,
            method=method,
            transaction_id=transaction_id,
            notes=notes,
            payment_date=datetime.utcnow(),
            processed_by=processed_by
        )
        self.db.add(payment)
        self._refresh_paid_at(invoice)

        self._commit(invoice, "收款")
        self.db.refresh(payment)
        logger.info("发票 %s 收款 %s (%s)", invoice.invoice_no, amount, method.value)
        return payment

    def refund_payment(self, payment_id: int, reason: str,
                       amount=None, processed_by: Optional[int] = None) -> Payment:
        """
        退款
        新增一条负金额流水，缺省全额；原流水标记已退款，金额不变
        """
        original = self.get_payment(payment_id)
        if not original:
            raise NotFoundError(f"支付记录 {payment_id} 不存在")

        if original.is_refund:
            raise InvalidOperationError("退款流水不能再次退款")
        if original.is_refunded:
            raise InvalidOperationError("该笔支付已退款")

        refund_amount = to_money(original.amount if amount is None else amount)
        if refund_amount <= 0:
            raise InvalidOperationError("退款金额必须大于 0")
        if refund_amount > to_money(original.amount):
            raise InvalidOperationError("退款金额不能超过原支付金额")

        original.is_refunded = True
        original.refund_reason = reason

        invoice = original.invoice
        refund = Payment(
            invoice=invoice,
            amount=-refund_amount,
            method=original.method,
            transaction_id=f"REFUND-{original.transaction_id or original.id}",
            notes=f"Refund for payment #{original.id}. Reason: {reason}",
            payment_date=datetime.utcnow(),
            refund_of_id=original.id,
            processed_by=processed_by
        )
        self.db.add(refund)
        self._refresh_paid_at(invoice)

        self._commit(invoice, "退款")
        self.db.refresh(refund)
        logger.info("支付 %s 退款 %s，原因：%s", original.id, refund_amount, reason)
        return refund

    # ============== 按支付方式收款 ==============

    def process_cash_payment(self, invoice_id: int, amount,
                             processed_by: Optional[int] = None,
                             notes: Optional[str] = None) -> Payment:
        transaction_id = f"CASH-{datetime.utcnow().strftime('%Y%m%d%H%M%S%f')}"
        return self.record_payment(invoice_id, amount, PaymentMethod.CASH,
                                   processed_by, transaction_id, notes)

    def process_card_payment(self, invoice_id: int, amount, card_number: str,
                             card_holder: str, expiry_month: int, expiry_year: int,
                             method: PaymentMethod = PaymentMethod.CREDIT_CARD,
                             processed_by: Optional[int] = None) -> Payment:
        """刷卡收款，只保存卡号后四位"""
        if method not in (PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD):
            raise InvalidOperationError("刷卡收款只支持信用卡或借记卡")

        digits = "".join(c for c in card_number if c.isdigit())
        if not luhn_valid(digits):
            raise InvalidOperationError("卡号无效")

        today = date.today()
        if (expiry_year, expiry_month) < (today.year, today.month):
            raise InvalidOperationError("银行卡已过期")

        transaction_id = f"CC-{datetime.utcnow().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"
        notes = f"Card ending {digits[-4:]} ({card_holder})"
        return self.record_payment(invoice_id, amount, method,
                                   processed_by, transaction_id, notes)

    def process_bank_transfer(self, invoice_id: int, amount, bank_reference: str,
                              processed_by: Optional[int] = None,
                              notes: Optional[str] = None) -> Payment:
        if not bank_reference or not bank_reference.strip():
            raise InvalidOperationError("银行转账必须提供流水号")
        return self.record_payment(invoice_id, amount, PaymentMethod.BANK_TRANSFER,
                                   processed_by, f"BT-{bank_reference.strip()}", notes)
