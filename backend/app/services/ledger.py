"""
支付流水计算
支付状态始终由流水实时推导，不读取任何缓存字段
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
from app.models.entities import Payment, PaymentStatus

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """统一为两位小数的 Decimal"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def net_paid(payments: Iterable[Payment]) -> Decimal:
    """净支付额 = 所有流水之和（退款流水为负数）"""
    return to_money(sum((Decimal(str(p.amount)) for p in payments), Decimal("0")))


def derive_payment_status(total, payments: Iterable[Payment]) -> PaymentStatus:
    """根据流水推导支付状态"""
    paid = net_paid(payments)
    if paid >= to_money(total):
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


def calculate_tax(amount, tax_percentage) -> Decimal:
    """税额 = 金额 × 税率%，四舍五入到分"""
    return to_money(Decimal(str(amount)) * Decimal(str(tax_percentage)) / Decimal("100"))
