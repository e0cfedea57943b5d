"""
Motor de precificação do pedido.

Funções puras: mesma entrada, mesmo resultado. O mesmo cálculo é
usado na prévia de custo e na confirmação do pedido.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .models import Coupon, Event

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
MIN_KITS = 1
MAX_KITS = 5


def to_money(value) -> Decimal:
    """Converte para Decimal com 2 casas (arredondamento comercial)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AppliedCoupon:
    """Cupom já resolvido, com o percentual de desconto."""
    code: str
    percentage: Decimal

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "AppliedCoupon":
        return cls(code=coupon.code, percentage=Decimal(coupon.discount_percentage))


@dataclass(frozen=True)
class PriceBreakdown:
    """
    Composição completa do preço. Cada termo é exibido ao cliente
    antes do pagamento.
    """
    kit_quantity: int
    fixed_price_applied: bool
    pickup_cost: Decimal
    delivery_cost: Decimal
    donation_cost: Decimal
    base_cost: Decimal
    extra_kits: int
    extra_kit_unit_price: Decimal
    extra_kits_cost: Decimal
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str]
    total_cost: Decimal


def compute_price(
    event: Event,
    kit_quantity: int,
    delivery_cost,
    coupon: Optional[AppliedCoupon] = None,
) -> PriceBreakdown:
    """
    Calcula o preço de um pedido.

    - extra_kits = max(0, kit_quantity - 1)
    - base = preço fixo do evento, ou entrega + doação (se obrigatória)
    - desconto do cupom incide sobre o subtotal (base + kits extras)
    - total = subtotal - desconto, nunca negativo

    kit_quantity fora de [1, 5] deve ser barrado antes de chegar aqui.
    """
    if not MIN_KITS <= kit_quantity <= MAX_KITS:
        raise ValueError(f"kit_quantity fora do intervalo: {kit_quantity}")

    extra_kits = max(0, kit_quantity - 1)
    unit_price = to_money(event.extra_kit_price)
    extra_kits_cost = to_money(unit_price * extra_kits)

    fixed_price_applied = event.fixed_price is not None
    if fixed_price_applied:
        pickup = to_money(event.fixed_price)
        delivery = ZERO
        donation = ZERO
        base_cost = pickup
    else:
        pickup = ZERO
        delivery = to_money(delivery_cost)
        if delivery < ZERO:
            raise ValueError(f"delivery_cost negativo: {delivery_cost}")
        donation = to_money(event.donation_amount) if event.donation_required else ZERO
        base_cost = to_money(delivery + donation)

    subtotal = to_money(base_cost + extra_kits_cost)

    percentage = ZERO
    discount = ZERO
    coupon_code = None
    if coupon is not None:
        percentage = min(max(Decimal(coupon.percentage), ZERO), Decimal("100"))
        discount = to_money(subtotal * percentage / Decimal("100"))
        coupon_code = coupon.code

    total = max(to_money(subtotal - discount), ZERO)

    logger.debug(
        f"Preço calculado: event_id={event.id}, kits={kit_quantity}, "
        f"fixed={fixed_price_applied}, base={base_cost}, extras={extra_kits_cost}, "
        f"discount={discount}, total={total}"
    )

    return PriceBreakdown(
        kit_quantity=kit_quantity,
        fixed_price_applied=fixed_price_applied,
        pickup_cost=pickup,
        delivery_cost=delivery,
        donation_cost=donation,
        base_cost=base_cost,
        extra_kits=extra_kits,
        extra_kit_unit_price=unit_price,
        extra_kits_cost=extra_kits_cost,
        subtotal=subtotal,
        discount_percentage=percentage,
        discount_amount=discount,
        coupon_code=coupon_code,
        total_cost=total,
    )
