from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class ShirtSize(str, Enum):
    PP = "PP"
    P = "P"
    M = "M"
    G = "G"
    GG = "GG"
    XGG = "XGG"


class PaymentMethod(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    PIX = "pix"


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class Event:
    """
    Evento de corrida. Somente leitura para o fluxo de pedidos.
    """
    id: int
    name: str
    date: date
    time: str
    location: str
    city: str
    state: str
    participants: int
    available: bool = True
    fixed_price: Optional[Decimal] = None
    extra_kit_price: Decimal = Decimal("8.00")
    donation_required: bool = False
    donation_description: Optional[str] = None
    donation_amount: Optional[Decimal] = None
    coupon_code: Optional[str] = None
    coupon_discount: Optional[Decimal] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Customer:
    """
    Cliente identificado por CPF + data de nascimento.

    Os campos de endereço embutidos são legados; endereços de entrega
    vivem em Address.
    """
    id: int
    name: str
    cpf: str
    birth_date: date
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Address:
    id: int
    customer_id: int
    street: str
    number: str
    neighborhood: str
    city: str
    state: str
    zip_code: str
    complement: Optional[str] = None
    label: str = "Casa"
    is_default: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Coupon:
    id: int
    code: str
    discount_percentage: Decimal
    active: bool = True


@dataclass(frozen=True)
class Kit:
    id: int
    order_id: int
    name: str
    cpf: str
    shirt_size: ShirtSize


@dataclass(frozen=True)
class Order:
    id: int
    order_number: str
    event_id: int
    customer_id: int
    address_id: int
    kit_quantity: int
    base_cost: Decimal
    delivery_cost: Decimal
    donation_cost: Decimal
    extra_kits_cost: Decimal
    discount_amount: Decimal
    total_cost: Decimal
    payment_method: PaymentMethod
    coupon_code: Optional[str] = None
    status: OrderStatus = OrderStatus.CONFIRMED
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class KitData:
    """Dados de um kit ainda não persistido (já normalizados)."""
    name: str
    cpf: str
    shirt_size: ShirtSize


@dataclass(frozen=True)
class OrderDraft:
    """
    Pedido validado e precificado, pronto para persistir.
    O número do pedido é atribuído no momento da gravação.
    """
    event_id: int
    customer_id: int
    address_id: int
    kit_quantity: int
    base_cost: Decimal
    delivery_cost: Decimal
    donation_cost: Decimal
    extra_kits_cost: Decimal
    discount_amount: Decimal
    total_cost: Decimal
    payment_method: PaymentMethod
    coupon_code: Optional[str] = None
    idempotency_key: Optional[str] = None
    kits: tuple = field(default_factory=tuple)
