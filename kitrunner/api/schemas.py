"""
Modelos de entrada e saída da API.

Os nomes no JSON seguem camelCase; internamente os campos são snake_case.
Valores monetários trafegam como número (2 casas).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from ..core.models import OrderStatus, PaymentMethod, ShirtSize

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Entrada

class IdentifyRequest(CamelModel):
    cpf: Optional[str] = None
    birth_date: Optional[str] = None


class AddressIn(CamelModel):
    """Endereço enviado pelo cliente. Na atualização, só os campos presentes mudam."""
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    label: Optional[str] = None
    is_default: Optional[bool] = None


class RegisterRequest(CamelModel):
    name: Optional[str] = None
    cpf: Optional[str] = None
    birth_date: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    addresses: List[AddressIn] = []


class DeliveryCalculateRequest(CamelModel):
    customer_id: int
    event_id: int
    kit_quantity: int
    address_id: Optional[int] = None
    coupon_code: Optional[str] = None


class KitIn(CamelModel):
    name: Optional[str] = None
    cpf: Optional[str] = None
    shirt_size: Optional[str] = None


class OrderCreateRequest(CamelModel):
    event_id: int
    customer_id: int
    address_id: Optional[int] = None
    kit_quantity: int
    kits: List[KitIn] = []
    payment_method: Optional[str] = None
    coupon_code: Optional[str] = None
    idempotency_key: Optional[str] = None


class WizardStartRequest(CamelModel):
    event_id: int


class WizardAddressRequest(CamelModel):
    address_id: int


class WizardCostRequest(CamelModel):
    coupon_code: Optional[str] = None


class WizardKitsRequest(CamelModel):
    kit_quantity: int
    kits: List[KitIn] = []


class WizardPaymentRequest(CamelModel):
    payment_method: Optional[str] = None


# Saída

class EventOut(CamelModel):
    id: int
    name: str
    date: date
    time: str
    location: str
    city: str
    state: str
    participants: int
    available: bool
    fixed_price: Optional[Money] = None
    extra_kit_price: Money
    donation_required: bool
    donation_description: Optional[str] = None
    donation_amount: Optional[Money] = None
    coupon_code: Optional[str] = None
    coupon_discount: Optional[Money] = None
    created_at: Optional[datetime] = None


class CustomerOut(CamelModel):
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


class AddressOut(CamelModel):
    id: int
    customer_id: int
    street: str
    number: str
    complement: Optional[str] = None
    neighborhood: str
    city: str
    state: str
    zip_code: str
    label: str
    is_default: bool
    created_at: Optional[datetime] = None


class RegisterResponse(CamelModel):
    customer: CustomerOut
    addresses: List[AddressOut]


class KitOut(CamelModel):
    id: int
    order_id: int
    name: str
    cpf: str
    shirt_size: ShirtSize


class OrderOut(CamelModel):
    id: int
    order_number: str
    event_id: int
    customer_id: int
    address_id: int
    kit_quantity: int
    base_cost: Money
    delivery_cost: Money
    donation_cost: Money
    extra_kits_cost: Money
    discount_amount: Money
    total_cost: Money
    payment_method: PaymentMethod
    coupon_code: Optional[str] = None
    status: OrderStatus
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None


class DeliveryEstimateOut(CamelModel):
    event_date: date
    delivery_date: date


class OrderConfirmationOut(CamelModel):
    order: OrderOut
    kits: List[KitOut]
    event: EventOut
    delivery_estimate: DeliveryEstimateOut


class OrderDetailOut(CamelModel):
    order: OrderOut
    kits: List[KitOut]
    event: Optional[EventOut] = None


class BreakdownTerms(CamelModel):
    pickup: Money
    delivery: Money
    donation: Money
    additional_kits: Money
    discount: Money


class DeliveryCalculateResponse(CamelModel):
    base_cost: Money
    additional_kit_cost: Money
    extra_kits: int
    total_cost: Money
    delivery_cost: Money
    donation_cost: Money
    extra_kits_cost: Money
    discount_amount: Money
    coupon_code: Optional[str] = None
    fixed_price_applied: bool
    breakdown: BreakdownTerms


class PriceBreakdownOut(CamelModel):
    """Composição de preço guardada na sessão do assistente."""
    kit_quantity: int
    fixed_price_applied: bool
    pickup_cost: Money
    delivery_cost: Money
    donation_cost: Money
    base_cost: Money
    extra_kits: int
    extra_kit_unit_price: Money
    extra_kits_cost: Money
    subtotal: Money
    discount_percentage: Money
    discount_amount: Money
    coupon_code: Optional[str] = None
    total_cost: Money


class WizardView(CamelModel):
    session_id: str
    step: str
    redirected_from: Optional[str] = None
    error: Optional[str] = None
    can_register: bool = False
    event_id: Optional[int] = None
    customer: Optional[CustomerOut] = None
    selected_address: Optional[AddressOut] = None
    quote: Optional[PriceBreakdownOut] = None
    kit_quantity: int
    kits: List[KitIn] = []
    coupon_code: Optional[str] = None
    payment_method: Optional[str] = None
    confirmation: Optional[OrderDetailOut] = None
