import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import (
    ConflictError,
    FieldError,
    NotFoundError,
    OrderNumberConflict,
    PersistenceError,
    ValidationError,
)
from .models import Address, Customer, Event, Kit, KitData, Order, OrderDraft, PaymentMethod, ShirtSize
from .normalizers import mask_cpf, normalize_cpf
from .order_number import OrderNumberGenerator
from .pricing import MAX_KITS, MIN_KITS, AppliedCoupon, PriceBreakdown, compute_price
from ..infra.delivery import DeliveryCostEstimator
from ..storage.repository import KitRunnerRepository

logger = logging.getLogger(__name__)

SHIRT_SIZES = [s.value for s in ShirtSize]
PAYMENT_METHODS = [p.value for p in PaymentMethod]


@dataclass(frozen=True)
class OrderRequest:
    """Dados enviados pelo cliente para criar um pedido (ainda não validados)."""
    event_id: int
    customer_id: int
    address_id: int
    kit_quantity: int
    kits: Sequence[Dict[str, Any]] = field(default_factory=tuple)
    payment_method: Optional[str] = None
    coupon_code: Optional[str] = None
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class DeliveryEstimate:
    event_date: date
    delivery_date: date


@dataclass(frozen=True)
class PriceQuote:
    event: Event
    customer: Customer
    address: Address
    breakdown: PriceBreakdown


@dataclass(frozen=True)
class OrderConfirmation:
    order: Order
    kits: List[Kit]
    event: Event
    delivery_estimate: DeliveryEstimate


def validate_kit_quantity(kit_quantity) -> List[FieldError]:
    if (
        not isinstance(kit_quantity, int)
        or isinstance(kit_quantity, bool)
        or not MIN_KITS <= kit_quantity <= MAX_KITS
    ):
        return [FieldError("kitQuantity", f"Quantidade de kits deve ser entre {MIN_KITS} e {MAX_KITS}")]
    return []


def clean_kits(kit_quantity: int, kits: Sequence[Dict[str, Any]]) -> Tuple[List[KitData], List[FieldError]]:
    """
    Valida os dados de cada kit e normaliza o CPF do participante.

    A lista precisa ter exatamente kit_quantity itens.
    """
    errors: List[FieldError] = []
    cleaned: List[KitData] = []

    if len(kits) != kit_quantity:
        errors.append(FieldError(
            "kits",
            f"Informe os dados de {kit_quantity} kit(s); recebidos {len(kits)}",
        ))

    for index, kit in enumerate(kits):
        prefix = f"kits.{index}."
        name = (kit.get("name") or "").strip()
        if not name:
            errors.append(FieldError(f"{prefix}name", "Nome é obrigatório"))
        cpf = normalize_cpf(kit.get("cpf"))
        if cpf is None:
            errors.append(FieldError(f"{prefix}cpf", "CPF deve ter 11 dígitos"))
        size = kit.get("shirt_size")
        if isinstance(size, ShirtSize):
            size = size.value
        if size not in SHIRT_SIZES:
            errors.append(FieldError(
                f"{prefix}shirtSize",
                f"Tamanho da camiseta é obrigatório ({', '.join(SHIRT_SIZES)})",
            ))
        if name and cpf and size in SHIRT_SIZES:
            cleaned.append(KitData(name=name, cpf=cpf, shirt_size=ShirtSize(size)))

    return cleaned, errors


def validate_payment_method(payment_method) -> List[FieldError]:
    if isinstance(payment_method, PaymentMethod):
        return []
    if payment_method not in PAYMENT_METHODS:
        return [FieldError("paymentMethod", f"Forma de pagamento inválida ({', '.join(PAYMENT_METHODS)})")]
    return []


class OrderService:
    """
    Orquestra a criação de pedidos:

    1. valida o payload (antes de qualquer acesso ao banco)
    2. confere evento, cliente e endereço
    3. calcula o preço
    4. grava pedido + kits numa transação, com número de pedido novo
    5. monta a confirmação (pedido, kits, evento e previsão de entrega)
    """

    def __init__(
        self,
        repository: KitRunnerRepository,
        delivery_estimator: DeliveryCostEstimator,
        order_numbers: OrderNumberGenerator,
        delivery_offset_days: int = 2,
        max_number_attempts: int = 3,
    ) -> None:
        self._repo = repository
        self._delivery_estimator = delivery_estimator
        self._order_numbers = order_numbers
        self._delivery_offset_days = delivery_offset_days
        self._max_number_attempts = max_number_attempts

    # Consultas

    def list_events(self) -> List[Event]:
        return self._repo.list_events()

    def get_event(self, event_id: int) -> Event:
        event = self._repo.get_event(event_id)
        if event is None:
            raise NotFoundError("event", "Evento não encontrado")
        return event

    def get_order(self, order_number: str) -> Tuple[Order, List[Kit], Optional[Event]]:
        order = self._repo.get_order_by_number(order_number)
        if order is None:
            raise NotFoundError("order", "Pedido não encontrado")
        return order, self._repo.list_kits(order.id), self._repo.get_event(order.event_id)

    def list_customer_orders(self, customer_id: int) -> List[Order]:
        if self._repo.get_customer(customer_id) is None:
            raise NotFoundError("customer", "Cliente não encontrado")
        return self._repo.list_orders_by_customer(customer_id)

    # Preço

    def resolve_coupon(self, event: Event, code: Optional[str]) -> Optional[AppliedCoupon]:
        """
        Cupom do próprio evento tem prioridade; depois a tabela de cupons.
        Código ausente, desconhecido ou inativo não gera desconto nem erro.
        """
        wanted = (code or "").strip().upper()
        if not wanted:
            return None

        if (
            event.coupon_code
            and event.coupon_discount is not None
            and event.coupon_code.strip().upper() == wanted
        ):
            return AppliedCoupon(code=wanted, percentage=event.coupon_discount)

        coupon = self._repo.get_coupon(wanted)
        if coupon is None or not coupon.active:
            logger.info(f"Cupom ignorado: code={wanted}, event_id={event.id}")
            return None
        return AppliedCoupon.from_coupon(coupon)

    def price(
        self,
        event: Event,
        address: Address,
        kit_quantity: int,
        coupon_code: Optional[str] = None,
    ) -> PriceBreakdown:
        # Preço fixo dispensa a estimativa de entrega
        delivery_cost = 0 if event.fixed_price is not None else self._delivery_estimator.estimate(event, address)
        coupon = self.resolve_coupon(event, coupon_code)
        return compute_price(event, kit_quantity, delivery_cost, coupon)

    def calculate_delivery(
        self,
        customer_id: int,
        event_id: int,
        kit_quantity: int,
        address_id: Optional[int] = None,
        coupon_code: Optional[str] = None,
    ) -> PriceQuote:
        errors = validate_kit_quantity(kit_quantity)
        if errors:
            raise ValidationError(errors)

        event, customer, address = self._load_references(event_id, customer_id, address_id)
        breakdown = self.price(event, address, kit_quantity, coupon_code)
        return PriceQuote(event=event, customer=customer, address=address, breakdown=breakdown)

    # Criação

    def create_order(self, request: OrderRequest) -> OrderConfirmation:
        errors = validate_kit_quantity(request.kit_quantity)
        kits: List[KitData] = []
        if not errors:
            kits, kit_errors = clean_kits(request.kit_quantity, request.kits)
            errors.extend(kit_errors)
        errors.extend(validate_payment_method(request.payment_method))
        if errors:
            logger.warning(
                f"Pedido rejeitado na validação: customer_id={request.customer_id}, "
                f"event_id={request.event_id}, fields={[e.field for e in errors]}"
            )
            raise ValidationError(errors)

        event, customer, address = self._load_references(
            request.event_id, request.customer_id, request.address_id,
        )

        if request.idempotency_key:
            existing = self._repo.get_order_by_idempotency_key(request.idempotency_key)
            if existing is not None:
                return self._replay(existing, customer)

        breakdown = self.price(event, address, request.kit_quantity, request.coupon_code)
        draft = OrderDraft(
            event_id=event.id,
            customer_id=customer.id,
            address_id=address.id,
            kit_quantity=request.kit_quantity,
            base_cost=breakdown.base_cost,
            delivery_cost=breakdown.delivery_cost,
            donation_cost=breakdown.donation_cost,
            extra_kits_cost=breakdown.extra_kits_cost,
            discount_amount=breakdown.discount_amount,
            total_cost=breakdown.total_cost,
            payment_method=PaymentMethod(request.payment_method),
            coupon_code=breakdown.coupon_code,
            idempotency_key=request.idempotency_key,
            kits=tuple(kits),
        )

        order, created_kits = self._persist(draft, customer)
        logger.info(
            f"Pedido criado: order_number={order.order_number}, customer_id={customer.id}, "
            f"cpf={mask_cpf(customer.cpf)}, kits={len(created_kits)}, total={order.total_cost}"
        )
        return OrderConfirmation(
            order=order,
            kits=created_kits,
            event=event,
            delivery_estimate=self.delivery_estimate(event),
        )

    def delivery_estimate(self, event: Event) -> DeliveryEstimate:
        return DeliveryEstimate(
            event_date=event.date,
            delivery_date=event.date + timedelta(days=self._delivery_offset_days),
        )

    def _persist(self, draft: OrderDraft, customer: Customer) -> Tuple[Order, List[Kit]]:
        for attempt in range(1, self._max_number_attempts + 1):
            order_number = self._order_numbers.generate()
            try:
                return self._repo.create_order(draft, order_number)
            except OrderNumberConflict:
                logger.warning(
                    f"Número de pedido repetido, gerando outro: order_number={order_number}, "
                    f"attempt={attempt}"
                )
            except ConflictError:
                # Outra requisição com a mesma chave gravou primeiro
                existing = self._repo.get_order_by_idempotency_key(draft.idempotency_key or "")
                if existing is None:
                    raise
                replay = self._replay(existing, customer)
                return replay.order, replay.kits

        logger.error(
            f"Não foi possível gerar número de pedido único após "
            f"{self._max_number_attempts} tentativas"
        )
        raise PersistenceError("Erro ao criar pedido")

    def _replay(self, existing: Order, customer: Customer) -> OrderConfirmation:
        if existing.customer_id != customer.id:
            raise ConflictError("Chave de idempotência já utilizada por outro pedido")
        logger.info(
            f"Pedido repetido devolvido pela chave de idempotência: "
            f"order_number={existing.order_number}"
        )
        event = self.get_event(existing.event_id)
        return OrderConfirmation(
            order=existing,
            kits=self._repo.list_kits(existing.id),
            event=event,
            delivery_estimate=self.delivery_estimate(event),
        )

    def _load_references(
        self,
        event_id: int,
        customer_id: int,
        address_id: Optional[int],
    ) -> Tuple[Event, Customer, Address]:
        event = self.get_event(event_id)

        customer = self._repo.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("customer", "Cliente não encontrado")

        if address_id is None:
            addresses = self._repo.list_addresses(customer_id)
            if not addresses:
                raise ValidationError.single("addressId", "Cadastre um endereço de entrega")
            address = next((a for a in addresses if a.is_default), addresses[0])
        else:
            address = self._repo.get_address(address_id)
            if address is None:
                raise NotFoundError("address", "Endereço não encontrado")
            if address.customer_id != customer.id:
                raise ValidationError.single("addressId", "Endereço não pertence ao cliente")

        if not event.available:
            raise ValidationError.single("eventId", "Evento indisponível para novos pedidos")

        return event, customer, address
