"""
Repositório em memória, com ids auto-incrementais.

Usado em testes e em desenvolvimento (STORAGE_BACKEND=memory).
Respeita as mesmas regras do banco: CPF e número de pedido únicos,
chaves estrangeiras verificadas e pedido + kits gravados juntos.
"""
import itertools
import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.errors import ConflictError, NotFoundError, OrderNumberConflict, PersistenceError
from ..core.models import Address, Coupon, Customer, Event, Kit, Order, OrderDraft, OrderStatus
from ..core.normalizers import mask_cpf
from .repository import ADDRESS_FIELDS, KitRunnerRepository

logger = logging.getLogger(__name__)


class InMemoryRepository(KitRunnerRepository):

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ids: Dict[str, itertools.count] = {}
        self._events: Dict[int, Event] = {}
        self._customers: Dict[int, Customer] = {}
        self._addresses: Dict[int, Address] = {}
        self._coupons: Dict[int, Coupon] = {}
        self._orders: Dict[int, Order] = {}
        self._kits: Dict[int, Kit] = {}

    def _next_id(self, table: str) -> int:
        counter = self._ids.setdefault(table, itertools.count(1))
        return next(counter)

    # Eventos

    def list_events(self) -> List[Event]:
        with self._lock:
            return sorted(self._events.values(), key=lambda e: (e.date, e.id))

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._lock:
            return self._events.get(event_id)

    def create_event(self, fields: Dict[str, Any]) -> Event:
        with self._lock:
            data = dict(fields)
            for key in ("fixed_price", "extra_kit_price", "donation_amount", "coupon_discount"):
                if data.get(key) is not None:
                    data[key] = Decimal(str(data[key]))
            event = Event(id=self._next_id("events"), created_at=datetime.utcnow(), **data)
            self._events[event.id] = event
            return event

    # Clientes

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        with self._lock:
            return self._customers.get(customer_id)

    def find_customer_by_cpf(self, cpf: str) -> Optional[Customer]:
        with self._lock:
            return next((c for c in self._customers.values() if c.cpf == cpf), None)

    def find_customer_by_credentials(self, cpf: str, birth_date: date) -> Optional[Customer]:
        with self._lock:
            return next(
                (c for c in self._customers.values() if c.cpf == cpf and c.birth_date == birth_date),
                None,
            )

    def register_customer(
        self,
        fields: Dict[str, Any],
        addresses: Sequence[Dict[str, Any]],
    ) -> Tuple[Customer, List[Address]]:
        with self._lock:
            if self.find_customer_by_cpf(fields["cpf"]) is not None:
                logger.warning(f"CPF já cadastrado: cpf={mask_cpf(fields['cpf'])}")
                raise ConflictError("Cliente já cadastrado com este CPF")

            customer = Customer(
                id=self._next_id("customers"),
                created_at=datetime.utcnow(),
                **fields,
            )
            created = []
            seen_default = False
            for data in addresses:
                is_default = bool(data.get("is_default")) and not seen_default
                seen_default = seen_default or is_default
                created.append(Address(
                    id=self._next_id("addresses"),
                    customer_id=customer.id,
                    created_at=datetime.utcnow(),
                    **{**data, "is_default": is_default},
                ))

            self._customers[customer.id] = customer
            for address in created:
                self._addresses[address.id] = address
            return customer, created

    # Endereços

    def list_addresses(self, customer_id: int) -> List[Address]:
        with self._lock:
            found = [a for a in self._addresses.values() if a.customer_id == customer_id]
            return sorted(found, key=lambda a: (not a.is_default, a.id))

    def get_address(self, address_id: int) -> Optional[Address]:
        with self._lock:
            return self._addresses.get(address_id)

    def _clear_default(self, customer_id: int, keep_id: Optional[int] = None) -> None:
        for address in list(self._addresses.values()):
            if address.customer_id == customer_id and address.is_default and address.id != keep_id:
                self._addresses[address.id] = replace(address, is_default=False)

    def create_address(self, customer_id: int, fields: Dict[str, Any]) -> Address:
        with self._lock:
            if customer_id not in self._customers:
                raise NotFoundError("customer", "Cliente não encontrado")
            if fields.get("is_default"):
                self._clear_default(customer_id)
            address = Address(
                id=self._next_id("addresses"),
                customer_id=customer_id,
                created_at=datetime.utcnow(),
                **fields,
            )
            self._addresses[address.id] = address
            return address

    def update_address(self, address_id: int, fields: Dict[str, Any]) -> Address:
        with self._lock:
            current = self._addresses.get(address_id)
            if current is None:
                raise NotFoundError("address", "Endereço não encontrado")
            if fields.get("is_default"):
                self._clear_default(current.customer_id, keep_id=address_id)
            changes = {k: v for k, v in fields.items() if k in ADDRESS_FIELDS}
            updated = replace(current, **changes)
            self._addresses[address_id] = updated
            return updated

    # Cupons

    def get_coupon(self, code: str) -> Optional[Coupon]:
        wanted = code.strip().upper()
        with self._lock:
            return next((c for c in self._coupons.values() if c.code.upper() == wanted), None)

    def create_coupon(self, fields: Dict[str, Any]) -> Coupon:
        with self._lock:
            code = fields["code"].strip().upper()
            if self.get_coupon(code) is not None:
                raise ConflictError("Cupom já cadastrado")
            coupon = Coupon(
                id=self._next_id("coupons"),
                code=code,
                discount_percentage=Decimal(str(fields["discount_percentage"])),
                active=fields.get("active", True),
            )
            self._coupons[coupon.id] = coupon
            return coupon

    # Pedidos

    def create_order(self, draft: OrderDraft, order_number: str) -> Tuple[Order, List[Kit]]:
        with self._lock:
            if any(o.order_number == order_number for o in self._orders.values()):
                raise OrderNumberConflict()
            if draft.idempotency_key and self.get_order_by_idempotency_key(draft.idempotency_key):
                raise ConflictError("Pedido já registrado para esta chave de idempotência")
            if (
                draft.event_id not in self._events
                or draft.customer_id not in self._customers
                or draft.address_id not in self._addresses
            ):
                logger.error(f"Chave estrangeira inválida ao gravar pedido: order_number={order_number}")
                raise PersistenceError()
            if any(not (kit.name and kit.cpf and kit.shirt_size) for kit in draft.kits):
                # Mesmo efeito do NOT NULL de kits.name/cpf/shirt_size no banco
                logger.error(f"Kit incompleto ao gravar pedido: order_number={order_number}")
                raise PersistenceError()

            # Monta tudo antes de publicar: nada fica visível pela metade
            order = Order(
                id=self._next_id("orders"),
                order_number=order_number,
                event_id=draft.event_id,
                customer_id=draft.customer_id,
                address_id=draft.address_id,
                kit_quantity=draft.kit_quantity,
                base_cost=draft.base_cost,
                delivery_cost=draft.delivery_cost,
                donation_cost=draft.donation_cost,
                extra_kits_cost=draft.extra_kits_cost,
                discount_amount=draft.discount_amount,
                total_cost=draft.total_cost,
                payment_method=draft.payment_method,
                coupon_code=draft.coupon_code,
                status=OrderStatus.CONFIRMED,
                idempotency_key=draft.idempotency_key,
                created_at=datetime.utcnow(),
            )
            kits = [
                Kit(
                    id=self._next_id("kits"),
                    order_id=order.id,
                    name=kit.name,
                    cpf=kit.cpf,
                    shirt_size=kit.shirt_size,
                )
                for kit in draft.kits
            ]

            self._orders[order.id] = order
            for kit in kits:
                self._kits[kit.id] = kit

            logger.info(
                f"Pedido gravado (memória): id={order.id}, order_number={order_number}, "
                f"kits={len(kits)}, total={order.total_cost}"
            )
            return order, kits

    def get_order_by_number(self, order_number: str) -> Optional[Order]:
        with self._lock:
            return next((o for o in self._orders.values() if o.order_number == order_number), None)

    def get_order_by_idempotency_key(self, key: str) -> Optional[Order]:
        with self._lock:
            return next((o for o in self._orders.values() if o.idempotency_key == key), None)

    def list_kits(self, order_id: int) -> List[Kit]:
        with self._lock:
            return sorted((k for k in self._kits.values() if k.order_id == order_id), key=lambda k: k.id)

    def list_orders_by_customer(self, customer_id: int) -> List[Order]:
        with self._lock:
            found = [o for o in self._orders.values() if o.customer_id == customer_id]
            return sorted(found, key=lambda o: o.id, reverse=True)
