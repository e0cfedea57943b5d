import logging
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.errors import ConflictError, NotFoundError, OrderNumberConflict, PersistenceError
from ..core.models import (
    Address,
    Coupon,
    Customer,
    Event,
    Kit,
    Order,
    OrderDraft,
    OrderStatus,
    PaymentMethod,
    ShirtSize,
)
from ..core.normalizers import mask_cpf
from .models import AddressRow, CouponRow, CustomerRow, EventRow, KitRow, OrderRow

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = (
    "street", "number", "complement", "neighborhood",
    "city", "state", "zip_code", "label", "is_default",
)


class KitRunnerRepository(ABC):
    """
    Contrato único de persistência do KitRunner.

    Implementações:
    - SqlAlchemyRepository: banco relacional com transações
    - InMemoryRepository: dicionários com ids auto-incrementais (testes/dev)

    Todas devolvem os registros imutáveis de `core.models`.
    """

    # Eventos
    @abstractmethod
    def list_events(self) -> List[Event]: ...

    @abstractmethod
    def get_event(self, event_id: int) -> Optional[Event]: ...

    @abstractmethod
    def create_event(self, fields: Dict[str, Any]) -> Event: ...

    # Clientes
    @abstractmethod
    def get_customer(self, customer_id: int) -> Optional[Customer]: ...

    @abstractmethod
    def find_customer_by_cpf(self, cpf: str) -> Optional[Customer]: ...

    @abstractmethod
    def find_customer_by_credentials(self, cpf: str, birth_date: date) -> Optional[Customer]: ...

    @abstractmethod
    def register_customer(
        self,
        fields: Dict[str, Any],
        addresses: Sequence[Dict[str, Any]],
    ) -> Tuple[Customer, List[Address]]:
        """Cria o cliente e seus endereços de forma atômica."""

    # Endereços
    @abstractmethod
    def list_addresses(self, customer_id: int) -> List[Address]: ...

    @abstractmethod
    def get_address(self, address_id: int) -> Optional[Address]: ...

    @abstractmethod
    def create_address(self, customer_id: int, fields: Dict[str, Any]) -> Address: ...

    @abstractmethod
    def update_address(self, address_id: int, fields: Dict[str, Any]) -> Address: ...

    # Cupons
    @abstractmethod
    def get_coupon(self, code: str) -> Optional[Coupon]: ...

    @abstractmethod
    def create_coupon(self, fields: Dict[str, Any]) -> Coupon: ...

    # Pedidos
    @abstractmethod
    def create_order(self, draft: OrderDraft, order_number: str) -> Tuple[Order, List[Kit]]:
        """
        Grava o pedido e todos os seus kits numa única transação.
        Em qualquer falha nada fica gravado.
        """

    @abstractmethod
    def get_order_by_number(self, order_number: str) -> Optional[Order]: ...

    @abstractmethod
    def get_order_by_idempotency_key(self, key: str) -> Optional[Order]: ...

    @abstractmethod
    def list_kits(self, order_id: int) -> List[Kit]: ...

    @abstractmethod
    def list_orders_by_customer(self, customer_id: int) -> List[Order]: ...


def _money(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(value).quantize(Decimal("0.01"))


def _to_event(row: EventRow) -> Event:
    return Event(
        id=row.id,
        name=row.name,
        date=row.date,
        time=row.time,
        location=row.location,
        city=row.city,
        state=row.state,
        participants=row.participants,
        available=row.available,
        fixed_price=_money(row.fixed_price),
        extra_kit_price=_money(row.extra_kit_price),
        donation_required=row.donation_required,
        donation_description=row.donation_description,
        donation_amount=_money(row.donation_amount),
        coupon_code=row.coupon_code,
        coupon_discount=_money(row.coupon_discount),
        created_at=row.created_at,
    )


def _to_customer(row: CustomerRow) -> Customer:
    return Customer(
        id=row.id,
        name=row.name,
        cpf=row.cpf,
        birth_date=row.birth_date,
        email=row.email,
        phone=row.phone,
        address=row.address,
        neighborhood=row.neighborhood,
        city=row.city,
        state=row.state,
        zip_code=row.zip_code,
        created_at=row.created_at,
    )


def _to_address(row: AddressRow) -> Address:
    return Address(
        id=row.id,
        customer_id=row.customer_id,
        street=row.street,
        number=row.number,
        complement=row.complement,
        neighborhood=row.neighborhood,
        city=row.city,
        state=row.state,
        zip_code=row.zip_code,
        label=row.label,
        is_default=row.is_default,
        created_at=row.created_at,
    )


def _to_coupon(row: CouponRow) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        discount_percentage=_money(row.discount_percentage),
        active=row.active,
    )


def _to_kit(row: KitRow) -> Kit:
    return Kit(
        id=row.id,
        order_id=row.order_id,
        name=row.name,
        cpf=row.cpf,
        shirt_size=ShirtSize(row.shirt_size),
    )


def _to_order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        event_id=row.event_id,
        customer_id=row.customer_id,
        address_id=row.address_id,
        kit_quantity=row.kit_quantity,
        base_cost=_money(row.base_cost),
        delivery_cost=_money(row.delivery_cost),
        donation_cost=_money(row.donation_cost),
        extra_kits_cost=_money(row.extra_kits_cost),
        discount_amount=_money(row.discount_amount),
        total_cost=_money(row.total_cost),
        payment_method=PaymentMethod(row.payment_method),
        coupon_code=row.coupon_code,
        status=OrderStatus(row.status),
        idempotency_key=row.idempotency_key,
        created_at=row.created_at,
    )


class SqlAlchemyRepository(KitRunnerRepository):
    """
    Repositório relacional. Cada operação abre a própria sessão;
    escritas fazem commit ao final ou rollback em qualquer erro.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _fail(self, db: Session, operation: str, error: Exception) -> None:
        logger.error(
            f"Erro de banco de dados: operation={operation}, "
            f"error={type(error).__name__}: {error}",
            exc_info=True,
        )
        db.rollback()
        raise PersistenceError() from error

    # Eventos

    def list_events(self) -> List[Event]:
        db: Session = self._session_factory()
        try:
            rows = db.execute(select(EventRow).order_by(EventRow.date, EventRow.id)).scalars().all()
            return [_to_event(r) for r in rows]
        finally:
            db.close()

    def get_event(self, event_id: int) -> Optional[Event]:
        db: Session = self._session_factory()
        try:
            row = db.get(EventRow, event_id)
            return _to_event(row) if row else None
        finally:
            db.close()

    def create_event(self, fields: Dict[str, Any]) -> Event:
        db: Session = self._session_factory()
        try:
            row = EventRow(**fields)
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.debug(f"Evento criado: id={row.id}, name={row.name}")
            return _to_event(row)
        except SQLAlchemyError as e:
            self._fail(db, "create_event", e)
        finally:
            db.close()

    # Clientes

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        db: Session = self._session_factory()
        try:
            row = db.get(CustomerRow, customer_id)
            return _to_customer(row) if row else None
        finally:
            db.close()

    def find_customer_by_cpf(self, cpf: str) -> Optional[Customer]:
        db: Session = self._session_factory()
        try:
            row = db.execute(select(CustomerRow).where(CustomerRow.cpf == cpf)).scalar_one_or_none()
            return _to_customer(row) if row else None
        finally:
            db.close()

    def find_customer_by_credentials(self, cpf: str, birth_date: date) -> Optional[Customer]:
        db: Session = self._session_factory()
        try:
            row = db.execute(
                select(CustomerRow).where(
                    CustomerRow.cpf == cpf,
                    CustomerRow.birth_date == birth_date,
                )
            ).scalar_one_or_none()
            return _to_customer(row) if row else None
        finally:
            db.close()

    def register_customer(
        self,
        fields: Dict[str, Any],
        addresses: Sequence[Dict[str, Any]],
    ) -> Tuple[Customer, List[Address]]:
        db: Session = self._session_factory()
        try:
            customer = CustomerRow(**fields)
            db.add(customer)
            db.flush()

            address_rows = []
            seen_default = False
            for data in addresses:
                is_default = bool(data.get("is_default")) and not seen_default
                seen_default = seen_default or is_default
                row = AddressRow(customer_id=customer.id, **{**data, "is_default": is_default})
                db.add(row)
                address_rows.append(row)

            db.commit()
            for row in address_rows:
                db.refresh(row)
            db.refresh(customer)

            assert customer.id is not None, (
                "Customer persisted without id! "
                "This indicates a persistence error."
            )

            logger.debug(
                f"Cliente criado: id={customer.id}, cpf={mask_cpf(customer.cpf)}, "
                f"addresses={len(address_rows)}"
            )
            return _to_customer(customer), [_to_address(r) for r in address_rows]
        except IntegrityError as e:
            logger.warning(
                f"Erro de integridade ao criar cliente: cpf={mask_cpf(fields.get('cpf'))}, "
                f"error={type(e).__name__}"
            )
            db.rollback()
            raise ConflictError("Cliente já cadastrado com este CPF") from e
        except SQLAlchemyError as e:
            self._fail(db, "register_customer", e)
        finally:
            db.close()

    # Endereços

    def list_addresses(self, customer_id: int) -> List[Address]:
        db: Session = self._session_factory()
        try:
            rows = db.execute(
                select(AddressRow)
                .where(AddressRow.customer_id == customer_id)
                .order_by(AddressRow.is_default.desc(), AddressRow.id)
            ).scalars().all()
            return [_to_address(r) for r in rows]
        finally:
            db.close()

    def get_address(self, address_id: int) -> Optional[Address]:
        db: Session = self._session_factory()
        try:
            row = db.get(AddressRow, address_id)
            return _to_address(row) if row else None
        finally:
            db.close()

    def _clear_default(self, db: Session, customer_id: int, keep_id: Optional[int] = None) -> None:
        stmt = (
            update(AddressRow)
            .where(AddressRow.customer_id == customer_id, AddressRow.is_default.is_(True))
            .values(is_default=False)
        )
        if keep_id is not None:
            stmt = stmt.where(AddressRow.id != keep_id)
        db.execute(stmt)

    def create_address(self, customer_id: int, fields: Dict[str, Any]) -> Address:
        db: Session = self._session_factory()
        try:
            if db.get(CustomerRow, customer_id) is None:
                raise NotFoundError("customer", "Cliente não encontrado")
            if fields.get("is_default"):
                self._clear_default(db, customer_id)
            row = AddressRow(customer_id=customer_id, **fields)
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.debug(f"Endereço criado: id={row.id}, customer_id={customer_id}")
            return _to_address(row)
        except SQLAlchemyError as e:
            self._fail(db, "create_address", e)
        finally:
            db.close()

    def update_address(self, address_id: int, fields: Dict[str, Any]) -> Address:
        db: Session = self._session_factory()
        try:
            row = db.get(AddressRow, address_id)
            if row is None:
                raise NotFoundError("address", "Endereço não encontrado")
            if fields.get("is_default"):
                self._clear_default(db, row.customer_id, keep_id=row.id)
            for key, value in fields.items():
                if key in ADDRESS_FIELDS:
                    setattr(row, key, value)
            db.commit()
            db.refresh(row)
            logger.debug(f"Endereço atualizado: id={row.id}, fields={sorted(fields)}")
            return _to_address(row)
        except SQLAlchemyError as e:
            self._fail(db, "update_address", e)
        finally:
            db.close()

    # Cupons

    def get_coupon(self, code: str) -> Optional[Coupon]:
        db: Session = self._session_factory()
        try:
            row = db.execute(
                select(CouponRow).where(func.upper(CouponRow.code) == code.strip().upper())
            ).scalar_one_or_none()
            return _to_coupon(row) if row else None
        finally:
            db.close()

    def create_coupon(self, fields: Dict[str, Any]) -> Coupon:
        db: Session = self._session_factory()
        try:
            row = CouponRow(**{**fields, "code": fields["code"].strip().upper()})
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_coupon(row)
        except IntegrityError as e:
            db.rollback()
            raise ConflictError("Cupom já cadastrado") from e
        except SQLAlchemyError as e:
            self._fail(db, "create_coupon", e)
        finally:
            db.close()

    # Pedidos

    def create_order(self, draft: OrderDraft, order_number: str) -> Tuple[Order, List[Kit]]:
        db: Session = self._session_factory()
        try:
            order = OrderRow(
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
                coupon_code=draft.coupon_code,
                total_cost=draft.total_cost,
                payment_method=draft.payment_method.value,
                status=OrderStatus.CONFIRMED.value,
                idempotency_key=draft.idempotency_key,
            )
            db.add(order)
            db.flush()

            kit_rows = []
            for kit in draft.kits:
                row = KitRow(
                    order_id=order.id,
                    name=kit.name,
                    cpf=kit.cpf,
                    shirt_size=kit.shirt_size.value,
                )
                db.add(row)
                kit_rows.append(row)

            db.commit()
            db.refresh(order)
            for row in kit_rows:
                db.refresh(row)

            assert len(kit_rows) == order.kit_quantity, (
                "Order persisted with wrong number of kits! "
                f"order_number={order_number}"
            )

            logger.info(
                f"Pedido gravado: id={order.id}, order_number={order_number}, "
                f"kits={len(kit_rows)}, total={order.total_cost}"
            )
            return _to_order(order), [_to_kit(r) for r in kit_rows]
        except IntegrityError as e:
            db.rollback()
            error_msg = str(e.orig).lower() if e.orig is not None else str(e).lower()
            if "order_number" in error_msg:
                logger.warning(f"Colisão de número de pedido: order_number={order_number}")
                raise OrderNumberConflict() from e
            if "idempotency_key" in error_msg:
                raise ConflictError("Pedido já registrado para esta chave de idempotência") from e
            self._fail(db, "create_order", e)
        except SQLAlchemyError as e:
            self._fail(db, "create_order", e)
        finally:
            db.close()

    def get_order_by_number(self, order_number: str) -> Optional[Order]:
        db: Session = self._session_factory()
        try:
            row = db.execute(
                select(OrderRow).where(OrderRow.order_number == order_number)
            ).scalar_one_or_none()
            return _to_order(row) if row else None
        finally:
            db.close()

    def get_order_by_idempotency_key(self, key: str) -> Optional[Order]:
        db: Session = self._session_factory()
        try:
            row = db.execute(
                select(OrderRow).where(OrderRow.idempotency_key == key)
            ).scalar_one_or_none()
            return _to_order(row) if row else None
        finally:
            db.close()

    def list_kits(self, order_id: int) -> List[Kit]:
        db: Session = self._session_factory()
        try:
            rows = db.execute(
                select(KitRow).where(KitRow.order_id == order_id).order_by(KitRow.id)
            ).scalars().all()
            return [_to_kit(r) for r in rows]
        finally:
            db.close()

    def list_orders_by_customer(self, customer_id: int) -> List[Order]:
        db: Session = self._session_factory()
        try:
            rows = db.execute(
                select(OrderRow)
                .where(OrderRow.customer_id == customer_id)
                .order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
            ).scalars().all()
            return [_to_order(r) for r in rows]
        finally:
            db.close()
