from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
from .database import Base


class EventRow(Base):
    """
    Evento de corrida com configuração de preço.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    location = Column(String(200), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(2), nullable=False)
    participants = Column(Integer, nullable=False, default=0)
    available = Column(Boolean, nullable=False, default=True)
    fixed_price = Column(Numeric(10, 2), nullable=True)
    extra_kit_price = Column(Numeric(10, 2), nullable=False, default=8)
    donation_required = Column(Boolean, nullable=False, default=False)
    donation_description = Column(String(255), nullable=True)
    donation_amount = Column(Numeric(10, 2), nullable=True)
    coupon_code = Column(String(50), nullable=True)
    coupon_discount = Column(Numeric(5, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CustomerRow(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    cpf = Column(String(11), nullable=False, unique=True, index=True)
    birth_date = Column(Date, nullable=False)
    email = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    # Campos legados: endereços de entrega ficam em `addresses`
    address = Column(String(255), nullable=True)
    neighborhood = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(8), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    addresses = relationship("AddressRow", back_populates="customer", cascade="all, delete-orphan")


class AddressRow(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    street = Column(String(200), nullable=False)
    number = Column(String(20), nullable=False)
    complement = Column(String(100), nullable=True)
    neighborhood = Column(String(100), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(2), nullable=False)
    zip_code = Column(String(8), nullable=False)
    label = Column(String(50), nullable=False, default="Casa")
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    customer = relationship("CustomerRow", back_populates="addresses")


class CouponRow(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class OrderRow(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    kit_quantity = Column(Integer, nullable=False)
    base_cost = Column(Numeric(10, 2), nullable=False)
    delivery_cost = Column(Numeric(10, 2), nullable=False, default=0)
    donation_cost = Column(Numeric(10, 2), nullable=False, default=0)
    extra_kits_cost = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_code = Column(String(50), nullable=True)
    total_cost = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, default="confirmed")
    idempotency_key = Column(String(100), nullable=True, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    kits = relationship("KitRow", back_populates="order", order_by="KitRow.id")


class KitRow(Base):
    __tablename__ = "kits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    cpf = Column(String(11), nullable=False)
    shirt_size = Column(String(3), nullable=False)

    order = relationship("OrderRow", back_populates="kits")
