"""
Dados de demonstração para desenvolvimento.
"""
import logging
from datetime import date
from decimal import Decimal

from ..core.errors import ConflictError
from .repository import KitRunnerRepository

logger = logging.getLogger(__name__)

DEMO_EVENTS = [
    {
        "name": "Maratona de São Paulo 2026",
        "date": date(2026, 12, 13),
        "time": "06:00",
        "location": "Parque Ibirapuera",
        "city": "São Paulo",
        "state": "SP",
        "participants": 12000,
        "available": True,
        "extra_kit_price": Decimal("8.00"),
    },
    {
        "name": "Corrida de Rua Rio 2026",
        "date": date(2026, 12, 20),
        "time": "07:00",
        "location": "Copacabana",
        "city": "Rio de Janeiro",
        "state": "RJ",
        "participants": 8000,
        "available": True,
        "fixed_price": Decimal("50.00"),
        "extra_kit_price": Decimal("10.00"),
        "coupon_code": "RIO10",
        "coupon_discount": Decimal("10"),
    },
    {
        "name": "Meia Maratona BH",
        "date": date(2026, 12, 27),
        "time": "06:30",
        "location": "Lagoa da Pampulha",
        "city": "Belo Horizonte",
        "state": "MG",
        "participants": 5000,
        "available": False,
        "donation_required": True,
        "donation_description": "1 kg de alimento não perecível",
        "donation_amount": Decimal("5.00"),
    },
]

DEMO_CUSTOMERS = [
    (
        {
            "name": "João Silva Santos",
            "cpf": "12345678901",
            "birth_date": date(1990, 5, 15),
            "email": "joao@example.com",
            "phone": "+55 11 99999-0001",
        },
        [{
            "street": "Rua das Flores",
            "number": "123",
            "complement": "Apto 45",
            "neighborhood": "Jardim Paulista",
            "city": "São Paulo",
            "state": "SP",
            "zip_code": "01234567",
            "label": "Casa",
            "is_default": True,
        }],
    ),
    (
        {
            "name": "Maria Oliveira Costa",
            "cpf": "98765432100",
            "birth_date": date(1985, 3, 20),
            "email": "maria@example.com",
            "phone": "+55 21 99999-0002",
        },
        [{
            "street": "Avenida Atlântica",
            "number": "456",
            "complement": "Apto 102",
            "neighborhood": "Copacabana",
            "city": "Rio de Janeiro",
            "state": "RJ",
            "zip_code": "22070011",
            "label": "Casa",
            "is_default": True,
        }],
    ),
]

DEMO_COUPONS = [
    {"code": "KITRUNNER10", "discount_percentage": Decimal("10")},
]


def seed_demo_data(repository: KitRunnerRepository) -> None:
    """
    Insere eventos, clientes e cupons de exemplo. Pode ser chamado
    mais de uma vez: registros já existentes são mantidos.
    """
    logger.info("Populando banco com dados de demonstração...")

    if not repository.list_events():
        for fields in DEMO_EVENTS:
            repository.create_event(fields)

    for fields, addresses in DEMO_CUSTOMERS:
        if repository.find_customer_by_cpf(fields["cpf"]) is None:
            repository.register_customer(fields, addresses)

    for fields in DEMO_COUPONS:
        try:
            repository.create_coupon(fields)
        except ConflictError:
            logger.debug(f"Cupom já existente: code={fields['code']}")

    logger.info("Dados de demonstração prontos")
