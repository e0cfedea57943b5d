"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from kitrunner.api.http import create_app
from kitrunner.config import AppConfig
from kitrunner.core.customer_service import CustomerService
from kitrunner.core.engine import KitRunnerEngine
from kitrunner.core.models import Event
from kitrunner.core.order_number import OrderNumberGenerator
from kitrunner.core.order_service import OrderService
from kitrunner.core.session_manager import InMemorySessionManager
from kitrunner.core.wizard_manager import WizardManager
from kitrunner.infra.delivery import FlatRateDeliveryEstimator
from kitrunner.storage.database import create_session_factory
from kitrunner.storage.memory import InMemoryRepository
from kitrunner.storage.repository import SqlAlchemyRepository
from kitrunner.storage.seed import seed_demo_data

# Ids atribuídos pelo seed (inserção em ordem)
SP_EVENT_ID = 1
RIO_EVENT_ID = 2
BH_EVENT_ID = 3
JOAO_ID = 1
MARIA_ID = 2
JOAO_ADDRESS_ID = 1
MARIA_ADDRESS_ID = 2


def make_event(**overrides) -> Event:
    """Evento com preço por entrega, sem doação e sem cupom."""
    fields = dict(
        id=1,
        name="Corrida Teste",
        date=date(2026, 12, 13),
        time="07:00",
        location="Parque",
        city="São Paulo",
        state="SP",
        participants=1000,
        available=True,
        fixed_price=None,
        extra_kit_price=Decimal("8.00"),
    )
    fields.update(overrides)
    return Event(**fields)


def kit_payload(count: int) -> list:
    participants = ["52998224725", "11144477735", "39053344705", "86288366757", "71428793860"]
    sizes = ["P", "M", "G", "GG", "XGG"]
    return [
        {"name": f"Participante {i + 1}", "cpf": participants[i], "shirt_size": sizes[i]}
        for i in range(count)
    ]


@pytest.fixture(params=["memory", "sql"])
def repository(request):
    """Repositório vazio, nas duas implementações."""
    if request.param == "memory":
        return InMemoryRepository()
    return SqlAlchemyRepository(create_session_factory("sqlite://", create_tables=True))


@pytest.fixture
def seeded_repository(repository):
    seed_demo_data(repository)
    return repository


@pytest.fixture
def customer_service(repository) -> CustomerService:
    return CustomerService(repository)


@pytest.fixture
def order_service(seeded_repository) -> OrderService:
    return OrderService(
        repository=seeded_repository,
        delivery_estimator=FlatRateDeliveryEstimator(Decimal("18.50")),
        order_numbers=OrderNumberGenerator(),
    )


@pytest.fixture
def memory_repository() -> InMemoryRepository:
    repository = InMemoryRepository()
    seed_demo_data(repository)
    return repository


@pytest.fixture
def wizard(memory_repository) -> WizardManager:
    orders = OrderService(
        repository=memory_repository,
        delivery_estimator=FlatRateDeliveryEstimator(Decimal("18.50")),
        order_numbers=OrderNumberGenerator(),
    )
    return WizardManager(CustomerService(memory_repository), orders)


@pytest.fixture
def engine() -> KitRunnerEngine:
    config = AppConfig(storage_backend="memory", seed_demo_data=True)
    return KitRunnerEngine(config=config, sessions=InMemorySessionManager())


@pytest.fixture
def client(engine) -> TestClient:
    return TestClient(create_app(engine=engine))
