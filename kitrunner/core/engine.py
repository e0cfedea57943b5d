import logging
from typing import Optional, Union

from ..config import AppConfig
from ..infra.delivery import DeliveryCostEstimator, create_delivery_estimator
from ..session.redis_session_manager import RedisSessionManager
from ..storage.database import create_session_factory
from ..storage.memory import InMemoryRepository
from ..storage.repository import KitRunnerRepository, SqlAlchemyRepository
from ..storage.seed import seed_demo_data
from .customer_service import CustomerService
from .order_number import OrderNumberGenerator
from .order_service import OrderService
from .session_manager import InMemorySessionManager
from .wizard_manager import WizardManager

logger = logging.getLogger(__name__)

SessionManager = Union[InMemorySessionManager, RedisSessionManager]


def create_repository(config: AppConfig) -> KitRunnerRepository:
    """
    Escolhe a implementação do repositório na inicialização do processo.
    """
    if config.storage_backend == "memory":
        logger.info("Repositório em memória (STORAGE_BACKEND=memory)")
        return InMemoryRepository()

    db_type = "sqlite" if "sqlite" in config.database_url else "postgres" if "postgres" in config.database_url else "unknown"
    logger.info(f"Repositório SQLAlchemy: database_type={db_type}")
    create_tables = config.env == "dev"
    if not create_tables:
        logger.info("Schema não criado automaticamente em prod; aplique as migrações com `alembic upgrade head`")
    return SqlAlchemyRepository(create_session_factory(config.database_url, create_tables=create_tables))


def create_session_manager(config: AppConfig) -> SessionManager:
    # Redis se configurado, senão memória
    if config.redis_url and config.redis_url.strip():
        try:
            manager = RedisSessionManager(
                redis_url=config.redis_url,
                session_ttl_seconds=config.wizard_session_ttl_seconds,
            )
            logger.info("Sessões do assistente usando Redis")
            return manager
        except Exception as e:
            logger.error(f"Erro ao inicializar RedisSessionManager: {e}, usando InMemory como fallback")
    else:
        logger.info("Sessões do assistente em memória (REDIS_URL não configurado)")
    return InMemorySessionManager(session_ttl_seconds=config.wizard_session_ttl_seconds)


class KitRunnerEngine:
    """
    Núcleo da aplicação: monta repositório, serviços e sessões
    a partir da configuração e os expõe para a camada HTTP.
    """

    def __init__(
        self,
        config: AppConfig,
        repository: Optional[KitRunnerRepository] = None,
        sessions: Optional[SessionManager] = None,
        delivery_estimator: Optional[DeliveryCostEstimator] = None,
    ) -> None:
        self.config = config
        self.repository = repository or create_repository(config)
        self.sessions = sessions or create_session_manager(config)

        self.customers = CustomerService(self.repository)
        self.orders = OrderService(
            repository=self.repository,
            delivery_estimator=delivery_estimator or create_delivery_estimator(config),
            order_numbers=OrderNumberGenerator(prefix=config.order_number_prefix),
            delivery_offset_days=config.delivery_offset_days,
        )
        self.wizard = WizardManager(self.customers, self.orders)

        if config.seed_demo_data:
            seed_demo_data(self.repository)

        logger.info(
            f"KitRunnerEngine inicializado: env={config.env}, "
            f"storage={config.storage_backend}, estimator={config.delivery_estimator}"
        )
