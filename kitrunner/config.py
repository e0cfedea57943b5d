from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y")


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation:
        logger.warning(f"{name} inválido '{raw}', usando {default}")
        return Decimal(default)


@dataclass(frozen=True)
class AppConfig:
    """
    Parâmetros do KitRunner: banco, sessões do assistente,
    numeração de pedidos e cálculo de entrega.
    """
    database_url: str = "sqlite:///./kitrunner.db"
    env: str = "dev"  # "dev" ou "prod"
    storage_backend: str = "sql"  # "sql" ou "memory"
    redis_url: str = ""
    wizard_session_ttl_seconds: int = 7200  # sessão do assistente é efêmera
    order_number_prefix: str = "KR"
    delivery_offset_days: int = 2
    delivery_estimator: str = "flat"  # "flat" ou "cep_prefix"
    default_delivery_cost: Decimal = Decimal("18.50")
    pickup_base_price: Decimal = Decimal("15.00")
    price_per_cep_unit: Decimal = Decimal("0.05")
    delivery_origin_cep: str = "01000000"
    seed_demo_data: bool = False

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Monta a configuração a partir do .env e das variáveis de ambiente.
        Valores inválidos caem no padrão com um warning no log.
        Levanta erro explícito se alguma combinação for inválida.
        """
        load_dotenv()

        env = os.getenv("ENV", "dev").lower()
        if env not in ("dev", "prod"):
            logger.warning(f"ENV inválido '{env}', usando 'dev' como padrão")
            env = "dev"

        storage_backend = os.getenv("STORAGE_BACKEND", "sql").lower()
        if storage_backend not in ("sql", "memory"):
            logger.warning(f"STORAGE_BACKEND inválido '{storage_backend}', usando 'sql'")
            storage_backend = "sql"
        if env == "prod" and storage_backend == "memory":
            raise RuntimeError(
                "ENV=prod não aceita STORAGE_BACKEND=memory. "
                "Configure DATABASE_URL e use o backend 'sql'."
            )

        delivery_estimator = os.getenv("DELIVERY_ESTIMATOR", "flat").lower()
        if delivery_estimator not in ("flat", "cep_prefix"):
            logger.warning(f"DELIVERY_ESTIMATOR inválido '{delivery_estimator}', usando 'flat'")
            delivery_estimator = "flat"

        seed_demo_data = _env_flag("SEED_DEMO_DATA")
        if env == "prod" and seed_demo_data:
            logger.warning("SEED_DEMO_DATA ignorado em produção")
            seed_demo_data = False

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./kitrunner.db"),
            env=env,
            storage_backend=storage_backend,
            redis_url=os.getenv("REDIS_URL", ""),
            wizard_session_ttl_seconds=int(os.getenv("WIZARD_SESSION_TTL_SECONDS", "7200")),
            order_number_prefix=os.getenv("ORDER_NUMBER_PREFIX", "KR"),
            delivery_offset_days=int(os.getenv("DELIVERY_OFFSET_DAYS", "2")),
            delivery_estimator=delivery_estimator,
            default_delivery_cost=_env_decimal("DEFAULT_DELIVERY_COST", "18.50"),
            pickup_base_price=_env_decimal("PICKUP_BASE_PRICE", "15.00"),
            price_per_cep_unit=_env_decimal("PRICE_PER_CEP_UNIT", "0.05"),
            delivery_origin_cep=os.getenv("DELIVERY_ORIGIN_CEP", "01000000"),
            seed_demo_data=seed_demo_data,
        )
