"""
Colaboradores que estimam o custo de entrega.

O motor de preço só recebe o número resultante; nenhuma fórmula de
distância vive no núcleo.
"""
import logging
from decimal import Decimal
from typing import Protocol

from ..config import AppConfig
from ..core.models import Address, Event
from ..core.normalizers import normalize_cep

logger = logging.getLogger(__name__)


class DeliveryCostEstimator(Protocol):
    def estimate(self, event: Event, address: Address) -> Decimal: ...


class FlatRateDeliveryEstimator:
    """Valor fixo de entrega, independente do endereço."""

    def __init__(self, cost: Decimal) -> None:
        self._cost = Decimal(cost)

    def estimate(self, event: Event, address: Address) -> Decimal:
        return self._cost


class CepPrefixDeliveryEstimator:
    """
    Estimativa provisória: base + |prefixo5(origem) - prefixo5(destino)| * taxa.

    Não é distância real; serve até existir um serviço de geocodificação.
    """

    def __init__(self, origin_cep: str, base_price: Decimal, price_per_unit: Decimal) -> None:
        origin = normalize_cep(origin_cep)
        if origin is None:
            raise ValueError(f"CEP de origem inválido: {origin_cep}")
        self._origin_prefix = int(origin[:5])
        self._base_price = Decimal(base_price)
        self._price_per_unit = Decimal(price_per_unit)

    def estimate(self, event: Event, address: Address) -> Decimal:
        destination = normalize_cep(address.zip_code)
        if destination is None:
            logger.warning(
                f"CEP de destino inválido, usando preço base: address_id={address.id}"
            )
            return self._base_price
        distance = abs(self._origin_prefix - int(destination[:5]))
        return self._base_price + distance * self._price_per_unit


def create_delivery_estimator(config: AppConfig) -> DeliveryCostEstimator:
    if config.delivery_estimator == "cep_prefix":
        logger.info(f"Estimativa de entrega por prefixo de CEP: origem={config.delivery_origin_cep}")
        return CepPrefixDeliveryEstimator(
            origin_cep=config.delivery_origin_cep,
            base_price=config.pickup_base_price,
            price_per_unit=config.price_per_cep_unit,
        )
    logger.info(f"Estimativa de entrega por valor fixo: cost={config.default_delivery_cost}")
    return FlatRateDeliveryEstimator(config.default_delivery_cost)
